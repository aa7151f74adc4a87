# This file contains the authentication and authorization dependencies shared by the routers.
# Bearer tokens are issued by the dashboard sign-in and carry the user email in "sub" and the role in "role".
# The user row is re-read on every request so disabled accounts lose access immediately.

from typing import Any, List

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from backoffice.common.enums import Role
from backoffice.core.security import decode_token
from backoffice.db.prisma_client import get_db

bearer_scheme = HTTPBearer()


def require_role(allowed_roles: List[str]):
    def wrapper(user):
        if user.role not in allowed_roles:
            raise HTTPException(status_code=403, detail="Permission denied")
        return user
    return wrapper


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Any = Depends(get_db),
):
    try:
        payload = decode_token(credentials.credentials)
        email: str = payload.get("sub")
        role: str = payload.get("role")
        if email is None or role is None:
            raise HTTPException(status_code=401, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=401, detail="Could not validate credentials")

    user = await db.user.find_unique(where={"email": email})

    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.isActive:
        raise HTTPException(status_code=403, detail="Account is disabled")

    return user


async def get_admin_user(user: Any = Depends(get_current_user)):
    return require_role([Role.ADMIN.value])(user)
