# backend/backoffice/core/request_log.py

from __future__ import annotations

import logging
import time
from typing import Optional

from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from backoffice.core.security import decode_token

logger = logging.getLogger(__name__)


def _token_subject(auth_header: Optional[str]) -> Optional[str]:
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    try:
        payload = decode_token(auth_header[7:])
    except JWTError:
        logger.debug("Unable to decode bearer token for request logging")
        return None
    return payload.get("sub") if isinstance(payload, dict) else None


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request with status, latency and the token subject."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start_time) * 1000

        subject = _token_subject(request.headers.get("authorization"))
        client_ip = request.client.host if request.client else None

        logger.info(
            "%s %s -> %s in %.1fms (user=%s, ip=%s)",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            subject or "-",
            client_ip or "-",
        )
        return response
