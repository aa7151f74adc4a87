"""Shared Prisma client and the FastAPI dependency around it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AsyncIterator, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from prisma import Prisma

logger = logging.getLogger(__name__)

_client: Optional["Prisma"] = None


def get_client() -> "Prisma":
    """Return the process-wide Prisma client, creating it on first use.

    The generated client module only exists after ``prisma generate`` has run
    against ``prisma/schema.prisma``, so the import is deferred until the
    application actually needs the database.
    """

    global _client
    if _client is None:
        from prisma import Prisma

        _client = Prisma()
    return _client


async def connect_db() -> None:
    client = get_client()
    if not client.is_connected():
        await client.connect()
        logger.info("Database connection opened")


async def disconnect_db() -> None:
    client = get_client()
    if client.is_connected():
        await client.disconnect()
        logger.info("Database connection closed")


async def get_db() -> AsyncIterator["Prisma"]:
    # the connection is owned by the application lifecycle, not by requests
    yield get_client()
