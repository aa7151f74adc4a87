import re
from typing import Any

_WHITESPACE = re.compile(r"\s+")


def field_of(record: Any, key: str, default: Any = None) -> Any:
    """
    Read ``key`` from a Prisma model or a plain dict row.
    """
    if record is None:
        return default
    if isinstance(record, dict):
        return record.get(key, default)
    return getattr(record, key, default)


def normalize_field_name(name: str) -> str:
    return _WHITESPACE.sub("_", name.strip().lower())
