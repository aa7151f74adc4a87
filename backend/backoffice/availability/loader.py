# This file loads DisplayRule and CalculatedField rows and keeps the folded rule set in memory.
# The rule set is re-read once the TTL elapses, or immediately after an admin edit clears it.

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from backoffice.availability.rules import DisplayRulesData, build_rules_data
from backoffice.core.config import settings

logger = logging.getLogger(__name__)


class DisplayRulesCache:
    """In-memory copy of the rule set with TTL expiration."""

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: Optional[DisplayRulesData] = None
        self._loaded_at = 0.0

    def is_fresh(self) -> bool:
        if self._data is None or self.ttl_seconds <= 0:
            return False
        return (self._clock() - self._loaded_at) < self.ttl_seconds

    async def load(self, db: Any) -> DisplayRulesData:
        if self.is_fresh():
            return self._data

        display_rules = await db.displayrule.find_many()
        calculated_fields = await db.calculatedfield.find_many()
        data = build_rules_data(display_rules, calculated_fields)

        logger.debug(
            "Loaded %d display rules and %d calculated fields",
            len(display_rules),
            len(calculated_fields),
        )
        self._data = data
        self._loaded_at = self._clock()
        return data

    def clear(self) -> None:
        self._data = None
        self._loaded_at = 0.0


display_rules_cache = DisplayRulesCache(ttl_seconds=settings.display_rules_cache_ttl_seconds)


async def load_display_rules_data(db: Any) -> DisplayRulesData:
    return await display_rules_cache.load(db)


def clear_display_rules_cache() -> None:
    display_rules_cache.clear()
    logger.info("Display rules cache cleared")
