from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from grant_curator.context import RunContext
from grant_curator.store import Store

logger = logging.getLogger(__name__)

DEFAULT_CLOSING_SOON_DAYS = 14


@dataclass(slots=True)
class LifecycleStats:
    expired_closed: int = 0
    marked_closing_soon: int = 0


class LifecycleMaintainer:
    """Deadline-driven status sweeps. Both are idempotent predicate updates."""

    def __init__(self, store: Store, *, closing_soon_days: int = DEFAULT_CLOSING_SOON_DAYS) -> None:
        self.store = store
        self.closing_soon_days = closing_soon_days

    def close_expired(self, context: RunContext) -> int:
        count = self.store.close_expired(context.today, context.now)
        if count:
            logger.info("Closed %d expired opportunities", count)
        return count

    def mark_closing_soon(self, context: RunContext) -> int:
        cutoff = context.today + timedelta(days=self.closing_soon_days)
        count = self.store.mark_closing_soon(context.today, cutoff, context.now)
        if count:
            logger.info("Marked %d opportunities as closing soon", count)
        return count

    def run(self, context: RunContext) -> LifecycleStats:
        return LifecycleStats(
            expired_closed=self.close_expired(context),
            marked_closing_soon=self.mark_closing_soon(context),
        )
