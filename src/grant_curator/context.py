from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from grant_curator.utils.datetime_utils import to_utc, utc_now


@dataclass(slots=True)
class RunContext:
    """State owned by a single pipeline run and passed to every stage."""

    now: datetime = field(default_factory=utc_now)
    errors: list[str] = field(default_factory=list)
    handled_source_urls: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.now = to_utc(self.now)

    @property
    def today(self) -> date:
        return self.now.date()

    def record_error(self, message: str) -> None:
        self.errors.append(message)
