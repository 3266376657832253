from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from grant_curator.config import DEFAULT_USER_AGENT
from grant_curator.extractors import DEFAULT_STRATEGIES
from grant_curator.models import CandidateOpportunity, FunderSource


class SourceUnavailableError(RuntimeError):
    """Raised when a source cannot be reached or answers with a non-2xx status."""


@dataclass(slots=True)
class FetchSettings:
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: int = 30
    strategies: list[str] = field(default_factory=lambda: list(DEFAULT_STRATEGIES))
    min_keyword_hits: int = 2


class Source(ABC):
    def __init__(self, funder: FunderSource) -> None:
        self.funder = funder
        self.source_id = funder.slug

    @abstractmethod
    def fetch(self) -> list[CandidateOpportunity]:
        """Fetch the funder's listing and extract candidate opportunities."""
