from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from grant_curator.models import CandidateOpportunity

DEFAULT_BLOCK_CLASSES = ("grant", "opportunity", "funding", "program", "award")


@dataclass(slots=True)
class ParseOptions:
    """Per-page knobs; funder hints may override the global defaults."""

    page_url: str | None = None
    min_keyword_hits: int = 2
    block_classes: tuple[str, ...] = DEFAULT_BLOCK_CLASSES


class ExtractionStrategy(ABC):
    name: str = ""

    @abstractmethod
    def extract(self, html: str, options: ParseOptions) -> list[CandidateOpportunity]:
        """Return candidates found in the page, or an empty list."""
