"""Heuristic extraction strategies for funder grant pages."""

from __future__ import annotations

import logging

from grant_curator.models import CandidateOpportunity
from grant_curator.utils.text_utils import normalize_title

from .base import DEFAULT_BLOCK_CLASSES, ExtractionStrategy, ParseOptions
from .block import BlockStrategy
from .heading_window import HeadingWindowStrategy
from .registry import (
    StrategyRegistrationError,
    create_strategies,
    create_strategy,
    register_strategy,
    registered_strategies,
)

logger = logging.getLogger(__name__)

DEFAULT_STRATEGIES = ("block", "heading_window")


def parse_grants_page(
    html: str,
    options: ParseOptions | None = None,
    strategies: list[ExtractionStrategy] | None = None,
) -> list[CandidateOpportunity]:
    """Run strategies in order; the first one that finds anything wins."""
    options = options or ParseOptions()
    if strategies is None:
        strategies = create_strategies(list(DEFAULT_STRATEGIES))

    for strategy in strategies:
        candidates = strategy.extract(html, options)
        if candidates:
            logger.debug(
                "Strategy %s extracted %d candidates from %s",
                strategy.name,
                len(candidates),
                options.page_url or "<inline html>",
            )
            return _dedupe_by_title(candidates)

    return []


def _dedupe_by_title(candidates: list[CandidateOpportunity]) -> list[CandidateOpportunity]:
    seen: set[str] = set()
    unique: list[CandidateOpportunity] = []
    for candidate in candidates:
        key = normalize_title(candidate.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


__all__ = [
    "DEFAULT_BLOCK_CLASSES",
    "DEFAULT_STRATEGIES",
    "BlockStrategy",
    "ExtractionStrategy",
    "HeadingWindowStrategy",
    "ParseOptions",
    "StrategyRegistrationError",
    "create_strategies",
    "create_strategy",
    "parse_grants_page",
    "register_strategy",
    "registered_strategies",
]
