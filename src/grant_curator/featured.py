"""
Daily rotation of the featured opportunity set.

Every eligible record is scored for urgency, freshness and accessibility,
with a little random jitter so the set changes day to day. Selection then
fills the target count while preferring variety of funder type and focus
area, and makes sure at least one first-time-friendly opportunity is shown
whenever one exists.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import timedelta

from grant_curator.context import RunContext
from grant_curator.models import (
    ApplicationComplexity,
    DeadlineType,
    FunderType,
    OpportunityRecord,
)
from grant_curator.store import Store

logger = logging.getLogger(__name__)

TARGET_FEATURED_COUNT = 6
GUARANTEED_SLOTS = 2
# $100K, in cents.
FIRST_TIME_FRIENDLY_MAX_AMOUNT = 10_000_000
MAX_JITTER = 15.0


@dataclass(slots=True)
class ScoredCandidate:
    id: str
    score: float
    funder_type: str
    focus_areas: list[str]
    first_time_friendly: bool


@dataclass(slots=True)
class FeaturedStats:
    unfeatured: int = 0
    featured: int = 0
    selected_ids: list[str] = field(default_factory=list)


def is_first_time_friendly(record: OpportunityRecord) -> bool:
    if record.application_complexity is ApplicationComplexity.SIMPLE:
        return True
    if record.application_complexity is not ApplicationComplexity.MODERATE:
        return False
    max_amount = record.amount_max if record.amount_max is not None else record.amount_exact
    if max_amount is None or max_amount > FIRST_TIME_FRIENDLY_MAX_AMOUNT:
        return False
    return not record.requires_loi


def score_candidate(
    record: OpportunityRecord,
    context: RunContext,
    rng: random.Random,
) -> float:
    score = 0.0
    today = context.today

    if record.deadline_date is not None:
        if record.deadline_date < today:
            score -= 100
        elif record.deadline_date <= today + timedelta(days=60):
            score += 30
            if record.deadline_date <= today + timedelta(days=30):
                score += 15

    if record.deadline_type in (DeadlineType.ROLLING, DeadlineType.CONTINUOUS):
        score += 10

    if record.created_at is not None and record.created_at > context.now - timedelta(days=14):
        score += 20

    if is_first_time_friendly(record):
        score += 10

    return score + rng.uniform(0, MAX_JITTER)


def select_featured(
    candidates: list[ScoredCandidate],
    target_count: int = TARGET_FEATURED_COUNT,
) -> list[ScoredCandidate]:
    """Greedy selection with soft diversity; ``candidates`` need not be sorted."""
    remaining = sorted(
        (candidate for candidate in candidates if candidate.score > 0),
        key=lambda candidate: candidate.score,
        reverse=True,
    )
    ranked = list(remaining)

    selected: list[ScoredCandidate] = []
    used_funder_types: set[str] = set()
    used_focus_areas: set[str] = set()

    while remaining and len(selected) < target_count:
        pick = remaining[0]
        if len(selected) >= GUARANTEED_SLOTS:
            for candidate in remaining:
                adds_funder_type = candidate.funder_type not in used_funder_types
                adds_focus_area = any(
                    slug not in used_focus_areas for slug in candidate.focus_areas
                )
                if adds_funder_type or adds_focus_area:
                    pick = candidate
                    break

        remaining.remove(pick)
        selected.append(pick)
        used_funder_types.add(pick.funder_type)
        used_focus_areas.update(pick.focus_areas)

    if selected and not any(candidate.first_time_friendly for candidate in selected):
        selected_ids = {candidate.id for candidate in selected}
        replacement = next(
            (
                candidate
                for candidate in ranked
                if candidate.first_time_friendly and candidate.id not in selected_ids
            ),
            None,
        )
        if replacement is not None:
            lowest = min(selected, key=lambda candidate: candidate.score)
            selected[selected.index(lowest)] = replacement

    return selected


class FeaturedSelector:
    def __init__(
        self,
        store: Store,
        *,
        target_count: int = TARGET_FEATURED_COUNT,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.target_count = target_count
        self.rng = rng or random.Random()

    def run(self, context: RunContext) -> FeaturedStats:
        stats = FeaturedStats()
        stats.unfeatured = self.store.clear_featured()

        records = self.store.list_feature_candidates()
        if not records:
            logger.info("No eligible featured candidates found")
            return stats

        funder_types = {
            funder.id: funder.funder_type.value for funder in self.store.list_funders()
        }
        scored = [
            ScoredCandidate(
                id=str(record.id),
                score=score_candidate(record, context, self.rng),
                funder_type=funder_types.get(record.funder_id, FunderType.OTHER.value),
                focus_areas=list(record.focus_areas),
                first_time_friendly=is_first_time_friendly(record),
            )
            for record in records
        ]

        selected = select_featured(scored, self.target_count)
        if not selected:
            logger.info("No viable featured candidates after scoring")
            return stats

        stats.selected_ids = [candidate.id for candidate in selected]
        stats.featured = self.store.set_featured(stats.selected_ids)
        logger.info(
            "Rotated featured set | unfeatured=%d featured=%d",
            stats.unfeatured,
            stats.featured,
        )
        return stats
