from __future__ import annotations

import random
from datetime import timedelta

from grant_curator.context import RunContext
from grant_curator.featured import (
    FeaturedSelector,
    ScoredCandidate,
    is_first_time_friendly,
    score_candidate,
    select_featured,
)
from grant_curator.models import ApplicationComplexity, OpportunityRecord


class _NoJitter:
    def uniform(self, low: float, high: float) -> float:
        return 0.0


def _scored(id_: str, score: float, funder_type: str = "private_foundation",
            focus_areas: list[str] | None = None, ftf: bool = False) -> ScoredCandidate:
    return ScoredCandidate(
        id=id_,
        score=score,
        funder_type=funder_type,
        focus_areas=focus_areas or ["health"],
        first_time_friendly=ftf,
    )


def _insert(store, funder, context, slug: str, days_to_deadline: int | None, **overrides) -> str:
    values = {
        "slug": slug,
        "funder_id": funder.id,
        "title": slug.replace("-", " ").title(),
        "status": "open",
        "is_verified": True,
        "deadline_date": (
            context.today + timedelta(days=days_to_deadline)
            if days_to_deadline is not None
            else None
        ),
        "created_at": context.now - timedelta(days=90),
    }
    values.update(overrides)
    return store.insert_opportunity(OpportunityRecord(**values)).id


def test_score_components(context) -> None:
    record = OpportunityRecord(
        slug="s",
        funder_id="f",
        title="Neighborhood Grant",
        status="open",
        deadline_date=context.today + timedelta(days=20),
        created_at=context.now - timedelta(days=1),
    )
    assert score_candidate(record, context, _NoJitter()) == 65

    record.deadline_date = context.today + timedelta(days=45)
    record.application_complexity = ApplicationComplexity.SIMPLE
    assert score_candidate(record, context, _NoJitter()) == 60

    record.deadline_date = context.today - timedelta(days=1)
    assert score_candidate(record, context, _NoJitter()) == -70


def test_first_time_friendly_rules() -> None:
    base = {"slug": "s", "funder_id": "f", "title": "Seed Grant", "status": "open"}
    assert is_first_time_friendly(OpportunityRecord(**base, application_complexity="simple"))
    assert is_first_time_friendly(
        OpportunityRecord(**base, application_complexity="moderate", amount_max=10_000_000)
    )
    assert not is_first_time_friendly(
        OpportunityRecord(**base, application_complexity="moderate", amount_max=10_000_001)
    )
    assert not is_first_time_friendly(
        OpportunityRecord(
            **base, application_complexity="moderate", amount_max=500_000, requires_loi=True
        )
    )
    assert not is_first_time_friendly(OpportunityRecord(**base, application_complexity="complex"))


def test_selection_prefers_diversity_after_guaranteed_slots() -> None:
    candidates = [
        _scored("c", 70),
        _scored("a", 90),
        _scored("b", 80),
        _scored("d", 60, funder_type="community_foundation", focus_areas=["arts-culture"]),
        _scored("e", -5),
    ]

    selected = select_featured(candidates, target_count=6)

    assert [candidate.id for candidate in selected] == ["a", "b", "d", "c"]


def test_first_time_friendly_candidate_is_swapped_in() -> None:
    candidates = [_scored(str(index), 100 - index) for index in range(6)]
    candidates.append(_scored("ftf", 1, ftf=True))

    selected = select_featured(candidates, target_count=6)

    assert len(selected) == 6
    assert "ftf" in {candidate.id for candidate in selected}
    assert "5" not in {candidate.id for candidate in selected}


def test_past_deadlines_never_featured_and_small_pools_return_all(
    store, funder, context
) -> None:
    past = _insert(store, funder, context, "past-deadline", -3)
    viable = [
        _insert(store, funder, context, "soon-grant", 10),
        _insert(store, funder, context, "rolling-grant", None, deadline_type="rolling"),
        _insert(store, funder, context, "new-grant", 200, created_at=context.now),
    ]
    _insert(store, funder, context, "unverified-grant", 10, is_verified=False)

    stats = FeaturedSelector(store, rng=random.Random(7)).run(context)

    assert sorted(stats.selected_ids) == sorted(viable)
    assert past not in stats.selected_ids
    assert stats.featured == 3
    assert store.get_opportunity(past).is_featured is False


def test_consecutive_rotations_leave_no_stale_flags(store, funder, context) -> None:
    ids = [
        _insert(store, funder, context, f"grant-number-{index}", 5 + index * 5)
        for index in range(10)
    ]

    first = FeaturedSelector(store, rng=random.Random(1)).run(context)
    second = FeaturedSelector(store, rng=random.Random(2)).run(RunContext(now=context.now))

    assert first.featured == 6
    assert second.unfeatured == 6
    featured_now = {id_ for id_ in ids if store.get_opportunity(id_).is_featured}
    assert featured_now == set(second.selected_ids)


def test_seeded_rotation_is_deterministic(store, funder, context) -> None:
    for index in range(10):
        _insert(store, funder, context, f"grant-number-{index}", 5 + index * 5)

    first = FeaturedSelector(store, rng=random.Random(42)).run(context)
    second = FeaturedSelector(store, rng=random.Random(42)).run(context)

    assert first.selected_ids == second.selected_ids
