from __future__ import annotations

from datetime import date

import pytest

from grant_curator.context import RunContext
from grant_curator.lifecycle import LifecycleMaintainer
from grant_curator.matcher import OpportunityMatcher, find_best_match, similarity
from grant_curator.models import (
    CandidateOpportunity,
    DeadlineType,
    OpportunityRecord,
    OpportunityStatus,
    Origin,
)


def _candidate(title: str, **overrides) -> CandidateOpportunity:
    values = {
        "summary": "Supports youth arts programming in rural counties.",
        "amount_display": "$5,000",
        "deadline_display": "March 15, 2027",
        "deadline_date": date(2027, 3, 15),
        "application_url": "https://hope.example.org/apply",
    }
    values.update(overrides)
    return CandidateOpportunity(title=title, **values)


def test_similarity_ignores_case_and_punctuation() -> None:
    assert similarity("Community Arts Grant 2025", "community arts grant, 2025!") == 1.0


def test_similarity_below_threshold_for_different_programs() -> None:
    assert similarity("Arts Fund", "Youth Fund") == pytest.approx(1 / 3)
    assert similarity("", "") == 0.0


def test_find_best_match_prefers_highest_and_first_on_ties() -> None:
    existing = [
        OpportunityRecord(slug="a", funder_id="f", title="Rural Health Grant", status="open"),
        OpportunityRecord(slug="b", funder_id="f", title="Rural Health Grant", status="open"),
        OpportunityRecord(slug="c", funder_id="f", title="Rural Arts Grant", status="open"),
    ]
    assert find_best_match("rural health grant", existing).slug == "a"
    assert find_best_match("Urban Housing Fund", existing) is None


def test_new_candidates_are_inserted_unverified(store, funder, context) -> None:
    matcher = OpportunityMatcher(store)

    stats = matcher.reconcile(funder, [_candidate("Youth Arts Grant Program")], context)

    assert (stats.new, stats.updated, stats.unchanged) == (1, 0, 0)
    [record] = store.list_opportunities_for_funder(funder.id)
    assert record.slug == "hope-foundation-youth-arts-grant-program"
    assert record.origin is Origin.HTML
    assert record.is_verified is False
    assert record.deadline_type is DeadlineType.FIXED
    assert record.amount_min == 500_000
    assert record.amount_max == 500_000
    assert record.source_url == "https://hope.example.org/apply"
    assert record.created_at == context.now


def test_same_title_twice_in_one_batch_creates_one_record(store, funder, context) -> None:
    matcher = OpportunityMatcher(store)

    stats = matcher.reconcile(
        funder,
        [_candidate("Youth Arts Grant Program"), _candidate("Youth Arts Grant Program")],
        context,
    )

    assert stats.new == 1
    assert stats.unchanged == 1
    assert len(store.list_opportunities_for_funder(funder.id)) == 1


def test_amount_change_updates_once_and_identical_rerun_is_noop(store, funder, context) -> None:
    matcher = OpportunityMatcher(store)
    matcher.reconcile(funder, [_candidate("Youth Arts Grant Program")], context)
    [original] = store.list_opportunities_for_funder(funder.id)

    later = RunContext(now=context.now.replace(day=2))
    changed = matcher.reconcile(
        funder,
        [_candidate("Youth Arts Grant Program", amount_display="$7,500")],
        later,
    )
    rerun = matcher.reconcile(
        funder,
        [_candidate("Youth Arts Grant Program", amount_display="$7,500")],
        later,
    )

    assert (changed.updated, changed.new) == (1, 0)
    assert (rerun.updated, rerun.unchanged) == (0, 1)

    [updated] = store.list_opportunities_for_funder(funder.id)
    assert updated.id == original.id
    assert updated.slug == original.slug
    assert updated.amount_display == "$7,500"
    assert updated.amount_max == 750_000
    assert updated.source_hash != original.source_hash
    assert updated.updated_at == later.now


def test_update_keeps_existing_values_when_candidate_field_missing(store, funder, context) -> None:
    matcher = OpportunityMatcher(store)
    matcher.reconcile(funder, [_candidate("Youth Arts Grant Program")], context)

    matcher.reconcile(
        funder,
        [
            _candidate(
                "Youth Arts Grant Program",
                summary=None,
                status=OpportunityStatus.CLOSED,
            )
        ],
        context,
    )

    [record] = store.list_opportunities_for_funder(funder.id)
    assert record.summary == "Supports youth arts programming in rural counties."
    assert record.status is OpportunityStatus.CLOSED


def test_slug_collision_is_counted_and_skipped(store, funder, context) -> None:
    prefix = "Community Foundation Neighborhood Revitalization Capacity Building Initiative"
    first = _candidate(f"{prefix} for riverside parks libraries gardens murals trails clinics")
    second = _candidate(f"{prefix} supporting veterans seniors students artists farmers nurses")
    matcher = OpportunityMatcher(store)

    stats = matcher.reconcile(funder, [first, second], context)

    assert stats.new == 1
    assert stats.conflicts == 1
    assert not context.errors
    assert len(store.list_opportunities_for_funder(funder.id)) == 1


def test_rolling_deadline_type(store, funder, context) -> None:
    matcher = OpportunityMatcher(store)
    matcher.reconcile(
        funder,
        [_candidate("Capacity Building Fund", deadline_display="Rolling", deadline_date=None)],
        context,
    )

    [record] = store.list_opportunities_for_funder(funder.id)
    assert record.deadline_type is DeadlineType.ROLLING


def test_fixed_to_rolling_update_clears_stale_deadline(store, funder, context) -> None:
    matcher = OpportunityMatcher(store)
    matcher.reconcile(
        funder,
        [
            _candidate(
                "Youth Arts Grant Program",
                deadline_display="June 10, 2026",
                deadline_date=date(2026, 6, 10),
            )
        ],
        context,
    )

    later = RunContext(now=context.now.replace(month=7))
    stats = matcher.reconcile(
        funder,
        [_candidate("Youth Arts Grant Program", deadline_display="Rolling", deadline_date=None)],
        later,
    )
    LifecycleMaintainer(store).run(later)

    assert stats.updated == 1
    [record] = store.list_opportunities_for_funder(funder.id)
    assert record.deadline_type is DeadlineType.ROLLING
    assert record.deadline_date is None
    assert record.status is OpportunityStatus.OPEN
