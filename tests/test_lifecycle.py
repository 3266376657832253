from __future__ import annotations

from datetime import date

from grant_curator.context import RunContext
from grant_curator.lifecycle import LifecycleMaintainer
from grant_curator.models import OpportunityRecord, OpportunityStatus


def _insert(store, funder, slug: str, status: str, deadline: date | None) -> str:
    record = store.insert_opportunity(
        OpportunityRecord(
            slug=slug,
            funder_id=funder.id,
            title=slug.replace("-", " ").title(),
            status=status,
            deadline_date=deadline,
        )
    )
    return record.id


def test_lifecycle_sweeps_follow_deadlines_and_are_idempotent(store, funder, context) -> None:
    # context.today is 2026-06-01
    ids = {
        "expired-open": _insert(store, funder, "expired-open", "open", date(2026, 5, 31)),
        "expired-soon": _insert(store, funder, "expired-soon", "closing_soon", date(2026, 5, 1)),
        "next-week": _insert(store, funder, "next-week", "open", date(2026, 6, 10)),
        "due-today": _insert(store, funder, "due-today", "open", date(2026, 6, 1)),
        "far-out": _insert(store, funder, "far-out", "open", date(2026, 7, 30)),
        "no-deadline": _insert(store, funder, "no-deadline", "open", None),
        "already-closed": _insert(store, funder, "already-closed", "closed", date(2026, 1, 1)),
    }
    maintainer = LifecycleMaintainer(store)

    first = maintainer.run(context)
    second = maintainer.run(RunContext(now=context.now))

    assert (first.expired_closed, first.marked_closing_soon) == (2, 2)
    assert (second.expired_closed, second.marked_closing_soon) == (0, 0)

    statuses = {name: store.get_opportunity(id_).status for name, id_ in ids.items()}
    assert statuses == {
        "expired-open": OpportunityStatus.CLOSED,
        "expired-soon": OpportunityStatus.CLOSED,
        "next-week": OpportunityStatus.CLOSING_SOON,
        "due-today": OpportunityStatus.CLOSING_SOON,
        "far-out": OpportunityStatus.OPEN,
        "no-deadline": OpportunityStatus.OPEN,
        "already-closed": OpportunityStatus.CLOSED,
    }
    assert store.get_opportunity(ids["next-week"]).updated_at == context.now


def test_closing_soon_window_is_configurable(store, funder, context) -> None:
    record_id = _insert(store, funder, "twenty-days", "open", date(2026, 6, 21))

    assert LifecycleMaintainer(store).mark_closing_soon(context) == 0
    assert LifecycleMaintainer(store, closing_soon_days=30).mark_closing_soon(context) == 1
    assert store.get_opportunity(record_id).status is OpportunityStatus.CLOSING_SOON
