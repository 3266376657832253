from __future__ import annotations

import random
from datetime import date

import pytest
import requests

from conftest import DummyResponse
from grant_curator.config import GrantsGovSettings
from grant_curator.context import RunContext
from grant_curator.featured import FeaturedSelector
from grant_curator.lifecycle import LifecycleMaintainer
from grant_curator.link_validator import LinkValidator
from grant_curator.matcher import OpportunityMatcher
from grant_curator.models import FunderSource, OpportunityRecord, OpportunityStatus
from grant_curator.service import CurationService
from grant_curator.sources import FetchSettings, GrantsGovClient

RIVER_PAGE = """
<div class="grant-item">
  <h3>Watershed Restoration Grant</h3>
  <p>Funding of $20,000 for eligible nonprofits. Deadline: August 1, 2026.</p>
  <a href="https://river.example.org/apply/watershed">Apply</a>
</div>
<div class="grant-item">
  <h3>Youth Water Science Fellowship</h3>
  <p>Fellowship award for students. Applications accepted on a rolling basis.</p>
</div>
"""

FUNDERS = [
    FunderSource(
        slug="river-fund",
        name="River Fund",
        scrape_url="https://river.example.org/grants",
        scrape_config={"type": "html", "hints": {}},
    ),
    FunderSource(
        slug="gone-foundation",
        name="Gone Foundation",
        scrape_url="https://gone.example.org/grants",
        scrape_config={"type": "html", "hints": {}},
    ),
    FunderSource(slug="no-page-trust", name="No Page Trust"),
]


def _fake_get(url, **kwargs):
    if url.startswith("https://gone.example.org"):
        raise requests.ConnectionError("Name or service not known")
    if url.startswith("https://river.example.org"):
        return DummyResponse(text=RIVER_PAGE)
    return DummyResponse(payload={"data": {"synopsis": {"awardCeiling": 25000}}})


def _service(store, **overrides) -> CurationService:
    values = {
        "store": store,
        "funders": FUNDERS,
        "fetch_settings": FetchSettings(),
        "matcher": OpportunityMatcher(store),
        "lifecycle": LifecycleMaintainer(store),
        "featured_selector": FeaturedSelector(store, rng=random.Random(3)),
    }
    values.update(overrides)
    return CurationService(**values)


def test_full_run_continues_past_unreachable_funder(
    store, context, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("requests.get", _fake_get)

    stats = _service(store).run_once(context)

    assert stats.funders_checked == 1
    assert stats.new_opportunities == 2
    assert stats.ok is False
    assert len(stats.errors) == 1
    assert stats.errors[0].startswith("Gone Foundation:")
    assert stats.duration_seconds >= 0

    funders = {funder.slug: funder for funder in store.list_funders()}
    assert set(funders) == {"river-fund", "gone-foundation", "no-page-trust"}
    assert funders["river-fund"].last_scraped_at == context.now
    assert funders["gone-foundation"].last_scraped_at is None

    # Scraped records start unverified, so nothing is eligible to feature yet.
    assert stats.featured == 0


def test_second_run_updates_instead_of_duplicating(
    store, context, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("requests.get", _fake_get)
    service = _service(store)

    service.run_once(context)
    second = service.run_once(RunContext(now=context.now))

    assert second.new_opportunities == 0
    assert second.updated_opportunities == 0
    river = next(funder for funder in store.list_funders() if funder.slug == "river-fund")
    assert len(store.list_opportunities_for_funder(river.id)) == 2


def test_run_order_lifecycle_then_federal_then_featured(
    store, funder, context, monkeypatch: pytest.MonkeyPatch
) -> None:
    expired = store.insert_opportunity(
        OpportunityRecord(
            slug="expired-grant",
            funder_id=funder.id,
            title="Expired Grant",
            status="open",
            is_verified=True,
            is_featured=True,
            deadline_date=date(2026, 5, 1),
        )
    )
    monkeypatch.setattr("requests.get", _fake_get)
    monkeypatch.setattr(
        "requests.post",
        lambda *args, **kwargs: DummyResponse(
            payload={
                "data": {
                    "oppHits": [
                        {
                            "id": 77,
                            "title": "Clean Water Infrastructure Program",
                            "closeDate": "06/20/2026",
                            "oppStatus": "posted",
                        }
                    ]
                }
            }
        ),
    )
    federal = GrantsGovClient(store, GrantsGovSettings(categories=["ENV"]))

    stats = _service(store, funders=[], federal_client=federal).run_once(context)

    assert stats.ok, stats.errors
    assert stats.expired_closed == 1
    assert stats.api_fetched == 1
    assert stats.new_opportunities == 1
    assert stats.unfeatured == 1
    assert stats.featured == 1

    closed = store.get_opportunity(expired.id)
    assert closed.status is OpportunityStatus.CLOSED
    assert closed.is_featured is False


def test_single_stage_commands(store, funder, context, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("requests.head", lambda *args, **kwargs: DummyResponse(status_code=410))
    record = store.insert_opportunity(
        OpportunityRecord(
            slug="moved-grant",
            funder_id=funder.id,
            title="Moved Grant",
            status="open",
            is_verified=True,
            application_url="https://moved.example.org/apply",
        )
    )
    service = _service(
        store,
        funders=[],
        link_validator=LinkValidator(store, batch_pause_seconds=0),
    )

    lifecycle = service.update_lifecycle(context)
    links = service.validate_links(context)

    assert lifecycle.funders_checked == 0
    assert links.links_checked == 1
    assert links.links_dead == 1
    assert store.get_opportunity(record.id).status is OpportunityStatus.CLOSED
    with pytest.raises(RuntimeError):
        service.sync_federal(context)
