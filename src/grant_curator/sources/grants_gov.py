"""
Grants.gov federal opportunity client.

Uses the public, unauthenticated ``search2`` endpoint per funding category,
and ``fetchOpportunity`` for the details of hits not yet in the store.
Federal records are official data and are inserted pre-verified.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

import requests

from grant_curator.config import DEFAULT_USER_AGENT, GrantsGovSettings
from grant_curator.context import RunContext
from grant_curator.models import (
    ApplicationComplexity,
    DeadlineType,
    FunderSource,
    FunderType,
    OpportunityRecord,
    OpportunityStatus,
    Origin,
)
from grant_curator.store import DuplicateRecordError, Store
from grant_curator.utils.datetime_utils import parse_date
from grant_curator.utils.money import dollars_to_cents, format_award_range
from grant_curator.utils.text_utils import build_slug, content_hash, strip_html

from .base import SourceUnavailableError

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.grants.gov/v1/api/search2"
DETAIL_URL = "https://api.grants.gov/v1/api/fetchOpportunity"
PROVENANCE_URL = "https://www.grants.gov/search-results-detail/{opportunity_id}"

GRANTS_GOV_SLUG = "grants-gov"
API_SLUG_TITLE_LENGTH = 80
SUMMARY_LENGTH = 500
CLOSING_SOON_DAYS = 14

CATEGORY_TO_FOCUS_AREAS: dict[str, list[str]] = {
    "ACA": ["arts-culture"],
    "AG": ["food-agriculture"],
    "BC": ["economic-development"],
    "CD": ["community-development"],
    "CP": ["civic-engagement"],
    "DPR": ["social-justice"],
    "ED": ["education"],
    "ELT": ["workforce"],
    "EN": ["environment"],
    "ENV": ["environment"],
    "FN": ["food-agriculture"],
    "HL": ["health"],
    "HO": ["housing"],
    "HU": ["social-justice"],
    "IIJ": ["social-justice"],
    "IS": ["technology"],
    "ISS": ["international"],
    "LJL": ["social-justice"],
    "NR": ["environment"],
    "O": ["community-development"],
    "RA": ["science-research"],
    "RD": ["science-research"],
    "ST": ["science-research"],
    "T": ["technology"],
}
DEFAULT_FOCUS_AREAS = ["community-development"]

ELIGIBILITY_TO_ORG_TYPE: dict[str, str] = {
    "12": "501c3",
    "13": "501c3",
    "25": "individual",
    "00": "government",
    "01": "government",
    "02": "government",
    "04": "government",
    "05": "government",
    "06": "government",
    "07": "government",
    "11": "government",
    "20": "government",
    "99": "other",
}
DEFAULT_ORG_TYPES = ["501c3"]

GRANTS_GOV_FUNDER = FunderSource(
    slug=GRANTS_GOV_SLUG,
    name="Grants.gov (Federal)",
    funder_type=FunderType.GOVERNMENT_FEDERAL,
    scrape_config={"type": "api"},
    is_verified=True,
    website_url="https://www.grants.gov",
)


@dataclass(slots=True)
class FederalSyncStats:
    fetched: int = 0
    new: int = 0
    updated: int = 0
    unchanged: int = 0


def provenance_url(opportunity_id: str) -> str:
    return PROVENANCE_URL.format(opportunity_id=opportunity_id)


def hit_hash(hit: dict[str, Any]) -> str:
    return content_hash(
        {
            "title": hit.get("title"),
            "closeDate": hit.get("closeDate"),
            "status": hit.get("oppStatus"),
        }
    )


def derive_status(
    opp_status: str | None,
    close_date: str | None,
    today: date,
    closing_soon_days: int = CLOSING_SOON_DAYS,
) -> OpportunityStatus:
    normalized = (opp_status or "").strip().lower()
    if normalized in {"closed", "archived"}:
        return OpportunityStatus.CLOSED
    if normalized == "forecasted":
        return OpportunityStatus.UPCOMING

    deadline = parse_date(close_date)
    if deadline is not None:
        days_left = (deadline - today).days
        if days_left <= 0:
            return OpportunityStatus.CLOSED
        if days_left <= closing_soon_days:
            return OpportunityStatus.CLOSING_SOON

    return OpportunityStatus.OPEN


def map_eligibility_codes(codes: Any) -> list[str]:
    if not codes:
        return list(DEFAULT_ORG_TYPES)

    if isinstance(codes, str):
        raw_codes = codes.split("|")
    elif isinstance(codes, list):
        raw_codes = [
            str(code.get("id", "")) if isinstance(code, dict) else str(code)
            for code in codes
        ]
    else:
        return list(DEFAULT_ORG_TYPES)

    org_types: list[str] = []
    for code in raw_codes:
        mapped = ELIGIBILITY_TO_ORG_TYPE.get(code.strip())
        if mapped and mapped not in org_types:
            org_types.append(mapped)
    return org_types or list(DEFAULT_ORG_TYPES)


def map_category(category: str) -> list[str]:
    return list(CATEGORY_TO_FOCUS_AREAS.get(category, DEFAULT_FOCUS_AREAS))


def _detail_value(detail: dict[str, Any] | None, key: str) -> Any:
    if not detail:
        return None
    if detail.get(key) is not None:
        return detail[key]
    synopsis = detail.get("synopsis")
    if isinstance(synopsis, dict):
        return synopsis.get(key)
    return None


def _as_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", ""))
    except ValueError:
        return None


class GrantsGovClient:
    def __init__(
        self,
        store: Store,
        settings: GrantsGovSettings | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        sleep: Callable[[float], None] = time.sleep,
        closing_soon_days: int = CLOSING_SOON_DAYS,
    ) -> None:
        self.store = store
        self.settings = settings or GrantsGovSettings()
        self.user_agent = user_agent
        self.sleep = sleep
        self.closing_soon_days = closing_soon_days

    def search(self, category: str) -> list[dict[str, Any]]:
        body = {
            "keyword": "",
            "oppNum": "",
            "eligibilities": self.settings.eligibilities,
            "agencies": "",
            "oppStatuses": "posted",
            "aln": "",
            "fundingCategories": category,
            "rows": self.settings.rows,
            "startRecordNum": 0,
        }
        response = requests.post(
            SEARCH_URL,
            json=body,
            headers={"User-Agent": self.user_agent, "Content-Type": "application/json"},
            timeout=self.settings.search_timeout_seconds,
        )
        if not 200 <= response.status_code < 300:
            raise SourceUnavailableError(
                f"Grants.gov category {category}: HTTP {response.status_code}"
            )

        payload = response.json() or {}
        hits = (payload.get("data") or {}).get("oppHits") or []
        return [hit for hit in hits if isinstance(hit, dict)]

    def fetch_detail(self, opportunity_id: str) -> dict[str, Any] | None:
        try:
            response = requests.get(
                f"{DETAIL_URL}/{opportunity_id}",
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                timeout=self.settings.detail_timeout_seconds,
            )
            if not 200 <= response.status_code < 300:
                logger.warning(
                    "Detail fetch for %s returned HTTP %d", opportunity_id, response.status_code
                )
                return None
            payload = response.json() or {}
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Detail fetch for %s failed: %s", opportunity_id, exc)
            return None

        data = payload.get("data")
        return data if isinstance(data, dict) else None

    def sync(self, context: RunContext) -> FederalSyncStats:
        stats = FederalSyncStats()
        funder = self.store.upsert_funder(GRANTS_GOV_FUNDER)

        categories = self.settings.categories
        for index, category in enumerate(categories):
            try:
                logger.info("Fetching Grants.gov category %s", category)
                hits = self.search(category)
            except SourceUnavailableError as exc:
                logger.error("%s", exc)
                context.record_error(str(exc))
                hits = None
            except Exception as exc:  # noqa: BLE001
                message = f"Grants.gov category {category}: {exc}"
                logger.exception(message)
                context.record_error(message)
                hits = None

            if hits is not None:
                stats.fetched += len(hits)
                logger.info("Found %d opportunities in category %s", len(hits), category)
                self._process_hits(funder, category, hits, stats, context)

            if index < len(categories) - 1 and self.settings.category_delay_seconds > 0:
                self.sleep(self.settings.category_delay_seconds)

        logger.info(
            "Grants.gov sync complete | fetched=%d new=%d updated=%d unchanged=%d",
            stats.fetched,
            stats.new,
            stats.updated,
            stats.unchanged,
        )
        return stats

    def _process_hits(
        self,
        funder: FunderSource,
        category: str,
        hits: list[dict[str, Any]],
        stats: FederalSyncStats,
        context: RunContext,
    ) -> None:
        existing_by_source_url = {
            record.source_url: record
            for record in self.store.list_opportunities_for_funder(str(funder.id))
            if record.source_url
        }

        for hit in hits:
            title = str(hit.get("title") or "").strip()
            try:
                opportunity_id = str(hit.get("id") or "").strip()
                if not opportunity_id or not title:
                    logger.debug("Skipping Grants.gov hit without id or title: %r", hit)
                    continue

                source_url = provenance_url(opportunity_id)
                if source_url in context.handled_source_urls:
                    continue
                context.handled_source_urls.add(source_url)

                new_hash = hit_hash(hit)
                existing = existing_by_source_url.get(source_url)
                if existing is not None:
                    if existing.source_hash == new_hash:
                        stats.unchanged += 1
                        continue
                    self._update(existing, hit, new_hash, context)
                    stats.updated += 1
                    continue

                record = self._build_record(funder, category, hit, new_hash, context)
                try:
                    self.store.insert_opportunity(record)
                except DuplicateRecordError as exc:
                    logger.debug("Skipping %s: %s", record.slug, exc)
                    continue

                stats.new += 1
                logger.info("New: %s", title)
            except Exception as exc:  # noqa: BLE001
                message = f"Error processing \"{title}\": {exc}"
                logger.exception(message)
                context.record_error(message)

    def _status(self, hit: dict[str, Any], context: RunContext) -> OpportunityStatus:
        return derive_status(
            hit.get("oppStatus"),
            hit.get("closeDate"),
            context.today,
            self.closing_soon_days,
        )

    def _update(
        self,
        record: OpportunityRecord,
        hit: dict[str, Any],
        new_hash: str,
        context: RunContext,
    ) -> None:
        close_date = hit.get("closeDate")
        deadline_date = parse_date(close_date)
        self.store.update_opportunity(
            str(record.id),
            {
                "status": self._status(hit, context),
                "deadline_type": DeadlineType.FIXED if deadline_date else DeadlineType.UNKNOWN,
                "deadline_date": deadline_date,
                "deadline_display": close_date or "Not specified",
                "source_hash": new_hash,
                "updated_at": context.now,
            },
        )

    def _build_record(
        self,
        funder: FunderSource,
        category: str,
        hit: dict[str, Any],
        new_hash: str,
        context: RunContext,
    ) -> OpportunityRecord:
        opportunity_id = str(hit["id"]).strip()
        detail = self.fetch_detail(opportunity_id)

        title = str(hit["title"]).strip()
        close_date = hit.get("closeDate")
        deadline_date = parse_date(close_date)

        award_floor = _as_number(_detail_value(detail, "awardFloor"))
        award_ceiling = _as_number(_detail_value(detail, "awardCeiling"))
        total_funding = _as_number(_detail_value(detail, "estimatedTotalProgramFunding"))
        expected_awards = _as_number(_detail_value(detail, "expectedNumberOfAwards"))

        raw_description = _detail_value(detail, "description")
        description = strip_html(str(raw_description)) if raw_description else None
        source_url = provenance_url(opportunity_id)

        return OpportunityRecord(
            slug=build_slug(GRANTS_GOV_SLUG, title, max_length=API_SLUG_TITLE_LENGTH),
            funder_id=str(funder.id),
            title=title,
            status=self._status(hit, context),
            origin=Origin.API,
            summary=description[:SUMMARY_LENGTH] if description else None,
            description=description,
            opportunity_type="grant",
            amount_min=dollars_to_cents(award_floor),
            amount_max=dollars_to_cents(award_ceiling),
            amount_display=format_award_range(award_floor, award_ceiling),
            deadline_type=DeadlineType.FIXED if deadline_date else DeadlineType.UNKNOWN,
            deadline_date=deadline_date,
            deadline_display=close_date or "Not specified",
            eligible_org_types=map_eligibility_codes(_detail_value(detail, "eligibilityCodes")),
            eligible_geography=["US"],
            geo_scope_display="United States",
            application_url=source_url,
            application_complexity=ApplicationComplexity.MODERATE,
            num_awards=int(expected_awards) if expected_awards is not None else None,
            total_pool=dollars_to_cents(total_funding),
            source_url=source_url,
            source_hash=new_hash,
            is_verified=True,
            is_featured=False,
            focus_areas=map_category(category),
            created_at=context.now,
            updated_at=context.now,
        )
