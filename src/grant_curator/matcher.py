from __future__ import annotations

import logging
from dataclasses import dataclass

from grant_curator.context import RunContext
from grant_curator.extractors.fields import ROLLING_DEADLINE
from grant_curator.models import (
    ApplicationComplexity,
    CandidateOpportunity,
    DeadlineType,
    FunderSource,
    OpportunityRecord,
    Origin,
)
from grant_curator.store import DuplicateRecordError, Store
from grant_curator.utils.money import parse_amount_range
from grant_curator.utils.text_utils import build_slug, content_hash, normalize_title

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.7
HTML_SLUG_TITLE_LENGTH = 60


@dataclass(slots=True)
class MatchStats:
    new: int = 0
    updated: int = 0
    unchanged: int = 0
    conflicts: int = 0


def similarity(a: str, b: str) -> float:
    """Word-level Jaccard similarity of two titles after normalization."""
    words_a = set(normalize_title(a).split())
    words_b = set(normalize_title(b).split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def find_best_match(
    title: str,
    existing: list[OpportunityRecord],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> OpportunityRecord | None:
    best_match: OpportunityRecord | None = None
    best_score = 0.0
    for record in existing:
        score = similarity(title, record.title)
        if score >= threshold and score > best_score:
            best_score = score
            best_match = record
    return best_match


def candidate_hash(candidate: CandidateOpportunity) -> str:
    return content_hash(
        {
            "title": candidate.title,
            "summary": candidate.summary,
            "amount": candidate.amount_display,
            "deadline": candidate.deadline_display,
            "status": candidate.status.value,
        }
    )


def _deadline_type(candidate: CandidateOpportunity) -> DeadlineType:
    if candidate.deadline_date is not None:
        return DeadlineType.FIXED
    if candidate.deadline_display == ROLLING_DEADLINE:
        return DeadlineType.ROLLING
    return DeadlineType.UNKNOWN


class OpportunityMatcher:
    """Reconciles scraped candidates against one funder's canonical records."""

    def __init__(
        self,
        store: Store,
        *,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> None:
        self.store = store
        self.similarity_threshold = similarity_threshold

    def reconcile(
        self,
        funder: FunderSource,
        candidates: list[CandidateOpportunity],
        context: RunContext,
    ) -> MatchStats:
        if funder.id is None:
            raise ValueError(f"funder {funder.slug} has not been persisted")

        stats = MatchStats()
        existing = self.store.list_opportunities_for_funder(funder.id)

        for candidate in candidates:
            try:
                self._reconcile_one(funder, candidate, existing, stats, context)
            except Exception as exc:  # noqa: BLE001
                message = f"{funder.name}: failed to reconcile '{candidate.title}': {exc}"
                logger.exception(message)
                context.record_error(message)

        return stats

    def _reconcile_one(
        self,
        funder: FunderSource,
        candidate: CandidateOpportunity,
        existing: list[OpportunityRecord],
        stats: MatchStats,
        context: RunContext,
    ) -> None:
        new_hash = candidate_hash(candidate)
        match = find_best_match(candidate.title, existing, self.similarity_threshold)

        if match is not None:
            if match.source_hash == new_hash:
                stats.unchanged += 1
                return
            self._update(match, candidate, new_hash, context)
            stats.updated += 1
            logger.info("Updated: %s", candidate.title)
            return

        record = self._build_record(funder, candidate, new_hash, context)
        try:
            self.store.insert_opportunity(record)
        except DuplicateRecordError as exc:
            stats.conflicts += 1
            logger.debug("Skipping %s: %s", record.slug, exc)
            return

        existing.append(record)
        stats.new += 1
        logger.info("New: %s", candidate.title)

    def _update(
        self,
        record: OpportunityRecord,
        candidate: CandidateOpportunity,
        new_hash: str,
        context: RunContext,
    ) -> None:
        changes: dict[str, object] = {}
        if candidate.summary:
            changes["summary"] = candidate.summary
        if candidate.amount_display:
            changes["amount_display"] = candidate.amount_display
            changes["amount_min"], changes["amount_max"] = parse_amount_range(
                candidate.amount_display
            )
        if candidate.deadline_display:
            changes["deadline_display"] = candidate.deadline_display
            changes["deadline_type"] = _deadline_type(candidate)
            changes["deadline_date"] = candidate.deadline_date
        if candidate.application_url:
            changes["application_url"] = candidate.application_url
        changes["status"] = candidate.status
        changes["source_hash"] = new_hash
        changes["updated_at"] = context.now

        self.store.update_opportunity(str(record.id), changes)

        for name, value in changes.items():
            setattr(record, name, value)

    def _build_record(
        self,
        funder: FunderSource,
        candidate: CandidateOpportunity,
        new_hash: str,
        context: RunContext,
    ) -> OpportunityRecord:
        amount_min, amount_max = parse_amount_range(candidate.amount_display)
        return OpportunityRecord(
            slug=build_slug(funder.slug, candidate.title, max_length=HTML_SLUG_TITLE_LENGTH),
            funder_id=str(funder.id),
            title=candidate.title,
            status=candidate.status,
            origin=Origin.HTML,
            summary=candidate.summary,
            opportunity_type=candidate.opportunity_type or "grant",
            amount_min=amount_min,
            amount_max=amount_max,
            amount_display=candidate.amount_display,
            deadline_type=_deadline_type(candidate),
            deadline_date=candidate.deadline_date,
            deadline_display=candidate.deadline_display,
            eligible_org_types=list(candidate.eligible_org_types),
            eligible_geography=list(candidate.eligible_geography),
            geo_scope_display=candidate.geo_scope_display,
            application_url=candidate.application_url,
            application_complexity=ApplicationComplexity.UNKNOWN,
            source_url=candidate.application_url or funder.scrape_url,
            source_hash=new_hash,
            is_verified=False,
            is_featured=False,
            created_at=context.now,
            updated_at=context.now,
        )
