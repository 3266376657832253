from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from grant_curator.context import RunContext
from grant_curator.featured import FeaturedSelector
from grant_curator.lifecycle import LifecycleMaintainer
from grant_curator.link_validator import LinkValidator
from grant_curator.matcher import OpportunityMatcher
from grant_curator.models import FunderSource
from grant_curator.sources import (
    FetchSettings,
    GrantsGovClient,
    SourceUnavailableError,
    create_source,
)
from grant_curator.store import Store

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunStats:
    expired_closed: int = 0
    marked_closing_soon: int = 0
    funders_checked: int = 0
    new_opportunities: int = 0
    updated_opportunities: int = 0
    api_fetched: int = 0
    featured: int = 0
    unfeatured: int = 0
    links_checked: int = 0
    links_alive: int = 0
    links_dead: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


class CurationService:
    """Runs the ingestion and curation stages against one store."""

    def __init__(
        self,
        *,
        store: Store,
        funders: list[FunderSource],
        fetch_settings: FetchSettings,
        matcher: OpportunityMatcher,
        lifecycle: LifecycleMaintainer,
        federal_client: GrantsGovClient | None = None,
        featured_selector: FeaturedSelector | None = None,
        link_validator: LinkValidator | None = None,
        validate_links_in_run: bool = False,
    ) -> None:
        self.store = store
        self.funders = funders
        self.fetch_settings = fetch_settings
        self.matcher = matcher
        self.lifecycle = lifecycle
        self.federal_client = federal_client
        self.featured_selector = featured_selector
        self.link_validator = link_validator
        self.validate_links_in_run = validate_links_in_run

    def run_once(self, context: RunContext | None = None) -> RunStats:
        """Full pipeline: lifecycle, funder pages, federal API, featured rotation."""
        context = context or RunContext()
        stages: list[Callable[[RunContext, RunStats], None]] = [
            self._lifecycle_stage,
            self._scrape_stage,
        ]
        if self.federal_client is not None:
            stages.append(self._federal_stage)
        if self.featured_selector is not None:
            stages.append(self._featured_stage)
        if self.validate_links_in_run and self.link_validator is not None:
            stages.append(self._link_stage)
        return self._execute(stages, context)

    def scrape(self, context: RunContext | None = None) -> RunStats:
        return self._execute([self._scrape_stage], context or RunContext())

    def sync_federal(self, context: RunContext | None = None) -> RunStats:
        if self.federal_client is None:
            raise RuntimeError("federal sync is disabled")
        return self._execute([self._federal_stage], context or RunContext())

    def update_lifecycle(self, context: RunContext | None = None) -> RunStats:
        return self._execute([self._lifecycle_stage], context or RunContext())

    def rotate_featured(self, context: RunContext | None = None) -> RunStats:
        if self.featured_selector is None:
            raise RuntimeError("featured rotation is disabled")
        return self._execute([self._featured_stage], context or RunContext())

    def validate_links(self, context: RunContext | None = None) -> RunStats:
        if self.link_validator is None:
            raise RuntimeError("link validation is not configured")
        return self._execute([self._link_stage], context or RunContext())

    def _execute(
        self,
        stages: list[Callable[[RunContext, RunStats], None]],
        context: RunContext,
    ) -> RunStats:
        started = time.monotonic()
        stats = RunStats()

        for stage in stages:
            try:
                stage(context, stats)
            except Exception as exc:  # noqa: BLE001
                message = f"stage {stage.__name__.strip('_')} failed: {exc}"
                logger.exception(message)
                context.record_error(message)

        stats.errors = list(context.errors)
        stats.duration_seconds = round(time.monotonic() - started, 3)
        return stats

    def _lifecycle_stage(self, context: RunContext, stats: RunStats) -> None:
        lifecycle_stats = self.lifecycle.run(context)
        stats.expired_closed += lifecycle_stats.expired_closed
        stats.marked_closing_soon += lifecycle_stats.marked_closing_soon

    def _scrape_stage(self, context: RunContext, stats: RunStats) -> None:
        for funder in self.funders:
            self.store.upsert_funder(funder)

        funders = self.store.list_scrape_funders()
        logger.info("Scraping %d funders", len(funders))

        for funder in funders:
            try:
                source = create_source(funder, self.fetch_settings)
                candidates = source.fetch()
            except SourceUnavailableError as exc:
                logger.error("Fetch failed: %s", exc)
                context.record_error(str(exc))
                continue
            except Exception as exc:  # noqa: BLE001
                message = f"{funder.name}: {exc}"
                logger.exception(message)
                context.record_error(message)
                continue

            stats.funders_checked += 1
            if not candidates:
                logger.info("No opportunities extracted from %s", funder.name)
            else:
                logger.info("Found %d candidates at %s", len(candidates), funder.name)
                match_stats = self.matcher.reconcile(funder, candidates, context)
                stats.new_opportunities += match_stats.new
                stats.updated_opportunities += match_stats.updated

            self.store.mark_funder_checked(str(funder.id), context.now)

    def _federal_stage(self, context: RunContext, stats: RunStats) -> None:
        if self.federal_client is None:
            return
        federal_stats = self.federal_client.sync(context)
        stats.api_fetched += federal_stats.fetched
        stats.new_opportunities += federal_stats.new
        stats.updated_opportunities += federal_stats.updated

    def _featured_stage(self, context: RunContext, stats: RunStats) -> None:
        if self.featured_selector is None:
            return
        featured_stats = self.featured_selector.run(context)
        stats.featured = featured_stats.featured
        stats.unfeatured = featured_stats.unfeatured

    def _link_stage(self, context: RunContext, stats: RunStats) -> None:
        if self.link_validator is None:
            return
        link_stats = self.link_validator.run(context)
        stats.links_checked += link_stats.checked
        stats.links_alive += link_stats.alive
        stats.links_dead += link_stats.dead
        for error in link_stats.errors:
            context.record_error(error)
