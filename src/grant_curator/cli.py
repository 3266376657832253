from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path

from grant_curator.config import AppConfig, ConfigError, load_config
from grant_curator.extractors import (
    DEFAULT_BLOCK_CLASSES,
    ParseOptions,
    create_strategies,
    parse_grants_page,
)
from grant_curator.featured import FeaturedSelector
from grant_curator.lifecycle import LifecycleMaintainer
from grant_curator.link_validator import LinkValidator
from grant_curator.logging_config import setup_logging
from grant_curator.matcher import OpportunityMatcher
from grant_curator.models import CandidateOpportunity, FunderSource
from grant_curator.service import CurationService, RunStats
from grant_curator.sources import FetchSettings, GrantsGovClient, HtmlPageSource
from grant_curator.store import SQLiteStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grant-curator",
        description="Ingest, reconcile and curate grant opportunities.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to config YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        help="Override config log level (e.g. INFO, DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Initialize SQLite schema")
    subparsers.add_parser("run", help="Run the full ingestion and curation pipeline once")
    subparsers.add_parser("scrape", help="Scrape configured funder pages only")
    subparsers.add_parser("sync-federal", help="Sync Grants.gov opportunities only")
    subparsers.add_parser("lifecycle", help="Close expired and flag closing-soon opportunities")
    subparsers.add_parser("validate-links", help="Check application links and close dead ones")
    subparsers.add_parser("rotate-featured", help="Pick a new featured set")

    parse = subparsers.add_parser(
        "parse",
        help="Print candidates extracted from a page without touching the store",
    )
    parse.add_argument("target", help="Local HTML file or http(s) URL")
    parse.add_argument(
        "--min-keyword-hits",
        type=int,
        help="Override parser.min_keyword_hits for this page",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = load_config(args.config)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    log_level = args.log_level or app_config.log_level
    setup_logging(log_level)

    if args.command == "parse":
        return _run_parse(app_config, args.target, args.min_keyword_hits)

    try:
        store = _build_store(app_config)
        store.init_db()
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2
    except Exception:  # noqa: BLE001
        logger.exception("Could not open store at %s", app_config.storage.path)
        return 1

    if args.command == "init-db":
        logger.info("Initialized SQLite database at %s", app_config.storage.path)
        return 0

    service = _build_service(app_config, store)

    if args.command == "run":
        stats = service.run_once()
    elif args.command == "scrape":
        stats = service.scrape()
    elif args.command == "sync-federal":
        if not app_config.grants_gov.enabled:
            logger.error("Grants.gov sync is disabled in config")
            return 2
        stats = service.sync_federal()
    elif args.command == "lifecycle":
        stats = service.update_lifecycle()
    elif args.command == "validate-links":
        stats = service.validate_links()
    elif args.command == "rotate-featured":
        if not app_config.featured.enabled:
            logger.error("Featured rotation is disabled in config")
            return 2
        stats = service.rotate_featured()
    else:
        parser.error(f"unknown command {args.command}")
        return 2

    _log_summary(args.command, stats)
    return 0 if stats.ok else 1


def _build_store(app_config: AppConfig) -> SQLiteStore:
    if app_config.storage.type != "sqlite":
        raise ConfigError(f"Unsupported storage type: {app_config.storage.type}")
    return SQLiteStore(app_config.storage.path)


def _fetch_settings(app_config: AppConfig) -> FetchSettings:
    return FetchSettings(
        user_agent=app_config.http.user_agent,
        timeout_seconds=app_config.http.page_timeout_seconds,
        strategies=list(app_config.parser.strategies),
        min_keyword_hits=app_config.parser.min_keyword_hits,
    )


def _build_service(app_config: AppConfig, store: SQLiteStore) -> CurationService:
    federal_client = None
    if app_config.grants_gov.enabled:
        federal_client = GrantsGovClient(
            store,
            app_config.grants_gov,
            user_agent=app_config.http.user_agent,
            closing_soon_days=app_config.lifecycle.closing_soon_days,
        )

    featured_selector = None
    if app_config.featured.enabled:
        featured_selector = FeaturedSelector(
            store,
            target_count=app_config.featured.target_count,
            rng=random.Random(app_config.featured.seed),
        )

    links = app_config.link_validation
    return CurationService(
        store=store,
        funders=app_config.funders,
        fetch_settings=_fetch_settings(app_config),
        matcher=OpportunityMatcher(
            store,
            similarity_threshold=app_config.matching.similarity_threshold,
        ),
        lifecycle=LifecycleMaintainer(
            store,
            closing_soon_days=app_config.lifecycle.closing_soon_days,
        ),
        federal_client=federal_client,
        featured_selector=featured_selector,
        link_validator=LinkValidator(
            store,
            batch_size=links.batch_size,
            batch_pause_seconds=links.batch_pause_seconds,
            timeout_seconds=links.timeout_seconds,
            user_agent=app_config.http.user_agent,
        ),
        validate_links_in_run=links.run_with_pipeline,
    )


def _run_parse(app_config: AppConfig, target: str, min_keyword_hits: int | None) -> int:
    settings = _fetch_settings(app_config)
    if min_keyword_hits is not None:
        settings.min_keyword_hits = max(1, min_keyword_hits)

    try:
        if target.startswith(("http://", "https://")):
            source = HtmlPageSource(
                FunderSource(slug="adhoc", name=target, scrape_url=target),
                settings,
            )
            candidates = source.fetch()
        else:
            html = Path(target).read_text(encoding="utf-8", errors="replace")
            candidates = parse_grants_page(
                html,
                ParseOptions(
                    min_keyword_hits=settings.min_keyword_hits,
                    block_classes=DEFAULT_BLOCK_CLASSES,
                ),
                create_strategies(list(settings.strategies)),
            )
    except Exception:  # noqa: BLE001
        logger.exception("Could not parse %s", target)
        return 1

    for candidate in candidates:
        _print_candidate(candidate)
    logger.info("Extracted %d candidates from %s", len(candidates), target)
    return 0


def _print_candidate(candidate: CandidateOpportunity) -> None:
    print(f"TITLE: {candidate.title}")
    print(f"  Status: {candidate.status.value}")
    if candidate.application_url:
        print(f"  URL: {candidate.application_url}")
    if candidate.amount_display:
        print(f"  Amount: {candidate.amount_display}")
    if candidate.deadline_display:
        print(f"  Deadline: {candidate.deadline_display}")
    if candidate.summary:
        print(f"  Summary: {candidate.summary}")
    print("")


def _log_summary(command: str, stats: RunStats) -> None:
    logger.info(
        "%s complete | expired_closed=%d closing_soon=%d funders_checked=%d new=%d "
        "updated=%d api_fetched=%d featured=%d unfeatured=%d links_checked=%d "
        "links_dead=%d errors=%d duration=%.1fs",
        command,
        stats.expired_closed,
        stats.marked_closing_soon,
        stats.funders_checked,
        stats.new_opportunities,
        stats.updated_opportunities,
        stats.api_fetched,
        stats.featured,
        stats.unfeatured,
        stats.links_checked,
        stats.links_dead,
        len(stats.errors),
        stats.duration_seconds,
    )
    for error in stats.errors:
        logger.warning("  %s", error)


if __name__ == "__main__":
    raise SystemExit(main())
