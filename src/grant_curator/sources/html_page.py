from __future__ import annotations

import logging

import requests

from grant_curator.extractors import (
    DEFAULT_BLOCK_CLASSES,
    ParseOptions,
    create_strategies,
    parse_grants_page,
)
from grant_curator.models import CandidateOpportunity, FunderSource

from .base import FetchSettings, Source, SourceUnavailableError
from .registry import register_source

logger = logging.getLogger(__name__)

_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class HtmlPageSource(Source):
    def __init__(self, funder: FunderSource, settings: FetchSettings) -> None:
        super().__init__(funder)
        if not funder.scrape_url:
            raise ValueError(f"funder {funder.slug} has no scrape_url")
        self.url = funder.scrape_url
        self.settings = settings

    def fetch(self) -> list[CandidateOpportunity]:
        headers = {"User-Agent": self.settings.user_agent, "Accept": _ACCEPT}
        try:
            response = requests.get(
                self.url,
                timeout=self.settings.timeout_seconds,
                headers=headers,
            )
        except requests.RequestException as exc:
            raise SourceUnavailableError(f"{self.funder.name}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise SourceUnavailableError(f"{self.funder.name}: HTTP {response.status_code}")

        return self.parse(response.text)

    def parse(self, html: str) -> list[CandidateOpportunity]:
        strategy_names = self.funder.scrape_config.get("strategies") or self.settings.strategies
        return parse_grants_page(
            html,
            self.parse_options(),
            create_strategies(list(strategy_names)),
        )

    def parse_options(self) -> ParseOptions:
        hints = self.funder.hints
        extra_classes = tuple(
            str(value).strip().lower()
            for value in hints.get("block_classes", []) or []
            if str(value).strip()
        )
        return ParseOptions(
            page_url=self.url,
            min_keyword_hits=int(hints.get("min_keyword_hits", self.settings.min_keyword_hits)),
            block_classes=DEFAULT_BLOCK_CLASSES + extra_classes,
        )


@register_source("html")
def _build_html_page_source(funder: FunderSource, settings: FetchSettings) -> Source:
    return HtmlPageSource(funder, settings)
