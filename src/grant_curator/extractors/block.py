from __future__ import annotations

import re

from grant_curator.models import CandidateOpportunity
from grant_curator.utils.text_utils import strip_html

from .base import ExtractionStrategy, ParseOptions
from .fields import build_candidate, extract_title, looks_like_grant
from .registry import register_strategy

_LIST_ITEM = re.compile(r"<li\b[^>]*>(.*?)</li\s*>", re.IGNORECASE | re.DOTALL)


def _container_pattern(block_classes: tuple[str, ...]) -> re.Pattern[str]:
    keywords = "|".join(re.escape(keyword) for keyword in block_classes)
    return re.compile(
        r"<(article|div|section)\b[^>]*\bclass\s*=\s*([\"'])[^\"']*"
        rf"(?:{keywords})"
        r"[^\"']*\2[^>]*>(.*?)</\1\s*>",
        re.IGNORECASE | re.DOTALL,
    )


def find_grant_blocks(html: str, options: ParseOptions) -> list[str]:
    """Keyword-dense containers first, then list items, in page order."""
    blocks: list[str] = []

    for match in _container_pattern(options.block_classes).finditer(html):
        content = match.group(3)
        if looks_like_grant(strip_html(content), options.min_keyword_hits):
            blocks.append(content)

    for match in _LIST_ITEM.finditer(html):
        content = match.group(1)
        if looks_like_grant(strip_html(content), options.min_keyword_hits):
            blocks.append(content)

    return blocks


class BlockStrategy(ExtractionStrategy):
    name = "block"

    def extract(self, html: str, options: ParseOptions) -> list[CandidateOpportunity]:
        candidates: list[CandidateOpportunity] = []
        for block in find_grant_blocks(html, options):
            title = extract_title(block)
            if title is None:
                continue
            candidate = build_candidate(title, block, options)
            if candidate is not None:
                candidates.append(candidate)
        return candidates


@register_strategy("block")
def _build_block_strategy() -> ExtractionStrategy:
    return BlockStrategy()
