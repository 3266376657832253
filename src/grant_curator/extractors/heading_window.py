from __future__ import annotations

import re

from grant_curator.models import CandidateOpportunity
from grant_curator.utils.text_utils import strip_html

from .base import ExtractionStrategy, ParseOptions
from .fields import build_candidate, is_valid_title, looks_like_grant
from .registry import register_strategy

_HEADING = re.compile(r"<(h[1-4])\b[^>]*>(.*?)</\1\s*>", re.IGNORECASE | re.DOTALL)
_NEXT_HEADING = re.compile(r"<h[1-4]\b", re.IGNORECASE)

SECTION_WINDOW = 1000


def iter_heading_sections(html: str) -> list[tuple[str, str]]:
    """Pair each heading's text with the markup that follows it.

    A section runs to the next h1-h4; the last heading gets a fixed window.
    """
    sections: list[tuple[str, str]] = []
    for match in _HEADING.finditer(html):
        heading = strip_html(match.group(2))
        after = html[match.end():]
        next_heading = _NEXT_HEADING.search(after)
        if next_heading is not None and next_heading.start() > 0:
            section = after[: next_heading.start()]
        else:
            section = after[:SECTION_WINDOW]
        sections.append((heading, section))
    return sections


class HeadingWindowStrategy(ExtractionStrategy):
    name = "heading_window"

    def extract(self, html: str, options: ParseOptions) -> list[CandidateOpportunity]:
        candidates: list[CandidateOpportunity] = []
        for heading, section in iter_heading_sections(html):
            if not is_valid_title(heading):
                continue
            if not looks_like_grant(f"{heading} {strip_html(section)}", options.min_keyword_hits):
                continue
            candidate = build_candidate(heading, section, options)
            if candidate is not None:
                candidates.append(candidate)
        return candidates


@register_strategy("heading_window")
def _build_heading_window_strategy() -> ExtractionStrategy:
    return HeadingWindowStrategy()
