"""
Field extraction rules shared by every extraction strategy.

All functions are pure: given the same markup they return the same values.
"""

from __future__ import annotations

import re
from datetime import date

from grant_curator.models import (
    MAX_TITLE_LENGTH,
    MIN_TITLE_LENGTH,
    CandidateOpportunity,
    OpportunityStatus,
)
from grant_curator.utils.datetime_utils import parse_date
from grant_curator.utils.money import find_amount
from grant_curator.utils.text_utils import resolve_url, strip_html

from .base import ParseOptions

GRANT_KEYWORDS = (
    "grant",
    "funding",
    "award",
    "fellowship",
    "prize",
    "scholarship",
    "application",
    "deadline",
    "eligible",
    "apply",
)

_TITLE_ELEMENT = re.compile(
    r"<(h[1-6]|strong|b)\b[^>]*>(.*?)</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_FIRST_LINK = re.compile(r"<a\b[^>]*?href\s*=\s*([\"'])(.+?)\1", re.IGNORECASE)

_MONTHS = "January|February|March|April|May|June|July|August|September|October|November|December"
_DEADLINE_KEYWORD = r"(?:deadline|due|closes?|submit by)"

# Ordered: dates next to a deadline keyword win over bare dates.
DEADLINE_PATTERNS = (
    re.compile(_DEADLINE_KEYWORD + r"[:\s]*(\w+ \d{1,2},?\s*\d{4})", re.IGNORECASE),
    re.compile(_DEADLINE_KEYWORD + r"[:\s]*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    re.compile(rf"\b((?:{_MONTHS})\s+\d{{1,2}},?\s*\d{{4}})", re.IGNORECASE),
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")

ROLLING_DEADLINE = "Rolling"
MAX_SUMMARY_LENGTH = 300


def count_grant_keywords(text: str) -> int:
    lowered = text.lower()
    return sum(1 for keyword in GRANT_KEYWORDS if keyword in lowered)


def looks_like_grant(text: str, min_keyword_hits: int = 2) -> bool:
    return count_grant_keywords(text) >= min_keyword_hits


def is_valid_title(title: str | None) -> bool:
    return bool(title) and MIN_TITLE_LENGTH <= len(title) <= MAX_TITLE_LENGTH


def extract_title(block_html: str) -> str | None:
    match = _TITLE_ELEMENT.search(block_html)
    if match is None:
        return None
    title = strip_html(match.group(2))
    return title if is_valid_title(title) else None


def extract_application_url(block_html: str, page_url: str | None = None) -> str | None:
    match = _FIRST_LINK.search(block_html)
    if match is None:
        return None
    href = match.group(2).strip()
    if not href:
        return None
    return resolve_url(href, page_url)


def extract_deadline(text: str) -> tuple[str | None, date | None]:
    """Return ``(deadline_display, deadline_date)``.

    An unparseable match keeps its display text with no date. Pages that only
    mention a rolling deadline yield ``("Rolling", None)``.
    """
    for pattern in DEADLINE_PATTERNS:
        match = pattern.search(text)
        if match:
            display = match.group(1).strip()
            return display, parse_date(display)

    if "rolling" in text.lower():
        return ROLLING_DEADLINE, None

    return None, None


def extract_status(text: str) -> OpportunityStatus:
    lowered = text.lower()
    if "closed" in lowered or "no longer accepting" in lowered:
        return OpportunityStatus.CLOSED
    if "coming soon" in lowered or "upcoming" in lowered:
        return OpportunityStatus.UPCOMING
    return OpportunityStatus.OPEN


def extract_summary(text: str, title: str) -> str | None:
    without_title = text.replace(title, "", 1).strip()
    if len(without_title) < 20:
        return None

    sentences = [
        sentence.strip()
        for sentence in _SENTENCE_SPLIT.split(without_title)
        if len(sentence.strip()) > 10
    ]
    if not sentences:
        return None

    summary = ". ".join(sentences[:2])
    if len(summary) > MAX_SUMMARY_LENGTH:
        return f"{summary[:MAX_SUMMARY_LENGTH - 3]}..."
    return f"{summary}."


def extract_org_types(text: str) -> list[str]:
    lowered = text.lower()
    types: list[str] = []

    if any(term in lowered for term in ("501(c)(3)", "501c3", "nonprofit", "non-profit")):
        types.append("501c3")
    if "government" in lowered or "public agenc" in lowered:
        types.append("government")
    if "individual" in lowered or "person" in lowered:
        types.append("individual")
    if "fiscal sponsor" in lowered:
        types.append("fiscal_sponsor")

    return types or ["501c3"]


def extract_geography(text: str) -> list[str]:
    lowered = text.lower()
    if any(term in lowered for term in ("global", "international", "worldwide")):
        return ["Global"]
    return ["US"]


def build_candidate(
    title: str,
    section_html: str,
    options: ParseOptions,
) -> CandidateOpportunity | None:
    """Run every field rule over one section of markup."""
    if not is_valid_title(title):
        return None

    text = strip_html(section_html)
    deadline_display, deadline_date = extract_deadline(text)

    return CandidateOpportunity(
        title=title,
        summary=extract_summary(text, title),
        amount_display=find_amount(text),
        deadline_display=deadline_display,
        deadline_date=deadline_date,
        application_url=extract_application_url(section_html, options.page_url),
        status=extract_status(text),
        opportunity_type="grant",
        eligible_org_types=extract_org_types(text),
        eligible_geography=extract_geography(text),
    )
