from __future__ import annotations

import hashlib
import html as html_lib
import json
import re
from typing import Any
from urllib.parse import urljoin

_SCRIPT_OR_STYLE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_HTML_TAGS = re.compile(r"<[^>]+>")
_MULTISPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_NON_SLUG = re.compile(r"[^a-z0-9\s-]")
_DASHES = re.compile(r"-+")


def normalize_whitespace(value: str) -> str:
    return _MULTISPACE.sub(" ", value).strip()


def strip_html(value: str) -> str:
    without_code = _SCRIPT_OR_STYLE.sub(" ", value)
    without_tags = _HTML_TAGS.sub(" ", without_code)
    return normalize_whitespace(html_lib.unescape(without_tags))


def normalize_title(title: str) -> str:
    return normalize_whitespace(_NON_ALNUM.sub("", title.lower()))


def slugify(value: str, *, max_length: int) -> str:
    slug = _NON_SLUG.sub("", value.lower())
    slug = _DASHES.sub("-", re.sub(r"\s+", "-", slug.strip()))
    return slug[:max_length].strip("-")


def build_slug(prefix: str, title: str, *, max_length: int = 60) -> str:
    # Titles with no ASCII letters or digits still need distinct slugs.
    title_slug = slugify(title, max_length=max_length)
    if not title_slug:
        title_slug = hashlib.md5(title.encode("utf-8")).hexdigest()[:8]
    return f"{prefix}-{title_slug}"


def content_hash(fields: dict[str, Any]) -> str:
    """Deterministic digest over the mutable fields used for change detection."""
    payload = json.dumps(fields, separators=(",", ":"), default=str)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def resolve_url(href: str, base_url: str | None) -> str:
    value = html_lib.unescape(href.strip())
    if base_url and not value.startswith(("http://", "https://", "mailto:")):
        return urljoin(base_url, value)
    return value
