from __future__ import annotations

from grant_curator.utils.text_utils import build_slug, slugify


def test_slugify_trims_separators_after_truncation() -> None:
    assert slugify("Arts & Culture -- Grant!", max_length=60) == "arts-culture-grant"
    assert slugify("Community Arts Grant", max_length=10) == "community"
    assert slugify("- Leading Dash", max_length=60) == "leading-dash"


def test_build_slug_joins_prefix_and_title() -> None:
    assert build_slug("hope-foundation", "Youth Arts Grant") == "hope-foundation-youth-arts-grant"


def test_build_slug_without_ascii_title_falls_back_to_hash() -> None:
    first = build_slug("hope-foundation", "青少年艺术资助")
    second = build_slug("hope-foundation", "Беспла́тный грант")

    assert not first.endswith("-")
    assert first.startswith("hope-foundation-")
    assert len(first) == len("hope-foundation-") + 8
    assert first != second
    assert build_slug("hope-foundation", "青少年艺术资助") == first
