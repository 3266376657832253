"""
Dollar amount parsing and formatting.

Amounts are stored as integer cents. Handles display strings such as:
- "$5,000" → (500000, 500000)
- "$100K" → (10000000, 10000000)
- "$10,000 - $50,000" → (1000000, 5000000)
- "$1.5 million" → (150000000, 150000000)
"""

from __future__ import annotations

import re

AMOUNT_PATTERN = re.compile(
    r"\$[\d,]+(?:\.\d+)?(?:\s*[KkMmBb](?:illion)?\b)?"
    r"(?:\s*[-–]\s*\$[\d,]+(?:\.\d+)?(?:\s*[KkMmBb](?:illion)?\b)?)?"
)

_SINGLE_AMOUNT = re.compile(r"\$([\d,]+(?:\.\d+)?)(?:\s*([KkMmBb](?:illion)?)\b)?")

_MAGNITUDE_MAP = {
    "k": 1_000,
    "m": 1_000_000,
    "b": 1_000_000_000,
}


def find_amount(text: str) -> str | None:
    """Return the first dollar amount or range in ``text``."""
    match = AMOUNT_PATTERN.search(text)
    return match.group(0) if match else None


def parse_amount_range(display: str | None) -> tuple[int | None, int | None]:
    """
    Parse a display amount into ``(min_cents, max_cents)``.

    A single amount yields the same value for both bounds.
    """
    if not display:
        return None, None

    values: list[int] = []
    for number_str, magnitude in _SINGLE_AMOUNT.findall(display):
        digits = number_str.replace(",", "")
        if not digits or digits == ".":
            continue
        try:
            base = float(digits)
        except ValueError:
            continue
        multiplier = _MAGNITUDE_MAP.get(magnitude[:1].lower(), 1) if magnitude else 1
        values.append(int(round(base * multiplier * 100)))

    if not values:
        return None, None
    return min(values), max(values)


def format_dollars(amount: float) -> str:
    """
    Abbreviate a dollar amount for display.

    Examples:
        2_000_000 → "2M"
        1_500_000 → "1.5M"
        250_000 → "250K"
        750 → "750"
    """
    if amount >= 1_000_000:
        precision = 0 if amount % 1_000_000 == 0 else 1
        return f"{amount / 1_000_000:.{precision}f}M"
    if amount >= 1_000:
        precision = 0 if amount % 1_000 == 0 else 1
        return f"{amount / 1_000:.{precision}f}K"
    return f"{amount:,.0f}"


def format_award_range(floor: float | None, ceiling: float | None) -> str:
    if floor and ceiling and floor != ceiling:
        return f"${format_dollars(floor)} – ${format_dollars(ceiling)}"
    if ceiling:
        return f"Up to ${format_dollars(ceiling)}"
    if floor:
        return f"From ${format_dollars(floor)}"
    return "Varies"


def dollars_to_cents(value: float | None) -> int | None:
    if not value:
        return None
    return int(round(value * 100))
