from __future__ import annotations

from pathlib import Path

import pytest

from grant_curator.config import (
    DEFAULT_GRANTS_GOV_CATEGORIES,
    ConfigError,
    build_config,
    load_config,
)
from grant_curator.models import FunderType


def test_defaults_when_sections_missing() -> None:
    config = build_config({})

    assert config.funders == []
    assert config.parser.strategies == ["block", "heading_window"]
    assert config.parser.min_keyword_hits == 2
    assert config.matching.similarity_threshold == 0.7
    assert config.lifecycle.closing_soon_days == 14
    assert config.grants_gov.categories == DEFAULT_GRANTS_GOV_CATEGORIES
    assert config.grants_gov.eligibilities == "12|13"
    assert config.link_validation.batch_size == 10
    assert config.link_validation.run_with_pipeline is False
    assert config.featured.target_count == 6
    assert config.featured.seed is None
    assert config.log_level == "INFO"


def test_funders_become_sources_with_hints() -> None:
    config = build_config(
        {
            "funders": [
                {
                    "slug": "knight-foundation",
                    "name": "Knight Foundation",
                    "funder_type": "private_foundation",
                    "scrape_url": "https://knight.example.org/apply",
                    "hints": {"min_keyword_hits": "3"},
                    "strategies": ["heading_window"],
                }
            ]
        }
    )

    [funder] = config.funders
    assert funder.funder_type is FunderType.PRIVATE_FOUNDATION
    assert funder.scrape_url == "https://knight.example.org/apply"
    assert funder.hints == {"min_keyword_hits": 3}
    assert funder.scrape_config["type"] == "html"
    assert funder.scrape_config["strategies"] == ["heading_window"]
    assert funder.is_verified is False


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"matching": {"similarity_threshold": 1.5}}, "similarity_threshold"),
        ({"parser": {"strategies": []}}, "parser.strategies"),
        ({"featured": {"enabled": "sometimes"}}, "featured.enabled"),
        ({"funders": [{"slug": "x"}]}, "missing one of"),
        ({"funders": [{"slug": "x", "name": "X", "funder_type": "bank"}]}, "unknown funder_type"),
        (
            {"funders": [{"slug": "x", "name": "X"}, {"slug": "x", "name": "Y"}]},
            "Duplicate funder slug",
        ),
        ({"funders": [{"slug": "x", "name": "X", "hints": {"min_keyword_hits": 0}}]}, ">= 1"),
    ],
)
def test_invalid_config_raises(raw, message) -> None:
    with pytest.raises(ConfigError, match=message):
        build_config(raw)


def test_load_config_resolves_storage_relative_to_file(tmp_path: Path) -> None:
    config_path = tmp_path / "conf" / "config.yaml"
    config_path.parent.mkdir()
    config_path.write_text(
        "log_level: debug\n"
        "storage:\n"
        "  path: state/grants.sqlite\n"
        "featured:\n"
        "  seed: 11\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.storage.path == str((tmp_path / "conf" / "state" / "grants.sqlite").resolve())
    assert config.log_level == "DEBUG"
    assert config.featured.seed == 11


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.yaml")
