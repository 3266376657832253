from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from grant_curator import __version__
from grant_curator.models import FunderSource, FunderType

DEFAULT_USER_AGENT = f"grant-curator/{__version__} (grant discovery platform)"

DEFAULT_GRANTS_GOV_CATEGORIES = [
    "ED",
    "HL",
    "ENV",
    "CD",
    "ACA",
    "HO",
    "FN",
    "IIJ",
    "ISS",
    "HU",
    "ELT",
    "ST",
]


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(slots=True)
class HttpSettings:
    user_agent: str = DEFAULT_USER_AGENT
    page_timeout_seconds: int = 30


@dataclass(slots=True)
class ParserSettings:
    strategies: list[str] = field(default_factory=lambda: ["block", "heading_window"])
    min_keyword_hits: int = 2


@dataclass(slots=True)
class MatchingSettings:
    similarity_threshold: float = 0.7


@dataclass(slots=True)
class LifecycleSettings:
    closing_soon_days: int = 14


@dataclass(slots=True)
class GrantsGovSettings:
    enabled: bool = True
    categories: list[str] = field(default_factory=lambda: list(DEFAULT_GRANTS_GOV_CATEGORIES))
    eligibilities: str = "12|13"
    rows: int = 100
    category_delay_seconds: float = 1.0
    search_timeout_seconds: int = 30
    detail_timeout_seconds: int = 15


@dataclass(slots=True)
class LinkValidationSettings:
    batch_size: int = 10
    batch_pause_seconds: float = 0.5
    timeout_seconds: int = 15
    run_with_pipeline: bool = False


@dataclass(slots=True)
class FeaturedSettings:
    enabled: bool = True
    target_count: int = 6
    seed: int | None = None


@dataclass(slots=True)
class StorageSettings:
    type: str = "sqlite"
    path: str = "data/grants.sqlite"


@dataclass(slots=True)
class AppConfig:
    funders: list[FunderSource] = field(default_factory=list)
    http: HttpSettings = field(default_factory=HttpSettings)
    parser: ParserSettings = field(default_factory=ParserSettings)
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    lifecycle: LifecycleSettings = field(default_factory=LifecycleSettings)
    grants_gov: GrantsGovSettings = field(default_factory=GrantsGovSettings)
    link_validation: LinkValidationSettings = field(default_factory=LinkValidationSettings)
    featured: FeaturedSettings = field(default_factory=FeaturedSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    log_level: str = "INFO"


def _as_mapping(value: Any, *, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{field_name} must be a mapping")
    return value


def _as_string_list(value: Any, *, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{field_name}: expected a list of strings, got: {type(value)!r}")
    return [str(item).strip() for item in value if str(item).strip()]


def _as_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value

    if isinstance(value, int) and value in {0, 1}:
        return bool(value)

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "on"}:
            return True
        if normalized in {"false", "0", "no", "off"}:
            return False

    raise ConfigError(f"{field_name} must be a boolean")


def _as_int(value: Any, *, field_name: str, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer")

    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    return parsed


def _as_float(
    value: Any,
    *,
    field_name: str,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a number")

    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    if maximum is not None and parsed > maximum:
        raise ConfigError(f"{field_name} must be <= {maximum}")
    return parsed


def _resolve_relative_path(config_path: Path, raw_path: str) -> str:
    candidate = Path(raw_path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str((config_path.parent / candidate).resolve())


def _parse_funders(raw_funders: Any) -> list[FunderSource]:
    if raw_funders is None:
        return []
    if not isinstance(raw_funders, list):
        raise ConfigError("funders must be a list")

    funders: list[FunderSource] = []
    seen_slugs: set[str] = set()
    for index, raw in enumerate(raw_funders, start=1):
        if not isinstance(raw, dict):
            raise ConfigError(f"Funder entry #{index} must be a mapping")

        slug = str(raw.get("slug", "")).strip()
        name = str(raw.get("name", "")).strip()
        if not slug or not name:
            raise ConfigError(f"Funder entry #{index} missing one of: slug, name")
        if slug in seen_slugs:
            raise ConfigError(f"Duplicate funder slug: {slug}")
        seen_slugs.add(slug)

        raw_type = str(raw.get("funder_type", FunderType.OTHER.value)).strip()
        try:
            funder_type = FunderType(raw_type)
        except ValueError as exc:
            raise ConfigError(f"Funder {slug}: unknown funder_type '{raw_type}'") from exc

        hints = _as_mapping(raw.get("hints"), field_name=f"funders[{slug}].hints")
        if "min_keyword_hits" in hints:
            hints["min_keyword_hits"] = _as_int(
                hints["min_keyword_hits"],
                field_name=f"funders[{slug}].hints.min_keyword_hits",
                minimum=1,
            )
        if "block_classes" in hints:
            hints["block_classes"] = _as_string_list(
                hints["block_classes"],
                field_name=f"funders[{slug}].hints.block_classes",
            )
        scrape_config: dict[str, Any] = {"type": "html", "hints": hints}
        if raw.get("strategies") is not None:
            scrape_config["strategies"] = _as_string_list(
                raw.get("strategies"),
                field_name=f"funders[{slug}].strategies",
            )

        scrape_url = str(raw.get("scrape_url") or "").strip() or None
        website_url = str(raw.get("website_url") or "").strip() or None

        funders.append(
            FunderSource(
                slug=slug,
                name=name,
                funder_type=funder_type,
                scrape_url=scrape_url,
                scrape_config=scrape_config,
                is_verified=_as_bool(
                    raw.get("is_verified", False),
                    field_name=f"funders[{slug}].is_verified",
                ),
                website_url=website_url,
            )
        )
    return funders


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        parsed = yaml.safe_load(handle) or {}

    if not isinstance(parsed, dict):
        raise ConfigError("Config root must be a mapping")

    return build_config(parsed, base_path=config_path)


def build_config(parsed: dict[str, Any], *, base_path: Path | None = None) -> AppConfig:
    funders = _parse_funders(parsed.get("funders"))

    raw_http = _as_mapping(parsed.get("http"), field_name="http")
    http_settings = HttpSettings(
        user_agent=str(raw_http.get("user_agent", DEFAULT_USER_AGENT)).strip()
        or DEFAULT_USER_AGENT,
        page_timeout_seconds=_as_int(
            raw_http.get("page_timeout_seconds", 30),
            field_name="http.page_timeout_seconds",
            minimum=1,
        ),
    )

    raw_parser = _as_mapping(parsed.get("parser"), field_name="parser")
    parser_settings = ParserSettings(
        strategies=_as_string_list(
            raw_parser.get("strategies", ["block", "heading_window"]),
            field_name="parser.strategies",
        ),
        min_keyword_hits=_as_int(
            raw_parser.get("min_keyword_hits", 2),
            field_name="parser.min_keyword_hits",
            minimum=1,
        ),
    )
    if not parser_settings.strategies:
        raise ConfigError("parser.strategies must name at least one strategy")

    raw_matching = _as_mapping(parsed.get("matching"), field_name="matching")
    matching_settings = MatchingSettings(
        similarity_threshold=_as_float(
            raw_matching.get("similarity_threshold", 0.7),
            field_name="matching.similarity_threshold",
            minimum=0.0,
            maximum=1.0,
        ),
    )

    raw_lifecycle = _as_mapping(parsed.get("lifecycle"), field_name="lifecycle")
    lifecycle_settings = LifecycleSettings(
        closing_soon_days=_as_int(
            raw_lifecycle.get("closing_soon_days", 14),
            field_name="lifecycle.closing_soon_days",
            minimum=0,
        ),
    )

    raw_grants_gov = _as_mapping(parsed.get("grants_gov"), field_name="grants_gov")
    categories = raw_grants_gov.get("categories")
    grants_gov_settings = GrantsGovSettings(
        enabled=_as_bool(raw_grants_gov.get("enabled", True), field_name="grants_gov.enabled"),
        categories=(
            _as_string_list(categories, field_name="grants_gov.categories")
            if categories is not None
            else list(DEFAULT_GRANTS_GOV_CATEGORIES)
        ),
        eligibilities=str(raw_grants_gov.get("eligibilities", "12|13")).strip() or "12|13",
        rows=_as_int(raw_grants_gov.get("rows", 100), field_name="grants_gov.rows", minimum=1),
        category_delay_seconds=_as_float(
            raw_grants_gov.get("category_delay_seconds", 1.0),
            field_name="grants_gov.category_delay_seconds",
            minimum=0.0,
        ),
        search_timeout_seconds=_as_int(
            raw_grants_gov.get("search_timeout_seconds", 30),
            field_name="grants_gov.search_timeout_seconds",
            minimum=1,
        ),
        detail_timeout_seconds=_as_int(
            raw_grants_gov.get("detail_timeout_seconds", 15),
            field_name="grants_gov.detail_timeout_seconds",
            minimum=1,
        ),
    )

    raw_links = _as_mapping(parsed.get("link_validation"), field_name="link_validation")
    link_settings = LinkValidationSettings(
        batch_size=_as_int(
            raw_links.get("batch_size", 10),
            field_name="link_validation.batch_size",
            minimum=1,
        ),
        batch_pause_seconds=_as_float(
            raw_links.get("batch_pause_seconds", 0.5),
            field_name="link_validation.batch_pause_seconds",
            minimum=0.0,
        ),
        timeout_seconds=_as_int(
            raw_links.get("timeout_seconds", 15),
            field_name="link_validation.timeout_seconds",
            minimum=1,
        ),
        run_with_pipeline=_as_bool(
            raw_links.get("run_with_pipeline", False),
            field_name="link_validation.run_with_pipeline",
        ),
    )

    raw_featured = _as_mapping(parsed.get("featured"), field_name="featured")
    seed_raw = raw_featured.get("seed")
    featured_settings = FeaturedSettings(
        enabled=_as_bool(raw_featured.get("enabled", True), field_name="featured.enabled"),
        target_count=_as_int(
            raw_featured.get("target_count", 6),
            field_name="featured.target_count",
            minimum=1,
        ),
        seed=_as_int(seed_raw, field_name="featured.seed") if seed_raw is not None else None,
    )

    raw_storage = _as_mapping(parsed.get("storage"), field_name="storage")
    storage_path = (
        str(raw_storage.get("path", "data/grants.sqlite")).strip() or "data/grants.sqlite"
    )
    if base_path is not None:
        storage_path = _resolve_relative_path(base_path, storage_path)
    storage_settings = StorageSettings(
        type=str(raw_storage.get("type", "sqlite")).strip() or "sqlite",
        path=storage_path,
    )

    return AppConfig(
        funders=funders,
        http=http_settings,
        parser=parser_settings,
        matching=matching_settings,
        lifecycle=lifecycle_settings,
        grants_gov=grants_gov_settings,
        link_validation=link_settings,
        featured=featured_settings,
        storage=storage_settings,
        log_level=str(parsed.get("log_level", "INFO")).upper(),
    )
