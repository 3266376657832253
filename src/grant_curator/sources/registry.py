from __future__ import annotations

from typing import Callable

from grant_curator.models import FunderSource

from .base import FetchSettings, Source

SourceFactory = Callable[[FunderSource, FetchSettings], Source]

_REGISTRY: dict[str, SourceFactory] = {}


class SourceRegistrationError(ValueError):
    """Raised when an unknown source type is used."""


def register_source(source_type: str) -> Callable[[SourceFactory], SourceFactory]:
    def decorator(factory: SourceFactory) -> SourceFactory:
        _REGISTRY[source_type] = factory
        return factory

    return decorator


def create_source(funder: FunderSource, settings: FetchSettings) -> Source:
    source_type = str(funder.scrape_config.get("type") or "html")
    factory = _REGISTRY.get(source_type)
    if factory is None:
        available = ", ".join(sorted(_REGISTRY)) or "none"
        raise SourceRegistrationError(
            f"Unknown source type '{source_type}' for funder {funder.slug}. "
            f"Registered source types: {available}"
        )
    return factory(funder, settings)


def registered_source_types() -> list[str]:
    return sorted(_REGISTRY)
