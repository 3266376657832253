"""Source implementations and registry."""

from .base import FetchSettings, Source, SourceUnavailableError
from .grants_gov import FederalSyncStats, GrantsGovClient
from .html_page import HtmlPageSource
from .registry import (
    SourceRegistrationError,
    create_source,
    register_source,
    registered_source_types,
)

__all__ = [
    "FederalSyncStats",
    "FetchSettings",
    "GrantsGovClient",
    "HtmlPageSource",
    "Source",
    "SourceRegistrationError",
    "SourceUnavailableError",
    "create_source",
    "register_source",
    "registered_source_types",
]
