from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

MIN_TITLE_LENGTH = 5
MAX_TITLE_LENGTH = 200


class OpportunityStatus(str, Enum):
    OPEN = "open"
    CLOSING_SOON = "closing_soon"
    CLOSED = "closed"
    UPCOMING = "upcoming"
    UNKNOWN = "unknown"


ACTIVE_STATUSES = (
    OpportunityStatus.OPEN,
    OpportunityStatus.CLOSING_SOON,
    OpportunityStatus.UPCOMING,
)


class DeadlineType(str, Enum):
    FIXED = "fixed"
    ROLLING = "rolling"
    LOI_THEN_FULL = "loi_then_full"
    BY_INVITATION = "by_invitation"
    CONTINUOUS = "continuous"
    UNKNOWN = "unknown"


class ApplicationComplexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    UNKNOWN = "unknown"


class FunderType(str, Enum):
    PRIVATE_FOUNDATION = "private_foundation"
    COMMUNITY_FOUNDATION = "community_foundation"
    CORPORATE = "corporate"
    GOVERNMENT_FEDERAL = "government_federal"
    GOVERNMENT_STATE = "government_state"
    GOVERNMENT_LOCAL = "government_local"
    INDIVIDUAL_DONOR = "individual_donor"
    IMPACT_INVESTOR = "impact_investor"
    INTERNATIONAL_ORG = "international_org"
    OTHER = "other"


class Origin(str, Enum):
    HTML = "html"
    API = "api"


@dataclass(slots=True)
class FunderSource:
    """A funding organization configured for automated ingestion."""

    slug: str
    name: str
    funder_type: FunderType = FunderType.OTHER
    scrape_url: str | None = None
    scrape_config: dict[str, Any] = field(default_factory=dict)
    is_verified: bool = False
    website_url: str | None = None
    id: str | None = None
    last_scraped_at: datetime | None = None

    def __post_init__(self) -> None:
        self.slug = self.slug.strip()
        self.name = self.name.strip()
        if not self.slug:
            raise ValueError("funder slug must not be empty")
        if not self.name:
            raise ValueError(f"funder {self.slug} must have a name")
        self.funder_type = FunderType(self.funder_type)

    @property
    def hints(self) -> dict[str, Any]:
        hints = self.scrape_config.get("hints")
        return hints if isinstance(hints, dict) else {}


@dataclass(slots=True)
class CandidateOpportunity:
    """An unpersisted extraction result from a single fetch."""

    title: str
    summary: str | None = None
    amount_display: str | None = None
    deadline_display: str | None = None
    deadline_date: date | None = None
    application_url: str | None = None
    status: OpportunityStatus = OpportunityStatus.OPEN
    opportunity_type: str = "grant"
    eligible_org_types: list[str] = field(default_factory=list)
    eligible_geography: list[str] = field(default_factory=list)
    geo_scope_display: str | None = None

    def __post_init__(self) -> None:
        self.title = self.title.strip()
        if not MIN_TITLE_LENGTH <= len(self.title) <= MAX_TITLE_LENGTH:
            raise ValueError(
                f"title must be {MIN_TITLE_LENGTH}-{MAX_TITLE_LENGTH} characters: {self.title!r}"
            )
        self.status = OpportunityStatus(self.status)


@dataclass(slots=True)
class OpportunityRecord:
    """The canonical persisted opportunity."""

    slug: str
    funder_id: str
    title: str
    status: OpportunityStatus
    origin: Origin = Origin.HTML
    summary: str | None = None
    description: str | None = None
    opportunity_type: str = "grant"
    amount_min: int | None = None
    amount_max: int | None = None
    amount_exact: int | None = None
    amount_display: str | None = None
    deadline_type: DeadlineType = DeadlineType.UNKNOWN
    deadline_date: date | None = None
    deadline_display: str | None = None
    eligible_org_types: list[str] = field(default_factory=list)
    eligible_geography: list[str] = field(default_factory=list)
    geo_scope_display: str | None = None
    application_url: str | None = None
    application_complexity: ApplicationComplexity = ApplicationComplexity.UNKNOWN
    requires_loi: bool = False
    application_notes: str | None = None
    num_awards: int | None = None
    total_pool: int | None = None
    source_url: str | None = None
    source_hash: str | None = None
    is_verified: bool = False
    is_featured: bool = False
    focus_areas: list[str] = field(default_factory=list)
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.slug:
            raise ValueError("opportunity slug must not be empty")
        if not self.funder_id:
            raise ValueError(f"opportunity {self.slug} has no funder")
        self.status = OpportunityStatus(self.status)
        self.origin = Origin(self.origin)
        self.deadline_type = DeadlineType(self.deadline_type)
        self.application_complexity = ApplicationComplexity(self.application_complexity)
        if self.origin is Origin.API and not self.source_url:
            raise ValueError(f"API-sourced opportunity {self.slug} needs a source_url")
