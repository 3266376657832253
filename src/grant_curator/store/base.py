from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Iterable

from grant_curator.models import FunderSource, OpportunityRecord


class DuplicateRecordError(RuntimeError):
    """Raised when an insert violates a unique constraint (slug or provenance URL)."""


class Store(ABC):
    @abstractmethod
    def init_db(self) -> None:
        """Create any required schema."""

    @abstractmethod
    def upsert_funder(self, funder: FunderSource) -> FunderSource:
        """Create or update a funder keyed by slug and return it with its id."""

    @abstractmethod
    def list_funders(self) -> list[FunderSource]:
        """Return every configured funder."""

    @abstractmethod
    def list_scrape_funders(self) -> list[FunderSource]:
        """Return funders with an HTML page configured for scraping."""

    @abstractmethod
    def mark_funder_checked(self, funder_id: str, checked_at: datetime) -> None:
        """Record when a funder's page was last fetched."""

    @abstractmethod
    def list_opportunities_for_funder(self, funder_id: str) -> list[OpportunityRecord]:
        """Return all canonical records owned by a funder."""

    @abstractmethod
    def get_opportunity(self, opportunity_id: str) -> OpportunityRecord | None:
        """Return a record by id, or None."""

    @abstractmethod
    def insert_opportunity(self, record: OpportunityRecord) -> OpportunityRecord:
        """Insert a new record. Raises DuplicateRecordError on a unique violation."""

    @abstractmethod
    def update_opportunity(self, opportunity_id: str, changes: dict[str, Any]) -> None:
        """Patch mutable fields of one record."""

    @abstractmethod
    def link_focus_areas(self, opportunity_id: str, slugs: Iterable[str]) -> None:
        """Attach focus-area tags to a record, creating unknown tags."""

    @abstractmethod
    def close_expired(self, today: date, updated_at: datetime) -> int:
        """Close open/closing-soon records whose deadline is before today."""

    @abstractmethod
    def mark_closing_soon(self, today: date, cutoff: date, updated_at: datetime) -> int:
        """Flag open records with a deadline between today and cutoff, inclusive."""

    @abstractmethod
    def list_link_check_targets(self) -> list[OpportunityRecord]:
        """Return active, verified records that have an application URL."""

    @abstractmethod
    def quarantine_opportunities(
        self, opportunity_ids: list[str], note: str, updated_at: datetime
    ) -> int:
        """Close and unverify records whose application link is dead."""

    @abstractmethod
    def touch_opportunities(self, opportunity_ids: list[str], updated_at: datetime) -> int:
        """Bump updated_at for records whose link is alive."""

    @abstractmethod
    def list_feature_candidates(self) -> list[OpportunityRecord]:
        """Return active, verified records with their focus areas loaded."""

    @abstractmethod
    def clear_featured(self) -> int:
        """Unset every featured flag and return how many were set."""

    @abstractmethod
    def set_featured(self, opportunity_ids: list[str]) -> int:
        """Flag the given records as featured."""
