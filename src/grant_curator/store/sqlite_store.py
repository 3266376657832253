from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

from grant_curator.models import (
    ACTIVE_STATUSES,
    FunderSource,
    OpportunityRecord,
    OpportunityStatus,
)
from grant_curator.utils.datetime_utils import (
    format_date,
    format_datetime,
    parse_date,
    parse_datetime_utc,
    utc_now,
)

from .base import DuplicateRecordError, Store

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS funders (
        id TEXT PRIMARY KEY,
        slug TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        funder_type TEXT NOT NULL,
        scrape_url TEXT NULL,
        scrape_config TEXT NOT NULL DEFAULT '{}',
        website_url TEXT NULL,
        is_verified INTEGER NOT NULL DEFAULT 0,
        last_scraped_at TEXT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS opportunities (
        id TEXT PRIMARY KEY,
        slug TEXT NOT NULL UNIQUE,
        funder_id TEXT NOT NULL REFERENCES funders (id),
        origin TEXT NOT NULL,
        title TEXT NOT NULL,
        summary TEXT NULL,
        description TEXT NULL,
        opportunity_type TEXT NOT NULL,
        status TEXT NOT NULL,
        amount_min INTEGER NULL,
        amount_max INTEGER NULL,
        amount_exact INTEGER NULL,
        amount_display TEXT NULL,
        deadline_type TEXT NOT NULL,
        deadline_date TEXT NULL,
        deadline_display TEXT NULL,
        eligible_org_types TEXT NOT NULL DEFAULT '[]',
        eligible_geography TEXT NOT NULL DEFAULT '[]',
        geo_scope_display TEXT NULL,
        application_url TEXT NULL,
        application_complexity TEXT NOT NULL,
        requires_loi INTEGER NOT NULL DEFAULT 0,
        application_notes TEXT NULL,
        num_awards INTEGER NULL,
        total_pool INTEGER NULL,
        source_url TEXT NULL,
        source_hash TEXT NULL,
        is_verified INTEGER NOT NULL DEFAULT 0,
        is_featured INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_opportunities_api_source
    ON opportunities (funder_id, source_url)
    WHERE origin = 'api'
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_opportunities_status_deadline
    ON opportunities (status, deadline_date)
    """,
    """
    CREATE TABLE IF NOT EXISTS focus_areas (
        id TEXT PRIMARY KEY,
        slug TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS opportunity_focus_areas (
        opportunity_id TEXT NOT NULL REFERENCES opportunities (id),
        focus_area_id TEXT NOT NULL REFERENCES focus_areas (id),
        PRIMARY KEY (opportunity_id, focus_area_id)
    )
    """,
)

_JSON_COLUMNS = {"eligible_org_types", "eligible_geography"}
_BOOL_COLUMNS = {"requires_loi", "is_verified", "is_featured"}
_DATE_COLUMNS = {"deadline_date"}
_DATETIME_COLUMNS = {"created_at", "updated_at"}

_OPPORTUNITY_COLUMNS = (
    "id",
    "slug",
    "funder_id",
    "origin",
    "title",
    "summary",
    "description",
    "opportunity_type",
    "status",
    "amount_min",
    "amount_max",
    "amount_exact",
    "amount_display",
    "deadline_type",
    "deadline_date",
    "deadline_display",
    "eligible_org_types",
    "eligible_geography",
    "geo_scope_display",
    "application_url",
    "application_complexity",
    "requires_loi",
    "application_notes",
    "num_awards",
    "total_pool",
    "source_url",
    "source_hash",
    "is_verified",
    "is_featured",
    "created_at",
    "updated_at",
)

# id, slug, funder_id and origin never change after insert.
_MUTABLE_COLUMNS = frozenset(_OPPORTUNITY_COLUMNS) - {"id", "slug", "funder_id", "origin"}

_ACTIVE_STATUS_VALUES = tuple(status.value for status in ACTIVE_STATUSES)

# Keeps IN (...) lists well under the SQLite bound-variable limit.
ID_BATCH_SIZE = 100


class SQLiteStore(Store):
    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as connection:
            for statement in _SCHEMA:
                connection.execute(statement)
            connection.commit()

    # funders

    def upsert_funder(self, funder: FunderSource) -> FunderSource:
        funder_id = funder.id or uuid.uuid4().hex
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO funders (
                    id,
                    slug,
                    name,
                    funder_type,
                    scrape_url,
                    scrape_config,
                    website_url,
                    is_verified
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(slug) DO UPDATE SET
                    name = excluded.name,
                    funder_type = excluded.funder_type,
                    scrape_url = excluded.scrape_url,
                    scrape_config = excluded.scrape_config,
                    website_url = excluded.website_url,
                    is_verified = excluded.is_verified
                """,
                (
                    funder_id,
                    funder.slug,
                    funder.name,
                    funder.funder_type.value,
                    funder.scrape_url,
                    json.dumps(funder.scrape_config),
                    funder.website_url,
                    int(funder.is_verified),
                ),
            )
            connection.commit()
            row = connection.execute(
                "SELECT * FROM funders WHERE slug = ?",
                (funder.slug,),
            ).fetchone()

        return _row_to_funder(row)

    def list_funders(self) -> list[FunderSource]:
        with self._connect() as connection:
            rows = connection.execute("SELECT * FROM funders ORDER BY slug").fetchall()
        return [_row_to_funder(row) for row in rows]

    def list_scrape_funders(self) -> list[FunderSource]:
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT * FROM funders
                WHERE scrape_url IS NOT NULL AND scrape_url != ''
                ORDER BY slug
                """
            ).fetchall()
        return [_row_to_funder(row) for row in rows]

    def mark_funder_checked(self, funder_id: str, checked_at: datetime) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE funders SET last_scraped_at = ? WHERE id = ?",
                (format_datetime(checked_at), funder_id),
            )
            connection.commit()

    # opportunities

    def list_opportunities_for_funder(self, funder_id: str) -> list[OpportunityRecord]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT * FROM opportunities WHERE funder_id = ? ORDER BY created_at, rowid",
                (funder_id,),
            ).fetchall()
        return [_row_to_opportunity(row) for row in rows]

    def get_opportunity(self, opportunity_id: str) -> OpportunityRecord | None:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM opportunities WHERE id = ?",
                (opportunity_id,),
            ).fetchone()
            if row is None:
                return None
            focus_areas = self._focus_areas_for(connection, [opportunity_id])
        record = _row_to_opportunity(row)
        record.focus_areas = focus_areas.get(opportunity_id, [])
        return record

    def insert_opportunity(self, record: OpportunityRecord) -> OpportunityRecord:
        now = utc_now()
        record.id = record.id or uuid.uuid4().hex
        record.created_at = record.created_at or now
        record.updated_at = record.updated_at or record.created_at

        values = [_to_column_value(name, getattr(record, name)) for name in _OPPORTUNITY_COLUMNS]
        placeholders = ", ".join("?" for _ in _OPPORTUNITY_COLUMNS)
        try:
            with self._connect() as connection:
                connection.execute(
                    f"INSERT INTO opportunities ({', '.join(_OPPORTUNITY_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    values,
                )
                connection.commit()
        except sqlite3.IntegrityError as exc:
            raise DuplicateRecordError(f"duplicate opportunity {record.slug}: {exc}") from exc

        if record.focus_areas:
            self.link_focus_areas(record.id, record.focus_areas)
        return record

    def update_opportunity(self, opportunity_id: str, changes: dict[str, Any]) -> None:
        if not changes:
            return
        unknown = set(changes) - _MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"cannot update immutable or unknown fields: {sorted(unknown)}")

        assignments = ", ".join(f"{name} = ?" for name in changes)
        values = [_to_column_value(name, value) for name, value in changes.items()]
        with self._connect() as connection:
            connection.execute(
                f"UPDATE opportunities SET {assignments} WHERE id = ?",
                (*values, opportunity_id),
            )
            connection.commit()

    def link_focus_areas(self, opportunity_id: str, slugs: Iterable[str]) -> None:
        unique_slugs = list(dict.fromkeys(slug for slug in slugs if slug))
        if not unique_slugs:
            return
        with self._connect() as connection:
            for slug in unique_slugs:
                connection.execute(
                    "INSERT OR IGNORE INTO focus_areas (id, slug) VALUES (?, ?)",
                    (uuid.uuid4().hex, slug),
                )
                connection.execute(
                    """
                    INSERT OR IGNORE INTO opportunity_focus_areas (opportunity_id, focus_area_id)
                    SELECT ?, id FROM focus_areas WHERE slug = ?
                    """,
                    (opportunity_id, slug),
                )
            connection.commit()

    # lifecycle

    def close_expired(self, today: date, updated_at: datetime) -> int:
        with self._connect() as connection:
            cursor = connection.execute(
                """
                UPDATE opportunities
                SET status = ?, updated_at = ?
                WHERE status IN (?, ?)
                  AND deadline_date IS NOT NULL
                  AND deadline_date < ?
                """,
                (
                    OpportunityStatus.CLOSED.value,
                    format_datetime(updated_at),
                    OpportunityStatus.OPEN.value,
                    OpportunityStatus.CLOSING_SOON.value,
                    format_date(today),
                ),
            )
            connection.commit()
            return cursor.rowcount

    def mark_closing_soon(self, today: date, cutoff: date, updated_at: datetime) -> int:
        with self._connect() as connection:
            cursor = connection.execute(
                """
                UPDATE opportunities
                SET status = ?, updated_at = ?
                WHERE status = ?
                  AND deadline_date IS NOT NULL
                  AND deadline_date >= ?
                  AND deadline_date <= ?
                """,
                (
                    OpportunityStatus.CLOSING_SOON.value,
                    format_datetime(updated_at),
                    OpportunityStatus.OPEN.value,
                    format_date(today),
                    format_date(cutoff),
                ),
            )
            connection.commit()
            return cursor.rowcount

    # link validation

    def list_link_check_targets(self) -> list[OpportunityRecord]:
        with self._connect() as connection:
            rows = connection.execute(
                f"""
                SELECT * FROM opportunities
                WHERE is_verified = 1
                  AND status IN ({_placeholders(_ACTIVE_STATUS_VALUES)})
                  AND application_url IS NOT NULL
                  AND application_url != ''
                ORDER BY created_at, rowid
                """,
                _ACTIVE_STATUS_VALUES,
            ).fetchall()
        return [_row_to_opportunity(row) for row in rows]

    def quarantine_opportunities(
        self, opportunity_ids: list[str], note: str, updated_at: datetime
    ) -> int:
        updated = 0
        with self._connect() as connection:
            for batch in _batched(opportunity_ids):
                cursor = connection.execute(
                    f"""
                    UPDATE opportunities
                    SET status = ?, is_verified = 0, application_notes = ?, updated_at = ?
                    WHERE id IN ({_placeholders(batch)})
                    """,
                    (
                        OpportunityStatus.CLOSED.value,
                        note,
                        format_datetime(updated_at),
                        *batch,
                    ),
                )
                updated += cursor.rowcount
            connection.commit()
        return updated

    def touch_opportunities(self, opportunity_ids: list[str], updated_at: datetime) -> int:
        updated = 0
        with self._connect() as connection:
            for batch in _batched(opportunity_ids):
                cursor = connection.execute(
                    f"UPDATE opportunities SET updated_at = ? WHERE id IN ({_placeholders(batch)})",
                    (format_datetime(updated_at), *batch),
                )
                updated += cursor.rowcount
            connection.commit()
        return updated

    # featured

    def list_feature_candidates(self) -> list[OpportunityRecord]:
        with self._connect() as connection:
            rows = connection.execute(
                f"""
                SELECT * FROM opportunities
                WHERE is_verified = 1 AND status IN ({_placeholders(_ACTIVE_STATUS_VALUES)})
                ORDER BY created_at, rowid
                """,
                _ACTIVE_STATUS_VALUES,
            ).fetchall()
            records = [_row_to_opportunity(row) for row in rows]
            focus_areas = self._focus_areas_for(
                connection, [record.id for record in records if record.id]
            )

        for record in records:
            record.focus_areas = focus_areas.get(record.id or "", [])
        return records

    def clear_featured(self) -> int:
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE opportunities SET is_featured = 0 WHERE is_featured = 1"
            )
            connection.commit()
            return cursor.rowcount

    def set_featured(self, opportunity_ids: list[str]) -> int:
        updated = 0
        with self._connect() as connection:
            for batch in _batched(opportunity_ids):
                cursor = connection.execute(
                    f"UPDATE opportunities SET is_featured = 1 WHERE id IN ({_placeholders(batch)})",
                    batch,
                )
                updated += cursor.rowcount
            connection.commit()
        return updated

    def _focus_areas_for(
        self, connection: sqlite3.Connection, opportunity_ids: list[str]
    ) -> dict[str, list[str]]:
        mapping: dict[str, list[str]] = {}
        for batch in _batched(opportunity_ids):
            rows = connection.execute(
                f"""
                SELECT ofa.opportunity_id, fa.slug
                FROM opportunity_focus_areas AS ofa
                JOIN focus_areas AS fa ON fa.id = ofa.focus_area_id
                WHERE ofa.opportunity_id IN ({_placeholders(batch)})
                ORDER BY fa.slug
                """,
                batch,
            ).fetchall()
            for row in rows:
                mapping.setdefault(row["opportunity_id"], []).append(row["slug"])
        return mapping

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.db_path)
        connection.row_factory = sqlite3.Row
        return connection


def _batched(ids: list[str], size: int = ID_BATCH_SIZE) -> Iterator[list[str]]:
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


def _to_column_value(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _JSON_COLUMNS:
        return json.dumps(list(value))
    if name in _BOOL_COLUMNS:
        return int(bool(value))
    if name in _DATE_COLUMNS:
        return format_date(value)
    if name in _DATETIME_COLUMNS:
        return format_datetime(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _row_to_funder(row: sqlite3.Row) -> FunderSource:
    return FunderSource(
        id=row["id"],
        slug=row["slug"],
        name=row["name"],
        funder_type=row["funder_type"],
        scrape_url=row["scrape_url"],
        scrape_config=json.loads(row["scrape_config"] or "{}"),
        website_url=row["website_url"],
        is_verified=bool(row["is_verified"]),
        last_scraped_at=parse_datetime_utc(row["last_scraped_at"]),
    )


def _row_to_opportunity(row: sqlite3.Row) -> OpportunityRecord:
    return OpportunityRecord(
        id=row["id"],
        slug=row["slug"],
        funder_id=row["funder_id"],
        origin=row["origin"],
        title=row["title"],
        summary=row["summary"],
        description=row["description"],
        opportunity_type=row["opportunity_type"],
        status=row["status"],
        amount_min=row["amount_min"],
        amount_max=row["amount_max"],
        amount_exact=row["amount_exact"],
        amount_display=row["amount_display"],
        deadline_type=row["deadline_type"],
        deadline_date=parse_date(row["deadline_date"]),
        deadline_display=row["deadline_display"],
        eligible_org_types=json.loads(row["eligible_org_types"] or "[]"),
        eligible_geography=json.loads(row["eligible_geography"] or "[]"),
        geo_scope_display=row["geo_scope_display"],
        application_url=row["application_url"],
        application_complexity=row["application_complexity"],
        requires_loi=bool(row["requires_loi"]),
        application_notes=row["application_notes"],
        num_awards=row["num_awards"],
        total_pool=row["total_pool"],
        source_url=row["source_url"],
        source_hash=row["source_hash"],
        is_verified=bool(row["is_verified"]),
        is_featured=bool(row["is_featured"]),
        created_at=parse_datetime_utc(row["created_at"]),
        updated_at=parse_datetime_utc(row["updated_at"]),
    )
