from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

import requests

from grant_curator.config import DEFAULT_USER_AGENT
from grant_curator.context import RunContext
from grant_curator.models import OpportunityRecord
from grant_curator.store import Store

logger = logging.getLogger(__name__)

DEAD_LINK_NOTE = "Automatically closed: application link no longer active."

_ALIVE_STATUSES = {301, 302, 403}
_DEAD_STATUSES = {404, 410}
_ACCEPT = "text/html,application/xhtml+xml,*/*"


class LinkState(str, Enum):
    ALIVE = "alive"
    DEAD = "dead"


@dataclass(slots=True)
class LinkCheckResult:
    opportunity_id: str
    state: LinkState
    status_code: int | None = None
    error: str | None = None


@dataclass(slots=True)
class LinkCheckStats:
    checked: int = 0
    alive: int = 0
    dead: int = 0
    errors: list[str] = field(default_factory=list)


def classify_status(status_code: int) -> LinkState:
    # 403 usually means bot-blocked; unknown codes are treated as transient.
    if 200 <= status_code < 300 or status_code in _ALIVE_STATUSES:
        return LinkState.ALIVE
    if status_code in _DEAD_STATUSES:
        return LinkState.DEAD
    return LinkState.ALIVE


class LinkValidator:
    def __init__(
        self,
        store: Store,
        *,
        batch_size: int = 10,
        batch_pause_seconds: float = 0.5,
        timeout_seconds: int = 15,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.store = store
        self.batch_size = max(1, batch_size)
        self.batch_pause_seconds = batch_pause_seconds
        self.timeout_seconds = timeout_seconds
        self.headers = {"User-Agent": f"{user_agent} link-checker", "Accept": _ACCEPT}

    def run(self, context: RunContext) -> LinkCheckStats:
        stats = LinkCheckStats()
        targets = self.store.list_link_check_targets()
        logger.info("Checking %d opportunity links", len(targets))

        dead_ids: list[str] = []
        alive_ids: list[str] = []

        for start in range(0, len(targets), self.batch_size):
            batch = targets[start : start + self.batch_size]
            for result in self._check_batch(batch):
                stats.checked += 1
                if result.error:
                    stats.errors.append(result.error)
                if result.state is LinkState.DEAD:
                    dead_ids.append(result.opportunity_id)
                else:
                    alive_ids.append(result.opportunity_id)

            if start + self.batch_size < len(targets) and self.batch_pause_seconds > 0:
                time.sleep(self.batch_pause_seconds)

        if dead_ids:
            try:
                self.store.quarantine_opportunities(dead_ids, DEAD_LINK_NOTE, context.now)
            except Exception as exc:  # noqa: BLE001
                message = f"failed to quarantine dead links: {exc}"
                logger.exception(message)
                stats.errors.append(message)

        if alive_ids:
            try:
                self.store.touch_opportunities(alive_ids, context.now)
            except Exception as exc:  # noqa: BLE001
                message = f"failed to record alive links: {exc}"
                logger.exception(message)
                stats.errors.append(message)

        stats.dead = len(dead_ids)
        stats.alive = len(alive_ids)
        logger.info(
            "Link check complete | checked=%d alive=%d dead=%d errors=%d",
            stats.checked,
            stats.alive,
            stats.dead,
            len(stats.errors),
        )
        return stats

    def _check_batch(self, batch: list[OpportunityRecord]) -> list[LinkCheckResult]:
        with ThreadPoolExecutor(max_workers=len(batch) or 1) as executor:
            return list(executor.map(self._safe_check, batch))

    def _safe_check(self, record: OpportunityRecord) -> LinkCheckResult:
        try:
            return self.check(record)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error checking %s", record.application_url)
            return LinkCheckResult(
                opportunity_id=str(record.id),
                state=LinkState.ALIVE,
                error=f"{record.title}: {exc}",
            )

    def check(self, record: OpportunityRecord) -> LinkCheckResult:
        url = str(record.application_url)
        opportunity_id = str(record.id)
        try:
            response = requests.head(
                url,
                headers=self.headers,
                timeout=self.timeout_seconds,
                allow_redirects=True,
            )
            if response.status_code == 405:
                response = requests.get(
                    url,
                    headers=self.headers,
                    timeout=self.timeout_seconds,
                    allow_redirects=True,
                    stream=True,
                )
                response.close()
        except requests.Timeout:
            logger.warning("Timeout checking %s", url)
            return LinkCheckResult(
                opportunity_id=opportunity_id,
                state=LinkState.ALIVE,
                error=f"Timeout: {record.title}",
            )
        except requests.exceptions.SSLError as exc:
            logger.warning("TLS error checking %s: %s", url, exc)
            return LinkCheckResult(
                opportunity_id=opportunity_id,
                state=LinkState.ALIVE,
                error=f"{record.title}: {exc}",
            )
        except requests.ConnectionError:
            # DNS failures and refused connections: the host is gone.
            logger.info("DEAD (connection): %s -> %s", record.title, url)
            return LinkCheckResult(opportunity_id=opportunity_id, state=LinkState.DEAD)
        except requests.RequestException as exc:
            logger.warning("Request error checking %s: %s", url, exc)
            return LinkCheckResult(
                opportunity_id=opportunity_id,
                state=LinkState.ALIVE,
                error=f"{record.title}: {exc}",
            )

        state = classify_status(response.status_code)
        if state is LinkState.DEAD:
            logger.info("DEAD: %s -> %s (%d)", record.title, url, response.status_code)
        return LinkCheckResult(
            opportunity_id=opportunity_id,
            state=state,
            status_code=response.status_code,
        )
