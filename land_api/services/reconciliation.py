# SPDX-License-Identifier: Apache-2.0

"""
Ledger reconciliation service.

Reads aggregate counts from the land registry ledger and merges them with the
off-chain application counts for the admin dashboard. The two sources are
shown side by side; no record in one is matched to a record in the other.
refresh_stats never raises: a failed chain read degrades that one field.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from opentelemetry import trace

from ..domain.ledger import STAT_FIELDS, FieldResult, merge_stats
from ..models.entities import AggregateStats
from .chain import ChainClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

LAST_KNOWN_CACHE_KEY = "ledger:stats:last_known"


@dataclass
class ReconciliationConfig:
    """Timeout and retry settings for chain reads."""
    timeout: float = 5.0
    max_retries: int = 1
    retry_delay: float = 0.5
    cache_ttl: int = 3600
    max_age: int = 30


class LedgerReconciliationService:
    """Best-effort merge of ledger aggregates and off-chain application counts."""

    def __init__(
        self,
        chain_client: ChainClient,
        application_service=None,
        redis_service=None,
        config: Optional[ReconciliationConfig] = None
    ):
        self.chain_client = chain_client
        self.application_service = application_service
        self.redis_service = redis_service
        self.config = config or ReconciliationConfig()
        self._lock = threading.Lock()
        self._inflight: Optional[threading.Event] = None
        self._last_known: Dict[str, int] = {}
        self._latest: Optional[AggregateStats] = None
        self._readers: Dict[str, Callable[[], int]] = {
            "total_users": chain_client.total_users,
            "total_lands": chain_client.total_lands,
            "verified_lands": chain_client.verified_lands,
        }

    def _read_field(self, name: str) -> FieldResult:
        """Read one field with bounded retries and exponential backoff."""
        reader = self._readers[name]
        last_error = None

        for attempt in range(self.config.max_retries + 1):
            try:
                return FieldResult(field=name, value=int(reader()), attempts=attempt + 1)
            except Exception as e:
                last_error = e
                if attempt < self.config.max_retries:
                    delay = self.config.retry_delay * (2 ** attempt) + (time.time() % 1) * self.config.retry_delay
                    logger.warning(
                        "Ledger read failed, retrying",
                        extra={"field": name, "attempt": attempt + 1, "retry_delay": delay, "error": str(e)}
                    )
                    time.sleep(delay)

        logger.error(
            "Ledger read failed after all retries",
            extra={"field": name, "total_attempts": self.config.max_retries + 1, "error": str(last_error)}
        )
        return FieldResult(
            field=name,
            error=str(last_error),
            attempts=self.config.max_retries + 1
        )

    def _read_budget(self) -> float:
        """Upper bound on how long one field may take including retries."""
        attempts = self.config.max_retries + 1
        backoff = sum(self.config.retry_delay * (2 ** i) * 2 for i in range(self.config.max_retries))
        return self.config.timeout * attempts + backoff

    def _last_known_values(self) -> Dict[str, int]:
        with self._lock:
            values = dict(self._last_known)
        if len(values) < len(STAT_FIELDS) and self.redis_service is not None:
            cached = self.redis_service.get(LAST_KNOWN_CACHE_KEY) or {}
            if isinstance(cached, dict):
                for name in STAT_FIELDS:
                    if name in values or name not in cached:
                        continue
                    try:
                        values[name] = int(cached[name])
                    except (TypeError, ValueError):
                        logger.warning(
                            "Ignoring unreadable last-known ledger value",
                            extra={"field": name, "cached_value": repr(cached[name])}
                        )
        return values

    def _remember(self, stats: AggregateStats) -> None:
        fresh = {name: getattr(stats, name) for name in STAT_FIELDS if name not in stats.stale_fields}
        if not fresh:
            with self._lock:
                self._latest = stats
            return
        with self._lock:
            self._last_known.update(fresh)
            self._latest = stats
            snapshot = dict(self._last_known)
        if self.redis_service is not None:
            self.redis_service.set(LAST_KNOWN_CACHE_KEY, snapshot, self.config.cache_ttl)

    def refresh_stats(self) -> AggregateStats:
        """
        Query the ledger and merge per-field results.

        Each read runs in its own worker with a bounded wait. Fields that fail
        or time out fall back to their last-known value (or zero) and the
        result is marked Stale. Callers arriving while a refresh is running
        wait for it and share its result.

        Returns:
            AggregateStats; this method never raises
        """
        with self._lock:
            inflight = self._inflight
            leader = inflight is None
            if leader:
                inflight = self._inflight = threading.Event()

        if not leader:
            inflight.wait()
            with self._lock:
                latest = self._latest
            if latest is not None:
                return latest

        try:
            return self._refresh()
        finally:
            if leader:
                with self._lock:
                    self._inflight = None
                inflight.set()

    def _refresh(self) -> AggregateStats:
        with tracer.start_as_current_span("ledger.refresh_stats") as span:
            # Fresh workers per refresh; a hung read from an earlier refresh
            # must not hold a worker this one needs.
            executor = ThreadPoolExecutor(
                max_workers=len(STAT_FIELDS),
                thread_name_prefix="ledger-stats"
            )
            try:
                futures = {
                    name: executor.submit(self._read_field, name)
                    for name in STAT_FIELDS
                }

                budget = self._read_budget()
                deadline = time.monotonic() + budget
                results = []
                for name, future in futures.items():
                    try:
                        results.append(future.result(timeout=max(deadline - time.monotonic(), 0)))
                    except FutureTimeoutError:
                        future.cancel()
                        logger.error("Ledger read timed out", extra={"field": name, "budget_s": budget})
                        results.append(FieldResult(field=name, error="timeout"))
                    except Exception as e:
                        results.append(FieldResult(field=name, error=str(e)))
            finally:
                executor.shutdown(wait=False)

            stats = merge_stats(results, self._last_known_values())
            self._remember(stats)

            span.set_attributes({
                "ledger.data_freshness": stats.data_freshness,
                "ledger.stale_fields": ",".join(stats.stale_fields),
                "ledger.total_lands": stats.total_lands,
                "ledger.verified_lands": stats.verified_lands
            })
            if stats.stale_fields:
                logger.warning(
                    "Ledger statistics are stale",
                    extra={"stale_fields": stats.stale_fields}
                )
            return stats

    def current_stats(self, refresh: bool = False) -> AggregateStats:
        """Latest statistics, refreshing when forced or older than max_age."""
        with self._lock:
            latest = self._latest
        if refresh or latest is None:
            return self.refresh_stats()
        if datetime.utcnow() - latest.refreshed_at > timedelta(seconds=self.config.max_age):
            return self.refresh_stats()
        return latest

    def dashboard_stats(self, refresh: bool = False) -> Dict[str, Any]:
        """
        Ledger statistics next to off-chain application counts.

        Args:
            refresh: Force a ledger refresh

        Returns:
            Dictionary with "ledger" and "applications" sections
        """
        with tracer.start_as_current_span("ledger.dashboard_stats"):
            ledger = self.current_stats(refresh)
            applications = None
            if self.application_service is not None:
                try:
                    applications = self.application_service.status_counts()
                except Exception as e:
                    logger.error(f"Failed to load application counts: {str(e)}", exc_info=True)

            return {
                "ledger": ledger.to_response(),
                "applications": applications,
                "applicationsAvailable": applications is not None
            }
