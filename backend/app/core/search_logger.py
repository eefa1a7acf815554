from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

from backend.app.core.providers import AnalyticsSink, call_with_timeout
from backend.app.utils.observability import record_search_log

logger = logging.getLogger(__name__)

# Stale dedupe entries are purged once they are this many windows old.
PURGE_WINDOW_MULTIPLIER = 4


@dataclass(frozen=True)
class SearchRequestMetadata:
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None


@dataclass(frozen=True)
class SearchLogOutcome:
    ok: bool
    skipped: bool = False
    retried: bool = False
    attempts: int = 0
    error: Optional[str] = None


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SearchEventLogger:
    """Reports search activity to the analytics sink without affecting callers.

    Identical ``(user, query)`` events inside the dedupe window are skipped
    before any network I/O. Delivery is tried twice at most; a second failure
    is logged and dropped. The dedupe table is the only shared state and is
    only mutated between await points.
    """

    def __init__(
        self,
        sink: AnalyticsSink,
        *,
        dedupe_seconds: float = 30.0,
        timeout: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        timestamp_factory: Callable[[], str] = _utc_timestamp,
    ) -> None:
        self.sink = sink
        self.dedupe_seconds = dedupe_seconds
        self.timeout = timeout
        self._clock = clock
        self._timestamp_factory = timestamp_factory
        self._recent: Dict[str, float] = {}
        self._pending: Set[asyncio.Task] = set()

    @staticmethod
    def dedupe_key(user_id: Optional[str], query: str) -> str:
        return f"{user_id or 'anon'}::{query}"

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def tracked_keys(self) -> list[str]:
        return list(self._recent)

    def build_event(
        self,
        user_id: Optional[str],
        query: str,
        metadata: Optional[SearchRequestMetadata] = None,
    ) -> Dict[str, Any]:
        meta = metadata or SearchRequestMetadata()
        return {
            "user_id": user_id or None,
            "query": query,
            "user_agent": meta.user_agent,
            "client_ip": meta.client_ip,
            "timestamp": self._timestamp_factory(),
        }

    async def log_search(
        self,
        user_id: Optional[str],
        query: str,
        metadata: Optional[SearchRequestMetadata] = None,
    ) -> SearchLogOutcome:
        key = self.dedupe_key(user_id, query)
        try:
            last_sent = self._recent.get(key)
            if last_sent is not None and self._clock() - last_sent < self.dedupe_seconds:
                record_search_log("skipped")
                return SearchLogOutcome(ok=True, skipped=True)
            self._recent[key] = self._clock()

            event = self.build_event(user_id, query, metadata)
            first_error = await self._attempt(event)
            if first_error is None:
                record_search_log("ok")
                return SearchLogOutcome(ok=True, attempts=1)

            retry_error = await self._attempt(event)
            if retry_error is None:
                record_search_log("retried")
                return SearchLogOutcome(ok=True, retried=True, attempts=2)

            record_search_log("failed")
            logger.warning(
                "Failed to log search event",
                extra={"json_fields": {"first_error": first_error, "retry_error": retry_error}},
            )
            return SearchLogOutcome(ok=False, retried=True, attempts=2, error=retry_error)
        finally:
            self._purge_stale()

    async def _attempt(self, event: Dict[str, Any]) -> Optional[str]:
        try:
            await call_with_timeout(lambda: self.sink.send(event), self.timeout)
        except asyncio.TimeoutError:
            return f"timed out after {self.timeout:.1f}s"
        except Exception as exc:
            return str(exc) or type(exc).__name__
        return None

    def _purge_stale(self) -> None:
        cutoff = self._clock() - self.dedupe_seconds * PURGE_WINDOW_MULTIPLIER
        for key, sent_at in list(self._recent.items()):
            if sent_at < cutoff:
                self._recent.pop(key, None)

    def spawn(
        self,
        user_id: Optional[str],
        query: str,
        metadata: Optional[SearchRequestMetadata] = None,
    ) -> asyncio.Task:
        """Schedule ``log_search`` on the running loop and return immediately."""

        task = asyncio.create_task(self._run_detached(user_id, query, metadata))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run_detached(
        self,
        user_id: Optional[str],
        query: str,
        metadata: Optional[SearchRequestMetadata],
    ) -> None:
        try:
            outcome = await self.log_search(user_id, query, metadata)
        except Exception as exc:
            logger.warning("Search log task crashed: %s", exc)
            return
        if not outcome.ok:
            logger.debug("Search log dropped for query %r: %s", query, outcome.error)

    async def drain(self) -> None:
        """Wait for in-flight detached tasks (used at shutdown and in tests)."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
