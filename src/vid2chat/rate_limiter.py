"""
Per-client admission control.

Fixed-window counter per identity (usually the client's network address):
the first request opens a window of `window_seconds`; up to `limit` requests
are admitted inside it; the counter starts over once the window has elapsed.

This approximates a sliding window. A client that spends its whole quota at
the end of one window and again at the start of the next gets up to
2 * limit requests through in a short span.

Expired records are reset lazily on the next request and reclaimed by a
background task, so memory stays proportional to the identities seen within
one window.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10000
DEFAULT_WINDOW_SECONDS = 24 * 60 * 60


@dataclass
class RateLimitRecord:
    identity: str
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitSnapshot:
    remaining: int
    limit: int
    reset_at: str  # ISO-8601, UTC

    def to_dict(self) -> Dict[str, object]:
        return {"remaining": self.remaining, "limit": self.limit, "resetAt": self.reset_at}


@dataclass(frozen=True)
class Admission:
    allowed: bool
    retry_after_seconds: int
    snapshot: RateLimitSnapshot


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class RateLimiter:
    """In-memory fixed-window rate limiter keyed by client identity."""

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        cleanup_interval_seconds: Optional[float] = None,
    ):
        if limit <= 0 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds or window_seconds / 24
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _expired(self, record: RateLimitRecord, now: float) -> bool:
        return now - record.window_start >= self.window_seconds

    def _snapshot(self, record: RateLimitRecord) -> RateLimitSnapshot:
        return RateLimitSnapshot(
            remaining=max(0, self.limit - record.count),
            limit=self.limit,
            reset_at=_iso(record.window_start + self.window_seconds),
        )

    def admit(self, identity: str, now: Optional[float] = None) -> Admission:
        """
        Count a request from `identity` and decide whether to honor it.

        Args:
            identity: Client key (e.g. IP address)
            now: Current time in epoch seconds (defaults to time.time())

        Returns:
            Admission with the decision, retry-after (0 when allowed) and the
            post-decision snapshot
        """
        now = time.time() if now is None else now
        with self._lock:
            record = self._records.get(identity)
            if record is None or self._expired(record, now):
                record = RateLimitRecord(identity=identity, window_start=now, count=0)
                self._records[identity] = record

            if record.count >= self.limit:
                retry_after = max(1, math.ceil(record.window_start + self.window_seconds - now))
                logger.info(
                    "Rate limit exceeded for %s (limit=%d, retry_after=%ds)",
                    identity, self.limit, retry_after,
                )
                return Admission(False, retry_after, self._snapshot(record))

            record.count += 1
            return Admission(True, 0, self._snapshot(record))

    def snapshot(self, identity: str, now: Optional[float] = None) -> RateLimitSnapshot:
        """Report the quota left for `identity` without counting a request."""
        now = time.time() if now is None else now
        with self._lock:
            record = self._records.get(identity)
            if record is None or self._expired(record, now):
                record = RateLimitRecord(identity=identity, window_start=now, count=0)
            return self._snapshot(record)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Drop records whose window has elapsed. Returns how many were dropped."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [k for k, r in self._records.items() if self._expired(r, now)]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug("Purged %d expired rate-limit records", len(expired))
        return len(expired)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            self.purge_expired()

    def start(self) -> None:
        """Start the background purge task on the running event loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    async def close(self) -> None:
        """Cancel the background purge task and wait for it to finish."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
