"""Posted/pending key store with TTL expiry and a capacity bound.

Every key lives in at most one of two collections:

- posted:  committed keys, blocking re-admission for posted_ttl
- pending: in-flight reservations (leases), blocking for pending_ttl

All public methods run under one re-entrant lock. Callers that need a
multi-step sequence to be atomic (check-then-reserve) wrap it in
``store.transaction()``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Iterator, Optional, Union

from ..core import Clock, SystemClock, as_utc, load_json, parse_iso, save_json, to_iso
from ..models import StoreStats

if TYPE_CHECKING:
    from ..config import DedupConfig

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class StateStore:
    """In-memory dedup state shared by every admission and commit call."""

    def __init__(
        self,
        posted_ttl: timedelta,
        pending_ttl: timedelta,
        max_keys: int,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            posted_ttl: Retention window for committed keys
            pending_ttl: Lease length for reserved keys
            max_keys: Cap on live posted + pending entries
            clock: Time source, defaults to the UTC wall clock

        Raises:
            ValueError: if max_keys < 1 or a TTL is not positive
        """
        if max_keys < 1:
            raise ValueError(f"max_keys must be at least 1, got {max_keys}")
        if posted_ttl <= timedelta(0) or pending_ttl <= timedelta(0):
            raise ValueError("posted_ttl and pending_ttl must be positive")
        self.posted_ttl = posted_ttl
        self.pending_ttl = pending_ttl
        self.max_keys = max_keys
        self.clock = clock or SystemClock()
        self._posted: dict[str, datetime] = {}
        self._pending: dict[str, datetime] = {}
        self._lock = RLock()

    @classmethod
    def from_config(cls, config: "DedupConfig", clock: Optional[Clock] = None) -> "StateStore":
        return cls(config.posted_ttl, config.pending_ttl, config.max_keys, clock=clock)

    @contextmanager
    def transaction(self) -> Iterator["StateStore"]:
        """Hold the store lock across several calls."""
        with self._lock:
            yield self

    def now(self) -> datetime:
        return self.clock.now()

    # ─────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────

    def is_posted_live(self, key: str, now: datetime) -> bool:
        now = as_utc(now)
        with self._lock:
            inserted = self._posted.get(key)
            return inserted is not None and now - inserted < self.posted_ttl

    def is_pending_live(self, key: str, now: datetime) -> bool:
        now = as_utc(now)
        with self._lock:
            inserted = self._pending.get(key)
            return inserted is not None and now - inserted < self.pending_ttl

    # ─────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────

    def reserve(self, key: str, now: datetime) -> None:
        """Take (or refresh) the lease on key. Liveness checks are the caller's job."""
        now = as_utc(now)
        with self._lock:
            self._posted.pop(key, None)
            # Re-insert so dict order follows reservation time
            self._pending.pop(key, None)
            self._pending[key] = now
            self._collect_garbage(now)
            self._enforce_capacity(now)

    def promote(self, key: str, now: datetime) -> None:
        """Turn a lease into a posted record. Safe to repeat."""
        now = as_utc(now)
        with self._lock:
            self._pending.pop(key, None)
            self._posted.pop(key, None)
            self._posted[key] = now
            self._collect_garbage(now)
            self._enforce_capacity(now)

    def release(self, key: str) -> bool:
        """Drop a pending lease early. Returns True if one existed."""
        with self._lock:
            return self._pending.pop(key, None) is not None

    def collect_garbage(self, now: datetime) -> int:
        """Remove expired entries. Returns how many were removed."""
        now = as_utc(now)
        with self._lock:
            return self._collect_garbage(now)

    def enforce_capacity(self, now: datetime) -> int:
        """Evict oldest entries until live count <= max_keys. Returns evicted count."""
        now = as_utc(now)
        with self._lock:
            return self._enforce_capacity(now)

    def _collect_garbage(self, now: datetime) -> int:
        expired_posted = [k for k, t in self._posted.items() if now - t >= self.posted_ttl]
        expired_pending = [k for k, t in self._pending.items() if now - t >= self.pending_ttl]
        for key in expired_posted:
            del self._posted[key]
        for key in expired_pending:
            del self._pending[key]
        return len(expired_posted) + len(expired_pending)

    def _enforce_capacity(self, now: datetime) -> int:
        self._collect_garbage(now)
        overflow = len(self._posted) + len(self._pending) - self.max_keys
        if overflow <= 0:
            return 0

        # Stable sort: ties go posted-first, then insertion order
        entries = [(t, key, self._posted) for key, t in self._posted.items()]
        entries += [(t, key, self._pending) for key, t in self._pending.items()]
        entries.sort(key=lambda e: e[0])

        for _, key, bucket in entries[:overflow]:
            del bucket[key]

        logger.info(f"Capacity {self.max_keys} exceeded, evicted {overflow} oldest keys")
        return overflow

    # ─────────────────────────────────────────────────────────
    # Introspection & snapshots
    # ─────────────────────────────────────────────────────────

    def stats(self, now: Optional[datetime] = None) -> StoreStats:
        """Live counts (expired entries are not counted)."""
        now = as_utc(now or self.now())
        with self._lock:
            posted = sum(1 for t in self._posted.values() if now - t < self.posted_ttl)
            pending = sum(1 for t in self._pending.values() if now - t < self.pending_ttl)
        return StoreStats(posted=posted, pending=pending, max_keys=self.max_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._posted) + len(self._pending)

    def snapshot(self) -> dict:
        """JSON-ready copy of both collections."""
        with self._lock:
            return {
                "version": SNAPSHOT_VERSION,
                "posted": {k: to_iso(t) for k, t in self._posted.items()},
                "pending": {k: to_iso(t) for k, t in self._pending.items()},
            }

    @classmethod
    def from_snapshot(
        cls,
        data: dict,
        posted_ttl: timedelta,
        pending_ttl: timedelta,
        max_keys: int,
        clock: Optional[Clock] = None,
    ) -> "StateStore":
        """
        Rebuild a store from snapshot().

        A flat {key: timestamp} mapping (the old seen-records format) loads
        as posted entries. Entries with unreadable timestamps are skipped.
        """
        store = cls(posted_ttl, pending_ttl, max_keys, clock=clock)
        if not data:
            return store

        if "posted" in data or "pending" in data:
            posted = data.get("posted") or {}
            pending = data.get("pending") or {}
        else:
            logger.info(f"Loading legacy seen records as posted ({len(data)} keys)")
            posted, pending = data, {}

        store._posted = _parse_entries(posted, "posted")
        store._pending = _parse_entries(pending, "pending")
        # Pending wins if a corrupt file lists a key twice
        for key in store._pending:
            store._posted.pop(key, None)
        return store


def _parse_entries(raw: dict, label: str) -> dict[str, datetime]:
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring {label} section: expected a JSON object")
        return {}
    entries = {}
    bad = 0
    for key, ts in raw.items():
        parsed = parse_iso(ts) if isinstance(ts, str) else None
        if parsed is None:
            bad += 1
            continue
        entries[key] = parsed
    if bad:
        logger.warning(f"Skipped {bad} {label} entries with invalid timestamps")
    # Oldest first, so dict order matches insertion time for eviction
    return dict(sorted(entries.items(), key=lambda kv: kv[1]))


def load_store(
    path: Union[str, Path],
    config: "DedupConfig",
    clock: Optional[Clock] = None,
) -> StateStore:
    """Load the store snapshot at path; missing or corrupt files give an empty store."""
    data = load_json(path, default={})
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a JSON object")
        data = {}
    store = StateStore.from_snapshot(
        data,
        config.posted_ttl,
        config.pending_ttl,
        config.max_keys,
        clock=clock,
    )
    now = store.now()
    removed = store.collect_garbage(now)
    evicted = store.enforce_capacity(now)
    logger.info(
        f"Loaded dedup state from {path}: {len(store)} keys "
        f"({removed} expired, {evicted} evicted)"
    )
    return store


def save_store(store: StateStore, path: Union[str, Path]) -> bool:
    """Write the store snapshot. Returns False (and logs) on failure."""
    snapshot = store.snapshot()
    ok = save_json(snapshot, path)
    if ok:
        logger.info(
            f"Saved dedup state to {path}: "
            f"{len(snapshot['posted'])} posted, {len(snapshot['pending'])} pending"
        )
    return ok
