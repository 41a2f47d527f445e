"""Commit: promote leases once downstream work is done."""

import logging
from datetime import datetime
from typing import Iterable, Optional

from .store import StateStore

logger = logging.getLogger(__name__)


def commit(
    store: StateStore,
    keys: Iterable[str],
    now: Optional[datetime] = None,
) -> int:
    """
    Mark keys as posted, then expire and trim the store.

    Call only after the downstream work for each key reached a terminal
    outcome that must not be retried. Keys that are not pending are still
    (re)written as posted, so re-committing after a partial failure is safe.

    Returns:
        Number of keys promoted
    """
    promoted = 0
    with store.transaction():
        now = now or store.now()
        for key in keys:
            if not key:
                continue
            store.promote(key, now)
            promoted += 1
        removed = store.collect_garbage(now)
        evicted = store.enforce_capacity(now)

    logger.info(f"Committed {promoted} keys ({removed} expired, {evicted} evicted)")
    return promoted


def release(store: StateStore, keys: Iterable[str]) -> int:
    """
    Give up leases so the keys are admissible again right away.

    For downstream failures worth retrying before pending_ttl runs out.
    Posted records are not touched.

    Returns:
        Number of leases dropped
    """
    released = 0
    with store.transaction():
        for key in keys:
            if key and store.release(key):
                released += 1

    logger.info(f"Released {released} leases")
    return released
