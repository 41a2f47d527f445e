"""
FeedGuard - at-most-once admission for republished feed articles.

Pollers hand articles to admit_batch(); accepted ones carry a dedupeKey and
go downstream. Once delivery is final, the pipeline calls commit() with
those keys. Uncommitted reservations expire after pending_ttl.

Example
-------
from feedguard import StateStore, admit_batch, commit, load_config

config = load_config()
store = StateStore.from_config(config)

accepted, _ = admit_batch(store, [{"link": "https://example.com/a?utm_source=x"}])
commit(store, [a.dedupe_key for a in accepted])
"""
from .models import AdmissionResult, Article, RejectReason, StoreStats
from .config import ConfigError, DedupConfig, load_config
from .dedup import (
    StateStore,
    admit,
    admit_batch,
    commit,
    derive_key,
    load_store,
    normalize_url,
    release,
    save_store,
)

__all__ = [
    "Article",
    "AdmissionResult",
    "RejectReason",
    "StoreStats",
    "ConfigError",
    "DedupConfig",
    "load_config",
    "StateStore",
    "admit",
    "admit_batch",
    "commit",
    "release",
    "derive_key",
    "normalize_url",
    "load_store",
    "save_store",
]
