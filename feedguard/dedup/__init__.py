"""Admission/commit deduplication engine."""

from .normalize import DEFAULT_TRACKING_PARAMS, normalize_url
from .keys import derive_key, hash_identity
from .store import StateStore, load_store, save_store
from .admission import admit, admit_batch
from .commit import commit, release

__all__ = [
    "DEFAULT_TRACKING_PARAMS",
    "normalize_url",
    "derive_key",
    "hash_identity",
    "StateStore",
    "load_store",
    "save_store",
    "admit",
    "admit_batch",
    "commit",
    "release",
]
