#!/usr/bin/env python
"""State store - 单元测试"""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from feedguard.config import DedupConfig
from feedguard.core import ManualClock
from feedguard.dedup import StateStore, load_store, save_store

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
POSTED_TTL = timedelta(days=30)
PENDING_TTL = timedelta(hours=2)


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def store(clock):
    return StateStore(POSTED_TTL, PENDING_TTL, max_keys=100, clock=clock)


class TestLiveness:
    """测试 TTL 判断"""

    def test_posted_live_within_ttl(self, store):
        store.promote("k", T0)
        assert store.is_posted_live("k", T0 + POSTED_TTL - timedelta(seconds=1))

    def test_posted_expires_at_ttl(self, store):
        """age >= ttl 即过期"""
        store.promote("k", T0)
        assert not store.is_posted_live("k", T0 + POSTED_TTL)

    def test_pending_live_within_ttl(self, store):
        store.reserve("k", T0)
        assert store.is_pending_live("k", T0 + timedelta(hours=1, minutes=59))
        assert not store.is_pending_live("k", T0 + PENDING_TTL)

    def test_unknown_key(self, store):
        assert not store.is_posted_live("missing", T0)
        assert not store.is_pending_live("missing", T0)


class TestConstruction:
    """测试构造参数校验"""

    @pytest.mark.parametrize("max_keys", [0, -1])
    def test_rejects_max_keys_below_one(self, max_keys):
        with pytest.raises(ValueError):
            StateStore(POSTED_TTL, PENDING_TTL, max_keys=max_keys)

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValueError):
            StateStore(timedelta(0), PENDING_TTL, max_keys=10)

    def test_single_slot_keeps_latest_reservation(self, clock):
        store = StateStore(POSTED_TTL, PENDING_TTL, max_keys=1, clock=clock)
        store.reserve("a", T0)
        store.reserve("b", T0)
        assert store.is_pending_live("b", T0)
        assert len(store) == 1

    def test_naive_now_accepted(self, store):
        store.promote("k", T0)
        assert store.is_posted_live("k", datetime(2024, 1, 2))
        assert store.collect_garbage(datetime(2024, 2, 1)) == 1


class TestTransitions:
    """测试状态迁移"""

    def test_promote_moves_pending_to_posted(self, store):
        store.reserve("k", T0)
        store.promote("k", T0 + timedelta(minutes=5))
        assert not store.is_pending_live("k", T0 + timedelta(minutes=5))
        assert store.is_posted_live("k", T0 + timedelta(minutes=5))
        assert len(store) == 1

    def test_promote_is_idempotent(self, store):
        store.reserve("k", T0)
        store.promote("k", T0)
        store.promote("k", T0 + timedelta(hours=1))
        assert len(store) == 1
        assert store.snapshot()["posted"]["k"] == (T0 + timedelta(hours=1)).isoformat()

    def test_reserve_keeps_collections_disjoint(self, store):
        store.promote("k", T0)
        store.reserve("k", T0 + timedelta(days=31))
        snap = store.snapshot()
        assert "k" not in snap["posted"]
        assert "k" in snap["pending"]

    def test_release(self, store):
        store.reserve("k", T0)
        assert store.release("k") is True
        assert store.release("k") is False
        assert len(store) == 0

    def test_release_leaves_posted(self, store):
        store.promote("k", T0)
        assert store.release("k") is False
        assert store.is_posted_live("k", T0)


class TestGarbageCollection:
    """测试过期清理"""

    def test_removes_expired(self, store):
        store.promote("fresh", T0 + timedelta(days=29))
        store.promote("old_posted", T0)
        store.reserve("old_pending", T0)
        removed = store.collect_garbage(T0 + timedelta(days=30))
        assert removed == 2
        assert list(store.snapshot()["posted"]) == ["fresh"]

    def test_reserve_triggers_gc(self, store):
        store.reserve("stale", T0)
        store.reserve("other", T0 + timedelta(hours=3))
        assert "stale" not in store.snapshot()["pending"]

    def test_stats_counts_live_only(self, store, clock):
        store.promote("a", T0)
        store.reserve("b", T0)
        assert store.stats().as_dict() == {"posted": 1, "pending": 1, "total": 2, "max_keys": 100}
        clock.advance(hours=3)
        stats = store.stats()
        assert (stats.posted, stats.pending) == (1, 0)


class TestCapacity:
    """测试容量上限"""

    def test_never_exceeds_max_keys(self, clock):
        store = StateStore(POSTED_TTL, PENDING_TTL, max_keys=3, clock=clock)
        for i in range(5):
            store.reserve(f"k{i}", T0 + timedelta(minutes=i))
            assert len(store) <= 3
        assert sorted(store.snapshot()["pending"]) == ["k2", "k3", "k4"]

    def test_evicts_oldest_across_collections(self, clock):
        store = StateStore(POSTED_TTL, PENDING_TTL, max_keys=3, clock=clock)
        store.promote("a", T0)
        store.reserve("b", T0 + timedelta(minutes=1))
        store.promote("c", T0 + timedelta(minutes=2))
        store.reserve("d", T0 + timedelta(minutes=3))
        snap = store.snapshot()
        assert "a" not in snap["posted"]
        assert set(snap["posted"]) | set(snap["pending"]) == {"b", "c", "d"}

    def test_newest_reservation_survives_timestamp_ties(self, clock):
        store = StateStore(POSTED_TTL, PENDING_TTL, max_keys=2, clock=clock)
        for key in ("x", "y", "z"):
            store.reserve(key, T0)
        assert store.is_pending_live("z", T0)
        assert len(store) == 2

    def test_enforce_capacity_reports_evictions(self, clock):
        store = StateStore(POSTED_TTL, PENDING_TTL, max_keys=10, clock=clock)
        for i in range(10):
            store.promote(f"k{i}", T0 + timedelta(seconds=i))
        store.max_keys = 4
        assert store.enforce_capacity(T0 + timedelta(minutes=1)) == 6
        assert len(store) == 4
        assert store.enforce_capacity(T0 + timedelta(minutes=1)) == 0


class TestPersistence:
    """测试快照读写"""

    def _config(self, tmp_path, **kwargs):
        return DedupConfig(state_file=tmp_path / "state.json", **kwargs)

    def test_save_and_load(self, tmp_path, store, clock):
        config = self._config(tmp_path)
        store.promote("posted", T0)
        store.reserve("pending", T0)
        assert save_store(store, config.state_file)

        loaded = load_store(config.state_file, config, clock=clock)
        assert loaded.is_posted_live("posted", T0)
        assert loaded.is_pending_live("pending", T0)

    def test_load_drops_expired(self, tmp_path, store, clock):
        config = self._config(tmp_path)
        store.reserve("pending", T0)
        save_store(store, config.state_file)

        clock.advance(hours=3)
        loaded = load_store(config.state_file, config, clock=clock)
        assert len(loaded) == 0

    def test_missing_file_gives_empty_store(self, tmp_path, clock):
        config = self._config(tmp_path)
        assert len(load_store(config.state_file, config, clock=clock)) == 0

    def test_corrupt_file_gives_empty_store(self, tmp_path, clock):
        config = self._config(tmp_path)
        config.state_file.write_text("{not json", encoding="utf-8")
        assert len(load_store(config.state_file, config, clock=clock)) == 0

    def test_legacy_seen_records_load_as_posted(self, tmp_path, clock):
        """旧格式 {key: timestamp} 视为 posted"""
        config = self._config(tmp_path)
        legacy = {"u:https://example.com/a": T0.isoformat(), "g:broken": "not-a-date"}
        config.state_file.write_text(json.dumps(legacy), encoding="utf-8")

        loaded = load_store(config.state_file, config, clock=clock)
        assert loaded.is_posted_live("u:https://example.com/a", T0)
        assert len(loaded) == 1

    def test_naive_timestamps_read_as_utc(self, tmp_path, clock):
        config = self._config(tmp_path)
        data = {"version": 1, "posted": {"k": "2024-01-01T00:00:00"}, "pending": {}}
        config.state_file.write_text(json.dumps(data), encoding="utf-8")

        loaded = load_store(config.state_file, config, clock=clock)
        assert loaded.is_posted_live("k", T0)
