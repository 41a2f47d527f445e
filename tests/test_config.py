#!/usr/bin/env python
"""Config loading - 单元测试"""

import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from feedguard.config import ConfigError, DedupConfig, load_config
from feedguard.dedup import DEFAULT_TRACKING_PARAMS

ENV_VARS = [
    "DEDUP_POSTED_TTL_DAYS",
    "DEDUP_PENDING_TTL_HOURS",
    "DEDUP_MAX_KEYS",
    "DEDUP_STATE_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path, text: str) -> Path:
    path = tmp_path / "dedup.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    """测试配置加载"""

    def test_defaults_when_missing(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.posted_ttl == timedelta(days=30)
        assert config.pending_ttl == timedelta(hours=2)
        assert config.max_keys == 50_000
        assert config.tracking_params == DEFAULT_TRACKING_PARAMS

    def test_reads_yaml(self, tmp_path):
        path = _write(tmp_path, (
            "posted_ttl_days: 7\n"
            "pending_ttl_hours: 0.5\n"
            "max_keys: 10\n"
            "tracking_params: [utm_source, sid]\n"
            "state_file: state/here.json\n"
        ))
        config = load_config(path)
        assert config.posted_ttl == timedelta(days=7)
        assert config.pending_ttl == timedelta(minutes=30)
        assert config.max_keys == 10
        assert config.tracking_params == frozenset({"utm_source", "sid"})
        assert config.state_file == Path("state/here.json")

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "max_keys: 10\n")
        monkeypatch.setenv("DEDUP_MAX_KEYS", "25")
        monkeypatch.setenv("DEDUP_PENDING_TTL_HOURS", "4")
        monkeypatch.setenv("DEDUP_STATE_FILE", str(tmp_path / "s.json"))
        config = load_config(path)
        assert config.max_keys == 25
        assert config.pending_ttl == timedelta(hours=4)
        assert config.state_file == tmp_path / "s.json"

    def test_repo_config_matches_defaults(self):
        config = load_config()
        assert config.posted_ttl == timedelta(days=30)
        assert config.tracking_params == DEFAULT_TRACKING_PARAMS


class TestValidation:
    """测试非法配置"""

    def test_zero_max_keys(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, "max_keys: 0\n"))

    def test_negative_ttl(self):
        with pytest.raises(ConfigError):
            DedupConfig(pending_ttl=timedelta(hours=-1))

    def test_non_numeric_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEDUP_POSTED_TTL_DAYS", "forever")
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")

    def test_non_numeric_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, "max_keys: lots\n"))

    def test_tracking_params_must_be_list(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, "tracking_params: utm_source\n"))

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)
