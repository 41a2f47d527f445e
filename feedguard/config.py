"""Dedup engine config - load from config/dedup.yaml with environment overrides.

Options (YAML key / env override):
- posted_ttl_days / DEDUP_POSTED_TTL_DAYS: retention window after commit
- pending_ttl_hours / DEDUP_PENDING_TTL_HOURS: lease length for in-flight keys
- max_keys / DEDUP_MAX_KEYS: soft cap on live posted + pending entries
- tracking_params: query parameters stripped during URL normalization
- state_file / DEDUP_STATE_FILE: JSON snapshot of the store
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import FrozenSet, Optional, Union

import yaml
from dotenv import load_dotenv

from .dedup.normalize import DEFAULT_TRACKING_PARAMS

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"
DEDUP_CONFIG_PATH = CONFIG_DIR / "dedup.yaml"

DEFAULT_POSTED_TTL_DAYS = 30
DEFAULT_PENDING_TTL_HOURS = 2
DEFAULT_MAX_KEYS = 50_000
DEFAULT_STATE_FILE = Path("data/dedup_state.json")


class ConfigError(ValueError):
    """Raised when dedup configuration values are invalid."""


@dataclass
class DedupConfig:
    """Engine settings, fixed at process start."""
    posted_ttl: timedelta = timedelta(days=DEFAULT_POSTED_TTL_DAYS)
    pending_ttl: timedelta = timedelta(hours=DEFAULT_PENDING_TTL_HOURS)
    max_keys: int = DEFAULT_MAX_KEYS
    tracking_params: FrozenSet[str] = field(default_factory=lambda: DEFAULT_TRACKING_PARAMS)
    state_file: Path = DEFAULT_STATE_FILE

    def __post_init__(self):
        if self.posted_ttl <= timedelta(0):
            raise ConfigError(f"posted_ttl must be positive, got {self.posted_ttl}")
        if self.pending_ttl <= timedelta(0):
            raise ConfigError(f"pending_ttl must be positive, got {self.pending_ttl}")
        if self.max_keys < 1:
            raise ConfigError(f"max_keys must be at least 1, got {self.max_keys}")
        self.tracking_params = frozenset(self.tracking_params)
        self.state_file = Path(self.state_file)


def _env_number(name: str, cast):
    value = os.environ.get(name, "").strip()
    if not value:
        return None
    try:
        return cast(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        logger.info(f"Dedup config not found at {path}, using defaults")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(path: Optional[Union[str, Path]] = None) -> DedupConfig:
    """
    Build the engine config.

    Precedence: environment (including .env) > YAML file > built-in defaults.

    Args:
        path: YAML file, defaults to config/dedup.yaml

    Returns:
        Validated DedupConfig

    Raises:
        ConfigError: on non-positive TTLs, max_keys < 1 or malformed values
    """
    load_dotenv()
    data = _load_yaml(Path(path) if path else DEDUP_CONFIG_PATH)

    posted_days = _env_number("DEDUP_POSTED_TTL_DAYS", float)
    if posted_days is None:
        posted_days = data.get("posted_ttl_days", DEFAULT_POSTED_TTL_DAYS)

    pending_hours = _env_number("DEDUP_PENDING_TTL_HOURS", float)
    if pending_hours is None:
        pending_hours = data.get("pending_ttl_hours", DEFAULT_PENDING_TTL_HOURS)

    max_keys = _env_number("DEDUP_MAX_KEYS", int)
    if max_keys is None:
        max_keys = data.get("max_keys", DEFAULT_MAX_KEYS)

    tracking = data.get("tracking_params")
    if tracking is None:
        tracking_params = DEFAULT_TRACKING_PARAMS
    elif not isinstance(tracking, list):
        raise ConfigError("tracking_params must be a list of parameter names")
    else:
        tracking_params = frozenset(str(p).strip() for p in tracking if str(p).strip())

    state_file = os.environ.get("DEDUP_STATE_FILE") or data.get("state_file") or DEFAULT_STATE_FILE

    try:
        posted_ttl = timedelta(days=float(posted_days))
        pending_ttl = timedelta(hours=float(pending_hours))
        max_keys = int(max_keys)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid dedup config: {e}") from e

    config = DedupConfig(
        posted_ttl=posted_ttl,
        pending_ttl=pending_ttl,
        max_keys=max_keys,
        tracking_params=tracking_params,
        state_file=Path(state_file),
    )

    logger.info(
        f"Dedup config: posted_ttl={config.posted_ttl}, pending_ttl={config.pending_ttl}, "
        f"max_keys={config.max_keys}, state_file={config.state_file}"
    )
    return config
