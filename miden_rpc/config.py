"""Configuration loader — reads miden-rpc.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv

from .models import AccountId, SyncFilter

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "miden-rpc.yaml"
REGRESSION_POLICIES = ("raise", "restart")

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeConfig:
    endpoint: str = "https://rpc.testnet.miden.io"
    timeout: float = 30.0
    verify_tls: bool = True


@dataclass(frozen=True)
class SyncConfig:
    start_block: int = 0
    poll_interval_seconds: float = 5.0
    retry_backoff_seconds: float = 15.0
    on_regression: str = "raise"
    filter: SyncFilter = field(default_factory=SyncFilter)


@dataclass(frozen=True)
class ClientConfig:
    node: NodeConfig = field(default_factory=NodeConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0")


def _parse_bool(name: str, value: Any, default: bool) -> bool:
    """Accept YAML booleans and the strings an interpolated ${VAR} can produce."""
    if isinstance(value, bool):
        return value
    if value is None or value == "":
        return default
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"{name} must be true or false, got '{value}'")


def _build_node(raw: dict[str, Any]) -> NodeConfig:
    return NodeConfig(
        endpoint=str(raw.get("endpoint", NodeConfig.endpoint)).rstrip("/"),
        timeout=float(raw.get("timeout", 30.0)),
        verify_tls=_parse_bool("node.verify_tls", raw.get("verify_tls"), True),
    )


def _build_filter(raw: dict[str, Any]) -> SyncFilter:
    # A missing key means "no filter"; an empty list is an explicit empty filter.
    account_ids = raw.get("account_ids")
    note_tags = raw.get("note_tags")
    return SyncFilter(
        account_ids=(
            tuple(AccountId.from_hex(a) for a in account_ids)
            if account_ids is not None
            else None
        ),
        note_tags=tuple(int(t) for t in note_tags) if note_tags is not None else None,
    )


def _build_sync(raw: dict[str, Any]) -> SyncConfig:
    return SyncConfig(
        start_block=int(raw.get("start_block", 0)),
        poll_interval_seconds=float(raw.get("poll_interval_seconds", 5.0)),
        retry_backoff_seconds=float(raw.get("retry_backoff_seconds", 15.0)),
        on_regression=str(raw.get("on_regression", "raise")),
        filter=_build_filter(raw),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> ClientConfig:
    """Load and validate client configuration from YAML + .env.

    Args:
        config_path: Path to the YAML file. Defaults to ``miden-rpc.yaml`` in
            the current working directory.
    """
    load_dotenv()

    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = ClientConfig(
        node=_build_node(raw.get("node", {})),
        sync=_build_sync(raw.get("sync", {})),
    )

    validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def validate(cfg: ClientConfig) -> None:
    """Raise on invalid configuration."""
    endpoint = cfg.node.endpoint
    if not endpoint:
        raise ValueError("Node endpoint must be configured")
    if urlparse(endpoint).scheme not in ("http", "https"):
        raise ValueError(f"Node endpoint '{endpoint}' must use http or https")
    if cfg.node.timeout <= 0:
        raise ValueError("Node timeout must be positive")

    if cfg.sync.start_block < 0:
        raise ValueError("Sync start_block cannot be negative")
    if cfg.sync.poll_interval_seconds < 0 or cfg.sync.retry_backoff_seconds < 0:
        raise ValueError("Sync intervals cannot be negative")
    if cfg.sync.on_regression not in REGRESSION_POLICIES:
        raise ValueError(
            f"Unknown on_regression policy '{cfg.sync.on_regression}' "
            f"(expected one of {', '.join(REGRESSION_POLICIES)})"
        )
