# Tether
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Tether.
#
# Tether is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""Connectivity settings.

Settings live next to the persisted mode under the Tether home
directory and are read once at startup. They tune the manager; they
never grant network access on their own.

Config location: ~/.tether/connectivity.yaml  (override with TETHER_HOME)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .ledger import DEFAULT_HISTORY_LIMIT

logger = logging.getLogger("tether.connectivity.config")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------
_TETHER_HOME = Path(os.environ.get("TETHER_HOME", Path.home() / ".tether"))
DEFAULT_CONFIG_PATH = _TETHER_HOME / "connectivity.yaml"
DEFAULT_STATE_PATH = _TETHER_HOME / "connectivity_state.yaml"
DEFAULT_LOG_DIR = _TETHER_HOME / "logs"

DEFAULT_REQUEST_TIMEOUT_S = 30.0
DEFAULT_USER_AGENT = "Tether-Connectivity/1.2"


@dataclass
class ConnectivityConfig:
    """Settings for one Connectivity Manager instance."""

    # Where the current mode is persisted
    state_path: str = str(DEFAULT_STATE_PATH)

    # Ledger size cap; oldest entries are dropped beyond this
    history_limit: int = DEFAULT_HISTORY_LIMIT

    # Transport settings for the default httpx gateway
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    user_agent: str = DEFAULT_USER_AGENT

    # Logging
    log_dir: str = str(DEFAULT_LOG_DIR)
    log_level: str = "INFO"

    extra_headers: dict[str, str] = field(default_factory=dict)


def load_config(path: Path | str | None = None) -> ConnectivityConfig:
    """Load connectivity settings from a YAML file.

    A missing or malformed file yields the defaults; it never raises.
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.info("No connectivity config at %s -- using defaults", config_path)
        return ConnectivityConfig()

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            logger.warning("Invalid connectivity config (not a dict) -- using defaults")
            return ConnectivityConfig()
        return _parse_config(raw)
    except Exception as exc:
        logger.error("Failed to load connectivity config: %s -- using defaults", exc)
        return ConnectivityConfig()


def save_config(config: ConnectivityConfig, path: Path | str | None = None) -> None:
    """Save connectivity settings to a YAML file."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {
        "state_path": config.state_path,
        "history_limit": config.history_limit,
        "transport": {
            "request_timeout_s": config.request_timeout_s,
            "user_agent": config.user_agent,
            "extra_headers": dict(config.extra_headers),
        },
        "logging": {
            "dir": config.log_dir,
            "level": config.log_level,
        },
    }
    config_path.write_text(
        yaml.dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8"
    )
    logger.info("Saved connectivity config to %s", config_path)


def _parse_config(raw: dict) -> ConnectivityConfig:
    """Parse raw YAML dict into ConnectivityConfig."""
    transport = _section(raw, "transport")
    logging_section = _section(raw, "logging")

    history_limit = raw.get("history_limit", DEFAULT_HISTORY_LIMIT)
    if isinstance(history_limit, bool) or not isinstance(history_limit, int) or history_limit < 1:
        logger.warning("Ignoring invalid history_limit %r", history_limit)
        history_limit = DEFAULT_HISTORY_LIMIT

    timeout = transport.get("request_timeout_s", DEFAULT_REQUEST_TIMEOUT_S)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        logger.warning("Ignoring invalid request_timeout_s %r", timeout)
        timeout = DEFAULT_REQUEST_TIMEOUT_S

    headers = transport.get("extra_headers") or {}
    if not isinstance(headers, dict):
        headers = {}

    return ConnectivityConfig(
        state_path=str(raw.get("state_path") or DEFAULT_STATE_PATH),
        history_limit=history_limit,
        request_timeout_s=float(timeout),
        user_agent=str(transport.get("user_agent", DEFAULT_USER_AGENT)),
        log_dir=str(logging_section.get("dir") or DEFAULT_LOG_DIR),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        extra_headers={str(k): str(v) for k, v in headers.items()},
    )


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        logger.warning("Ignoring connectivity config section %r (not a mapping)", name)
        return {}
    return section
