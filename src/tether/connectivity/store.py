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
"""Persisted connectivity mode.

The mode is the only piece of connectivity state that survives a
restart. Anything unexpected on disk resolves to Offline-only: a broken
store must never open the network.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .models import ConnectivityMode

logger = logging.getLogger("tether.connectivity.store")

SAFE_DEFAULT_MODE = ConnectivityMode.OFFLINE_ONLY


class ModeStore:
    """Reads and writes the current mode as a one-key YAML document."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ConnectivityMode:
        """Return the persisted mode, or Offline-only if it cannot be read."""
        if not self._path.exists():
            logger.info("No connectivity state at %s -- starting offline", self._path)
            return SAFE_DEFAULT_MODE

        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Unreadable connectivity state at %s: %s -- starting offline", self._path, exc)
            return SAFE_DEFAULT_MODE

        if not isinstance(raw, dict) or "mode" not in raw:
            logger.warning("Malformed connectivity state at %s -- starting offline", self._path)
            return SAFE_DEFAULT_MODE

        try:
            return ConnectivityMode.parse(raw["mode"])
        except ValueError as exc:
            logger.warning("%s -- starting offline", exc)
            return SAFE_DEFAULT_MODE

    def save(self, mode: ConnectivityMode) -> bool:
        """Persist the mode. Returns False (and logs) if the write failed."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                yaml.safe_dump({"mode": mode.value}, default_flow_style=False),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.error("Failed to persist connectivity mode to %s: %s", self._path, exc)
            return False
        logger.debug("Persisted connectivity mode %s to %s", mode.value, self._path)
        return True
