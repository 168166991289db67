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
"""Endpoint allowlist for Assisted mode.

An ordered, de-duplicated set of endpoint prefixes. Only consulted when
the manager runs in Assisted mode; Offline and Connected ignore it.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger("tether.connectivity.allowlist")


class Allowlist:
    """Thread-safe ordered set of allowed endpoint prefixes.

    Matching is a case-insensitive string prefix test:
    ``"https://api.example.com"`` allows ``"https://api.example.com/data"``.
    Entries differing only in case are the same entry; the first spelling
    added is the one kept.
    """

    def __init__(self, endpoints: list[str] | tuple[str, ...] | None = None) -> None:
        self._endpoints: list[str] = []
        self._lock = threading.Lock()
        for endpoint in endpoints or ():
            self.add(endpoint)

    def add(self, endpoint: str) -> bool:
        """Add an endpoint prefix. Returns False if it was already present.

        Raises:
            ValueError: If the endpoint is empty or whitespace.
        """
        endpoint = _normalize(endpoint)
        with self._lock:
            if self._index_locked(endpoint) is not None:
                return False
            self._endpoints.append(endpoint)
        logger.info("Endpoint allowed: %s", endpoint)
        return True

    def remove(self, endpoint: str) -> bool:
        """Remove an endpoint prefix. Returns False if it was not present."""
        endpoint = endpoint.strip()
        with self._lock:
            index = self._index_locked(endpoint)
            if index is None:
                return False
            del self._endpoints[index]
        logger.info("Endpoint denied: %s", endpoint)
        return True

    def matches(self, endpoint: str) -> str | None:
        """Return the first prefix that matches the endpoint, or None."""
        target = endpoint.strip().casefold()
        with self._lock:
            for allowed in self._endpoints:
                if target.startswith(allowed.casefold()):
                    return allowed
        return None

    def is_allowed(self, endpoint: str) -> bool:
        return self.matches(endpoint) is not None

    def snapshot(self) -> tuple[str, ...]:
        """Return a copy of the current entries in insertion order."""
        with self._lock:
            return tuple(self._endpoints)

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)

    def __contains__(self, endpoint: object) -> bool:
        if not isinstance(endpoint, str):
            return False
        with self._lock:
            return self._index_locked(endpoint.strip()) is not None

    def _index_locked(self, endpoint: str) -> int | None:
        key = endpoint.casefold()
        for i, existing in enumerate(self._endpoints):
            if existing.casefold() == key:
                return i
        return None


def _normalize(endpoint: str) -> str:
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise ValueError("Endpoint cannot be empty")
    return endpoint.strip()
