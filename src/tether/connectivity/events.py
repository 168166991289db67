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
"""Connectivity notifications.

Subscribers register callbacks per event kind and receive every event
fired while they are registered. Nothing is replayed to late
subscribers. A failing callback is logged and skipped; it never breaks
the dispatch that fired the event.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from .models import (
    ConnectivityMode,
    ConnectivityStatus,
    LedgerEntry,
    NetworkRequest,
    PolicyDecision,
)

logger = logging.getLogger("tether.connectivity.events")

ModeChangedCallback = Callable[[ConnectivityMode, ConnectivityMode], None]
StatusChangedCallback = Callable[[ConnectivityStatus, ConnectivityStatus], None]
RequestBlockedCallback = Callable[[NetworkRequest, PolicyDecision], None]
RequestMadeCallback = Callable[[LedgerEntry], None]

MODE_CHANGED = "mode_changed"
STATUS_CHANGED = "status_changed"
REQUEST_BLOCKED = "request_blocked"
REQUEST_MADE = "request_made"

EVENT_NAMES: frozenset[str] = frozenset(
    {MODE_CHANGED, STATUS_CHANGED, REQUEST_BLOCKED, REQUEST_MADE}
)


class ConnectivityEvents:
    """Thread-safe registry of connectivity subscribers."""

    def __init__(self) -> None:
        self._callbacks: dict[str, list[Callable[..., None]]] = {
            name: [] for name in EVENT_NAMES
        }
        self._lock = threading.Lock()

    def subscribe(self, event: str, callback: Callable[..., None]) -> Callable[[], None]:
        """Register a callback for an event. Returns an unsubscribe function.

        Raises:
            ValueError: If ``event`` is not a known event name.
        """
        if event not in EVENT_NAMES:
            raise ValueError(f"Unknown connectivity event: {event!r}")
        with self._lock:
            self._callbacks[event] = [*self._callbacks[event], callback]

        def _unsubscribe() -> None:
            self.unsubscribe(event, callback)

        return _unsubscribe

    def unsubscribe(self, event: str, callback: Callable[..., None]) -> None:
        """Remove a previously registered callback (no-op if absent)."""
        with self._lock:
            self._callbacks[event] = [cb for cb in self._callbacks.get(event, []) if cb is not callback]

    def on_mode_changed(self, callback: ModeChangedCallback) -> Callable[[], None]:
        return self.subscribe(MODE_CHANGED, callback)

    def on_status_changed(self, callback: StatusChangedCallback) -> Callable[[], None]:
        return self.subscribe(STATUS_CHANGED, callback)

    def on_request_blocked(self, callback: RequestBlockedCallback) -> Callable[[], None]:
        return self.subscribe(REQUEST_BLOCKED, callback)

    def on_request_made(self, callback: RequestMadeCallback) -> Callable[[], None]:
        return self.subscribe(REQUEST_MADE, callback)

    def subscriber_count(self, event: str | None = None) -> int:
        with self._lock:
            if event is not None:
                return len(self._callbacks.get(event, []))
            return sum(len(cbs) for cbs in self._callbacks.values())

    def emit(self, event: str, *args: Any) -> int:
        """Deliver an event to every current subscriber.

        Returns the number of subscribers that handled it without error.
        """
        with self._lock:
            callbacks = list(self._callbacks.get(event, []))

        delivered = 0
        for cb in callbacks:
            try:
                cb(*args)
                delivered += 1
            except Exception as exc:
                logger.warning("Connectivity subscriber for '%s' failed: %s", event, exc)

        logger.debug("Event '%s' delivered to %d/%d subscribers", event, delivered, len(callbacks))
        return delivered
