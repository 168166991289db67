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
"""Connectivity Manager -- the single door to the network.

Every outbound request goes through ``ConnectivityManager.dispatch``.
The manager evaluates the user's trust policy, drives the live status,
hands allowed requests to the gateway, and records what happened.

Policy, evaluated in order:
  1. A request without a declared intent is always blocked.
  2. Offline-only mode blocks everything.
  3. Assisted mode allows only endpoints matching an allowlist prefix.
  4. Connected mode allows everything (and still records it).

Blocked requests return None and fire ``request_blocked``; they are
never raised as exceptions and never reach the ledger.

State (mode, status, in-flight count, allowlist, ledger) is guarded by
one re-entrant lock. The lock is never held across the gateway await.
Notifications are queued under that lock, so the queue is in commit
order, and are delivered after it is released by whichever thread holds
the delivery lock. Subscribers therefore never run under the state lock
and always see changes in the order they were made.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from pathlib import Path
from typing import Any

from .allowlist import Allowlist
from .config import ConnectivityConfig
from .events import MODE_CHANGED, REQUEST_BLOCKED, REQUEST_MADE, STATUS_CHANGED, ConnectivityEvents
from .gateway import Gateway, HttpxGateway
from .ledger import DEFAULT_HISTORY_LIMIT, HistoryLedger
from .models import (
    BlockReason,
    ConnectivityMode,
    ConnectivityStatus,
    LedgerEntry,
    NetworkRequest,
    NetworkResponse,
    PolicyDecision,
)
from .store import ModeStore

logger = logging.getLogger("tether.connectivity.manager")


class ConnectivityManager:
    """Policy-enforcing broker for all outbound network requests.

    Construct one per application and pass it to whatever needs the
    network. The persisted mode is read at construction; a missing or
    damaged store starts the manager Offline-only.

    Usage:
        manager = ConnectivityManager(HttpxGateway(), "~/.tether/state.yaml")
        manager.set_mode(ConnectivityMode.CONNECTED)
        response = await manager.dispatch(
            NetworkRequest("https://api.example.com/data", intent="Fetch weather")
        )
    """

    def __init__(
        self,
        gateway: Gateway,
        state_path: str | Path,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        events: ConnectivityEvents | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = ModeStore(Path(state_path).expanduser())
        self._lock = threading.RLock()
        self._allowlist = Allowlist()
        self._ledger = HistoryLedger(max_entries=history_limit)
        self._events = events or ConnectivityEvents()
        self._in_flight = 0
        self._pending: deque[tuple[str, tuple[Any, ...]]] = deque()
        self._delivery_lock = threading.Lock()

        self._mode = self._store.load()
        self._status = self._derive_status(self._mode, 0)
        logger.info(
            "Connectivity manager ready (mode=%s, status=%s, state=%s)",
            self._mode.value,
            self._status.value,
            self._store.path,
        )

    @classmethod
    def from_config(
        cls,
        config: ConnectivityConfig | None = None,
        gateway: Gateway | None = None,
    ) -> ConnectivityManager:
        """Build a manager (and, unless given, an httpx gateway) from settings."""
        config = config or ConnectivityConfig()
        if gateway is None:
            gateway = HttpxGateway(
                timeout_s=config.request_timeout_s,
                user_agent=config.user_agent,
                headers=config.extra_headers,
            )
        return cls(gateway, config.state_path, history_limit=config.history_limit)

    # ---------------------------------------------------------------
    # State queries
    # ---------------------------------------------------------------
    @property
    def mode(self) -> ConnectivityMode:
        with self._lock:
            return self._mode

    @property
    def status(self) -> ConnectivityStatus:
        with self._lock:
            return self._status

    @property
    def is_online(self) -> bool:
        """Whether the current mode permits any network access."""
        return self.mode is not ConnectivityMode.OFFLINE_ONLY

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def events(self) -> ConnectivityEvents:
        return self._events

    @property
    def state_path(self) -> Path:
        return self._store.path

    def get_status(self) -> dict[str, Any]:
        """Consistent snapshot of the manager state for dashboard display."""
        with self._lock:
            return {
                "mode": self._mode.value,
                "status": self._status.value,
                "is_online": self._mode is not ConnectivityMode.OFFLINE_ONLY,
                "in_flight": self._in_flight,
                "allowed_endpoints": len(self._allowlist),
                "history_entries": len(self._ledger),
            }

    # ---------------------------------------------------------------
    # Mode control
    # ---------------------------------------------------------------
    def set_mode(self, mode: ConnectivityMode | str) -> bool:
        """Switch to a new mode, persist it, and recompute the status.

        Returns False when ``mode`` is already the current mode.

        Raises:
            ValueError: If ``mode`` is a string naming no known mode.
        """
        mode = ConnectivityMode.parse(mode)
        with self._lock:
            old_mode = self._mode
            if old_mode is mode:
                return False
            self._mode = mode
            self._store.save(mode)
            self._set_status_locked(self._derive_status(mode, self._in_flight))
            self._queue_locked(MODE_CHANGED, old_mode, mode)

        logger.info("Connectivity mode changed: %s -> %s", old_mode.value, mode.value)
        self._deliver()
        return True

    def go_offline_now(self) -> None:
        """Kill switch: force Offline-only mode immediately.

        Requests already handed to the gateway run to completion; every
        dispatch that starts after this returns is blocked.
        """
        with self._lock:
            old_mode = self._mode
            self._mode = ConnectivityMode.OFFLINE_ONLY
            self._store.save(ConnectivityMode.OFFLINE_ONLY)
            self._set_status_locked(ConnectivityStatus.OFFLINE)
            if old_mode is not ConnectivityMode.OFFLINE_ONLY:
                self._queue_locked(MODE_CHANGED, old_mode, ConnectivityMode.OFFLINE_ONLY)
            in_flight = self._in_flight

        logger.warning(
            "Kill switch engaged: now offline (was %s, %d request(s) in flight)",
            old_mode.value,
            in_flight,
        )
        self._deliver()

    # ---------------------------------------------------------------
    # Allowlist
    # ---------------------------------------------------------------
    def allow(self, endpoint: str) -> bool:
        """Allow an endpoint prefix in Assisted mode (idempotent).

        Raises:
            ValueError: If the endpoint is blank.
        """
        with self._lock:
            return self._allowlist.add(endpoint)

    def deny(self, endpoint: str) -> bool:
        """Remove an endpoint prefix from the allowlist (idempotent)."""
        with self._lock:
            return self._allowlist.remove(endpoint)

    def list_allowed(self) -> tuple[str, ...]:
        with self._lock:
            return self._allowlist.snapshot()

    # ---------------------------------------------------------------
    # Policy
    # ---------------------------------------------------------------
    def check_allowed(self, request: NetworkRequest) -> PolicyDecision:
        """Evaluate a request against the current policy without side effects."""
        if not request.has_intent:
            return PolicyDecision.block(
                BlockReason.MISSING_INTENT,
                "Network intent must be declared (missing intent)",
            )

        with self._lock:
            mode = self._mode
            if mode is ConnectivityMode.OFFLINE_ONLY:
                return PolicyDecision.block(BlockReason.OFFLINE_MODE, "Offline mode is enabled")
            if mode is ConnectivityMode.ASSISTED and not self._allowlist.is_allowed(request.endpoint):
                return PolicyDecision.block(
                    BlockReason.NOT_ALLOWLISTED,
                    f"Endpoint not in allowlist: {request.endpoint}",
                )

        return PolicyDecision.allow()

    # ---------------------------------------------------------------
    # Dispatch
    # ---------------------------------------------------------------
    async def dispatch(
        self,
        request: NetworkRequest,
        cancel: asyncio.Event | None = None,
    ) -> NetworkResponse | None:
        """Send a request through the gateway if policy allows it.

        Returns the gateway's response, or None if the request was
        blocked. Transport failures come back as unsuccessful responses
        and are still recorded. Cancelling the calling task, or setting
        ``cancel``, aborts the gateway call, records nothing, and raises
        ``asyncio.CancelledError``.
        """
        with self._lock:
            decision = self.check_allowed(request)
            if decision.allowed:
                self._in_flight += 1
                self._set_status_locked(ConnectivityStatus.ACTIVE)
            else:
                self._queue_locked(REQUEST_BLOCKED, request, decision)

        if not decision.allowed:
            logger.info(
                "Request blocked [%s]: %s %s -- %s",
                decision.reason.value if decision.reason else "unknown",
                request.method,
                request.endpoint,
                decision.message,
            )
            self._deliver()
            return None

        self._deliver()
        logger.debug("Dispatching %s %s (intent: %s)", request.method, request.endpoint, request.intent)

        try:
            response = await self._send(request, cancel)
        except asyncio.CancelledError:
            logger.info("Request cancelled: %s %s", request.method, request.endpoint)
            self._finish(None)
            raise

        entry = LedgerEntry(request=request, response=response)
        self._finish(entry)

        if response.success:
            logger.info(
                "Request completed: %s %s -> %d (%.0f ms)",
                request.method,
                request.endpoint,
                response.status_code,
                response.duration_ms,
            )
        else:
            logger.warning(
                "Request failed: %s %s -> %d %s",
                request.method,
                request.endpoint,
                response.status_code,
                response.error or "",
            )
        return response

    async def _send(self, request: NetworkRequest, cancel: asyncio.Event | None) -> NetworkResponse:
        """Call the gateway, turning contract violations into failed responses."""
        try:
            if cancel is None:
                return await self._gateway.send(request)
            return await self._send_cancellable(request, cancel)
        except Exception as exc:
            logger.error("Gateway raised for %s %s: %s", request.method, request.endpoint, exc)
            return NetworkResponse.failure(f"Gateway error: {type(exc).__name__}: {exc}")

    async def _send_cancellable(self, request: NetworkRequest, cancel: asyncio.Event) -> NetworkResponse:
        if cancel.is_set():
            raise asyncio.CancelledError()

        send_task = asyncio.ensure_future(self._gateway.send(request))
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not send_task.done():
                send_task.cancel()
                await asyncio.gather(send_task, return_exceptions=True)

        if send_task.cancelled():
            raise asyncio.CancelledError()
        return send_task.result()

    def _finish(self, entry: LedgerEntry | None) -> None:
        """Record a finished dispatch and settle the status."""
        with self._lock:
            if entry is not None:
                self._ledger.append(entry)
            self._in_flight -= 1
            if self._in_flight == 0:
                self._set_status_locked(self._derive_status(self._mode, 0))
            if entry is not None:
                self._queue_locked(REQUEST_MADE, entry)
        self._deliver()

    # ---------------------------------------------------------------
    # Ledger
    # ---------------------------------------------------------------
    def history(self) -> list[LedgerEntry]:
        """Every recorded request, oldest first."""
        with self._lock:
            return self._ledger.history()

    def recent(self, n: int = 10) -> list[LedgerEntry]:
        """The last ``n`` recorded requests, oldest first."""
        with self._lock:
            return self._ledger.recent(n)

    def clear_history(self) -> int:
        """Empty the ledger. Mode and allowlist are untouched."""
        with self._lock:
            return self._ledger.clear()

    def history_stats(self) -> dict[str, int]:
        with self._lock:
            return self._ledger.stats()

    # ---------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------
    async def aclose(self) -> None:
        """Close the gateway. The manager must not dispatch afterwards."""
        await self._gateway.aclose()
        logger.info("Connectivity manager closed")

    # ---------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------
    @staticmethod
    def _derive_status(mode: ConnectivityMode, in_flight: int) -> ConnectivityStatus:
        if mode is ConnectivityMode.OFFLINE_ONLY:
            return ConnectivityStatus.OFFLINE
        return ConnectivityStatus.ACTIVE if in_flight > 0 else ConnectivityStatus.IDLE

    def _set_status_locked(self, status: ConnectivityStatus) -> bool:
        """Set the status and queue its notification (caller holds the lock)."""
        old = self._status
        if old is status:
            return False
        self._status = status
        logger.debug("Connectivity status: %s -> %s", old.value, status.value)
        self._queue_locked(STATUS_CHANGED, old, status)
        return True

    def _queue_locked(self, event: str, *args: Any) -> None:
        self._pending.append((event, args))

    def _deliver(self) -> None:
        """Drain queued notifications in commit order.

        Only one thread delivers at a time. A caller that finds delivery
        already under way returns at once; the delivering thread picks up
        its events before letting go. Re-entrant calls from a subscriber
        take the same path.
        """
        while True:
            if not self._delivery_lock.acquire(blocking=False):
                return
            try:
                while True:
                    with self._lock:
                        if not self._pending:
                            break
                        event, args = self._pending.popleft()
                    self._events.emit(event, *args)
            finally:
                self._delivery_lock.release()
            # Events queued between the last check and the release would
            # otherwise be stranded.
            with self._lock:
                if not self._pending:
                    return
