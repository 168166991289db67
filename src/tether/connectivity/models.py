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
"""Connectivity data model.

Modes, live statuses, requests, responses and ledger entries. Every
record here is a frozen dataclass so snapshots handed to callers can
never be mutated behind the manager's back.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ConnectivityMode(str, Enum):
    """User-chosen network trust policy. Persisted across restarts."""

    OFFLINE_ONLY = "offline_only"  # No network access at all (default)
    ASSISTED = "assisted"  # Allowlisted endpoints only
    CONNECTED = "connected"  # Everything, with logging

    @classmethod
    def parse(cls, value: str | ConnectivityMode) -> ConnectivityMode:
        """Parse a mode from its value or name (case-insensitive).

        Raises:
            ValueError: If the string names no known mode.
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        for mode in cls:
            if key in (mode.value, mode.name.lower()):
                return mode
        raise ValueError(f"Unknown connectivity mode: {value!r}")


class ConnectivityStatus(str, Enum):
    """Live activity indicator, derived from the mode and in-flight work."""

    OFFLINE = "offline"
    IDLE = "idle"
    ACTIVE = "active"


class RequestOutcome(str, Enum):
    """How a dispatched request ended, as recorded in the ledger."""

    COMPLETED = "completed"
    FAILED = "failed"


class BlockReason(str, Enum):
    """Structured tag for why a request never reached the gateway."""

    MISSING_INTENT = "missing_intent"
    OFFLINE_MODE = "offline_mode"
    NOT_ALLOWLISTED = "not_allowlisted"


@dataclass(frozen=True)
class NetworkRequest:
    """An attempted outbound call. Built by the caller, never modified."""

    endpoint: str
    intent: str  # Why this call is being made; shown to the user
    method: str = "GET"
    payload: str | None = None
    requested_at: float = field(default_factory=time.time)

    @property
    def has_intent(self) -> bool:
        return bool(self.intent and self.intent.strip())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NetworkResponse:
    """Outcome of one dispatched request, produced by the gateway."""

    success: bool
    status_code: int
    data: str | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @classmethod
    def failure(
        cls,
        error: str,
        status_code: int = 0,
        duration_ms: float = 0.0,
    ) -> NetworkResponse:
        """Create a response describing a transport failure."""
        return cls(
            success=False,
            status_code=status_code,
            error=error,
            duration_ms=duration_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PolicyDecision:
    """Result of evaluating a request against the current policy.

    ``reason`` is the machine-readable tag (None when allowed) and
    ``message`` the human-readable text, so UIs can localize without
    parsing strings.
    """

    allowed: bool
    reason: BlockReason | None = None
    message: str = ""

    @classmethod
    def allow(cls) -> PolicyDecision:
        return cls(allowed=True)

    @classmethod
    def block(cls, reason: BlockReason, message: str) -> PolicyDecision:
        return cls(allowed=False, reason=reason, message=message)


@dataclass(frozen=True)
class LedgerEntry:
    """A single audit record: what was sent, and what came back."""

    request: NetworkRequest
    response: NetworkResponse
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def outcome(self) -> RequestOutcome:
        return RequestOutcome.COMPLETED if self.response.success else RequestOutcome.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "outcome": self.outcome.value,
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
        }

    def to_json(self) -> str:
        """Serialize to a compact JSON string."""
        return json.dumps(self.to_dict(), separators=(",", ":"))
