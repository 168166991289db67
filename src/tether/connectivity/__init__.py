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
"""Tether Connectivity -- nothing leaves the machine unasked.

One Connectivity Manager mediates every outbound request:

  Caller --> ConnectivityManager (policy, status, ledger) --> Gateway --> Internet

Properties:
  - Default OFFLINE: a fresh or damaged install makes no network calls
  - Three modes: Offline-only, Assisted (allowlist), Connected
  - Every request declares an intent, or it is blocked
  - Kill switch: go_offline_now() blocks all new requests immediately
  - Audit ledger: every dispatched request and its outcome is recorded
  - Only the mode is persisted; allowlist and ledger live in memory
"""

from .allowlist import Allowlist
from .config import ConnectivityConfig, load_config, save_config
from .events import ConnectivityEvents
from .gateway import Gateway, HttpxGateway
from .ledger import HistoryLedger
from .manager import ConnectivityManager
from .models import (
    BlockReason,
    ConnectivityMode,
    ConnectivityStatus,
    LedgerEntry,
    NetworkRequest,
    NetworkResponse,
    PolicyDecision,
    RequestOutcome,
)
from .store import ModeStore

__all__ = [
    "Allowlist",
    "BlockReason",
    "ConnectivityConfig",
    "ConnectivityEvents",
    "ConnectivityManager",
    "ConnectivityMode",
    "ConnectivityStatus",
    "Gateway",
    "HistoryLedger",
    "HttpxGateway",
    "LedgerEntry",
    "ModeStore",
    "NetworkRequest",
    "NetworkResponse",
    "PolicyDecision",
    "RequestOutcome",
    "load_config",
    "save_config",
]
