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
"""Request history ledger.

The in-memory audit record of every request that passed policy and
completed at the gateway, in the order it completed. Blocked and
cancelled requests never appear here.
"""

from __future__ import annotations

import logging
import threading
from collections import deque

from .models import LedgerEntry, RequestOutcome

logger = logging.getLogger("tether.connectivity.ledger")

DEFAULT_HISTORY_LIMIT = 1000


class HistoryLedger:
    """Bounded, thread-safe, append-only (until cleared) request log.

    When the ledger holds ``max_entries`` records the oldest is dropped
    to make room for the newest.
    """

    def __init__(self, max_entries: int = DEFAULT_HISTORY_LIMIT) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: deque[LedgerEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._total_recorded = 0

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or DEFAULT_HISTORY_LIMIT

    @property
    def total_recorded(self) -> int:
        """Entries appended since construction, including trimmed or cleared ones."""
        return self._total_recorded

    def append(self, entry: LedgerEntry) -> None:
        with self._lock:
            if len(self._entries) == self._entries.maxlen:
                logger.debug("Ledger full (%d) -- dropping oldest entry", self._entries.maxlen)
            self._entries.append(entry)
            self._total_recorded += 1

    def history(self) -> list[LedgerEntry]:
        """Full snapshot, oldest first."""
        with self._lock:
            return list(self._entries)

    def recent(self, n: int = 10) -> list[LedgerEntry]:
        """The last ``n`` entries, oldest first. All entries if fewer exist."""
        if n <= 0:
            return []
        with self._lock:
            return list(self._entries)[-n:]

    def clear(self) -> int:
        """Empty the ledger. Returns the number of entries removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info("Request history cleared (%d entries)", removed)
        return removed

    def stats(self) -> dict[str, int]:
        """Summary counts for dashboard display."""
        entries = self.history()
        completed = sum(1 for e in entries if e.outcome is RequestOutcome.COMPLETED)
        return {
            "total": len(entries),
            "completed": completed,
            "failed": len(entries) - completed,
            "unique_endpoints": len({e.request.endpoint for e in entries}),
            "total_recorded": self._total_recorded,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
