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
"""Network gateway -- the only code that performs outbound I/O.

The Connectivity Manager decides *whether* a request may leave the
machine; a Gateway performs it. Gateways report ordinary network
failures inside the returned NetworkResponse instead of raising, and
must let ``asyncio.CancelledError`` through so callers can abort.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import httpx

from .models import NetworkRequest, NetworkResponse

logger = logging.getLogger("tether.connectivity.gateway")


class Gateway(ABC):
    """Abstract base class for network transports."""

    @abstractmethod
    async def send(self, request: NetworkRequest) -> NetworkResponse:
        """Perform one network call and describe its outcome."""

    async def aclose(self) -> None:
        """Release transport resources. Default: nothing to release."""


class HttpxGateway(Gateway):
    """Gateway backed by an ``httpx.AsyncClient``.

    TLS verification, redirects and connection pooling are left to
    httpx. Pass ``client`` to inject a preconfigured client (for example
    one built on ``httpx.MockTransport`` in tests); an injected client is
    not closed by ``aclose``.
    """

    def __init__(
        self,
        timeout_s: float = 30.0,
        user_agent: str = "Tether-Connectivity",
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout_s
        self._headers = {"User-Agent": user_agent, **(headers or {})}
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers=self._headers,
            )
            self._owns_client = True
        return self._client

    async def send(self, request: NetworkRequest) -> NetworkResponse:
        start = time.monotonic()
        content = request.payload.encode("utf-8") if request.payload is not None else None
        try:
            resp = await self._get_client().request(
                method=request.method.upper(),
                url=request.endpoint,
                content=content,
                headers=self._headers,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            duration_ms = (time.monotonic() - start) * 1000
            logger.warning(
                "Transport failure: %s %s -- %s", request.method, request.endpoint, exc
            )
            return NetworkResponse.failure(
                f"{type(exc).__name__}: {exc}", duration_ms=duration_ms
            )

        duration_ms = (time.monotonic() - start) * 1000
        success = resp.is_success
        return NetworkResponse(
            success=success,
            status_code=resp.status_code,
            data=resp.text,
            error=None if success else f"HTTP {resp.status_code} {resp.reason_phrase}".strip(),
            duration_ms=duration_ms,
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
