"""Pytest configuration for tether tests."""

import asyncio
import sys
from pathlib import Path

import pytest

# Ensure src/tether is importable
src_path = str(Path(__file__).parent.parent / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from tether.connectivity import (  # noqa: E402
    ConnectivityManager,
    Gateway,
    NetworkRequest,
    NetworkResponse,
)


class FakeGateway(Gateway):
    """In-memory gateway with scriptable delay, failure and blocking."""

    def __init__(self) -> None:
        self.calls: list[NetworkRequest] = []
        self.should_fail = False
        self.raise_exc: Exception | None = None
        self.release: asyncio.Event | None = None  # when set, send() waits on it
        self.cancelled = 0
        self.completed = 0
        self.closed = False

    async def send(self, request: NetworkRequest) -> NetworkResponse:
        self.calls.append(request)
        try:
            if self.release is not None:
                await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise

        if self.raise_exc is not None:
            raise self.raise_exc
        self.completed += 1
        if self.should_fail:
            return NetworkResponse(
                success=False, status_code=500, error="Simulated failure", duration_ms=1.0
            )
        return NetworkResponse(
            success=True, status_code=200, data='{"result": "success"}', duration_ms=1.0
        )

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def state_path(tmp_path):
    return tmp_path / "connectivity_state.yaml"


@pytest.fixture()
def manager(gateway, state_path):
    return ConnectivityManager(gateway, state_path)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0)


@pytest.fixture()
def until():
    return wait_until
