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
"""Connectivity management API routes.

Provides endpoints for:
  - Viewing the current mode and live status
  - Switching modes and pulling the kill switch
  - Managing the Assisted-mode endpoint allowlist
  - Dry-running the policy against a request
  - Viewing and clearing the request history
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from tether.connectivity import ConnectivityManager, ConnectivityMode, NetworkRequest

logger = logging.getLogger("tether.api.routes.connectivity")

router = APIRouter(prefix="/api/connectivity", tags=["connectivity"])

# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------


class ModeRequest(BaseModel):
    mode: str


class EndpointRequest(BaseModel):
    endpoint: str


class CheckRequest(BaseModel):
    endpoint: str
    intent: str = ""
    method: str = "GET"


def get_manager(request: Request) -> ConnectivityManager:
    """The manager owned by the running app (created in its lifespan)."""
    return request.app.state.connectivity


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/status")
async def get_connectivity_status(
    manager: ConnectivityManager = Depends(get_manager),
) -> dict:
    """Get the current mode, live status and counters."""
    return manager.get_status()


@router.put("/mode")
async def set_mode(
    body: ModeRequest,
    manager: ConnectivityManager = Depends(get_manager),
) -> dict:
    """Switch the connectivity mode."""
    try:
        mode = ConnectivityMode.parse(body.mode)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    changed = manager.set_mode(mode)
    return {"mode": manager.mode.value, "status": manager.status.value, "changed": changed}


@router.post("/offline")
async def go_offline(manager: ConnectivityManager = Depends(get_manager)) -> dict:
    """Kill switch: block every new request immediately."""
    manager.go_offline_now()
    return {"mode": manager.mode.value, "status": manager.status.value}


@router.get("/allowlist")
async def get_allowlist(manager: ConnectivityManager = Depends(get_manager)) -> dict:
    """List the allowed endpoint prefixes, in the order they were added."""
    return {"endpoints": list(manager.list_allowed())}


@router.post("/allowlist")
async def add_endpoint(
    body: EndpointRequest,
    manager: ConnectivityManager = Depends(get_manager),
) -> dict:
    """Allow an endpoint prefix (idempotent)."""
    try:
        added = manager.allow(body.endpoint)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {"status": "added" if added else "unchanged", "endpoint": body.endpoint.strip()}


@router.delete("/allowlist")
async def remove_endpoint(
    endpoint: str = Query(..., min_length=1),
    manager: ConnectivityManager = Depends(get_manager),
) -> dict:
    """Remove an endpoint prefix (idempotent)."""
    removed = manager.deny(endpoint)
    return {"status": "removed" if removed else "unchanged", "endpoint": endpoint.strip()}


@router.post("/check")
async def check_request(
    body: CheckRequest,
    manager: ConnectivityManager = Depends(get_manager),
) -> dict:
    """Evaluate a request against the current policy without sending it."""
    decision = manager.check_allowed(
        NetworkRequest(endpoint=body.endpoint, intent=body.intent, method=body.method)
    )
    return {
        "allowed": decision.allowed,
        "reason": decision.reason.value if decision.reason else None,
        "message": decision.message,
    }


@router.get("/history")
async def get_history(
    limit: int = Query(50, ge=1),
    manager: ConnectivityManager = Depends(get_manager),
) -> dict:
    """Get the most recent dispatched requests, oldest first."""
    return {"entries": [entry.to_dict() for entry in manager.recent(limit)]}


@router.get("/history/stats")
async def get_history_stats(manager: ConnectivityManager = Depends(get_manager)) -> dict:
    return manager.history_stats()


@router.delete("/history")
async def clear_history(manager: ConnectivityManager = Depends(get_manager)) -> dict:
    removed = manager.clear_history()
    logger.info("Request history cleared via API (%d entries)", removed)
    return {"status": "cleared", "removed": removed}
