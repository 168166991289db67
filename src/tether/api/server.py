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
"""
Tether -- API Server

FastAPI server for the connectivity settings UI. The app owns exactly
one ConnectivityManager, created at startup and closed at shutdown.

Run with: uvicorn tether.api.server:app --port 8000
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tether import __version__
from tether.api.routes.connectivity import router as connectivity_router
from tether.connectivity import ConnectivityConfig, ConnectivityManager, Gateway, load_config
from tether.core.logging import configure_logging

logger = logging.getLogger("tether.api.server")


def create_app(
    config: ConnectivityConfig | None = None,
    gateway: Gateway | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Build the API app.

    ``config`` defaults to the on-disk settings, read at startup.
    ``gateway`` defaults to an httpx gateway built from those settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings = config or load_config()
        if configure_logs:
            configure_logging(settings.log_dir, settings.log_level)

        manager = ConnectivityManager.from_config(settings, gateway=gateway)
        app.state.connectivity = manager
        logger.info("API server started (mode=%s)", manager.mode.value)
        try:
            yield
        finally:
            await manager.aclose()
            logger.info("API server stopped")

    app = FastAPI(
        title="Tether API",
        description="Connectivity control for Tether",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS for the local settings UI
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"http://(localhost|127\.0\.0\.1):\d+",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(connectivity_router)

    @app.get("/api/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
