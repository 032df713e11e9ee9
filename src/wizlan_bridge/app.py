"""FastAPI application factory for the WiZ LAN bridge."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from wizlan_bridge import __version__
from wizlan_bridge.api.routes_system import router as system_router
from wizlan_bridge.api.routes_devices import router as devices_router
from wizlan_bridge.api.ws import router as ws_router


def create_app(config: dict) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Bridge configuration dictionary.

    Returns:
        Configured FastAPI application instance.
    """
    start_time = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.start_time = start_time
        app.state.config = config
        yield

    app = FastAPI(
        title="wizlan-bridge",
        version=__version__,
        lifespan=lifespan,
    )

    # Store config and start_time directly for access outside lifespan
    app.state.start_time = start_time
    app.state.config = config

    app.include_router(system_router)
    app.include_router(devices_router)
    app.include_router(ws_router)

    return app
