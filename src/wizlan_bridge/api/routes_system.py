"""System routes: health and engine status."""
from __future__ import annotations

import time
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from wizlan_bridge import __version__
from wizlan_bridge.api.deps import get_config, get_engine, get_event_bus
from wizlan_bridge.devices.models import HandshakeState

router = APIRouter(prefix="/system", tags=["system"])


# ---------- Response models ----------


class HealthResponse(BaseModel):
    version: str
    uptime_seconds: float


class IdentityResponse(BaseModel):
    address: Optional[str] = None
    hardware_id: Optional[str] = None


class StatusResponse(BaseModel):
    running: bool
    identity: IdentityResponse
    device_count: int
    synced_count: int
    last_event_seq: int


# ---------- Routes ----------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Liveness check."""
    start_time = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time
    return HealthResponse(version=__version__, uptime_seconds=round(uptime, 2))


@router.get("/status", response_model=StatusResponse)
async def status(
    engine=Depends(get_engine),
    event_bus=Depends(get_event_bus),
):
    """Engine state and device counts."""
    devices = engine.devices()
    identity = engine.identity
    return StatusResponse(
        running=engine.running,
        identity=IdentityResponse(
            address=identity.address,
            hardware_id=identity.hardware_id,
        ),
        device_count=len(devices),
        synced_count=sum(
            1 for device in devices if device.handshake_state == HandshakeState.SYNCED
        ),
        last_event_seq=event_bus.last_seq,
    )


@router.get("/config")
async def get_effective_config(config: dict = Depends(get_config)):
    """Effective configuration after file and environment overrides."""
    return config
