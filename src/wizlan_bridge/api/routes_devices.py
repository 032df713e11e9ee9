"""Device routes: list, inspect and control discovered lights."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from wizlan_bridge.api.deps import get_engine
from wizlan_bridge.bridge.controller import LightController
from wizlan_bridge.bridge.translate import translate_state
from wizlan_bridge.devices.models import DeviceSnapshot
from wizlan_bridge.errors import UnknownDeviceError, UnsupportedFeatureError

router = APIRouter(prefix="/devices", tags=["devices"])


# ---------- Request/Response models ----------


class DeviceSummary(BaseModel):
    hardware_id: str
    address: str
    module_name: str
    firmware_version: Optional[str] = None
    name: Optional[str] = None
    features: list[str]
    handshake_state: str


class DeviceDetail(DeviceSummary):
    state: Optional[dict[str, Any]] = None
    generalized: dict[str, Any] = Field(default_factory=dict)


class LightStateRequest(BaseModel):
    on: Optional[bool] = None
    level: Optional[int] = Field(default=None, ge=0, le=254)
    hue: Optional[int] = Field(default=None, ge=0, le=254)
    saturation: Optional[int] = Field(default=None, ge=0, le=254)
    color_temperature_mireds: Optional[int] = Field(default=None, ge=1)


class PilotResponse(BaseModel):
    hardware_id: str
    sent: dict[str, Any]


# ---------- Helpers ----------


def _summary(snapshot: DeviceSnapshot) -> DeviceSummary:
    return DeviceSummary(
        hardware_id=snapshot.hardware_id,
        address=snapshot.address,
        module_name=snapshot.module_name,
        firmware_version=snapshot.firmware_version,
        name=snapshot.name,
        features=[feature.value for feature in snapshot.features],
        handshake_state=snapshot.handshake_state.value,
    )


def _get_device_or_404(engine, hardware_id: str) -> DeviceSnapshot:
    snapshot = engine.get_device(hardware_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return snapshot


# ---------- Routes ----------


@router.get("", response_model=list[DeviceSummary])
async def list_devices(engine=Depends(get_engine)):
    """All devices past the getSystemConfig step."""
    return [_summary(snapshot) for snapshot in engine.devices()]


@router.get("/{hardware_id}", response_model=DeviceDetail)
async def get_device(hardware_id: str, engine=Depends(get_engine)):
    snapshot = _get_device_or_404(engine, hardware_id)
    state = engine.get_state(hardware_id)
    generalized = translate_state(state).to_dict() if state is not None else {}
    return DeviceDetail(
        **_summary(snapshot).model_dump(),
        state=state,
        generalized=generalized,
    )


@router.put("/{hardware_id}/state", response_model=PilotResponse)
async def update_state(
    hardware_id: str,
    body: LightStateRequest,
    engine=Depends(get_engine),
):
    """Apply generalized light changes as a single setPilot."""
    _get_device_or_404(engine, hardware_id)
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No state fields provided",
        )

    controller = LightController(engine, hardware_id)
    try:
        sent = controller.apply(**changes)
    except UnknownDeviceError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    except UnsupportedFeatureError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    return PilotResponse(hardware_id=hardware_id, sent=sent)


@router.put("/{hardware_id}/pilot", response_model=PilotResponse)
async def send_pilot(
    hardware_id: str,
    body: dict[str, Any],
    engine=Depends(get_engine),
):
    """Forward raw setPilot parameters to the device."""
    _get_device_or_404(engine, hardware_id)
    if not body:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No pilot parameters provided",
        )
    engine.set_state(hardware_id, body)
    return PilotResponse(hardware_id=hardware_id, sent=body)
