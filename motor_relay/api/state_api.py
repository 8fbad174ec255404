# motor_relay/api/state_api.py
from __future__ import annotations

from fastapi import APIRouter

from motor_relay.core.controller import DeviceController
from motor_relay.core.state import DeviceState


def serialize_state(s: DeviceState) -> dict:
    # ten sam kształt co payload w kopercie "state"
    return s.to_wire()


def create_state_router(controller: DeviceController) -> APIRouter:
    router = APIRouter(tags=["state"])

    @router.get("/state")
    async def get_state():
        """
        Aktualny stan silnika (snapshot).
        """
        return serialize_state(controller.state)

    return router
