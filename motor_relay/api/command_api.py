# motor_relay/api/command_api.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request

from motor_relay.api.state_api import serialize_state
from motor_relay.core import protocol
from motor_relay.core.controller import DeviceController
from motor_relay.core.state import Command


logger = logging.getLogger(__name__)

LOCAL_ORIGIN = "local"


def create_command_router(controller: DeviceController) -> APIRouter:
    router = APIRouter(tags=["command"])

    @router.post("/command")
    async def post_command(request: Request):
        """
        Komenda z lokalnego UI: {"action": "...", "value": ...}.

        Body nie jest walidowane – brak / śmieciowe "action" to zwykły
        no-op (nieznana akcja), odpowiedź i tak 200 ze świeżym stanem.
        """
        body = await request.body()
        payload: Any
        try:
            # NaN / Infinity odrzucone tak samo jak śmieci – stan musi zostać ścisłym JSON-em
            payload = protocol.loads(body.decode("utf-8")) if body else {}
        except ValueError:
            logger.warning("Local command body is not JSON: %r", body[:200])
            payload = {}

        command = Command.from_payload(payload)
        state = await controller.submit(command, LOCAL_ORIGIN)
        return {"ok": True, "state": serialize_state(state)}

    return router
