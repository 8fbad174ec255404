# motor_relay/relay/server.py
from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket

from motor_relay.relay.registry import RelayConnection, RelayRegistry, Role, classify
from motor_relay.relay.router import RelayRouter


logger = logging.getLogger(__name__)


def create_relay_router(registry: RelayRegistry, path: str = "/ws") -> APIRouter:
    """
    Router z endpointami relay:
      WS  <path>?role=device&deviceId=<id>   – urządzenie
      WS  <path>                             – obserwator (UI)
      GET /health                            – podgląd rejestru
    Rejestr przekazujemy jako zależność (closure) – nie używamy globali.
    """
    router = APIRouter()
    message_router = RelayRouter(registry)

    async def relay_ws(websocket: WebSocket):
        role_raw = websocket.query_params.get("role") or "ui"
        device_id = websocket.query_params.get("deviceId") or None
        role = classify(role_raw, device_id)

        await websocket.accept()
        conn = RelayConnection(websocket, role, device_id)
        registry.add(conn)

        if role is Role.DEVICE:
            logger.info("Device connected: %s", device_id)
        else:
            logger.info("UI client connected")

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                data = message.get("text")
                if data is None:
                    data = message.get("bytes")
                if data is None:
                    continue
                await message_router.route(data)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Relay connection handler failed (%r)", conn)
        finally:
            registry.remove(conn)
            if role is Role.DEVICE:
                logger.info("Device disconnected: %s", device_id)
            else:
                logger.info("UI client disconnected")

    router.add_api_websocket_route(path, relay_ws)
    alt = path.rstrip("/") + "/"
    if alt != path:
        router.add_api_websocket_route(alt, relay_ws)

    @router.get("/health")
    async def health():
        return {
            "devices": registry.device_ids(),
            "observers": registry.observer_count,
        }

    return router
