# motor_relay/relay/registry.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from starlette.websockets import WebSocketState


logger = logging.getLogger(__name__)


class Role(Enum):
    DEVICE = "device"
    OBSERVER = "observer"


def classify(role: Optional[str], device_id: Optional[str]) -> Role:
    """
    role=device + niepusty deviceId -> DEVICE; wszystko inne -> OBSERVER.
    """
    if role == Role.DEVICE.value and device_id:
        return Role.DEVICE
    return Role.OBSERVER


class RelayConnection:
    """
    Jedno zaakceptowane połączenie websocket po stronie relay.
    Rola ustalana raz, przy połączeniu – nigdy nie zmieniana.
    """

    def __init__(self, ws: Any, role: Role, device_id: Optional[str] = None) -> None:
        self.ws = ws
        self.role = role
        self.device_id = device_id if role is Role.DEVICE else None

    @property
    def is_open(self) -> bool:
        return (
            self.ws.client_state == WebSocketState.CONNECTED
            and self.ws.application_state == WebSocketState.CONNECTED
        )

    async def send(self, text: str) -> None:
        await self.ws.send_text(text)

    def __repr__(self) -> str:
        if self.role is Role.DEVICE:
            return f"<RelayConnection device={self.device_id!r}>"
        return f"<RelayConnection observer@{id(self):x}>"


class RelayRegistry:
    """
    deviceId -> jedno połączenie (ostatnie wygrywa) + zbiór obserwatorów (UI).
    Zmieniany wyłącznie przez handlery connect/disconnect.
    """

    def __init__(self) -> None:
        self._devices: Dict[str, RelayConnection] = {}
        self._observers: Set[RelayConnection] = set()

    # ---------- connect ----------

    def add(self, conn: RelayConnection) -> Optional[RelayConnection]:
        """
        Rejestruje połączenie wg roli. Dla urządzenia zwraca poprzednie
        połączenie pod tym samym id (jeśli było) – NIE zamykamy go,
        zostaje osierocone aż samo się zamknie.
        """
        if conn.role is Role.DEVICE:
            return self.set_device(conn)
        self._observers.add(conn)
        return None

    def set_device(self, conn: RelayConnection) -> Optional[RelayConnection]:
        if conn.role is not Role.DEVICE or not conn.device_id:
            raise ValueError(f"Not a device connection with an id: {conn!r}")
        previous = self._devices.get(conn.device_id)
        self._devices[conn.device_id] = conn
        if previous is not None and previous is not conn:
            logger.info("Device %s re-registered; previous connection orphaned", conn.device_id)
            return previous
        return None

    # ---------- disconnect ----------

    def remove(self, conn: RelayConnection) -> bool:
        """
        Obserwator: usuwamy ze zbioru.
        Urządzenie: usuwamy wpis TYLKO jeśli nadal wskazuje dokładnie na conn
        (nowsze połączenie pod tym samym id zostaje nietknięte).
        """
        if conn.role is Role.OBSERVER:
            if conn in self._observers:
                self._observers.discard(conn)
                return True
            return False

        current = self._devices.get(conn.device_id or "")
        if current is conn:
            del self._devices[conn.device_id]  # type: ignore[arg-type]
            return True
        return False

    # ---------- lookup ----------

    def device(self, device_id: str) -> Optional[RelayConnection]:
        return self._devices.get(device_id)

    def observers(self) -> List[RelayConnection]:
        # kopia – wysyłka może trwać, a w międzyczasie ktoś się rozłączy
        return list(self._observers)

    def device_ids(self) -> List[str]:
        return sorted(self._devices)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    @property
    def device_count(self) -> int:
        return len(self._devices)
