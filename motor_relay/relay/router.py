# motor_relay/relay/router.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from motor_relay.core import protocol
from motor_relay.net.websocket import safe_send
from motor_relay.relay.registry import RelayRegistry


logger = logging.getLogger(__name__)


class RouteKind(Enum):
    BROADCAST = "broadcast"   # stan urządzenia -> wszyscy obserwatorzy
    FORWARDED = "forwarded"   # komenda -> jedno urządzenie
    DROPPED = "dropped"       # komenda do nieobecnego/zamkniętego urządzenia
    IGNORED = "ignored"       # poprawny JSON, nieznany kształt
    MALFORMED = "malformed"   # nie-JSON


@dataclass(frozen=True)
class RouteResult:
    kind: RouteKind
    delivered: int = 0
    device_id: Optional[str] = None


class RelayRouter:
    """
    Bezstanowa klasyfikacja + przekazywanie wiadomości przychodzących do relay.

    1) state   (deviceId, source="device") -> każdy otwarty obserwator
    2) command (deviceId, niepusty payload) -> urządzenie pod deviceId, jeśli jest i żyje
    3) reszta -> ignorujemy

    Wiadomość leci dalej w oryginalnej postaci (ponownie zserializowana, bez zmian).
    Nadawca nigdy nie dostaje błędu ani potwierdzenia.
    """

    def __init__(self, registry: RelayRegistry) -> None:
        self._registry = registry

    async def route(self, text: Any) -> RouteResult:
        try:
            decoded = protocol.decode(text)
        except protocol.EnvelopeDecodeError as exc:
            logger.error("Bad JSON: %s", exc.raw)
            return RouteResult(RouteKind.MALFORMED)

        env = decoded.envelope

        if isinstance(env, protocol.StateEnvelope) and env.routable:
            return await self._broadcast_state(protocol.dumps(decoded.raw), env.target)

        if isinstance(env, protocol.CommandEnvelope) and env.routable:
            return await self._forward_command(protocol.dumps(decoded.raw), env.target)

        logger.debug("Ignoring message: %s", decoded.raw)
        return RouteResult(RouteKind.IGNORED)

    async def _broadcast_state(self, text: str, device_id: Optional[str]) -> RouteResult:
        delivered = 0
        for ui in self._registry.observers():
            if not ui.is_open:
                continue
            if await safe_send(ui, text):
                delivered += 1
        return RouteResult(RouteKind.BROADCAST, delivered=delivered, device_id=device_id)

    async def _forward_command(self, text: str, device_id: Optional[str]) -> RouteResult:
        dev = self._registry.device(device_id or "")
        if dev is None or not dev.is_open:
            logger.info("Command for unreachable device %s dropped", device_id)
            return RouteResult(RouteKind.DROPPED, device_id=device_id)
        ok = await safe_send(dev, text)
        if not ok:
            return RouteResult(RouteKind.DROPPED, device_id=device_id)
        return RouteResult(RouteKind.FORWARDED, delivered=1, device_id=device_id)
