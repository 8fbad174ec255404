# motor_relay/net/uplink.py
"""
Uplink: stałe połączenie urządzenia z relay (websocket).

Automat stanów:

    DISCONNECTED --start / po reconnect_delay_s--> CONNECTING
    CONNECTING   --handshake OK-->                 CONNECTED  (od razu push stanu)
    CONNECTING   --błąd połączenia-->              DISCONNECTED
    CONNECTED    --close transportu-->             DISCONNECTED

Stałe opóźnienie (bez backoffu, bez jittera, bez limitu prób).
Publikacja stanu poza CONNECTED jest pomijana – nic nie jest kolejkowane.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from motor_relay.core import protocol
from motor_relay.core.state import Command, DeviceState
from motor_relay.net.websocket import safe_send


logger = logging.getLogger(__name__)

CommandHandler = Callable[[Command, str], Awaitable[Any]]
StateProvider = Callable[[], DeviceState]
TransitionHook = Callable[["UplinkState", "UplinkState"], None]

RELAY_ORIGIN = "relay"


class UplinkState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def build_device_url(relay_url: str, device_id: str) -> str:
    """Dokleja role=device&deviceId=<id> do URL relay (istniejące query zostaje)."""
    parts = urlsplit(relay_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in ("role", "deviceId")]
    query += [("role", "device"), ("deviceId", device_id)]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class UplinkSession:
    def __init__(
        self,
        relay_url: str,
        device_id: str,
        *,
        reconnect_delay_s: float = 5.0,
        connect: Optional[Callable[[str], Any]] = None,
        on_transition: Optional[TransitionHook] = None,
    ) -> None:
        self.device_id = device_id
        self.url = build_device_url(relay_url, device_id)
        self.reconnect_delay_s = float(reconnect_delay_s)

        self._connect = connect or websockets.connect
        self._on_transition = on_transition
        self._on_command: Optional[CommandHandler] = None
        self._state_provider: Optional[StateProvider] = None

        self._state = UplinkState.DISCONNECTED
        self._ws: Any = None
        self._stop_evt = asyncio.Event()
        self.connects = 0

    # ---------- Public API ----------

    @property
    def state(self) -> UplinkState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is UplinkState.CONNECTED and self._ws is not None

    def bind(self, *, state_provider: StateProvider, on_command: CommandHandler) -> None:
        """Podpina źródło stanu (push po połączeniu) i odbiorcę komend z relay."""
        self._state_provider = state_provider
        self._on_command = on_command

    async def publish_state(self, state: DeviceState) -> bool:
        """
        Wysyła pełny stan do relay. Poza CONNECTED: no-op (False), bez kolejki.
        """
        if not self.is_connected:
            return False
        msg = protocol.dumps(protocol.build_state_envelope(self.device_id, state))
        return await safe_send(self._ws, msg)

    async def run(self) -> None:
        """Pętla nadzorcza: łączy, obsługuje sesję, po zamknięciu czeka i łączy od nowa."""
        self._stop_evt.clear()
        while not self._stop_evt.is_set():
            await self._run_once()

            if self._stop_evt.is_set():
                break
            logger.info("Relay connection closed, retrying in %.0fs...", self.reconnect_delay_s)
            try:
                await asyncio.wait_for(self._stop_evt.wait(), timeout=self.reconnect_delay_s)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        self._stop_evt.set()
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except Exception:
                logger.debug("Uplink close failed", exc_info=True)

    # ---------- Sesja ----------

    async def _run_once(self) -> None:
        self._set_state(UplinkState.CONNECTING)
        logger.info("Connecting to relay: %s", self.url)
        try:
            async with self._connect(self.url) as ws:
                self._ws = ws
                self.connects += 1
                self._set_state(UplinkState.CONNECTED)
                logger.info("Connected to relay")

                # po (re)connect zawsze publikujemy ostatni znany stan
                if self._state_provider is not None:
                    await self.publish_state(self._state_provider())

                async for raw in ws:
                    await self._handle_message(raw)
        except ConnectionClosed as exc:
            logger.info("Relay WS closed: %s", exc)
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            logger.warning("Relay WS error: %s", exc or type(exc).__name__)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected uplink error")
        finally:
            self._ws = None
            self._set_state(UplinkState.DISCONNECTED)

    async def _handle_message(self, raw: Any) -> None:
        try:
            decoded = protocol.decode(raw)
        except protocol.EnvelopeDecodeError as exc:
            logger.warning("Bad JSON from relay: %s (%s)", exc.raw, exc)
            return

        env = decoded.envelope
        if not isinstance(env, protocol.CommandEnvelope) or env.target != self.device_id:
            return

        command = env.command()
        logger.info("CMD from relay: %s", decoded.raw.get("payload"))
        if self._on_command is None:
            return
        try:
            await self._on_command(command, RELAY_ORIGIN)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Command handler failed for %r", command)

    def _set_state(self, new: UplinkState) -> None:
        old = self._state
        if old is new:
            return
        self._state = new
        if self._on_transition is not None:
            try:
                self._on_transition(old, new)
            except Exception:
                logger.debug("on_transition hook failed", exc_info=True)
