from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import serial
import serial_asyncio

from motor_relay.hw.interface import CommandSink, LineCallback, SinkWriteError

log = logging.getLogger(__name__)
# osobny logger na to, co odsyła Arduino – łatwo wyciszyć
log_rx = logging.getLogger(__name__ + ".rx")


# =========================
# Konfiguracja portu
# =========================

@dataclass(frozen=True)
class SerialConfig:
    """
    Arduino z driverem krokowym na USB CDC.
    port: np. "/dev/ttyACM0"
    """
    port: str = "/dev/ttyACM0"
    baud_rate: int = 115200
    encoding: str = "ascii"


class _LineProtocol(asyncio.Protocol):
    """
    Ramkowanie po "\\n" (z ucięciem "\\r"). Każda pełna linia -> owner._on_line().
    """

    def __init__(self, owner: "SerialActuator") -> None:
        self._owner = owner
        self._buf = bytearray()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        # pyserial-asyncio wystawia obiekt serial.Serial jako transport.serial
        ser = getattr(transport, "serial", None)
        if ser is not None:
            try:
                ser.reset_input_buffer()
                ser.reset_output_buffer()
            except Exception as e:
                log.debug("buffer reset skipped: %s", e)
        self._owner._on_connection_made(transport)  # type: ignore[arg-type]

    def data_received(self, data: bytes) -> None:
        self._buf.extend(data)
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                break
            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            line = raw.decode(self._owner.cfg.encoding, errors="replace").strip()
            if line:
                self._owner._on_line(line)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._owner._on_connection_lost(exc)


# =========================
# Implementacja CommandSink
# =========================

class SerialActuator(CommandSink):
    """
    Implementacja CommandSink dla Arduino na porcie szeregowym (Raspberry Pi).
    - send_line(): "<instrukcja>\\n" w ASCII, bez czekania na odpowiedź
    - linie przychodzące: tylko log + callback (bez parsowania)
    - port zamknięty / zerwany: zapis rzuca SinkWriteError, proces żyje dalej
    """

    def __init__(self, cfg: SerialConfig) -> None:
        self.cfg = cfg
        self._transport: Optional[asyncio.WriteTransport] = None
        self._callback: Optional[LineCallback] = None

    # ---------- Public API ----------

    @property
    def is_open(self) -> bool:
        t = self._transport
        return t is not None and not t.is_closing()

    def set_line_callback(self, callback: Optional[LineCallback]) -> None:
        self._callback = callback

    async def open(self) -> None:
        """
        Otwiera port. Błąd otwarcia logujemy – bez portu proces działa dalej
        (stan i uplink żyją, instrukcje są odrzucane z logiem).
        """
        if self.is_open:
            return
        loop = asyncio.get_running_loop()
        try:
            await serial_asyncio.create_serial_connection(
                loop,
                lambda: _LineProtocol(self),
                self.cfg.port,
                baudrate=self.cfg.baud_rate,
            )
        except (serial.SerialException, OSError) as e:
            log.error("Cannot open serial port %s: %s", self.cfg.port, e)
            self._transport = None
            return
        log.info("Serial port %s opened @ %d", self.cfg.port, self.cfg.baud_rate)

    def send_line(self, text: str) -> None:
        cmd = text.strip()
        t = self._transport
        if t is None or t.is_closing():
            raise SinkWriteError(f"serial port {self.cfg.port} is not open")
        log.info("=> ACTUATOR: %s", cmd)
        try:
            t.write((cmd + "\n").encode(self.cfg.encoding))
        except Exception as e:
            raise SinkWriteError(f"serial write failed: {e}") from e

    async def close(self) -> None:
        t = self._transport
        self._transport = None
        if t is not None:
            try:
                t.close()
            except Exception:
                log.debug("serial close failed", exc_info=True)

    # ---------- callbacks z _LineProtocol ----------

    def _on_connection_made(self, transport: asyncio.WriteTransport) -> None:
        self._transport = transport

    def _on_line(self, line: str) -> None:
        log_rx.info("ACTUATOR: %s", line)
        cb = self._callback
        if cb is not None:
            try:
                cb(line)
            except Exception:
                log.exception("Line callback failed")

    def _on_connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            log.warning("Serial connection lost: %s", exc)
        else:
            log.info("Serial connection closed")
        self._transport = None
