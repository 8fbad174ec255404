from __future__ import annotations

import logging
from typing import List, Optional

from motor_relay.hw.interface import CommandSink, LineCallback, SinkWriteError


__all__ = ["MockActuator"]

logger = logging.getLogger(__name__)


class MockActuator(CommandSink):
    """
    Symulator sterownika (Arduino + driver krokowy) bez portu szeregowego.

    - zapamiętuje wszystkie wysłane linie (testy, praca na laptopie),
    - echo=True: odsyła "OK <linia>" tym samym callbackiem co prawdziwy port,
    - zamknięty mock rzuca SinkWriteError jak prawdziwy port.
    """

    def __init__(self, echo: bool = True) -> None:
        self.lines: List[str] = []
        self._echo = echo
        self._callback: Optional[LineCallback] = None
        self._open = True

    def set_line_callback(self, callback: Optional[LineCallback]) -> None:
        self._callback = callback

    def send_line(self, text: str) -> None:
        if not self._open:
            raise SinkWriteError("mock actuator is closed")
        line = text.strip()
        logger.info("=> ACTUATOR(mock): %s", line)
        self.lines.append(line)
        if self._echo and self._callback is not None:
            self._callback(f"OK {line}")

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False
