# motor_relay/hw/interface.py
from __future__ import annotations

from typing import Callable, Optional

from typing_extensions import Protocol


LineCallback = Callable[[str], None]


class CommandSink(Protocol):
    """
    Interfejs warstwy sprzętowej (sterownik krokowy za portem szeregowym).
    Implementuje go zarówno mock, jak i prawdziwy port na Pi.
    """

    def set_line_callback(self, callback: Optional[LineCallback]) -> None:
        """
        Callback na każdą linię odebraną od sterownika.
        Linie są nieprzetworzone (tylko log), protokół ich nie interpretuje.
        """
        ...

    def send_line(self, text: str) -> None:
        """
        Wysyła jedną instrukcję ("START 800", "STOP", "DIR 1", ...).
        Implementacja dokleja "\\n".

        IMPORTANT:
        - nie blokuje (zapis do transportu asyncio),
        - przy zamkniętym porcie rzuca SinkWriteError, nie wisi.
        """
        ...

    async def open(self) -> None:
        ...

    async def close(self) -> None:
        ...


class SinkWriteError(RuntimeError):
    """Nie udało się zapisać instrukcji do sterownika."""
