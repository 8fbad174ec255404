"""Wspólne helpery do wysyłki po websocketach (uplink i relay)."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


async def safe_send(ws: Any, data: str) -> bool:
    """Wysyła ``data`` przez ``ws``; przy błędzie loguje i zwraca False.

    Nie zamyka gniazda – zamknięcie i sprzątanie rejestru należy do pętli,
    która obsługuje to połączenie (zdarzenie close).
    """

    try:
        await ws.send(data)
        return True
    except Exception:
        logger.debug("WebSocket send failed", exc_info=True)
        return False


__all__ = ["safe_send"]
