from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import Iterable, List, NamedTuple, Optional, Tuple

from motor_relay.core.state import DeviceState, Event


class EventPage(NamedTuple):
    """Odpowiedź events_since(): eventy, numer najnowszego, czy coś przepadło."""
    events: List[Event]
    last_seq: int
    overflow: bool


class DeviceStateStore:
    """
    Jedyne źródło prawdy o stanie urządzenia + ring-bufor eventów.

    Bez locków: czyta i pisze wyłącznie pętla asyncio procesu urządzenia.
    Pisze tylko DeviceController (replace), reszta dostaje kopie.
    """

    def __init__(self, initial: Optional[DeviceState] = None, event_buffer_size: int = 500) -> None:
        self._state = replace(initial) if initial is not None else DeviceState()

        self._event_seq = 0
        self._event_buf: deque[Tuple[int, Event]] = deque(maxlen=event_buffer_size)

    @property
    def current(self) -> DeviceState:
        return self._state

    def snapshot(self) -> DeviceState:
        return replace(self._state)

    def replace(self, new_state: DeviceState) -> None:
        self._state = replace(new_state)

    # ---------- eventy ----------

    def publish_events(self, events: Iterable[Event]) -> int:
        """
        Dopisuje eventy do ring-bufora, nadając kolejne numery (data["seq"]).
        Zwraca numer ostatniego zapisanego eventu.
        """
        for ev in events:
            self._event_seq += 1
            ev.data = {**(ev.data or {}), "seq": self._event_seq}
            self._event_buf.append((self._event_seq, ev))
        return self._event_seq

    def events_since(self, last_seq: int) -> EventPage:
        """
        Eventy z seq > last_seq. overflow=True gdy najstarszy trzymany event
        ma numer większy niż last_seq + 1, czyli coś wypadło z bufora.
        """
        if not self._event_buf:
            return EventPage([], last_seq, False)
        oldest_seq, _ = self._event_buf[0]
        fresh = [ev for seq, ev in self._event_buf if seq > last_seq]
        return EventPage(fresh, self._event_seq, oldest_seq > last_seq + 1)
