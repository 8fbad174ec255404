# motor_relay/core/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from typing import Any, Dict, Mapping, Optional


class EventLevel(Enum):
    INFO = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass
class Event:
    """
    Wewnętrzne zdarzenie urządzenia (komenda, linia z Arduino, uplink).
    Trafia do ring-bufora w DeviceStateStore i do /api/events.
    """
    ts: float
    source: str          # np. "controller", "actuator", "uplink"
    level: EventLevel
    type: str            # np. "COMMAND_APPLIED", "ACTUATOR_LINE"
    message: str         # krótki opis dla człowieka
    data: Dict[str, Any] = field(default_factory=dict)


class Direction(IntEnum):
    """
    Kierunek obrotów. Wartość liczbowa = to, co leci po drucie (0|1)
    i do sterownika (DIR 0|1).
    """
    REVERSE = 0
    FORWARD = 1


class Action(str, Enum):
    """
    Akcje komend – wartości to stringi z protokołu (pole "action").
    """
    START = "START"
    STOP = "STOP"
    SET_DIRECTION = "DIR"
    SET_ENABLED = "ENA"
    SET_SPEED = "SET_SPEED"


@dataclass
class DeviceState:
    """
    Stan urządzenia, w który wierzy proces na Pi.

    enabled            – czy stopień mocy sterownika jest zasilony (ENA)
    direction          – kierunek obrotów
    pulse_interval_us  – odstęp między impulsami STEP [µs]
                         (zakres 200–4000 pilnuje tylko UI; SET_SPEED zapisuje
                         wartość taką, jak przyszła, jeśli nie jest liczbą)
    active             – czy impulsy są aktualnie generowane
                         (ustawia tylko START, zeruje tylko STOP)
    """
    enabled: bool = True
    direction: Direction = Direction.FORWARD
    pulse_interval_us: int = 800
    active: bool = False

    def to_wire(self) -> Dict[str, Any]:
        return {
            "enabled": bool(self.enabled),
            "direction": int(self.direction),
            "pulseIntervalMicros": self.pulse_interval_us,
            "active": bool(self.active),
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "DeviceState":
        return cls(
            enabled=bool(payload.get("enabled", True)),
            direction=Direction.FORWARD if payload.get("direction") else Direction.REVERSE,
            pulse_interval_us=payload.get("pulseIntervalMicros", 800),
            active=bool(payload.get("active", False)),
        )


@dataclass(frozen=True)
class Command:
    """
    Komenda dla silnika, niezależnie od źródła (lokalne UI albo relay).

    action – surowy string z protokołu; może być nieznany albo pusty,
             wtedy applier tylko to loguje.
    value  – opcjonalny argument (liczba µs, bool-ish dla DIR/ENA).
    """
    action: Optional[str] = None
    value: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "Command":
        if not isinstance(payload, Mapping):
            return cls()
        action = payload.get("action")
        return cls(
            action=str(action) if action is not None else None,
            value=payload.get("value"),
        )

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"action": self.action}
        if self.value is not None:
            out["value"] = self.value
        return out
