# motor_relay/core/protocol.py
"""
Koperty (envelopes) przesyłane websocketem między urządzeniem, relay i UI.

  {"type":"state","deviceId":"<id>","source":"device","payload":{...DeviceState...}}
  {"type":"command","deviceId":"<id>","payload":{"action":"START","value":800}}

Dekodowanie w dwóch krokach:
  1) tekst -> obiekt JSON; błąd = EnvelopeDecodeError (log + odrzucenie),
  2) obiekt -> StateEnvelope | CommandEnvelope po polu "type";
     niepasujący kształt = None (ignorujemy bez błędu).

Relay przekazuje dalej ORYGINALNY obiekt (raw), a modele służą tylko do
klasyfikacji – nic nie jest po drodze zmieniane ani dopisywane.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter, ValidationError
from typing_extensions import Annotated

from motor_relay.core.state import Command, DeviceState


STATE_TYPE = "state"
COMMAND_TYPE = "command"
DEVICE_SOURCE = "device"

# id urządzenia: string albo liczba całkowita (porównywane jako string), bez bool
DeviceId = Optional[Union[StrictStr, StrictInt]]


def _target(device_id: Any) -> Optional[str]:
    # 0 i "" = brak id (jak truthiness po stronie JS)
    return str(device_id) if device_id else None


class EnvelopeDecodeError(ValueError):
    """Tekst nie jest obiektem JSON."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class StateEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Literal["state"]
    device_id: DeviceId = Field(default=None, alias="deviceId")
    source: Optional[str] = None
    payload: Any = None

    @property
    def target(self) -> Optional[str]:
        return _target(self.device_id)

    @property
    def routable(self) -> bool:
        return self.target is not None and self.source == DEVICE_SOURCE

    def device_state(self) -> DeviceState:
        return DeviceState.from_wire(self.payload if isinstance(self.payload, dict) else {})


class CommandEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Literal["command"]
    device_id: DeviceId = Field(default=None, alias="deviceId")
    payload: Any = None

    @property
    def target(self) -> Optional[str]:
        return _target(self.device_id)

    @property
    def routable(self) -> bool:
        return self.target is not None and bool(self.payload)

    def command(self) -> Command:
        return Command.from_payload(self.payload)


Envelope = Annotated[Union[StateEnvelope, CommandEnvelope], Field(discriminator="type")]

_ENVELOPE_ADAPTER: TypeAdapter[Union[StateEnvelope, CommandEnvelope]] = TypeAdapter(Envelope)


@dataclass(frozen=True)
class Decoded:
    raw: Dict[str, Any]
    envelope: Optional[Union[StateEnvelope, CommandEnvelope]]


def dumps(obj: Dict[str, Any]) -> str:
    # zwarty JSON, jedna wiadomość = jeden obiekt, bez nowych linii
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} is not allowed")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Number {text} is out of range")
    return value


def loads(text: Union[str, bytes]) -> Any:
    """
    json.loads tylko dla ścisłego JSON-a: NaN / Infinity / 1e400 -> ValueError.
    Stan z taką liczbą nie dałby się potem wysłać ani zwrócić z HTTP.
    """
    return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)


def decode(text: Union[str, bytes]) -> Decoded:
    """
    Rzuca EnvelopeDecodeError dla nie-JSON-a / nie-obiektu.
    Dla obiektu o nieznanym kształcie zwraca Decoded(envelope=None).
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8", errors="replace")

    try:
        raw = loads(text)
    except (ValueError, TypeError) as exc:
        raise EnvelopeDecodeError(f"Bad JSON: {exc}", raw=str(text)) from None

    if not isinstance(raw, dict):
        raise EnvelopeDecodeError("Envelope must be a JSON object", raw=str(text))

    try:
        envelope = _ENVELOPE_ADAPTER.validate_python(raw)
    except ValidationError:
        envelope = None

    return Decoded(raw=raw, envelope=envelope)


def build_state_envelope(device_id: str, state: DeviceState) -> Dict[str, Any]:
    return {
        "type": STATE_TYPE,
        "deviceId": device_id,
        "source": DEVICE_SOURCE,
        "payload": state.to_wire(),
    }


def build_command_envelope(device_id: str, command: Command) -> Dict[str, Any]:
    return {
        "type": COMMAND_TYPE,
        "deviceId": device_id,
        "payload": command.to_payload(),
    }
