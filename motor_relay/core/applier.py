# motor_relay/core/applier.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Union

from motor_relay.core.state import Action, Command, DeviceState, Direction


logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """
    Wynik zastosowania jednej komendy.

    state         – nowy stan (zawsze nowy obiekt, wejście nie jest ruszane)
    instructions  – linie tekstu dla sterownika, w kolejności wysyłki
    action        – rozpoznana akcja albo None (nieznana / brak)
    applied       – False gdy komenda została zignorowana (np. START bez liczby)
    """
    state: DeviceState
    instructions: List[str] = field(default_factory=list)
    action: Optional[Action] = None
    applied: bool = False


def _is_non_finite(value: Any) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def _as_number(value: Any) -> Optional[Union[int, float]]:
    # bool to też int w Pythonie – po drucie to nie jest liczba
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    # inf/nan nie przejdą przez JSON odpowiedzi ani koperty stanu
    if _is_non_finite(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_action(raw: Optional[str]) -> Optional[Action]:
    if raw is None:
        return None
    try:
        return Action(raw)
    except ValueError:
        return None


def apply(state: DeviceState, command: Command) -> ApplyResult:
    """
    Tablica przejść dla komend silnika:

      START v      – v liczbowe: "START v", interval=v, active=True
                     v nie-liczbowe (także inf/nan): nic, komenda pominięta
      STOP         – "STOP", active=False (idempotentne)
      DIR v        – "DIR 1|0", direction wg truthiness v
      ENA v        – "ENA 1|0", enabled=bool(v)
      SET_SPEED v  – "SET_SPEED v", interval=v, active bez zmian
                     (bez warunku na v; odrzucane tylko inf/nan)
      inne         – tylko log

    Publikacja stanu po komendzie NIE jest tutaj – robi ją DeviceController,
    zawsze, także dla no-opów.
    """
    action = parse_action(command.action)
    value = command.value

    if action is None:
        logger.warning("Unknown action: %r", command.action)
        return ApplyResult(state=replace(state))

    if action is Action.START:
        interval = _as_number(value)
        if interval is None:
            logger.info("START without numeric value (%r) – ignored", value)
            return ApplyResult(state=replace(state), action=action)
        new_state = replace(state, pulse_interval_us=interval, active=True)
        return ApplyResult(state=new_state, instructions=[f"START {interval}"], action=action, applied=True)

    if action is Action.STOP:
        new_state = replace(state, active=False)
        return ApplyResult(state=new_state, instructions=["STOP"], action=action, applied=True)

    if action is Action.SET_DIRECTION:
        direction = Direction.FORWARD if value else Direction.REVERSE
        new_state = replace(state, direction=direction)
        return ApplyResult(
            state=new_state,
            instructions=[f"DIR {int(direction)}"],
            action=action,
            applied=True,
        )

    if action is Action.SET_ENABLED:
        enabled = bool(value)
        new_state = replace(state, enabled=enabled)
        return ApplyResult(
            state=new_state,
            instructions=[f"ENA {1 if enabled else 0}"],
            action=action,
            applied=True,
        )

    # Action.SET_SPEED – bez warunku wstępnego: interwał zawsze nadpisany,
    # liczby normalizowane, reszta idzie dalej tak jak przyszła
    if _is_non_finite(value):
        logger.warning("SET_SPEED with non-finite value (%r) – ignored", value)
        return ApplyResult(state=replace(state), action=action)
    interval = _as_number(value)
    if interval is None:
        interval = value
    new_state = replace(state, pulse_interval_us=interval)
    return ApplyResult(state=new_state, instructions=[f"SET_SPEED {interval}"], action=action, applied=True)
