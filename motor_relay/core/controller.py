# motor_relay/core/controller.py
from __future__ import annotations

import logging
import time
from typing import List, Optional

from typing_extensions import Protocol

from motor_relay.core import applier
from motor_relay.core.state import Command, DeviceState, Event, EventLevel
from motor_relay.core.state_store import DeviceStateStore
from motor_relay.hw.interface import CommandSink, SinkWriteError


logger = logging.getLogger(__name__)


class StatePublisher(Protocol):
    async def publish_state(self, state: DeviceState) -> bool:
        ...


class DeviceController:
    """
    Jedyny pisarz DeviceState.

    submit() dla każdej komendy (lokalne UI albo relay):
      1) applier.apply() na bieżącym stanie,
      2) instrukcje -> sterownik,
      3) nowy stan -> store,
      4) event do ring-bufora,
      5) ZAWSZE publikacja pełnego stanu (także dla no-opów i nieznanych akcji).
    """

    def __init__(
        self,
        store: DeviceStateStore,
        sink: CommandSink,
        publisher: Optional[StatePublisher] = None,
    ) -> None:
        self._store = store
        self._sink = sink
        self._publisher = publisher

        sink.set_line_callback(self._on_actuator_line)

    @property
    def state(self) -> DeviceState:
        return self._store.snapshot()

    def set_publisher(self, publisher: Optional[StatePublisher]) -> None:
        self._publisher = publisher

    async def submit(self, command: Command, origin: str) -> DeviceState:
        now = time.time()
        logger.info("Command from %s: %s", origin, command.to_payload())

        result = applier.apply(self._store.current, command)
        events: List[Event] = []

        for line in result.instructions:
            try:
                self._sink.send_line(line)
            except SinkWriteError as exc:
                logger.error("Actuator write failed (%s): %s", line, exc)
                events.append(
                    Event(
                        ts=now,
                        source="controller",
                        level=EventLevel.ERROR,
                        type="SINK_WRITE_FAILED",
                        message=f"Could not send '{line}' to actuator",
                        data={"line": line, "error": str(exc)},
                    )
                )

        self._store.replace(result.state)
        events.insert(0, self._command_event(now, command, origin, result))
        self._store.publish_events(events)

        snapshot = self._store.snapshot()
        await self.publish(snapshot)
        return snapshot

    async def publish(self, state: Optional[DeviceState] = None) -> bool:
        if self._publisher is None:
            return False
        return await self._publisher.publish_state(state or self._store.snapshot())

    # ---------- helpers ----------

    def _command_event(self, now: float, command: Command, origin: str, result: applier.ApplyResult) -> Event:
        data = {"origin": origin, "command": command.to_payload(), "instructions": list(result.instructions)}

        if result.action is None:
            return Event(
                ts=now,
                source="controller",
                level=EventLevel.WARNING,
                type="COMMAND_UNKNOWN",
                message=f"Unknown action {command.action!r} from {origin}",
                data=data,
            )
        if not result.applied:
            return Event(
                ts=now,
                source="controller",
                level=EventLevel.INFO,
                type="COMMAND_IGNORED",
                message=f"{result.action.value} with value {command.value!r} ignored",
                data=data,
            )
        return Event(
            ts=now,
            source="controller",
            level=EventLevel.INFO,
            type="COMMAND_APPLIED",
            message=f"{result.action.value} from {origin}",
            data=data,
        )

    def _on_actuator_line(self, line: str) -> None:
        self._store.publish_events(
            [
                Event(
                    ts=time.time(),
                    source="actuator",
                    level=EventLevel.INFO,
                    type="ACTUATOR_LINE",
                    message=line,
                    data={},
                )
            ]
        )
