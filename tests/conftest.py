# tests/conftest.py
import pytest

from motor_relay.core.controller import DeviceController
from motor_relay.core.state import DeviceState
from motor_relay.core.state_store import DeviceStateStore
from motor_relay.hw.mock import MockActuator


class RecordingPublisher:
    """Zamiast uplinku: zapamiętuje każdy opublikowany stan."""

    def __init__(self):
        self.published = []

    async def publish_state(self, state):
        self.published.append(state)
        return True


@pytest.fixture
def store():
    return DeviceStateStore(DeviceState())


@pytest.fixture
def sink():
    return MockActuator()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def controller(store, sink, publisher):
    return DeviceController(store, sink, publisher=publisher)
