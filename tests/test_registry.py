import pytest
from starlette.websockets import WebSocketState

from motor_relay.relay.registry import RelayConnection, RelayRegistry, Role, classify


class FakeWs:
    def __init__(self, open_=True):
        state = WebSocketState.CONNECTED if open_ else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state
        self.sent = []

    async def send_text(self, text):
        self.sent.append(text)


def device(device_id, open_=True):
    return RelayConnection(FakeWs(open_), Role.DEVICE, device_id)


def observer(open_=True):
    return RelayConnection(FakeWs(open_), Role.OBSERVER)


@pytest.mark.parametrize(
    "role, device_id, expected",
    [
        ("device", "pi-motor-1", Role.DEVICE),
        ("device", "", Role.OBSERVER),
        ("device", None, Role.OBSERVER),
        ("ui", "pi-motor-1", Role.OBSERVER),
        (None, None, Role.OBSERVER),
    ],
)
def test_classify(role, device_id, expected):
    assert classify(role, device_id) is expected


def test_second_device_replaces_first():
    reg = RelayRegistry()
    first = device("pi-motor-1")
    second = device("pi-motor-1")

    assert reg.add(first) is None
    assert reg.add(second) is first
    assert reg.device("pi-motor-1") is second
    assert reg.device_count == 1


def test_remove_of_replaced_connection_keeps_new_one():
    reg = RelayRegistry()
    first = device("pi-motor-1")
    second = device("pi-motor-1")
    reg.add(first)
    reg.add(second)

    assert reg.remove(first) is False
    assert reg.device("pi-motor-1") is second

    assert reg.remove(second) is True
    assert reg.device("pi-motor-1") is None


def test_observers_are_separate_from_devices():
    reg = RelayRegistry()
    ui_a, ui_b = observer(), observer()
    dev = device("pi-motor-1")
    for c in (ui_a, ui_b, dev):
        reg.add(c)

    assert set(reg.observers()) == {ui_a, ui_b}
    assert dev not in reg.observers()
    assert reg.device_ids() == ["pi-motor-1"]

    assert reg.remove(ui_a) is True
    assert reg.remove(ui_a) is False
    assert reg.observer_count == 1


def test_observer_connection_has_no_device_id():
    conn = RelayConnection(FakeWs(), Role.OBSERVER, "pi-motor-1")

    assert conn.device_id is None


def test_is_open_follows_socket_state():
    assert device("a").is_open
    assert not device("a", open_=False).is_open


@pytest.mark.parametrize("conn", [RelayConnection(FakeWs(), Role.DEVICE, ""), RelayConnection(FakeWs(), Role.OBSERVER)])
def test_set_device_needs_device_with_id(conn):
    reg = RelayRegistry()

    with pytest.raises(ValueError):
        reg.set_device(conn)
    assert reg.device_count == 0
