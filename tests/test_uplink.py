import asyncio
import json

import pytest

from motor_relay.core.controller import DeviceController
from motor_relay.core.state import Command, DeviceState
from motor_relay.core.state_store import DeviceStateStore
from motor_relay.hw.mock import MockActuator
from motor_relay.net.uplink import UplinkSession, UplinkState, build_device_url


class FakeRelayConnection:
    """
    Udaje połączenie websockets: async context manager + async iterator.
    hold=True: po wyczerpaniu wiadomości wisi aż do close().
    """

    def __init__(self, messages=(), hold=False):
        self.sent = []
        self._messages = list(messages)
        self._hold = hold
        self._closed = asyncio.Event()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._closed.set()
        return False

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        self._closed.set()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for m in self._messages:
            yield m
        if self._hold:
            await self._closed.wait()


async def eventually(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def make_device(connect, reconnect_delay_s=0.01, on_transition=None):
    store = DeviceStateStore(DeviceState())
    sink = MockActuator()
    session = UplinkSession(
        "ws://relay.test:4000/ws",
        "pi-motor-1",
        reconnect_delay_s=reconnect_delay_s,
        connect=connect,
        on_transition=on_transition,
    )
    controller = DeviceController(store, sink, publisher=session)
    session.bind(state_provider=store.snapshot, on_command=controller.submit)
    return store, sink, session, controller


def payloads(conn):
    return [json.loads(m) for m in conn.sent]


def test_build_device_url():
    assert build_device_url("ws://relay:4000/ws", "pi-motor-1") == "ws://relay:4000/ws?role=device&deviceId=pi-motor-1"
    assert (
        build_device_url("wss://relay/ws?token=abc&role=ui", "dev 2")
        == "wss://relay/ws?token=abc&role=device&deviceId=dev+2"
    )


def test_publish_when_disconnected_is_noop():
    session = UplinkSession("ws://relay.test/ws", "pi-motor-1", connect=lambda url: None)

    assert session.state is UplinkState.DISCONNECTED
    assert asyncio.run(session.publish_state(DeviceState())) is False


def test_first_message_after_connect_is_full_state():
    async def scenario():
        conn = FakeRelayConnection(hold=True)
        urls = []

        def connect(url):
            urls.append(url)
            return conn

        store, _, session, _ = make_device(connect)
        task = asyncio.create_task(session.run())
        await eventually(lambda: conn.sent)

        assert session.is_connected
        assert urls == ["ws://relay.test:4000/ws?role=device&deviceId=pi-motor-1"]
        assert payloads(conn)[0] == {
            "type": "state",
            "deviceId": "pi-motor-1",
            "source": "device",
            "payload": {"enabled": True, "direction": 1, "pulseIntervalMicros": 800, "active": False},
        }

        await session.stop()
        await asyncio.wait_for(task, 1.0)
        assert session.state is UplinkState.DISCONNECTED

    asyncio.run(scenario())


def test_reconnect_pushes_state_changed_while_offline():
    async def scenario():
        first = FakeRelayConnection()
        second = FakeRelayConnection(hold=True)
        conns = [first, second]
        dropped = asyncio.Event()

        def on_transition(old, new):
            if old is UplinkState.CONNECTED:
                dropped.set()

        store, sink, session, controller = make_device(
            lambda url: conns.pop(0), reconnect_delay_s=0.05, on_transition=on_transition
        )
        task = asyncio.create_task(session.run())

        await asyncio.wait_for(dropped.wait(), 1.0)
        # lokalne UI działa dalej bez relay
        await controller.submit(Command("START", 650), "local")
        assert len(first.sent) == 1

        await eventually(lambda: second.sent)
        first_msg = payloads(second)[0]
        assert first_msg["type"] == "state"
        assert first_msg["payload"]["pulseIntervalMicros"] == 650
        assert first_msg["payload"]["active"] is True
        assert session.connects == 2

        await session.stop()
        await asyncio.wait_for(task, 1.0)

    asyncio.run(scenario())


def test_connect_error_is_retried():
    async def scenario():
        conn = FakeRelayConnection(hold=True)
        attempts = []
        transitions = []

        def connect(url):
            attempts.append(url)
            if len(attempts) == 1:
                raise OSError("connection refused")
            return conn

        _, _, session, _ = make_device(connect, on_transition=lambda old, new: transitions.append((old, new)))
        task = asyncio.create_task(session.run())
        await eventually(lambda: conn.sent)

        assert len(attempts) == 2
        assert session.connects == 1
        assert transitions[:3] == [
            (UplinkState.DISCONNECTED, UplinkState.CONNECTING),
            (UplinkState.CONNECTING, UplinkState.DISCONNECTED),
            (UplinkState.DISCONNECTED, UplinkState.CONNECTING),
        ]

        await session.stop()
        await asyncio.wait_for(task, 1.0)

    asyncio.run(scenario())


def test_commands_from_relay():
    messages = [
        '{"type":"command","deviceId":"pi-motor-2","payload":{"action":"START","value":300}}',
        "definitely not json",
        '{"type":"command","deviceId":"pi-motor-1","payload":{"action":"SET_SPEED","value":NaN}}',
        '{"type":"state","deviceId":"pi-motor-1","source":"device","payload":{"active":true}}',
        '{"type":"command","deviceId":"pi-motor-1","payload":{"action":"START","value":700}}',
        '{"type":"command","deviceId":"pi-motor-1","payload":{"action":"DIR","value":0}}',
    ]

    async def scenario():
        conn = FakeRelayConnection(messages, hold=True)
        store, sink, session, _ = make_device(lambda url: conn)
        task = asyncio.create_task(session.run())

        await eventually(lambda: store.current.direction == 0)

        assert sink.lines == ["START 700", "DIR 0"]
        assert store.current.active is True
        # stan po połączeniu + po każdej z dwóch komend
        sent = payloads(conn)
        assert len(sent) == 3
        assert all(m["type"] == "state" for m in sent)
        assert sent[-1]["payload"]["direction"] == 0

        await session.stop()
        await asyncio.wait_for(task, 1.0)

    asyncio.run(scenario())


@pytest.mark.parametrize("delay", [0.01, 0.2])
def test_stop_interrupts_reconnect_wait(delay):
    async def scenario():
        _, _, session, _ = make_device(lambda url: FakeRelayConnection(), reconnect_delay_s=60.0)
        task = asyncio.create_task(session.run())
        await asyncio.sleep(delay)
        await session.stop()
        await asyncio.wait_for(task, 1.0)
        assert session.connects >= 1

    asyncio.run(scenario())
