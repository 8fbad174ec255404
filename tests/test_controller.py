import asyncio

import pytest

from motor_relay.core.controller import DeviceController
from motor_relay.core.state import Command, DeviceState


def submit(controller, action, value=None, origin="local"):
    return asyncio.run(controller.submit(Command(action, value), origin))


@pytest.mark.parametrize(
    "action, value",
    [("START", 800), ("START", "x"), ("STOP", None), ("DIR", 0), ("ENA", 1), ("SET_SPEED", 400), ("NOPE", 1), (None, None)],
)
def test_every_submit_publishes_exactly_once(controller, publisher, action, value):
    state = submit(controller, action, value)

    assert len(publisher.published) == 1
    assert publisher.published[0] == state


def test_set_speed_while_running(controller, sink, store):
    submit(controller, "START", 800)
    sink.lines.clear()

    state = submit(controller, "SET_SPEED", 500)

    assert state.pulse_interval_us == 500
    assert state.active is True
    assert sink.lines == ["SET_SPEED 500"]
    assert store.current == state


def test_returned_state_is_a_copy(controller, store):
    state = submit(controller, "START", 800)
    state.active = False

    assert store.current.active is True


def test_events_for_applied_and_unknown(controller, store):
    submit(controller, "START", 800)
    submit(controller, "WHAT", None)
    submit(controller, "START", "soon")

    events, last_seq, overflow = store.events_since(0)
    types = [e.type for e in events]

    assert "COMMAND_APPLIED" in types
    assert "COMMAND_UNKNOWN" in types
    assert "COMMAND_IGNORED" in types
    # mock odsyła "OK START 800"
    assert any(e.type == "ACTUATOR_LINE" and e.message == "OK START 800" for e in events)
    assert last_seq == len(events)
    assert overflow is False


def test_closed_sink_still_updates_and_publishes(controller, sink, store, publisher):
    asyncio.run(sink.close())

    state = submit(controller, "START", 600)

    assert state.active is True
    assert len(publisher.published) == 1
    events, _, _ = store.events_since(0)
    assert [e.type for e in events] == ["COMMAND_APPLIED", "SINK_WRITE_FAILED"]


def test_without_publisher(store, sink):
    controller = DeviceController(store, sink)

    state = submit(controller, "ENA", 0)

    assert state.enabled is False
    assert asyncio.run(controller.publish()) is False


def test_origin_recorded_in_event(controller, store):
    submit(controller, "STOP", origin="relay")

    events, _, _ = store.events_since(0)
    assert events[-1].data["origin"] == "relay"
    assert events[-1].data["command"] == {"action": "STOP"}


def test_store_event_overflow():
    from motor_relay.core.state import Event, EventLevel
    from motor_relay.core.state_store import DeviceStateStore

    st = DeviceStateStore(DeviceState(), event_buffer_size=3)
    st.publish_events(
        [Event(ts=0.0, source="t", level=EventLevel.INFO, type="X", message=str(i)) for i in range(5)]
    )

    events, last_seq, overflow = st.events_since(0)
    assert [e.message for e in events] == ["2", "3", "4"]
    assert last_seq == 5
    assert overflow is True

    events, last_seq, overflow = st.events_since(5)
    assert events == []
    assert overflow is False


def test_events_since_returns_page(store):
    from motor_relay.core.state import Event, EventLevel

    last = store.publish_events(
        Event(ts=0.0, source="t", level=EventLevel.INFO, type="X", message=m) for m in ("a", "b")
    )

    page = store.events_since(1)
    assert last == 2
    assert [e.message for e in page.events] == ["b"]
    assert page.last_seq == 2
    assert page.overflow is False
    assert page.events[0].data == {"seq": 2}
