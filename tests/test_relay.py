"""Unit tests for the EventRelay class."""

import pytest

from cardrelay.models import events
from cardrelay.models.client import Role


@pytest.mark.asyncio
async def test_connect_pushes_nothing(relay, connect):
    """Test that a new connection only receives status when it asks."""
    observer = connect("a")
    assert observer.sent == []
    assert "a" in relay.connections


@pytest.mark.asyncio
async def test_get_status_is_targeted(relay, connect, send):
    """Test that get-nfc-status answers only the requester."""
    a = connect("a")
    b = connect("b")

    await send("a", events.GET_NFC_STATUS)

    assert a.received(events.NFC_READER_STATUS) == [relay.status_store.get_status().to_dict()]
    assert b.sent == []


@pytest.mark.asyncio
async def test_status_update_is_broadcast_to_everyone(relay, connect, send, clock):
    """Test that the merged status reaches all connections, sender included."""
    reader = connect("reader")
    a = connect("a")

    clock.now = 2000
    await send("reader", events.NFC_READER_STATUS, {"status": "connected", "reader": "R1"})

    expected = {"status": "connected", "reader": "R1", "error": None, "timestamp": 2000}
    assert a.received(events.NFC_READER_STATUS) == [expected]
    assert reader.received(events.NFC_READER_STATUS) == [expected]
    assert reader.client.role is Role.READER


@pytest.mark.asyncio
async def test_late_joiner_gets_current_not_default(relay, connect, send, clock):
    """Test that a connection made after updates sees the latest value."""
    connect("reader")
    clock.now = 2000
    await send("reader", events.NFC_READER_STATUS, {"status": "connected", "reader": "R1"})
    clock.now = 3000
    await send("reader", events.NFC_READER_STATUS, {"error": "antenna"})

    late = connect("late")
    await send("late", events.GET_NFC_STATUS)

    assert late.sent == [(events.NFC_READER_STATUS, {
        "status": "connected", "reader": "R1", "error": "antenna", "timestamp": 3000,
    })]


@pytest.mark.asyncio
async def test_disconnected_connection_gets_nothing(relay, connect, send):
    gone = connect("gone")
    connect("reader")
    relay.disconnect("gone")

    await send("reader", events.NFC_SWIPE, {"uid": "04A1"})

    assert gone.sent == []
    assert "gone" not in relay.connections


@pytest.mark.asyncio
async def test_broadcast_survives_failing_connection(relay, connect, broken_connection):
    """Test that one failing transport does not stop the fan-out."""
    a = connect("a")
    b = connect("b")

    delivered = await relay.broadcast(events.NFC_SWIPE_END, {"uid": "04A1"})

    assert delivered == 2
    assert a.received(events.NFC_SWIPE_END) == [{"uid": "04A1"}]
    assert b.received(events.NFC_SWIPE_END) == [{"uid": "04A1"}]


@pytest.mark.asyncio
async def test_broadcast_filters_by_role(relay, connect):
    reader = connect("reader", Role.READER)
    browser = connect("browser", Role.CLIENT)

    await relay.broadcast("ping", {}, roles=[Role.READER])

    assert reader.sent == [("ping", {})]
    assert browser.sent == []


@pytest.mark.asyncio
async def test_send_to_unknown_connection_is_noop(relay):
    assert await relay.send_to("nobody", events.CARD_WRITE_SUCCESS, {}) is False


@pytest.mark.asyncio
async def test_malformed_frame_is_rejected_to_sender(relay, connect):
    a = connect("a")
    b = connect("b")

    await relay.handle_message("a", "{not json")

    assert len(a.received(events.INVALID_PAYLOAD)) == 1
    assert a.received(events.INVALID_PAYLOAD)[0]["event"] is None
    assert b.sent == []


@pytest.mark.asyncio
async def test_unknown_event_is_rejected(relay, connect, send):
    a = connect("a")

    await send("a", "self-destruct", {})

    rejection = a.received(events.INVALID_PAYLOAD)[0]
    assert rejection["event"] == "self-destruct"
    assert a.client.role is Role.UNKNOWN


@pytest.mark.asyncio
async def test_invalid_payload_does_not_touch_state(relay, connect, send):
    """Test that a swipe without a UID is refused and not broadcast."""
    reader = connect("reader")
    a = connect("a")

    await send("reader", events.NFC_SWIPE, {"reader": "R1"})
    await send("reader", events.NFC_READER_STATUS, "connected")

    assert [r["event"] for r in reader.received(events.INVALID_PAYLOAD)] == [
        events.NFC_SWIPE, events.NFC_READER_STATUS,
    ]
    assert a.sent == []
    assert relay.status_store.get_status().status == "disconnected"


@pytest.mark.asyncio
async def test_handler_error_is_contained(relay, connect, send, monkeypatch):
    """Test that an unexpected handler error is logged and the relay keeps working."""
    a = connect("a")

    async def explode(payload):
        raise RuntimeError("boom")

    monkeypatch.setattr(relay.swipes, "on_swipe", explode)
    await send("a", events.NFC_SWIPE, {"uid": "04A1"})
    await send("a", events.GET_NFC_STATUS)

    assert [name for name, _ in a.sent] == [events.NFC_READER_STATUS]


@pytest.mark.asyncio
async def test_message_from_unregistered_client_is_ignored(relay):
    await relay.handle_message("ghost", '{"event": "get-nfc-status"}')
    assert relay.connections == {}


def test_count_by_role(relay, connect):
    connect("r1", Role.READER)
    connect("c1", Role.CLIENT)
    connect("c2", Role.CLIENT)
    assert relay.count(Role.READER) == 1
    assert relay.count(Role.CLIENT) == 2


def test_stale_disconnect_keeps_newer_registration(relay, connect):
    """Test that a closing session cannot remove a newer one that reused its ID."""
    first = connect("a")
    second = connect("a")

    relay.disconnect("a", first)
    assert relay.connections["a"] is second

    relay.disconnect("a", second)
    assert "a" not in relay.connections
