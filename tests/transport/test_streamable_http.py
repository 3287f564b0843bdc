# tests/transport/test_streamable_http.py
"""
Transport-level tests: dispatch, replay and tail over a session's event stream.
"""
import asyncio

import pytest

from mcp_widget_runtime.common.errors import SessionNotFound
from mcp_widget_runtime.transport.event_store import GET_STREAM_ID
from mcp_widget_runtime.transport.streamable_http import StreamableHTTPTransport


def _ping(n):
    return {"jsonrpc": "2.0", "id": n, "method": "ping"}


@pytest.fixture
def transport(event_store, protocol_server):
    t = StreamableHTTPTransport("sess-1", event_store)
    t.connect(protocol_server)
    return t


async def _collect(agen):
    return [entry async for entry in agen]


def test_connect_binds_session_id(transport, protocol_server):
    assert transport.server is protocol_server
    assert protocol_server.session_id == "sess-1"
    assert transport.event_store.get("sess-1") is transport.stream


@pytest.mark.asyncio
async def test_dispatch_records_replies_in_order(transport):
    sent = await transport.dispatch([_ping(1), _ping(2)], "post-a")

    assert [e.sequence for e in sent] == [1, 2]
    assert [e.message["id"] for e in sent] == [1, 2]
    assert {e.stream_id for e in sent} == {"post-a"}
    assert transport.replay(0) == sent


@pytest.mark.asyncio
async def test_sequences_are_shared_across_streams(transport):
    await transport.dispatch([_ping(1)], "post-a")
    await transport.dispatch([_ping(2)], "post-b")
    await transport.dispatch([_ping(3)], "post-a")

    assert [e.sequence for e in transport.replay(0, "post-a")] == [1, 3]
    assert [e.sequence for e in transport.replay(0, "post-b")] == [2]
    assert transport.stream.stream_of(2) == "post-b"
    assert transport.stream.stream_of(99) is None


@pytest.mark.asyncio
async def test_notifications_produce_no_events(transport):
    sent = await transport.dispatch([{"jsonrpc": "2.0", "method": "notifications/initialized"}], "post-a")
    assert sent == []
    assert transport.stream.last_sequence == 0


@pytest.mark.asyncio
async def test_replay_after_disconnect_returns_only_missed_messages(transport):
    await transport.dispatch([_ping(1), _ping(2), _ping(3)], "post-a")

    missed = transport.replay(1, "post-a")
    assert [e.sequence for e in missed] == [2, 3]
    assert [e.message["id"] for e in missed] == [2, 3]


@pytest.mark.asyncio
async def test_get_tail_never_carries_post_responses(transport):
    received = []

    async def consume():
        async for entry in transport.tail(transport.stream.last_sequence):
            received.append(entry.message)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    sent = await transport.dispatch([_ping(7)], "post-a")
    await asyncio.sleep(0.01)
    transport.terminate()
    await asyncio.wait_for(task, timeout=1.0)

    assert sent[0].message == {"jsonrpc": "2.0", "id": 7, "result": {}}
    assert received == []


@pytest.mark.asyncio
async def test_get_tail_follows_standalone_stream(transport):
    await transport.dispatch([_ping(1)], GET_STREAM_ID)
    received = []

    async def consume():
        async for entry in transport.tail(0):
            received.append(entry.sequence)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    await transport.dispatch([_ping(2)], "post-a")
    await transport.dispatch([_ping(3)], GET_STREAM_ID)
    await asyncio.sleep(0.01)
    transport.terminate()
    await asyncio.wait_for(task, timeout=1.0)

    assert received == [1, 3]


@pytest.mark.asyncio
async def test_resuming_a_post_stream_replays_and_ends(transport):
    await transport.dispatch([_ping(1), _ping(2), _ping(3)], "post-a")
    await transport.dispatch([_ping(4)], "post-b")

    entries = await asyncio.wait_for(_collect(transport.tail(1, "post-a", follow=False)), timeout=1.0)
    assert [e.sequence for e in entries] == [2, 3]


@pytest.mark.asyncio
async def test_termination_during_dispatch_reports_missing_session(event_store):
    class EvictingServer:
        session_id = None

        def __init__(self):
            self.transport = None

        async def handle_message(self, message):
            self.transport.terminate()
            return {"jsonrpc": "2.0", "id": message["id"], "result": {}}

    server = EvictingServer()
    t = StreamableHTTPTransport("sess-gone", event_store)
    t.connect(server)
    server.transport = t

    with pytest.raises(SessionNotFound):
        await t.dispatch([_ping(1)], "post-a")
    assert event_store.get("sess-gone") is None


@pytest.mark.asyncio
async def test_close_terminates_and_notifies_owner(event_store, protocol_server):
    closed = []
    t = StreamableHTTPTransport("sess-2", event_store, on_close=closed.append)
    t.connect(protocol_server)

    await t.close()
    await t.close()

    assert t.terminated
    assert closed == ["sess-2"]
    assert event_store.get("sess-2") is None


def test_terminate_is_idempotent(transport, event_store):
    transport.terminate()
    transport.terminate()
    assert transport.terminated
    assert event_store.get("sess-1") is None
