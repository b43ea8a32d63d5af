"""Unit tests for the Signal K delta stream."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import json

import pytest

from push_notifier.core.settings import SignalKSettings
from push_notifier.infra.signalk.stream import SignalKStream, decode_delta


def delta(path: str, value) -> str:
    return json.dumps(
        {
            "context": "vessels.urn:mrn:imo:mmsi:123456789",
            "updates": [{"source": {"label": "n2k"}, "values": [{"path": path, "value": value}]}],
        }
    )


class FakeSocket:
    """Websocket double: yields queued messages, then stays open."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        self.sent: list[dict] = []
        self._hold = asyncio.Event()

    async def send(self, raw: str) -> None:
        self.sent.append(json.loads(raw))

    async def __aiter__(self):
        for message in self.messages:
            yield message
        await self._hold.wait()


def fake_connector(socket: FakeSocket, calls: list):
    @asynccontextmanager
    async def connect(url, **kwargs):
        calls.append((url, kwargs))
        yield socket

    return connect


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.unit
class TestDecodeDelta:
    def test_extracts_path_value_pairs(self):
        assert decode_delta(delta("notifications.a", {"state": "alarm"})) == [
            ("notifications.a", {"state": "alarm"})
        ]

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            json.dumps({"name": "signalk-server", "version": "2.0.0", "self": "vessels.self"}),
            json.dumps([1, 2]),
            json.dumps({"updates": [{"values": [{"value": 1}]}]}),
        ],
    )
    def test_non_deltas_yield_nothing(self, raw):
        assert decode_delta(raw) == []


@pytest.mark.unit
class TestSignalKStream:
    """Subscriptions, dispatch and the connection loop."""

    def test_subscription_messages(self):
        stream = SignalKStream(SignalKSettings())

        assert stream.subscribe_message(["notifications.a"]) == {
            "context": "vessels.self",
            "subscribe": [{"path": "notifications.a", "policy": "instant"}],
        }
        assert stream.unsubscribe_message(["notifications.a"]) == {
            "context": "vessels.self",
            "unsubscribe": [{"path": "notifications.a"}],
        }

    @pytest.mark.asyncio
    async def test_dispatch_reaches_every_handler_on_path(self):
        stream = SignalKStream(SignalKSettings())
        received: list[tuple[str, object]] = []

        async def first(value):
            received.append(("first", value))

        async def second(value):
            received.append(("second", value))

        stream.subscribe("notifications.a", first)
        stream.subscribe("notifications.a", second)
        stream.subscribe("notifications.b", first)

        assert stream.dispatch(delta("notifications.a", 1)) == 2
        await settle()

        assert sorted(received) == [("first", 1), ("second", 1)]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        stream = SignalKStream(SignalKSettings())
        received = []

        async def broken(value):
            raise RuntimeError("boom")

        async def working(value):
            received.append(value)

        stream.subscribe("notifications.a", broken)
        stream.subscribe("notifications.a", working)

        stream.dispatch(delta("notifications.a", 1))
        await settle()

        assert received == [1]

    @pytest.mark.asyncio
    async def test_values_on_one_path_run_in_order(self):
        stream = SignalKStream(SignalKSettings())
        release = asyncio.Event()
        events: list[tuple[str, object]] = []

        async def slow(value):
            events.append(("start", value))
            await release.wait()
            events.append(("end", value))

        async def other(value):
            events.append(("other", value))

        stream.subscribe("notifications.a", slow)
        stream.subscribe("notifications.b", other)

        stream.dispatch(delta("notifications.a", 1))
        stream.dispatch(delta("notifications.a", 2))
        stream.dispatch(delta("notifications.b", 3))
        await settle()

        assert events == [("start", 1), ("other", 3)]

        release.set()
        await settle()

        assert events == [("start", 1), ("other", 3), ("end", 1), ("start", 2), ("end", 2)]

    @pytest.mark.asyncio
    async def test_unsubscribe_drops_path_when_last_handler_leaves(self):
        stream = SignalKStream(SignalKSettings())

        async def handler(value):
            pass

        unsubscribe = stream.subscribe("notifications.a", handler)
        unsubscribe()
        unsubscribe()

        assert stream.paths == set()

    @pytest.mark.asyncio
    async def test_connection_subscribes_and_dispatches(self):
        socket = FakeSocket([delta("notifications.a", {"state": "alarm"})])
        calls: list = []
        stream = SignalKStream(SignalKSettings(base_url="http://signalk.test"), connector=fake_connector(socket, calls))
        received = []

        async def handler(value):
            received.append(value)

        stream.subscribe("notifications.a", handler)
        await stream.start()
        await settle()

        assert calls[0][0] == "ws://signalk.test/signalk/v1/stream?subscribe=none"
        assert socket.sent == [stream.subscribe_message(["notifications.a"])]
        assert received == [{"state": "alarm"}]

        stream.subscribe("notifications.b", handler)
        await settle()
        assert socket.sent[-1] == stream.subscribe_message(["notifications.b"])

        await stream.close()

    def test_secure_stream_uses_tls_context(self):
        stream = SignalKStream(SignalKSettings(base_url="https://boat.local:3443", verify_tls=False))

        kwargs = stream._connect_kwargs()

        assert kwargs["ssl"].check_hostname is False
        assert "additional_headers" not in kwargs
