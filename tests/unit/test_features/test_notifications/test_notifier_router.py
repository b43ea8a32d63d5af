"""Integration-style tests for the notifier HTTP endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
import pytest

from push_notifier.core.exceptions import StoreError
from push_notifier.features.notifications.channels.push import PushChannel, VapidDetails
from push_notifier.features.notifications.engine import DispatchEngine

from tests.doubles import PUSH_SUBSCRIPTION, RecordingMailChannel

PREFIX = "/plugins/push-notifier"


async def client_for(engine: DispatchEngine | None) -> AsyncClient:
    from push_notifier.app.main import create_app

    application = create_app()
    application.state.engine = engine
    return AsyncClient(transport=ASGITransport(app=application), base_url="http://test")


@pytest.mark.unit
class TestStatus:
    @pytest.mark.asyncio
    async def test_status_reports_connection_and_services(self, client):
        response = await client.get(f"{PREFIX}/status")

        assert response.status_code == 200
        assert response.json() == {"connection": "up", "services": ["email", "webpush"], "reason": None}

    @pytest.mark.asyncio
    async def test_status_down_with_reason(self, make_context):
        engine = DispatchEngine(make_context(mail=RecordingMailChannel(reachable=False)))
        await engine.start()

        async with await client_for(engine) as ac:
            response = await ac.get(f"{PREFIX}/status")

        assert response.json()["connection"] == "down"
        assert response.json()["reason"] == "connection refused"
        await engine.stop()

    @pytest.mark.asyncio
    async def test_missing_engine_is_unavailable(self):
        async with await client_for(None) as ac:
            response = await ac.get(f"{PREFIX}/status")

        assert response.status_code == 503
        assert response.text == "service unavailable (try again later)"


@pytest.mark.unit
class TestKeys:
    @pytest.mark.asyncio
    async def test_keys_lists_watch_paths(self, make_context, make_settings):
        settings = make_settings(paths=["restart:notifications.x", "a.b", "c.d", "a.b"])
        engine = DispatchEngine(make_context(settings))

        async with await client_for(engine) as ac:
            response = await ac.get(f"{PREFIX}/keys")

        assert response.status_code == 200
        assert response.json() == ["a.b", "c.d"]


@pytest.mark.unit
class TestSubscriptions:
    """Subscribe and unsubscribe."""

    @pytest.mark.asyncio
    async def test_subscribe_push_stores_fresh_record(self, client, store):
        await store.set("phone", {"subscription": {}, "sendFailureCount": 4})

        response = await client.post(f"{PREFIX}/subscribe/phone", json=PUSH_SUBSCRIPTION)

        assert response.status_code == 200
        assert await store.get("phone") == {"subscription": PUSH_SUBSCRIPTION, "sendFailureCount": 0}

    @pytest.mark.asyncio
    async def test_subscribe_mail(self, client, store):
        response = await client.post(f"{PREFIX}/subscribe/a@b.com", json={})

        assert response.status_code == 200
        assert "a@b.com" in store

    @pytest.mark.asyncio
    async def test_subscribe_requires_object_body(self, client, store):
        response = await client.post(f"{PREFIX}/subscribe/phone", json=["not", "an", "object"])

        assert response.status_code == 400
        assert "phone" not in store

    @pytest.mark.asyncio
    async def test_subscribe_blank_id(self, client):
        response = await client.post(f"{PREFIX}/subscribe/%20", json={})

        assert response.status_code == 400
        assert response.text == "400: invalid request"

    @pytest.mark.asyncio
    async def test_subscribe_store_failure(self, make_context):
        context = make_context()
        context.store = AsyncMock()
        context.store.set.side_effect = StoreError("resources API down")

        async with await client_for(DispatchEngine(context)) as ac:
            response = await ac.post(f"{PREFIX}/subscribe/phone", json=PUSH_SUBSCRIPTION)

        assert response.status_code == 503
        assert response.text == "503: cannot save subscription"

    @pytest.mark.asyncio
    async def test_unsubscribe(self, client, store):
        await store.set("phone", {"subscription": PUSH_SUBSCRIPTION, "sendFailureCount": 0})

        response = await client.delete(f"{PREFIX}/unsubscribe/phone")

        assert response.status_code == 200
        assert "phone" not in store

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown(self, client):
        response = await client.delete(f"{PREFIX}/unsubscribe/nobody")

        assert response.status_code == 404
        assert response.text == "404: unknown subscriber"

    @pytest.mark.asyncio
    async def test_unsubscribe_blank_id(self, client):
        response = await client.delete(f"{PREFIX}/unsubscribe/%20")

        assert response.status_code == 400
        assert response.text == "400: invalid request"


@pytest.mark.unit
class TestVapid:
    @pytest.mark.asyncio
    async def test_vapid_details(self, make_context):
        push = PushChannel(VapidDetails("private", "public", "mailto:boat@example.com"))
        engine = DispatchEngine(make_context(push=push))

        async with await client_for(engine) as ac:
            response = await ac.get(f"{PREFIX}/vapid")

        assert response.status_code == 200
        assert response.json() == {"publicKey": "public", "subject": "mailto:boat@example.com"}

    @pytest.mark.asyncio
    async def test_vapid_without_subject(self, make_context):
        engine = DispatchEngine(make_context(push=PushChannel(VapidDetails("private", "public"))))

        async with await client_for(engine) as ac:
            response = await ac.get(f"{PREFIX}/vapid")

        assert response.status_code == 404
        assert response.text == "not found"

    @pytest.mark.asyncio
    async def test_vapid_without_push_service(self, make_context, make_settings, store, stream):
        from push_notifier.features.notifications.engine import build_engine_context

        settings = make_settings(push_states=None)
        context = build_engine_context(settings, store, stream, mail=RecordingMailChannel())

        async with await client_for(DispatchEngine(context)) as ac:
            response = await ac.get(f"{PREFIX}/vapid")

        assert response.status_code == 500
        assert response.text == "internal server error"


@pytest.mark.unit
class TestPush:
    """PATCH /push/{id}."""

    @pytest.mark.asyncio
    async def test_push_to_subscriber(self, client, store, push_channel):
        await store.set("phone", {"subscription": PUSH_SUBSCRIPTION, "sendFailureCount": 0})

        response = await client.patch(
            f"{PREFIX}/push/phone",
            json={"state": "normal", "method": ["visual"], "message": "test"},
        )

        assert response.status_code == 200
        message, ids = push_channel.calls[0]
        assert ids == ["phone"]
        assert message.title == "NORMAL notification"

    @pytest.mark.asyncio
    async def test_push_unknown_subscriber(self, client):
        response = await client.patch(
            f"{PREFIX}/push/nobody",
            json={"state": "alarm", "method": "visual", "message": "test"},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_push_rejects_malformed_body(self, client, store):
        await store.set("phone", {"subscription": PUSH_SUBSCRIPTION, "sendFailureCount": 0})

        response = await client.patch(f"{PREFIX}/push/phone", json={"state": "panic", "method": "visual"})

        assert response.status_code == 400
        assert response.text == "bad request"


@pytest.mark.unit
class TestMetricsEndpoint:
    @pytest.mark.asyncio
    async def test_metrics_exposed(self, client):
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "push_notifier_deliveries_total" in response.text
