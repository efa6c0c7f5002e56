"""Tests for notification API endpoints."""

import threading

import httpx
import pytest
import pytest_asyncio

from pushrelay.main import app
from pushrelay.notifications.dispatcher import PushDispatcher
from pushrelay.notifications.push import PushNotifier
from pushrelay.notifications.store import (
    PushSubscriptionStore,
)
from tests.conftest import SUBJECT


@pytest.fixture
def push_requests():
    """Requests seen by the fake push service."""
    return []


@pytest_asyncio.fixture
async def client(tmp_path, vapid_keys, signer, push_requests):
    """Client with real push store and a faked push service on app.state."""

    def push_service(request):
        push_requests.append(request)
        if request.url.path.startswith("/gone"):
            return httpx.Response(410)
        return httpx.Response(201)

    store = PushSubscriptionStore(tmp_path / "push.db")
    dispatcher = PushDispatcher(
        keys=vapid_keys,
        subject=SUBJECT,
        client=httpx.AsyncClient(transport=httpx.MockTransport(push_service)),
        signer=signer,
    )
    app.state.push_store = store
    app.state.push_notifier = PushNotifier(store=store, dispatcher=dispatcher)
    app.state.vapid_public_key = vapid_keys.application_server_key

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    store.close()


async def _subscribe(client, user_id, endpoint):
    return await client.post(
        "/api/v1/notifications/subscribe",
        json={
            "user_id": user_id,
            "endpoint": endpoint,
            "p256dh": "k",
            "auth": "a",
        },
    )


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_vapid_key(client, vapid_keys):
    resp = await client.get("/api/v1/notifications/vapid-key")
    assert resp.status_code == 200
    assert resp.json()["public_key"] == vapid_keys.application_server_key


@pytest.mark.asyncio
async def test_subscribe_and_stats(client):
    resp = await _subscribe(client, "u1", "https://push.example.com/1")
    assert resp.status_code == 201
    assert resp.json()["ok"] is True

    resp = await client.get("/api/v1/notifications/stats")
    assert resp.status_code == 200
    assert resp.json() == {"total_subscriptions": 1, "unique_users": 1}


@pytest.mark.asyncio
async def test_unsubscribe(client):
    await _subscribe(client, "u1", "https://push.example.com/1")
    resp = await client.post(
        "/api/v1/notifications/unsubscribe",
        json={"user_id": "u1", "endpoint": "https://push.example.com/1"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "removed": True}

    resp = await client.get("/api/v1/notifications/stats")
    assert resp.json()["total_subscriptions"] == 0


@pytest.mark.asyncio
async def test_send(client, push_requests):
    await _subscribe(client, "u1", "https://push.example.com/1")
    await _subscribe(client, "u1", "https://push.example.com/gone/2")

    resp = await client.post(
        "/api/v1/notifications/send",
        json={"user_id": "u1", "title": "Order ready", "data": {"order": 7}},
    )
    assert resp.status_code == 200
    assert resp.json() == {"sent": 1, "total": 2, "errors": []}
    assert len(push_requests) == 2

    resp = await client.get("/api/v1/notifications/stats")
    assert resp.json()["total_subscriptions"] == 1


@pytest.mark.asyncio
async def test_send_without_subscriptions(client, push_requests):
    resp = await client.post(
        "/api/v1/notifications/send",
        json={"user_id": "u1", "title": "Hi"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"sent": 0, "total": 0, "errors": []}
    assert push_requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"title": "Hi"},
        {"user_id": "u1"},
        {"user_id": "", "title": "Hi"},
        {"user_id": "u1", "title": "   "},
        {},
    ],
)
async def test_send_requires_user_and_title(client, push_requests, payload):
    resp = await client.post("/api/v1/notifications/send", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"error": "user_id and title are required"}
    assert push_requests == []


@pytest.mark.asyncio
async def test_send_internal_error(client):
    class BrokenNotifier:
        async def notify_user(self, *args, **kwargs):
            raise RuntimeError("store unavailable")

    app.state.push_notifier = BrokenNotifier()
    resp = await client.post(
        "/api/v1/notifications/send",
        json={"user_id": "u1", "title": "Hi"},
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "store unavailable"}


@pytest.mark.asyncio
async def test_broadcast_all_subscribers(client, push_requests):
    await _subscribe(client, "u1", "https://push.example.com/1")
    await _subscribe(client, "u2", "https://push.example.com/2")
    await _subscribe(client, "u2", "https://push.example.com/3")

    resp = await client.post(
        "/api/v1/notifications/broadcast",
        json={"title": "Store closing early"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"users": 2, "sent": 3, "total": 3, "errors": []}
    assert len(push_requests) == 3


@pytest.mark.asyncio
async def test_broadcast_selected_users(client, push_requests):
    await _subscribe(client, "u1", "https://push.example.com/1")
    await _subscribe(client, "u2", "https://push.example.com/2")

    resp = await client.post(
        "/api/v1/notifications/broadcast",
        json={"title": "Drivers wanted", "user_ids": ["u2"]},
    )
    assert resp.json() == {"users": 1, "sent": 1, "total": 1, "errors": []}
    assert [str(r.url) for r in push_requests] == ["https://push.example.com/2"]


@pytest.mark.asyncio
async def test_broadcast_requires_title(client):
    resp = await client.post("/api/v1/notifications/broadcast", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "title is required"}


@pytest.mark.asyncio
async def test_store_calls_run_off_event_loop(client, tmp_path):
    loop_thread = threading.get_ident()
    calls = []

    class RecordingStore(PushSubscriptionStore):
        def subscribe(self, *args, **kwargs):
            calls.append(("subscribe", threading.get_ident()))
            return super().subscribe(*args, **kwargs)

        def unsubscribe(self, *args, **kwargs):
            calls.append(("unsubscribe", threading.get_ident()))
            return super().unsubscribe(*args, **kwargs)

        def user_ids(self):
            calls.append(("user_ids", threading.get_ident()))
            return super().user_ids()

        def stats(self):
            calls.append(("stats", threading.get_ident()))
            return super().stats()

    store = RecordingStore(tmp_path / "recording.db")
    app.state.push_store = store
    app.state.push_notifier._store = store

    await _subscribe(client, "u1", "https://push.example.com/1")
    await client.get("/api/v1/notifications/stats")
    await client.post("/api/v1/notifications/broadcast", json={"title": "Hi"})
    await client.post(
        "/api/v1/notifications/unsubscribe",
        json={"user_id": "u1", "endpoint": "https://push.example.com/1"},
    )
    store.close()

    assert [name for name, _ in calls] == [
        "subscribe",
        "stats",
        "user_ids",
        "unsubscribe",
    ]
    assert all(ident != loop_thread for _, ident in calls)
