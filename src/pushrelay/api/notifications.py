"""Push notification API endpoints."""

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pushrelay.notifications.models import (
    BroadcastReport,
    DeliveryReport,
    SubscriptionStats,
)

logger = structlog.get_logger()

router = APIRouter()


class SendRequest(BaseModel):
    # Optional so missing fields map to 400 rather than 422.
    user_id: str | None = None
    title: str | None = None
    body: str | None = None
    data: dict[str, Any] | None = None


class BroadcastRequest(BaseModel):
    title: str | None = None
    body: str | None = None
    data: dict[str, Any] | None = None
    user_ids: list[str] | None = None


class SubscribeRequest(BaseModel):
    user_id: str
    endpoint: str
    p256dh: str
    auth: str


class UnsubscribeRequest(BaseModel):
    user_id: str
    endpoint: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/send", response_model=DeliveryReport)
async def send(body: SendRequest, request: Request) -> DeliveryReport | JSONResponse:
    """Deliver a notification to every device of one user."""
    if not (body.user_id and body.user_id.strip()) or not (
        body.title and body.title.strip()
    ):
        return _error(400, "user_id and title are required")
    try:
        notifier = request.app.state.push_notifier
        return await notifier.notify_user(
            body.user_id,
            body.title,
            body=body.body,
            data=body.data,
        )
    except Exception as e:
        logger.exception("push_send_error", user_id=body.user_id)
        return _error(500, str(e))


@router.post("/broadcast", response_model=BroadcastReport)
async def broadcast(
    body: BroadcastRequest, request: Request
) -> BroadcastReport | JSONResponse:
    """Notify a list of users, or every subscribed user."""
    if not (body.title and body.title.strip()):
        return _error(400, "title is required")
    try:
        user_ids = body.user_ids
        if user_ids is None:
            user_ids = await asyncio.to_thread(request.app.state.push_store.user_ids)
        notifier = request.app.state.push_notifier
        return await notifier.notify_users(
            user_ids,
            body.title,
            body=body.body,
            data=body.data,
        )
    except Exception as e:
        logger.exception("push_broadcast_error")
        return _error(500, str(e))


@router.get("/vapid-key")
async def vapid_key(request: Request) -> dict:
    """Return the VAPID application server key."""
    return {"public_key": request.app.state.vapid_public_key}


@router.post("/subscribe", status_code=201)
async def subscribe(body: SubscribeRequest, request: Request) -> dict:
    """Register (or refresh) a browser push subscription."""
    store = request.app.state.push_store
    sub = await asyncio.to_thread(
        store.subscribe,
        user_id=body.user_id,
        endpoint=body.endpoint,
        p256dh=body.p256dh,
        auth=body.auth,
    )
    return {"ok": True, "id": sub.id}


@router.post("/unsubscribe")
async def unsubscribe(body: UnsubscribeRequest, request: Request) -> dict:
    """Remove a user's subscription for an endpoint."""
    store = request.app.state.push_store
    removed = await asyncio.to_thread(
        store.unsubscribe, user_id=body.user_id, endpoint=body.endpoint
    )
    return {"ok": True, "removed": removed}


@router.get("/stats")
async def stats(request: Request) -> SubscriptionStats:
    """Subscription counts for the admin dashboard."""
    return await asyncio.to_thread(request.app.state.push_store.stats)
