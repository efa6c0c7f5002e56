from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from dotenv import load_dotenv
from fastapi import FastAPI

from pushrelay.api.router import api_router
from pushrelay.config import Settings, get_settings
from pushrelay.notifications.dispatcher import PushDispatcher
from pushrelay.notifications.push import PushNotifier
from pushrelay.notifications.signer import CryptographySigner
from pushrelay.notifications.store import (
    PushSubscriptionStore,
)
from pushrelay.notifications.vapid import (
    VapidKeyError,
    load_vapid_keys,
)

logger = structlog.get_logger()

load_dotenv()


def build_notifier(
    settings: Settings,
    store: PushSubscriptionStore,
    client: httpx.AsyncClient,
) -> tuple[PushNotifier, str]:
    """Wire VAPID keys, dispatcher and notifier from settings.

    Returns:
        (notifier, application_server_key)

    Raises:
        VapidKeyError: If the configured keys are unusable.
    """
    signer = CryptographySigner()
    keys = load_vapid_keys(
        settings.vapid_public_key,
        settings.vapid_private_key,
        signer=signer,
    )
    dispatcher = PushDispatcher(
        keys=keys,
        subject=settings.vapid_subject,
        client=client,
        signer=signer,
        ttl=settings.push_ttl_s,
    )
    return PushNotifier(store=store, dispatcher=dispatcher), keys.application_server_key


@asynccontextmanager
async def lifespan(
    app: FastAPI,
) -> AsyncGenerator[None]:
    settings = get_settings()
    logger.info("starting_up", version=settings.app_version)

    push_store = PushSubscriptionStore(settings.db_path)
    client = httpx.AsyncClient(timeout=settings.push_timeout_s)
    try:
        notifier, vapid_public_key = build_notifier(settings, push_store, client)
    except VapidKeyError as e:
        logger.error("vapid_keys_invalid", error=str(e))
        await client.aclose()
        push_store.close()
        raise
    logger.info("push_notifications_enabled", subject=settings.vapid_subject)

    app.state.push_store = push_store
    app.state.push_notifier = notifier
    app.state.vapid_public_key = vapid_public_key

    yield

    await client.aclose()
    push_store.close()
    logger.info("shutting_down")


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("pushrelay.main:app", host="0.0.0.0", port=8000)
