"""Per-user Web Push fan-out with expired-endpoint pruning."""

import asyncio
import json
from typing import Any, Protocol

import structlog

from pushrelay.notifications.dispatcher import DeliveryAttempt, PushDispatcher
from pushrelay.notifications.models import (
    BroadcastReport,
    DeliveryOutcome,
    DeliveryReport,
)
from pushrelay.notifications.store import PushSubscription

logger = structlog.get_logger()


class SubscriptionSource(Protocol):
    """The part of the subscription store the notifier needs."""

    def get_subscriptions_for_user(self, user_id: str) -> list[PushSubscription]: ...

    def delete(self, subscription_id: int) -> bool: ...


def build_payload(
    title: str,
    body: str | None = None,
    data: dict[str, Any] | None = None,
) -> bytes:
    """Serialize the notification as compact JSON, dropping unset fields."""
    message: dict[str, Any] = {"title": title}
    if body is not None:
        message["body"] = body
    if data is not None:
        message["data"] = data
    return json.dumps(message, separators=(",", ":")).encode()


class PushNotifier:
    """Deliver a notification to every device of a user.

    Dispatches run concurrently and independently: one
    endpoint failing or hanging never blocks the others.
    Endpoints the push service reports as gone are
    deleted from the store.
    """

    def __init__(
        self,
        store: SubscriptionSource,
        dispatcher: PushDispatcher,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher

    async def notify_user(
        self,
        user_id: str,
        title: str,
        body: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> DeliveryReport:
        """Send one message to all of a user's subscriptions.

        Returns:
            DeliveryReport with sent/total counts and one
            error string per failed subscription.

        Raises:
            ValueError: If user_id or title is empty.
        """
        if not user_id or not title:
            raise ValueError("user_id and title are required")

        subs = await asyncio.to_thread(self._store.get_subscriptions_for_user, user_id)
        if not subs:
            logger.debug("push_no_subscriptions", user_id=user_id)
            return DeliveryReport()

        payload = build_payload(title, body, data)
        results = await asyncio.gather(
            *(self._deliver(sub, payload) for sub in subs),
            return_exceptions=True,
        )

        report = DeliveryReport(total=len(subs))
        for sub, result in zip(subs, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                report.errors.append(f"{sub.id}: {result}")
            elif result.outcome is DeliveryOutcome.DELIVERED:
                report.sent += 1
            elif result.outcome is DeliveryOutcome.FAILED:
                report.errors.append(f"{sub.id}: {result.detail}")

        logger.info(
            "push_user_notified",
            user_id=user_id,
            sent=report.sent,
            total=report.total,
            errors=len(report.errors),
        )
        return report

    async def _deliver(self, sub: PushSubscription, payload: bytes) -> DeliveryAttempt:
        """Dispatch one subscription and prune it if expired."""
        try:
            attempt = await self._dispatcher.send(sub, payload)
        except Exception:
            logger.exception("push_dispatch_error", subscription_id=sub.id)
            raise
        if attempt.outcome is DeliveryOutcome.EXPIRED:
            removed = await asyncio.to_thread(self._store.delete, sub.id)
            logger.info(
                "push_subscription_pruned",
                subscription_id=sub.id,
                user_id=sub.user_id,
                removed=removed,
            )
        return attempt

    async def notify_users(
        self,
        user_ids: list[str],
        title: str,
        body: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> BroadcastReport:
        """Notify each distinct user in turn (admin broadcast)."""
        report = BroadcastReport()
        for user_id in dict.fromkeys(u for u in user_ids if u):
            result = await self.notify_user(user_id, title, body, data)
            report.users += 1
            report.sent += result.sent
            report.total += result.total
            report.errors.extend(f"{user_id}: {e}" for e in result.errors)
        return report
