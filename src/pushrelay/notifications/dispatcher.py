"""Single-endpoint Web Push delivery with VAPID authorization."""

from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
import structlog

from pushrelay.notifications.models import DeliveryOutcome
from pushrelay.notifications.signer import EcdsaSigner
from pushrelay.notifications.store import PushSubscription
from pushrelay.notifications.vapid import VapidKeys
from pushrelay.notifications.vapid_jwt import (
    create_vapid_jwt,
    vapid_authorization,
)

logger = structlog.get_logger()

DEFAULT_TTL = 86400

_DELIVERED = {200, 201}
_GONE = {404, 410}
# Keep failure diagnostics short; push services can return HTML pages.
_MAX_BODY = 200


@dataclass
class DeliveryAttempt:
    """Outcome of one dispatch to one subscription."""

    subscription: PushSubscription
    outcome: DeliveryOutcome
    status_code: int | None = None
    detail: str = ""


def endpoint_audience(endpoint: str) -> str:
    """Origin of a push endpoint, used as the JWT ``aud``.

    Raises:
        ValueError: If the endpoint is not an absolute
            http(s) URL.
    """
    parts = urlsplit(endpoint)
    if parts.scheme not in ("https", "http") or not parts.hostname:
        raise ValueError(f"Invalid push endpoint: {endpoint!r}")
    host = parts.hostname
    if ":" in host:
        # IPv6 literal
        host = f"[{host}]"
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}"


def classify_status(status_code: int) -> DeliveryOutcome:
    """Map a push service response status to an outcome.

    401/403 mean our VAPID signature was rejected; they
    stay ``FAILED`` so a key problem never looks like the
    endpoint going away.
    """
    if status_code in _DELIVERED:
        return DeliveryOutcome.DELIVERED
    if status_code in _GONE:
        return DeliveryOutcome.EXPIRED
    return DeliveryOutcome.FAILED


class PushDispatcher:
    """Deliver one payload to one push endpoint.

    Never touches the subscription store; callers act on
    the returned outcome.
    """

    def __init__(
        self,
        keys: VapidKeys,
        subject: str,
        client: httpx.AsyncClient,
        signer: EcdsaSigner,
        ttl: int = DEFAULT_TTL,
    ) -> None:
        self._keys = keys
        self._subject = subject
        self._client = client
        self._signer = signer
        self._ttl = ttl

    def _headers(self, endpoint: str) -> dict[str, str]:
        token = create_vapid_jwt(
            audience=endpoint_audience(endpoint),
            subject=self._subject,
            keys=self._keys,
            signer=self._signer,
        )
        # Plaintext body: no Content-Encoding is sent.
        return {
            "Content-Type": "application/octet-stream",
            "TTL": str(self._ttl),
            "Authorization": vapid_authorization(token, self._keys),
        }

    async def send(self, sub: PushSubscription, payload: bytes) -> DeliveryAttempt:
        """POST payload to the subscription's endpoint and classify the result."""
        try:
            headers = self._headers(sub.endpoint)
        except ValueError as e:
            logger.warning("push_failed", subscription_id=sub.id, error=str(e))
            return DeliveryAttempt(sub, DeliveryOutcome.FAILED, detail=str(e))

        try:
            response = await self._client.post(
                sub.endpoint,
                content=payload,
                headers=headers,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            detail = str(e) or type(e).__name__
            logger.warning(
                "push_failed",
                subscription_id=sub.id,
                endpoint=sub.endpoint,
                error=detail,
            )
            return DeliveryAttempt(sub, DeliveryOutcome.FAILED, detail=detail)

        outcome = classify_status(response.status_code)
        if outcome is DeliveryOutcome.DELIVERED:
            logger.debug("push_sent", subscription_id=sub.id, endpoint=sub.endpoint)
            return DeliveryAttempt(sub, outcome, response.status_code)
        if outcome is DeliveryOutcome.EXPIRED:
            logger.info(
                "push_endpoint_gone",
                subscription_id=sub.id,
                endpoint=sub.endpoint,
                status=response.status_code,
            )
            return DeliveryAttempt(sub, outcome, response.status_code)

        body = response.text[:_MAX_BODY]
        logger.warning(
            "push_failed",
            subscription_id=sub.id,
            endpoint=sub.endpoint,
            status=response.status_code,
            body=body,
        )
        return DeliveryAttempt(
            sub,
            outcome,
            response.status_code,
            detail=f"{response.status_code} {body}".strip(),
        )
