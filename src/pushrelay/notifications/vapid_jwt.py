"""Compact ES256 JWT construction for VAPID authorization."""

import json
import time

from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
)

from pushrelay.notifications.encoding import b64url_encode
from pushrelay.notifications.signer import EcdsaSigner
from pushrelay.notifications.vapid import VapidKeys

JWT_HEADER = {"typ": "JWT", "alg": "ES256"}
DEFAULT_EXPIRES_IN = 12 * 3600
COORD_LEN = 32
RAW_SIGNATURE_LEN = 2 * COORD_LEN


class VapidSignatureError(ValueError):
    """A signature could not be converted to JWS form."""


def _segment(obj: dict) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode())


def raw_signature(signature: bytes) -> bytes:
    """Normalize an ECDSA signature to the 64-byte ``r||s`` JWS form.

    A 64-byte input is already raw and returned as-is.
    Anything else is parsed as DER and each integer is
    left-padded to 32 bytes; DER may encode either
    integer in 31, 32 or 33 bytes.

    Raises:
        VapidSignatureError: On malformed DER or an
            integer wider than 32 bytes.
    """
    if len(signature) == RAW_SIGNATURE_LEN:
        return signature
    try:
        r, s = decode_dss_signature(signature)
    except ValueError as e:
        raise VapidSignatureError(f"Malformed DER signature: {e}") from e
    try:
        return r.to_bytes(COORD_LEN, "big") + s.to_bytes(COORD_LEN, "big")
    except OverflowError as e:
        raise VapidSignatureError("Signature integer exceeds 32 bytes") from e


def create_vapid_jwt(
    audience: str,
    subject: str,
    keys: VapidKeys,
    signer: EcdsaSigner,
    now: float | None = None,
    expires_in: int = DEFAULT_EXPIRES_IN,
) -> str:
    """Sign a VAPID JWT for one push service origin.

    Args:
        audience: Origin of the push endpoint
            (``scheme://host``).
        subject: ``mailto:`` or ``https:`` operator contact.
        keys: Application server key pair.
        signer: Adapter holding the ES256 primitive.
        now: Unix time to sign at. Defaults to the
            current time.
        expires_in: Seconds until ``exp``.

    Returns:
        ``header.claims.signature``, each base64url.
    """
    issued = int(time.time() if now is None else now)
    claims = {"aud": audience, "sub": subject, "exp": issued + expires_in}
    signing_input = f"{_segment(JWT_HEADER)}.{_segment(claims)}"
    signature = signer.sign_es256(keys.private_key, signing_input.encode("ascii"))
    return f"{signing_input}.{b64url_encode(raw_signature(signature))}"


def vapid_authorization(token: str, keys: VapidKeys) -> str:
    """``Authorization`` header value for a signed token."""
    return f"vapid t={token}, k={keys.application_server_key}"
