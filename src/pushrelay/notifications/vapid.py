"""VAPID key management for Web Push."""

from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from pushrelay.notifications.encoding import b64url_decode, b64url_encode
from pushrelay.notifications.signer import CryptographySigner, EcdsaSigner

PUBLIC_KEY_LEN = 65
PRIVATE_KEY_LEN = 32


class VapidKeyError(ValueError):
    """VAPID key material is missing or malformed."""


@dataclass(frozen=True)
class VapidKeys:
    """Application server key pair, loaded once at startup.

    ``public_key`` is the raw uncompressed point
    (``0x04 || X || Y``); ``private_key`` is whatever
    handle the signer adapter returned.
    """

    public_key: bytes
    private_key: Any

    @property
    def application_server_key(self) -> str:
        """Public key as unpadded URL-safe base64."""
        return b64url_encode(self.public_key)


def jwk_from_raw(public_key: bytes, private_key: bytes) -> dict[str, str]:
    """Build a P-256 JWK from the raw public point and scalar."""
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": b64url_encode(public_key[1:33]),
        "y": b64url_encode(public_key[33:65]),
        "d": b64url_encode(private_key),
    }


def _decode_key(name: str, value: str | None, length: int) -> bytes:
    if not value or not value.strip():
        raise VapidKeyError(f"{name} is not configured")
    try:
        raw = b64url_decode(value)
    except ValueError as e:
        raise VapidKeyError(f"{name} is not valid base64url") from e
    if len(raw) != length:
        raise VapidKeyError(f"{name} must decode to {length} bytes, got {len(raw)}")
    return raw


def load_vapid_keys(
    public_key: str | None,
    private_key: str | None,
    signer: EcdsaSigner | None = None,
) -> VapidKeys:
    """Load the VAPID key pair from its base64url text form.

    Args:
        public_key: 65-byte uncompressed P-256 point, base64url.
        private_key: 32-byte private scalar ``d``, base64url.
        signer: Adapter used to import the key. Defaults
            to ``CryptographySigner``.

    Returns:
        VapidKeys ready for signing.

    Raises:
        VapidKeyError: If either key is missing, malformed,
            or the two do not form a matching pair.
    """
    public_raw = _decode_key("VAPID_PUBLIC_KEY", public_key, PUBLIC_KEY_LEN)
    private_raw = _decode_key("VAPID_PRIVATE_KEY", private_key, PRIVATE_KEY_LEN)
    if public_raw[0] != 0x04:
        raise VapidKeyError("VAPID_PUBLIC_KEY must be an uncompressed point (0x04 prefix)")

    signer = signer or CryptographySigner()
    try:
        handle = signer.import_private_key(jwk_from_raw(public_raw, private_raw))
    except ValueError as e:
        raise VapidKeyError(f"VAPID key pair rejected: {e}") from e
    return VapidKeys(public_key=public_raw, private_key=handle)


def generate_vapid_keys() -> tuple[str, str]:
    """Generate a new P-256 key pair.

    Returns:
        (public_key, private_key) in the base64url form
        read by ``load_vapid_keys``.
    """
    key = ec.generate_private_key(ec.SECP256R1())
    public_raw = key.public_key().public_bytes(
        encoding=Encoding.X962,
        format=PublicFormat.UncompressedPoint,
    )
    private_raw = key.private_numbers().private_value.to_bytes(PRIVATE_KEY_LEN, "big")
    return b64url_encode(public_raw), b64url_encode(private_raw)
