"""URL-safe base64 helpers used by VAPID and JWT framing."""

import base64
import binascii
import re

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded URL-safe base64."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(text: str) -> bytes:
    """Decode URL-safe base64, with or without ``=`` padding.

    Raises:
        ValueError: If text is not valid base64url.
    """
    cleaned = text.strip().rstrip("=")
    if not _B64URL_RE.fullmatch(cleaned):
        raise ValueError("Invalid base64url: unexpected characters")
    if len(cleaned) % 4 == 1:
        raise ValueError(f"Invalid base64url length: {len(cleaned)}")
    padded = cleaned + "=" * (-len(cleaned) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64url: {e}") from e
