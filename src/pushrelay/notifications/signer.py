"""ECDSA P-256 signing adapters for VAPID."""

from abc import ABC, abstractmethod
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from pushrelay.notifications.encoding import b64url_decode


class EcdsaSigner(ABC):
    """Abstract base for ES256 signing backends.

    Backends differ in what ``sign_es256`` returns: some
    produce a DER ``SEQUENCE`` of two integers, others the
    fixed 64-byte ``r||s`` form. Callers normalize with
    ``vapid_jwt.raw_signature``.
    """

    @abstractmethod
    def import_private_key(self, jwk: dict[str, str]) -> Any:
        """Build a signing key handle from JWK ``x``/``y``/``d`` fields.

        Raises ValueError if the fields do not form a valid
        P-256 key pair.
        """

    @abstractmethod
    def sign_es256(self, key: Any, data: bytes) -> bytes:
        """Sign data with ECDSA over P-256 using SHA-256."""


class CryptographySigner(EcdsaSigner):
    """Signer backed by ``cryptography``. Returns DER signatures."""

    def import_private_key(self, jwk: dict[str, str]) -> ec.EllipticCurvePrivateKey:
        if jwk.get("kty") != "EC" or jwk.get("crv") != "P-256":
            raise ValueError("Expected an EC P-256 JWK")
        x = int.from_bytes(b64url_decode(jwk["x"]), "big")
        y = int.from_bytes(b64url_decode(jwk["y"]), "big")
        d = int.from_bytes(b64url_decode(jwk["d"]), "big")
        public_numbers = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1())
        try:
            # Fails when d does not correspond to (x, y).
            return ec.EllipticCurvePrivateNumbers(d, public_numbers).private_key()
        except UnsupportedAlgorithm as e:
            raise ValueError(str(e)) from e

    def sign_es256(self, key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
        return key.sign(data, ec.ECDSA(hashes.SHA256()))
