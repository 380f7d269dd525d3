"""Signed-token service on top of PyJWT.

Tokens are JWTs signed with a single fixed asymmetric algorithm (RS256 by
default). Decoding is restricted to that algorithm, so a structurally valid
token signed any other way is rejected.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Union

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from filesign.errors import InvalidSignature, KeyResolutionFailure, SigningError

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "RS256"

ASYMMETRIC_ALGORITHMS = frozenset({
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "ES256", "ES384", "ES512",
})

PrivateKey = Union[RSAPrivateKey, EllipticCurvePrivateKey]
PublicKey = Union[RSAPublicKey, EllipticCurvePublicKey]
# PEM text or bytes, a loaded key, or (pem, passphrase) for an encrypted key
PrivateKeyInput = Union[str, bytes, PrivateKey, tuple]
PublicKeyInput = Union[str, bytes, PublicKey]


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def load_private_key(key: PrivateKeyInput) -> PrivateKey:
    """Load a private key from PEM, a loaded key object, or ``(pem, passphrase)``.

    Raises:
        SigningError: If the key cannot be loaded
    """
    if isinstance(key, (RSAPrivateKey, EllipticCurvePrivateKey)):
        return key

    password = None
    if isinstance(key, (tuple, list)):
        if len(key) != 2:
            raise SigningError("Private key pair must be (key, passphrase)")
        key, password = key
        if password is not None:
            password = _as_bytes(password)

    try:
        return serialization.load_pem_private_key(_as_bytes(key), password=password)
    except (TypeError, ValueError) as e:
        raise SigningError(f"Invalid private key: {e}") from e


def load_public_key(key: PublicKeyInput) -> PublicKey:
    """Load a public key from PEM or a loaded key object.

    Raises:
        KeyResolutionFailure: If the key cannot be loaded
    """
    if isinstance(key, (RSAPublicKey, EllipticCurvePublicKey)):
        return key
    try:
        return serialization.load_pem_public_key(_as_bytes(key))
    except (TypeError, ValueError) as e:
        raise KeyResolutionFailure(f"Invalid public key: {e}") from e


def public_key_pem(key: PublicKeyInput) -> str:
    """PEM text of a public key; PEM input is returned unchanged."""
    if isinstance(key, bytes):
        return key.decode("utf-8")
    if isinstance(key, str):
        return key
    return key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def key_fingerprint(pem: str) -> str:
    """SHA-1 of the embedded PEM text, recorded as ``key_sha1``."""
    return hashlib.sha1(pem.encode("utf-8")).hexdigest()


class TokenService:
    """Encode and decode signed tokens with one fixed algorithm."""

    def __init__(self, algorithm: str = DEFAULT_ALGORITHM) -> None:
        if algorithm not in ASYMMETRIC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self.algorithm = algorithm

    def encode(self, payload: dict[str, Any], private_key: PrivateKeyInput) -> str:
        """Sign ``payload`` into a token.

        Raises:
            SigningError: If the key is unusable or signing fails
        """
        key = load_private_key(private_key)
        try:
            token = jwt.encode(payload, key, algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise SigningError(f"Token signing failed: {e}") from e
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        logger.debug("Encoded %s token for %s", self.algorithm, payload.get("file"))
        return token

    def decode(self, token: str, public_key: PublicKeyInput) -> dict[str, Any]:
        """Verify ``token`` against ``public_key`` and return its payload.

        Raises:
            InvalidSignature: If the token is malformed, expired, uses another
                algorithm or its signature does not verify
            KeyResolutionFailure: If the public key cannot be loaded
        """
        key = load_public_key(public_key)
        try:
            payload = jwt.decode(token, key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as e:
            raise InvalidSignature("Token has expired") from e
        except jwt.InvalidAlgorithmError as e:
            raise InvalidSignature(f"Disallowed token algorithm: {e}") from e
        except jwt.InvalidSignatureError as e:
            raise InvalidSignature("Signature verification failed") from e
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise InvalidSignature(f"Invalid token: {e}") from e

        if not isinstance(payload, dict):
            raise InvalidSignature("Token payload is not an object")
        return payload

    @staticmethod
    def unverified_claims(token: str) -> dict[str, Any]:
        """Read the payload without checking the signature.

        Only used to locate an embedded key; never a trust decision.

        Raises:
            InvalidSignature: If the token cannot be parsed
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise InvalidSignature(f"Invalid token: {e}") from e
        if not isinstance(payload, dict):
            raise InvalidSignature("Token payload is not an object")
        return payload
