"""Public key resolution for signer identities."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from filesign.errors import KeyResolutionFailure
from filesign.tokens import PublicKeyInput, key_fingerprint, public_key_pem

logger = logging.getLogger(__name__)


class KeySource(Enum):
    """Where a verification key came from."""

    TRUSTED = "trusted"    # Supplied by the caller
    EMBEDDED = "embedded"  # Self-asserted in the token payload


@dataclass(frozen=True)
class ResolvedKey:
    """A public key together with its provenance."""

    key: PublicKeyInput
    source: KeySource


class KeyResolver:
    """Resolve the public key for a signer.

    Caller-supplied keys are trusted. A key embedded in the token payload is
    only a fallback: it proves the token was not altered after signing, not
    who signed it.
    """

    def __init__(
        self,
        public_keys: Mapping[str, PublicKeyInput] | None = None,
        allow_embedded: bool = True,
    ) -> None:
        self.public_keys = dict(public_keys or {})
        self.allow_embedded = allow_embedded

    def resolve(self, identity: str, claims: Mapping[str, Any] | None = None) -> ResolvedKey:
        """Resolve the key for ``identity``.

        Args:
            identity: Signer identity
            claims: Unverified token payload, searched for an embedded key

        Raises:
            KeyResolutionFailure: If no usable key is found
        """
        if identity in self.public_keys:
            return ResolvedKey(key=self.public_keys[identity], source=KeySource.TRUSTED)

        if not self.allow_embedded:
            raise KeyResolutionFailure(f"No public key for {identity}")

        embedded = (claims or {}).get("key")
        if not embedded or not isinstance(embedded, str):
            raise KeyResolutionFailure(f"No public key for {identity}")

        recorded = (claims or {}).get("key_sha1")
        if recorded is not None and recorded != key_fingerprint(embedded):
            raise KeyResolutionFailure(f"Embedded key fingerprint mismatch for {identity}")

        logger.debug("Using self-asserted key embedded in token for %s", identity)
        return ResolvedKey(key=embedded, source=KeySource.EMBEDDED)


def load_key_files(paths: Mapping[str, Path]) -> dict[str, str]:
    """Read PEM public keys from files, keyed by identity."""
    keys = {}
    for identity, path in paths.items():
        keys[identity] = public_key_pem(Path(path).read_bytes())
    return keys
