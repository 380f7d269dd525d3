"""Signer attestations and their sidecar line format."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any

from filesign.errors import InvalidIdentity, MalformedRecord

# Heuristic email shape, same pattern family as the PII scanners use.
IDENTITY_PATTERN = re.compile(
    r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$"
)

METADATA_FIELDS: tuple[str, ...] = ("name", "company", "note", "country", "state", "city")


def is_identity(value: str | None) -> bool:
    """Check whether ``value`` is an email-shaped signer identity."""
    if not value:
        return False
    return IDENTITY_PATTERN.match(value) is not None


def validate_identity(value: str | None) -> str:
    """Return ``value`` if it is a valid identity.

    Raises:
        InvalidIdentity: If the identity is empty or not email-shaped
    """
    if value is None or not value.strip():
        raise InvalidIdentity("Email mandatory")
    value = value.strip()
    if not is_identity(value):
        raise InvalidIdentity(f"Invalid signer identity: {value!r}")
    return value


@dataclass
class SignerInfo:
    """Descriptive metadata about who signed a file, and where."""

    name: str | None = None
    company: str | None = None
    note: str | None = None
    country: str | None = None
    state: str | None = None
    city: str | None = None

    def to_claims(self) -> dict[str, str]:
        """Non-empty fields, in payload order."""
        return {k: v for k, v in asdict(self).items() if v}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignerInfo:
        """Create from dictionary, ignoring unrecognized keys."""
        return cls(**{k: data[k] for k in METADATA_FIELDS if data.get(k)})


@dataclass(frozen=True)
class SignatureRecord:
    """One signer's attestation: an identity and the token it signed."""

    identity: str
    token: str

    def __post_init__(self) -> None:
        validate_identity(self.identity)

    def to_line(self) -> str:
        """Serialize as ``"<identity> <token>"``."""
        return f"{self.identity} {self.token}"

    @classmethod
    def from_line(cls, line: str) -> SignatureRecord:
        """Parse a sidecar line.

        The identity is the first field and the token the second; anything
        after the token is ignored. A line carrying a valid identity but no
        usable token still parses; the token then fails to decode and is
        reported against that identity.

        Raises:
            MalformedRecord: If the line is blank or the first field is not an
                email-shaped identity
        """
        parts = line.strip().split(None, 1)
        if not parts:
            raise MalformedRecord("Blank signature line")

        identity = parts[0]
        if not is_identity(identity):
            raise MalformedRecord(f"Not a signer identity: {identity[:80]!r}")
        token = parts[1].split(None, 1)[0] if len(parts) > 1 else ""
        return cls(identity=identity, token=token)

    @classmethod
    def parse(cls, line: str) -> SignatureRecord | None:
        """Parse a sidecar line, returning ``None`` for malformed lines."""
        try:
            return cls.from_line(line)
        except MalformedRecord:
            return None
