"""Content digests used for tamper detection."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from filesign.errors import FileNotFound
from filesign.security import SecurityLimits, check_file_size

# Order matters: it is the order of the claims in the payload and of the
# ``<algorithm>_verified`` fields in a verification result.
DIGEST_ALGORITHMS: tuple[str, ...] = ("sha256", "sha1", "md5")

CHUNK_SIZE = 8192


@dataclass(frozen=True)
class DigestSet:
    """Digests of a file's content at one point in time.

    Combines a cryptographic hash with faster legacy checksums so that an
    integrity check is not defeated by attacking a single algorithm.
    """

    digests: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def __getitem__(self, algorithm: str) -> str:
        for name, value in self.digests:
            if name == algorithm:
                return value
        raise KeyError(algorithm)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.digests)

    def __len__(self) -> int:
        return len(self.digests)

    @property
    def algorithms(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.digests)

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary (algorithm -> hex digest)."""
        return dict(self.digests)

    def matches(self, claims: Mapping[str, Any]) -> dict[str, bool]:
        """Compare each digest against the value recorded in ``claims``.

        A digest missing from ``claims`` compares as not verified.
        """
        return {name: claims.get(name) == value for name, value in self.digests}

    @classmethod
    def compute(
        cls,
        path: Path | str,
        algorithms: tuple[str, ...] = DIGEST_ALGORITHMS,
        limits: SecurityLimits | None = None,
    ) -> DigestSet:
        """Compute digests of the file at ``path``.

        Raises:
            FileNotFound: If ``path`` does not exist or is not a file
            SecurityError: If the file exceeds the configured size limit
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFound(f"File not found: {path}")

        check_file_size(path, limits)

        hashers = [(name, hashlib.new(name)) for name in algorithms]
        with open(path, "rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                for _, hasher in hashers:
                    hasher.update(chunk)

        return cls(digests=tuple((name, hasher.hexdigest()) for name, hasher in hashers))
