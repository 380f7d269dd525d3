"""
Configuration for signing and verification.

Supports:
- Environment variable configuration
- YAML file configuration
- Runtime overrides
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from filesign.security import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_LINE_LENGTH,
    DEFAULT_MAX_SIDECAR_SIZE,
    SecurityLimits,
)
from filesign.sidecar import DEFAULT_SUFFIX
from filesign.tokens import ASYMMETRIC_ALGORITHMS, DEFAULT_ALGORITHM


@dataclass
class FileSignConfig:
    """
    Configuration for FileSigner and FileVerifier.

    Defaults match the sidecar format other implementations read:
    ``<file>.jwt.sign`` holding RS256 tokens.
    """

    sidecar_suffix: str = DEFAULT_SUFFIX
    algorithm: str = DEFAULT_ALGORITHM

    # Limits
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_sidecar_size: int = DEFAULT_MAX_SIDECAR_SIZE
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH

    # Seconds to wait for the sidecar lock; None waits forever
    lock_timeout: float | None = None

    # Fall back to keys embedded in tokens when the caller supplies none
    allow_embedded_keys: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.sidecar_suffix or "/" in self.sidecar_suffix or "\\" in self.sidecar_suffix:
            raise ValueError(f"Invalid sidecar_suffix: {self.sidecar_suffix!r}")

        if self.algorithm not in ASYMMETRIC_ALGORITHMS:
            raise ValueError(
                f"algorithm must be asymmetric ({', '.join(sorted(ASYMMETRIC_ALGORITHMS))}), "
                f"got {self.algorithm}"
            )

        for name in ("max_file_size", "max_sidecar_size", "max_line_length"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")

        if self.lock_timeout is not None and self.lock_timeout < 0:
            raise ValueError(f"lock_timeout must be >= 0, got {self.lock_timeout}")

    @property
    def limits(self) -> SecurityLimits:
        return SecurityLimits(
            max_file_size=self.max_file_size,
            max_sidecar_size=self.max_sidecar_size,
            max_line_length=self.max_line_length,
        )

    @classmethod
    def from_env(cls) -> FileSignConfig:
        """
        Create configuration from environment variables.

        Environment variables:
            FILESIGN_SIDECAR_SUFFIX: Sidecar suffix (default .jwt.sign)
            FILESIGN_ALGORITHM: Token signing algorithm (default RS256)
            FILESIGN_MAX_FILE_SIZE: Largest file to hash, in bytes
            FILESIGN_MAX_SIDECAR_SIZE: Largest sidecar to read, in bytes
            FILESIGN_LOCK_TIMEOUT: Seconds to wait for the sidecar lock
            FILESIGN_ALLOW_EMBEDDED_KEYS: Use keys embedded in tokens (true/false)
        """
        lock_timeout = os.getenv("FILESIGN_LOCK_TIMEOUT")

        return cls(
            sidecar_suffix=os.getenv("FILESIGN_SIDECAR_SUFFIX", DEFAULT_SUFFIX),
            algorithm=os.getenv("FILESIGN_ALGORITHM", DEFAULT_ALGORITHM),
            max_file_size=int(os.getenv("FILESIGN_MAX_FILE_SIZE", str(DEFAULT_MAX_FILE_SIZE))),
            max_sidecar_size=int(
                os.getenv("FILESIGN_MAX_SIDECAR_SIZE", str(DEFAULT_MAX_SIDECAR_SIZE))
            ),
            lock_timeout=float(lock_timeout) if lock_timeout else None,
            allow_embedded_keys=os.getenv("FILESIGN_ALLOW_EMBEDDED_KEYS", "true").lower() == "true",
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileSignConfig:
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_file(cls, path: Path) -> FileSignConfig:
        """Load configuration from a YAML file.

        The mapping may be nested under a top-level ``filesign`` key.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")

        return cls.from_dict(data.get("filesign", data))

    def with_overrides(self, **overrides: Any) -> FileSignConfig:
        """Copy with runtime overrides; ``None`` values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
