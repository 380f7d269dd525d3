"""Multi-signer file attestations.

Signers attach signed tokens (file digests plus signer metadata) to a file
in a shared ``<file>.jwt.sign`` sidecar, one line per signer. Verification
checks every signer independently and combines the results into a single
verdict.
"""

from __future__ import annotations

__version__ = "1.0.0"

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from filesign.config import FileSignConfig
from filesign.digest import DigestSet
from filesign.errors import (
    ErrorCode,
    FileNotFound,
    FileSignError,
    IntegrityMismatch,
    InvalidIdentity,
    InvalidSignature,
    KeyResolutionFailure,
    MalformedRecord,
    SidecarError,
    SigningError,
)
from filesign.keys import KeyResolver, KeySource
from filesign.record import SignatureRecord, SignerInfo
from filesign.sidecar import SidecarStore, sidecar_path
from filesign.signer import FileSigner, SignOutcome
from filesign.tokens import PrivateKeyInput, PublicKeyInput, TokenService
from filesign.verifier import FileVerifier, VerificationReport, VerificationResult


def sign(
    file_path: Path | str,
    identity: str,
    metadata: SignerInfo | dict[str, Any] | None = None,
    private_key: PrivateKeyInput | None = None,
    public_key: PublicKeyInput | None = None,
    config: FileSignConfig | None = None,
) -> SignOutcome:
    """Sign ``file_path`` as ``identity``. See FileSigner.sign."""
    return FileSigner(config).sign(file_path, identity, metadata, private_key, public_key)


def verify(
    file_path: Path | str | None = None,
    public_keys: Mapping[str, PublicKeyInput] | None = None,
    sign_source: Path | str | None = None,
    config: FileSignConfig | None = None,
) -> VerificationReport:
    """Verify every signature on ``file_path``. See FileVerifier.verify."""
    return FileVerifier(config).verify(file_path, public_keys, sign_source)


def is_verified(
    file_path: Path | str | None = None,
    public_keys: Mapping[str, PublicKeyInput] | None = None,
    sign_source: Path | str | None = None,
    config: FileSignConfig | None = None,
) -> bool:
    """Aggregate verdict for ``file_path``. See FileVerifier.is_verified."""
    return FileVerifier(config).is_verified(file_path, public_keys, sign_source)


__all__ = [
    "__version__",
    "sign",
    "verify",
    "is_verified",
    "DigestSet",
    "ErrorCode",
    "FileNotFound",
    "FileSignConfig",
    "FileSignError",
    "FileSigner",
    "FileVerifier",
    "IntegrityMismatch",
    "InvalidIdentity",
    "InvalidSignature",
    "KeyResolutionFailure",
    "KeyResolver",
    "KeySource",
    "MalformedRecord",
    "SidecarError",
    "SidecarStore",
    "SignOutcome",
    "SignatureRecord",
    "SignerInfo",
    "SigningError",
    "TokenService",
    "VerificationReport",
    "VerificationResult",
    "sidecar_path",
]
