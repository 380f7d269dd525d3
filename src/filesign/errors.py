"""Error taxonomy for signing and verification.

Every error carries a stable, machine-readable code so that downstream
tooling can tell "signature checked out false" apart from "signature could
not be checked".
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Stable error codes.

    Format: DOMAIN_DETAIL
    """

    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    INVALID_IDENTITY = "INVALID_IDENTITY"
    KEY_RESOLUTION_FAILURE = "KEY_RESOLUTION_FAILURE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INTEGRITY_MISMATCH = "INTEGRITY_MISMATCH"
    MALFORMED_RECORD = "MALFORMED_RECORD"
    SIDECAR_UNREADABLE = "SIDECAR_UNREADABLE"
    SIDECAR_WRITE_FAILED = "SIDECAR_WRITE_FAILED"
    SIGNING_FAILED = "SIGNING_FAILED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"

    @property
    def is_check_failure(self) -> bool:
        """True when the signature was checked and did not hold."""
        return self is ErrorCode.INTEGRITY_MISMATCH


class FileSignError(Exception):
    """Base error for filesign operations."""

    code: ErrorCode = ErrorCode.SIGNING_FAILED

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class FileNotFound(FileSignError):
    """Target file does not exist."""

    code = ErrorCode.FILE_NOT_FOUND


class InvalidIdentity(FileSignError):
    """Signer identity is empty or not email-shaped."""

    code = ErrorCode.INVALID_IDENTITY


class KeyResolutionFailure(FileSignError):
    """No usable public key for a signer."""

    code = ErrorCode.KEY_RESOLUTION_FAILURE


class InvalidSignature(FileSignError):
    """Token is malformed, expired, uses a disallowed algorithm or fails to verify."""

    code = ErrorCode.INVALID_SIGNATURE


class IntegrityMismatch(FileSignError):
    """Recorded digests do not match the current file."""

    code = ErrorCode.INTEGRITY_MISMATCH


class MalformedRecord(FileSignError):
    """Sidecar line cannot be parsed as a signature record."""

    code = ErrorCode.MALFORMED_RECORD


class SidecarError(FileSignError):
    """Sidecar artifact cannot be read or written."""

    code = ErrorCode.SIDECAR_UNREADABLE


class SigningError(FileSignError):
    """Error during signing operation."""

    code = ErrorCode.SIGNING_FAILED
