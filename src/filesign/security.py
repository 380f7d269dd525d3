"""Size limits for hashing untrusted files and reading sidecars."""

from __future__ import annotations

from pathlib import Path

from filesign.errors import FileSignError, ErrorCode

# Default security limits
DEFAULT_MAX_FILE_SIZE = 1024 * 1024 * 1024  # 1 GB
DEFAULT_MAX_SIDECAR_SIZE = 16 * 1024 * 1024  # 16 MB
DEFAULT_MAX_LINE_LENGTH = 1024 * 1024  # 1 MB per record


class SecurityLimits:
    """Configurable security limits."""

    def __init__(
        self,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        max_sidecar_size: int = DEFAULT_MAX_SIDECAR_SIZE,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
    ) -> None:
        self.max_file_size = max_file_size
        self.max_sidecar_size = max_sidecar_size
        self.max_line_length = max_line_length


class SecurityError(FileSignError):
    """Security violation detected."""

    code = ErrorCode.LIMIT_EXCEEDED


def safe_read_text(
    path: Path,
    limits: SecurityLimits | None = None,
) -> str:
    """Read a sidecar as UTF-8 text with a size limit.

    Raises:
        FileNotFoundError: If the file does not exist
        SecurityError: If the file is larger than ``max_sidecar_size``
    """
    if limits is None:
        limits = SecurityLimits()

    size = path.stat().st_size
    if size > limits.max_sidecar_size:
        raise SecurityError(
            f"Sidecar too large: {path} ({size} bytes > {limits.max_sidecar_size})"
        )

    return path.read_bytes().decode("utf-8", errors="replace")


def check_file_size(path: Path, limits: SecurityLimits | None = None) -> int:
    """Return the size of ``path``, refusing files above ``max_file_size``."""
    if limits is None:
        limits = SecurityLimits()

    size = path.stat().st_size
    if size > limits.max_file_size:
        raise SecurityError(
            f"File too large: {path} ({size} bytes > {limits.max_file_size})"
        )
    return size
