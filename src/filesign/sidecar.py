"""Sidecar storage for signer attestations.

A sidecar is a plain text file beside the signed file, one
``"<identity> <token>"`` record per line. Updates are read-modify-write, so
they run under an exclusive advisory lock and are committed with an atomic
rename: concurrent signers are serialized and readers never observe a
partially written sidecar.
"""

from __future__ import annotations

import logging
import os
import stat
import sys
import tempfile
import time
from collections.abc import Iterator
from pathlib import Path

from filesign.errors import ErrorCode, SidecarError
from filesign.record import SignatureRecord
from filesign.security import SecurityLimits, safe_read_text

if sys.platform == "win32":
    import msvcrt
    _USE_WINDOWS_LOCKING = True
else:
    import fcntl
    _USE_WINDOWS_LOCKING = False

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".jwt.sign"
LOCK_POLL_INTERVAL = 0.05


def sidecar_path(file_path: Path | str, suffix: str = DEFAULT_SUFFIX) -> Path:
    """Derived sidecar path: ``<file_path><suffix>``."""
    return Path(f"{file_path}{suffix}")


def split_lines(text: str) -> list[str]:
    """Split sidecar text into non-blank lines, tolerating ``\\r\\n``."""
    return [line for line in text.replace("\r", "").split("\n") if line.strip()]


def parse_records(text: str, limits: SecurityLimits | None = None) -> list[SignatureRecord]:
    """Parse every valid record out of sidecar text.

    Blank lines and lines whose first field is not an email-shaped identity
    are skipped. They are not signer entries and are not reported as errors.
    """
    limits = limits or SecurityLimits()
    records = []
    for line in split_lines(text):
        if len(line) > limits.max_line_length:
            logger.debug("Skipping oversized sidecar line (%d chars)", len(line))
            continue
        record = SignatureRecord.parse(line)
        if record is None:
            logger.debug("Skipping malformed sidecar line: %.40r", line)
            continue
        records.append(record)
    return records


class SidecarLock:
    """Cross-platform exclusive lock scoped to one sidecar path.

    Uses fcntl on Unix/Linux/Mac and msvcrt on Windows, on a ``.lock`` file
    beside the sidecar (the sidecar itself is replaced by rename, so it
    cannot carry the lock). The lock file is left in place after release;
    deleting it while another signer waits on it would let two signers in.
    """

    def __init__(self, path: Path, timeout: float | None = None) -> None:
        self.lock_path = path.parent / f"{path.name}.lock"
        self.timeout = timeout
        self.lock_file = None

    def _try_lock(self) -> bool:
        try:
            if _USE_WINDOWS_LOCKING:
                # Windows: Lock the first byte of the file
                self.lock_file.seek(0)
                msvcrt.locking(self.lock_file.fileno(), msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(self.lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except (BlockingIOError, PermissionError):
            return False
        return True

    def __enter__(self) -> SidecarLock:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.lock_file = open(self.lock_path, "a+")
        except OSError as e:
            raise SidecarError(
                f"Cannot open sidecar lock {self.lock_path}: {e}",
                code=ErrorCode.SIDECAR_WRITE_FAILED,
            ) from e

        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        try:
            while not self._try_lock():
                if deadline is not None and time.monotonic() >= deadline:
                    raise SidecarError(
                        f"Timed out waiting for sidecar lock {self.lock_path}",
                        code=ErrorCode.SIDECAR_WRITE_FAILED,
                    )
                time.sleep(LOCK_POLL_INTERVAL)
        except BaseException:
            self.lock_file.close()
            self.lock_file = None
            raise

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.lock_file:
            try:
                if _USE_WINDOWS_LOCKING:
                    self.lock_file.seek(0)
                    msvcrt.locking(self.lock_file.fileno(), msvcrt.LK_UNLCK, 1)
                else:
                    fcntl.flock(self.lock_file, fcntl.LOCK_UN)
            finally:
                self.lock_file.close()
                self.lock_file = None
        return False


def current_umask() -> int:
    """Process umask. ``os.umask`` can only be read by setting it."""
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _replacement_mode(path: Path) -> int:
    # Keep an existing sidecar's mode; new sidecars get what open() would give
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return 0o666 & ~current_umask()


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` via a temporary file and ``os.replace``.

    The temporary file is created private (``mkstemp``), so its mode is
    widened to the existing file's mode, or the umask default for a new
    file, before it replaces ``path``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd: int | None = None
    tmp_path: str | None = None

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name,
            suffix=".tmp",
        )

        with os.fdopen(fd, "wb") as handle:
            fd = None  # Ownership transferred to file object
            handle.write(text.encode("utf-8"))
            handle.flush()
            os.fsync(handle.fileno())

        os.chmod(tmp_path, _replacement_mode(path))
        os.replace(tmp_path, path)
        tmp_path = None
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass


class SidecarStore:
    """Ordered signature lines for one signed file.

    Holds at most one record per identity. Lines that are not records are
    kept verbatim so that rewriting never drops content this store does not
    own; blank lines are dropped.
    """

    def __init__(
        self,
        path: Path | str,
        limits: SecurityLimits | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        self.path = Path(path)
        self.limits = limits or SecurityLimits()
        self.lock_timeout = lock_timeout
        self.lines: list[str] = []

    @classmethod
    def for_file(
        cls,
        file_path: Path | str,
        suffix: str = DEFAULT_SUFFIX,
        **kwargs,
    ) -> SidecarStore:
        """Store at the derived sidecar path of ``file_path``."""
        return cls(sidecar_path(file_path, suffix), **kwargs)

    def __iter__(self) -> Iterator[SignatureRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, identity: object) -> bool:
        return any(r.identity == identity for r in self.records)

    @property
    def records(self) -> list[SignatureRecord]:
        """Valid records, in file order."""
        return parse_records("\n".join(self.lines), self.limits)

    @property
    def identities(self) -> list[str]:
        return [r.identity for r in self.records]

    def get(self, identity: str) -> SignatureRecord | None:
        """Record for ``identity``, if present."""
        for record in self.records:
            if record.identity == identity:
                return record
        return None

    def load(self) -> SidecarStore:
        """Load lines from disk. A missing sidecar loads as empty.

        Raises:
            SidecarError: If the sidecar exists but cannot be read
        """
        try:
            text = safe_read_text(self.path, self.limits)
        except FileNotFoundError:
            self.lines = []
            return self
        except (OSError, ValueError) as e:
            raise SidecarError(f"Cannot read sidecar {self.path}: {e}") from e

        self.lines = split_lines(text)
        return self

    def remove(self, identity: str) -> bool:
        """Drop every record for ``identity``. Returns True if any was dropped."""
        kept = []
        for line in self.lines:
            record = SignatureRecord.parse(line)
            if record is not None and record.identity == identity:
                continue
            kept.append(line)
        removed = len(kept) != len(self.lines)
        self.lines = kept
        return removed

    def put(self, record: SignatureRecord) -> bool:
        """Replace any record for the same identity, then append ``record``.

        Returns True if a prior record was replaced.
        """
        replaced = self.remove(record.identity)
        self.lines.append(record.to_line())
        return replaced

    def dumps(self) -> str:
        """Serialized sidecar content."""
        return "\n".join(self.lines)

    def write(self) -> None:
        """Atomically rewrite the sidecar.

        Raises:
            SidecarError: If the sidecar cannot be written
        """
        try:
            atomic_write_text(self.path, self.dumps())
        except OSError as e:
            raise SidecarError(
                f"Cannot write sidecar {self.path}: {e}",
                code=ErrorCode.SIDECAR_WRITE_FAILED,
            ) from e

    def lock(self) -> SidecarLock:
        """Exclusive lock for a read-modify-write of this sidecar."""
        return SidecarLock(self.path, timeout=self.lock_timeout)

    def add_or_replace(self, record: SignatureRecord) -> bool:
        """Commit ``record`` under the sidecar lock.

        Reloads the current contents inside the lock so that records written
        by other signers since this store was loaded are kept.

        Returns True if a prior record for the identity was replaced.
        """
        with self.lock():
            self.load()
            replaced = self.put(record)
            self.write()

        logger.info(
            "%s signature for %s in %s",
            "Replaced" if replaced else "Added",
            record.identity,
            self.path,
        )
        return replaced
