"""Verification of multi-signer sidecars."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from filesign.config import FileSignConfig
from filesign.digest import DigestSet
from filesign.errors import (
    ErrorCode,
    FileNotFound,
    FileSignError,
    IntegrityMismatch,
    SidecarError,
)
from filesign.keys import KeyResolver, KeySource
from filesign.record import SignatureRecord
from filesign.sidecar import parse_records, sidecar_path
from filesign.security import safe_read_text
from filesign.tokens import PublicKeyInput, TokenService

logger = logging.getLogger(__name__)

INLINE_SOURCE = "<inline>"


@dataclass
class VerificationResult:
    """Outcome of checking one signer's record against the current file."""

    identity: str
    verified: bool = False
    claims: dict[str, Any] = field(default_factory=dict)
    digests: dict[str, bool] = field(default_factory=dict)
    error: str | None = None
    error_code: ErrorCode | None = None
    key_source: KeySource | None = None

    @property
    def checked(self) -> bool:
        """True when the signature decoded and the digests were compared.

        Distinguishes "checked out false" from "could not be checked".
        """
        return self.error_code is None or self.error_code.is_check_failure

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the decoded claims plus verification fields."""
        result = dict(self.claims)
        for algorithm, ok in self.digests.items():
            result[f"{algorithm}_verified"] = ok
        result["verified"] = self.verified
        result["key_source"] = self.key_source.value if self.key_source else None
        if self.error is not None:
            result["error"] = self.error
            result["error_code"] = self.error_code.value if self.error_code else None
        return result


@dataclass
class VerificationReport:
    """Per-signer verification results for one file.

    Behaves as a read-only mapping of identity to VerificationResult.
    """

    file_path: str | None = None
    source: str | None = None
    results: dict[str, VerificationResult] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def __getitem__(self, identity: str) -> VerificationResult:
        return self.results[identity]

    def __iter__(self) -> Iterator[str]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __contains__(self, identity: object) -> bool:
        return identity in self.results

    def items(self):
        return self.results.items()

    @property
    def verified(self) -> bool:
        """Aggregate verdict: every signer verified, and at least one signer."""
        if not self.results:
            return False
        return all(r.verified for r in self.results.values())

    @property
    def status(self) -> str:
        return "failed" if self.errors else "success"

    def add(self, result: VerificationResult) -> None:
        self.results[result.identity] = result

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status,
            "verified": self.verified,
            "file": self.file_path,
            "source": self.source,
            "signers": {identity: r.to_dict() for identity, r in self.results.items()},
            "errors": self.errors,
            "timestamp": self.timestamp,
        }

    def write_json(self, path: Path) -> None:
        """Write to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, sort_keys=True)

    def write_markdown(self, path: Path) -> None:
        """Write to Markdown file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self._generate_markdown())

    def _generate_markdown(self) -> str:
        """Generate markdown report."""
        lines = [
            "# Signature Verification Report",
            "",
            f"**Status:** {'✅ VERIFIED' if self.verified else '❌ NOT VERIFIED'}",
            f"**File:** `{self.file_path}`",
            f"**Signatures:** `{self.source}`",
            f"**Timestamp:** {self.timestamp}",
            "",
            "## Signers",
            "",
        ]

        if not self.results:
            lines.extend(["No signatures found.", ""])

        for identity, result in self.results.items():
            lines.append(f"### {identity}")
            lines.append("")
            lines.append(f"- **Verified:** {'✅ Yes' if result.verified else '❌ No'}")
            if result.key_source is not None:
                lines.append(f"- **Key:** {result.key_source.value}")
            for claim in ("name", "company", "note", "country", "state", "city"):
                if claim in result.claims:
                    lines.append(f"- **{claim.title()}:** {result.claims[claim]}")
            for algorithm, ok in result.digests.items():
                lines.append(f"- **{algorithm}:** {'✅ match' if ok else '❌ mismatch'}")
            if result.error:
                lines.append(f"- **Error:** {result.error}")
            lines.append("")

        if self.errors:
            lines.extend(["## Errors", ""])
            for error in self.errors:
                lines.append(f"- {error}")
            lines.append("")

        return "\n".join(lines)


def _existing_file(candidate: Path | str) -> Path | None:
    # A literal token is usually far longer than a legal path name
    try:
        path = Path(candidate)
        return path if path.is_file() else None
    except (OSError, ValueError):
        return None


class FileVerifier:
    """Verifies every signer attestation recorded for a file."""

    def __init__(
        self,
        config: FileSignConfig | None = None,
        token_service: TokenService | None = None,
    ) -> None:
        self.config = config or FileSignConfig()
        self.tokens = token_service or TokenService(self.config.algorithm)

    def read_source(
        self,
        file_path: Path | str | None,
        sign_source: Path | str | None = None,
    ) -> tuple[str, str]:
        """Resolve the raw signature text.

        ``sign_source`` is read as a file if it names one on disk, otherwise
        it is taken as a literal token or sidecar blob. Without it the
        derived sidecar of ``file_path`` is read; a missing sidecar reads as
        empty.

        Returns:
            Tuple of (source description, text)

        Raises:
            SidecarError: If the signature source exists but cannot be read
        """
        if sign_source is not None:
            path = _existing_file(sign_source)
            if path is None:
                return INLINE_SOURCE, str(sign_source)
        elif file_path is not None:
            path = sidecar_path(file_path, self.config.sidecar_suffix)
        else:
            raise SidecarError("No file or signature source given")

        try:
            return str(path), safe_read_text(path, self.config.limits)
        except FileNotFoundError:
            # Absent, or being replaced by a concurrent signer
            return str(path), ""
        except (OSError, ValueError) as e:
            raise SidecarError(f"Cannot read signatures {path}: {e}") from e

    def _target_path(self, file_path: Path | str | None, claims: Mapping[str, Any]) -> Path | None:
        if file_path is not None and Path(file_path).is_file():
            return Path(file_path)
        recorded = claims.get("file")
        if not isinstance(recorded, str) or not recorded:
            return None
        path = Path.cwd() / Path(recorded).name
        return path if path.is_file() else None

    def verify_record(
        self,
        record: SignatureRecord,
        resolver: KeyResolver,
        file_path: Path | str | None = None,
    ) -> VerificationResult:
        """Check one record. Failures are returned as values, never raised."""
        result = VerificationResult(identity=record.identity)
        try:
            unverified = None
            if record.identity not in resolver.public_keys:
                unverified = self.tokens.unverified_claims(record.token)
            resolved = resolver.resolve(record.identity, unverified)
            result.key_source = resolved.source

            claims = self.tokens.decode(record.token, resolved.key)
            result.claims = claims

            signer = claims.get("email")
            if signer is not None and signer != record.identity:
                result.error = f"Token was issued to {signer}, not {record.identity}"
                result.error_code = ErrorCode.INVALID_IDENTITY
                return result

            target = self._target_path(file_path, claims)
            if target is None:
                raise FileNotFound("File not found")

            digests = DigestSet.compute(target, limits=self.config.limits)
            result.digests = digests.matches(claims)
            result.verified = all(result.digests.values())
            if not result.verified:
                raise IntegrityMismatch("Digest mismatch: file changed since signing")
        except FileSignError as e:
            result.verified = False
            result.error = e.message
            result.error_code = e.code
        except Exception as e:
            logger.exception("Unexpected error verifying %s", record.identity)
            result.verified = False
            result.error = f"Signature could not be checked: {e}"
            result.error_code = ErrorCode.INVALID_SIGNATURE

        if not result.verified:
            logger.warning("Signature by %s not verified: %s", record.identity, result.error)
        return result

    def verify(
        self,
        file_path: Path | str | None = None,
        public_keys: Mapping[str, PublicKeyInput] | None = None,
        sign_source: Path | str | None = None,
    ) -> VerificationReport:
        """Verify every signature recorded for ``file_path``.

        Args:
            file_path: Signed file; also used to derive the sidecar path
            public_keys: Trusted public keys by signer identity. Signers
                without one fall back to a key embedded in their token.
            sign_source: Sidecar path or literal token/sidecar text

        Returns:
            VerificationReport covering every record with a valid identity;
            never raises
        """
        report = VerificationReport(file_path=str(file_path) if file_path is not None else None)

        try:
            report.source, text = self.read_source(file_path, sign_source)
        except FileSignError as e:
            report.errors.append(e.message)
            return report

        resolver = KeyResolver(public_keys, allow_embedded=self.config.allow_embedded_keys)
        for record in parse_records(text, self.config.limits):
            logger.debug("Verifying signature by %s", record.identity)
            report.add(self.verify_record(record, resolver, file_path))

        return report

    def is_verified(
        self,
        file_path: Path | str | None = None,
        public_keys: Mapping[str, PublicKeyInput] | None = None,
        sign_source: Path | str | None = None,
    ) -> bool:
        """True iff at least one signature was found and all of them verify."""
        return self.verify(file_path, public_keys, sign_source).verified

    def verify_and_report(
        self,
        file_path: Path | str | None,
        output_dir: Path,
        public_keys: Mapping[str, PublicKeyInput] | None = None,
        sign_source: Path | str | None = None,
    ) -> tuple[VerificationReport, dict[str, Path]]:
        """Verify and write reports.

        Returns:
            Tuple of (report, report_paths)
        """
        report = self.verify(file_path, public_keys, sign_source)

        output_dir.mkdir(parents=True, exist_ok=True)
        paths = {}

        # Write JSON report
        json_path = output_dir / "verification_report.json"
        report.write_json(json_path)
        paths["json"] = json_path

        # Write Markdown report
        md_path = output_dir / "verification_report.md"
        report.write_markdown(md_path)
        paths["markdown"] = md_path

        return report, paths
