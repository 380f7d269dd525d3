"""Attach a signer's attestation to a file."""

from __future__ import annotations

import logging
import mimetypes
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from filesign.config import FileSignConfig
from filesign.digest import DigestSet
from filesign.errors import ErrorCode, FileNotFound, FileSignError, SigningError
from filesign.record import SignatureRecord, SignerInfo, validate_identity
from filesign.sidecar import SidecarStore
from filesign.tokens import (
    PrivateKeyInput,
    PublicKeyInput,
    TokenService,
    key_fingerprint,
    public_key_pem,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class SignOutcome:
    """Result of a sign operation: a token, or a failure message."""

    status: str
    data: str | None = None
    message: str | None = None
    code: ErrorCode | None = None
    sidecar: Path | None = None
    replaced: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, token: str, sidecar: Path, replaced: bool = False) -> SignOutcome:
        return cls(status="success", data=token, sidecar=sidecar, replaced=replaced)

    @classmethod
    def failed(cls, message: str, code: ErrorCode) -> SignOutcome:
        return cls(status="failed", message=message, code=code)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        if self.ok:
            return {"status": self.status, "data": self.data}
        return {
            "status": self.status,
            "message": self.message,
            "code": self.code.value if self.code else None,
        }


def _coerce_metadata(metadata: SignerInfo | dict[str, Any] | None) -> SignerInfo:
    if metadata is None:
        return SignerInfo()
    if isinstance(metadata, SignerInfo):
        return metadata
    return SignerInfo.from_dict(metadata)


class FileSigner:
    """Signs files and commits the attestation to the file's sidecar."""

    def __init__(
        self,
        config: FileSignConfig | None = None,
        token_service: TokenService | None = None,
    ) -> None:
        self.config = config or FileSignConfig()
        self.tokens = token_service or TokenService(self.config.algorithm)

    def build_payload(
        self,
        file_path: Path,
        identity: str,
        metadata: SignerInfo | dict[str, Any] | None = None,
        public_key: PublicKeyInput | None = None,
    ) -> dict[str, Any]:
        """Build the token payload for ``file_path``.

        Only the basename of the file is recorded, so the attestation does
        not leak directory structure.

        Raises:
            FileNotFound: If ``file_path`` does not exist
        """
        digests = DigestSet.compute(file_path, limits=self.config.limits)

        payload: dict[str, Any] = _coerce_metadata(metadata).to_claims()
        payload["email"] = identity

        content_type, _ = mimetypes.guess_type(file_path.name)
        payload["file"] = file_path.name
        payload["content_type"] = content_type or DEFAULT_CONTENT_TYPE
        payload["size"] = file_path.stat().st_size
        payload.update(digests.to_dict())
        payload["iat"] = int(time.time())

        if public_key is not None:
            pem = public_key_pem(public_key)
            payload["key"] = pem
            payload["key_sha1"] = key_fingerprint(pem)

        return payload

    def _sign(
        self,
        file_path: Path,
        identity: str,
        metadata: SignerInfo | dict[str, Any] | None,
        private_key: PrivateKeyInput | None,
        public_key: PublicKeyInput | None,
    ) -> SignOutcome:
        if not file_path.is_file():
            raise FileNotFound("File not found")
        identity = validate_identity(identity)
        if private_key is None:
            raise SigningError("Private key mandatory")

        payload = self.build_payload(file_path, identity, metadata, public_key)
        token = self.tokens.encode(payload, private_key)

        store = SidecarStore.for_file(
            file_path,
            suffix=self.config.sidecar_suffix,
            limits=self.config.limits,
            lock_timeout=self.config.lock_timeout,
        )
        replaced = store.add_or_replace(SignatureRecord(identity=identity, token=token))
        return SignOutcome.success(token, store.path, replaced)

    def sign(
        self,
        file_path: Path | str,
        identity: str,
        metadata: SignerInfo | dict[str, Any] | None = None,
        private_key: PrivateKeyInput | None = None,
        public_key: PublicKeyInput | None = None,
    ) -> SignOutcome:
        """Sign ``file_path`` as ``identity``.

        Any prior signature by the same identity is replaced; signatures by
        other identities are kept.

        Args:
            file_path: File to sign
            identity: Email-shaped signer identity (mandatory)
            metadata: Optional signer details (name, company, note, location)
            private_key: PEM, loaded key, or (pem, passphrase) for an encrypted key
            public_key: Optional public key embedded in the token for
                self-contained verification

        Returns:
            SignOutcome with the token on success; never raises
        """
        path = Path(file_path)
        try:
            return self._sign(path, identity, metadata, private_key, public_key)
        except FileSignError as e:
            logger.warning("Signing %s as %s failed: %s", path, identity, e.message)
            return SignOutcome.failed(e.message, e.code)
        except Exception as e:
            logger.exception("Unexpected error signing %s", path)
            return SignOutcome.failed(str(e), ErrorCode.SIGNING_FAILED)
