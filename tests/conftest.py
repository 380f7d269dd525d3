"""Shared fixtures: RSA key pairs and files to sign."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


@dataclass
class KeyPair:
    """PEM-encoded RSA key pair."""

    private_pem: str
    public_pem: str

    def write(self, directory: Path, stem: str) -> tuple[Path, Path]:
        """Write keys to ``<stem>.pem`` and ``<stem>.pub``."""
        priv_path = directory / f"{stem}.pem"
        pub_path = directory / f"{stem}.pub"
        priv_path.write_text(self.private_pem)
        pub_path.write_text(self.public_pem)
        return priv_path, pub_path


def generate_key_pair(password: bytes | None = None) -> KeyPair:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    encryption = (
        serialization.BestAvailableEncryption(password)
        if password
        else serialization.NoEncryption()
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return KeyPair(private_pem=private_pem, public_pem=public_pem)


@pytest.fixture(scope="session")
def alice_keys() -> KeyPair:
    return generate_key_pair()


@pytest.fixture(scope="session")
def bob_keys() -> KeyPair:
    return generate_key_pair()


@pytest.fixture(scope="session")
def mallory_keys() -> KeyPair:
    return generate_key_pair()


@pytest.fixture
def target_file(tmp_path: Path) -> Path:
    """A small file to sign."""
    path = tmp_path / "contract.txt"
    path.write_bytes(b"The parties agree to the following terms.\n")
    return path


@pytest.fixture(scope="session")
def key_pair_factory():
    """Generate fresh key pairs, optionally encrypted with a password."""
    return generate_key_pair
