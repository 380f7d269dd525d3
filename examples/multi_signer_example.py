"""Two signers attest the same file, then the file is verified and tampered with."""

from pathlib import Path
import tempfile

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

import filesign
from filesign import SignerInfo


def make_keys() -> tuple[str, str]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


def main() -> None:
    workdir = Path(tempfile.mkdtemp())
    document = workdir / "agreement.txt"
    document.write_text("Both parties agree.\n")

    alice_priv, alice_pub = make_keys()
    bob_priv, bob_pub = make_keys()

    outcome = filesign.sign(
        document, "alice@example.com",
        SignerInfo(name="Alice", company="ACME", city="Jakarta"),
        alice_priv,
    )
    print(f"Alice: {outcome.status}")

    # Bob embeds his public key so the token can be checked without a key file
    outcome = filesign.sign(document, "bob@example.org", SignerInfo(name="Bob"), bob_priv, bob_pub)
    print(f"Bob: {outcome.status}")

    print(f"\nSidecar: {filesign.sidecar_path(document)}")
    print(filesign.sidecar_path(document).read_text())

    keys = {"alice@example.com": alice_pub}
    report = filesign.verify(document, keys)
    for identity, result in report.items():
        print(f"\n{identity}: verified={result.verified} key={result.key_source.value}")
    print(f"\nAll verified: {report.verified}")

    document.write_text("Both parties agree. Except Mallory.\n")
    print(f"After tampering: {filesign.is_verified(document, keys)}")


if __name__ == "__main__":
    main()
