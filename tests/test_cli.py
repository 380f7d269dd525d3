"""Tests for the filesign CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from filesign.cli import cli, parse_key_options
from filesign.sidecar import sidecar_path

ALICE = "alice@example.com"
BOB = "bob@example.org"


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    for name in ("FILESIGN_SIDECAR_SUFFIX", "FILESIGN_ALGORITHM"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


@pytest.fixture
def key_files(tmp_path: Path, alice_keys, bob_keys) -> dict[str, tuple[Path, Path]]:
    keys_dir = tmp_path / "keys"
    keys_dir.mkdir()
    return {
        ALICE: alice_keys.write(keys_dir, "alice"),
        BOB: bob_keys.write(keys_dir, "bob"),
    }


def sign(runner: CliRunner, target: Path, identity: str, key_files, *extra: str):
    private_key, _ = key_files[identity]
    return runner.invoke(cli, [
        "sign", str(target), "--email", identity, "--private-key", str(private_key), *extra,
    ])


class TestSignCommand:
    """Test the sign command."""

    def test_sign(self, runner: CliRunner, target_file: Path, key_files):
        result = sign(runner, target_file, ALICE, key_files, "--name", "Alice", "--city", "Bandung")

        assert result.exit_code == 0, result.output
        assert "Added signature" in result.output
        assert sidecar_path(target_file).read_text().startswith(f"{ALICE} ")

    def test_sign_again_replaces(self, runner: CliRunner, target_file: Path, key_files):
        sign(runner, target_file, ALICE, key_files)
        result = sign(runner, target_file, ALICE, key_files, "--note", "second")

        assert result.exit_code == 0, result.output
        assert "Replaced signature" in result.output
        assert len(sidecar_path(target_file).read_text().splitlines()) == 1

    def test_sign_missing_file(self, runner: CliRunner, tmp_path: Path, key_files):
        result = sign(runner, tmp_path / "missing.txt", ALICE, key_files)

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_sign_invalid_email(self, runner: CliRunner, target_file: Path, key_files):
        private_key, _ = key_files[ALICE]
        result = runner.invoke(cli, [
            "sign", str(target_file), "--email", "nobody", "--private-key", str(private_key),
        ])

        assert result.exit_code == 1
        assert not sidecar_path(target_file).exists()


class TestVerifyCommand:
    """Test the verify and check commands."""

    def test_verify_trusted_keys(self, runner: CliRunner, target_file: Path, key_files):
        sign(runner, target_file, ALICE, key_files)
        sign(runner, target_file, BOB, key_files)

        result = runner.invoke(cli, [
            "verify", str(target_file),
            "--key", f"{ALICE}={key_files[ALICE][1]}",
            "--key", f"{BOB}={key_files[BOB][1]}",
        ])

        assert result.exit_code == 0, result.output
        assert "✅ VERIFIED" in result.output
        assert ALICE in result.output
        assert BOB in result.output

    def test_verify_embedded_key(self, runner: CliRunner, target_file: Path, key_files):
        sign(runner, target_file, ALICE, key_files, "--public-key", str(key_files[ALICE][1]))

        result = runner.invoke(cli, ["verify", str(target_file)])

        assert result.exit_code == 0, result.output
        assert "embedded key" in result.output

    def test_verify_json(self, runner: CliRunner, target_file: Path, key_files):
        sign(runner, target_file, ALICE, key_files)

        result = runner.invoke(cli, [
            "verify", str(target_file), "--json", "--key", f"{ALICE}={key_files[ALICE][1]}",
        ])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["verified"] is True
        assert data["signers"][ALICE]["sha256_verified"] is True

    def test_verify_writes_reports(self, runner: CliRunner, target_file: Path, tmp_path: Path, key_files):
        sign(runner, target_file, ALICE, key_files)
        out = tmp_path / "report"

        result = runner.invoke(cli, [
            "verify", str(target_file), "--out", str(out), "--key", f"{ALICE}={key_files[ALICE][1]}",
        ])

        assert result.exit_code == 0, result.output
        assert (out / "verification_report.json").exists()
        assert (out / "verification_report.md").exists()

    def test_verify_tampered(self, runner: CliRunner, target_file: Path, key_files):
        sign(runner, target_file, ALICE, key_files)
        target_file.write_bytes(target_file.read_bytes() + b"!")

        result = runner.invoke(cli, ["verify", str(target_file), "--key", f"{ALICE}={key_files[ALICE][1]}"])

        assert result.exit_code == 1
        assert "NOT VERIFIED" in result.output
        assert "MISMATCH" in result.output

    def test_check_no_signatures(self, runner: CliRunner, target_file: Path):
        result = runner.invoke(cli, ["check", str(target_file)])

        assert result.exit_code == 1
        assert "not verified" in result.output

    def test_check_verified(self, runner: CliRunner, target_file: Path, key_files):
        sign(runner, target_file, ALICE, key_files)

        result = runner.invoke(cli, ["check", str(target_file), "-k", f"{ALICE}={key_files[ALICE][1]}"])

        assert result.exit_code == 0
        assert result.output.strip() == "verified"

    def test_bad_key_option(self, runner: CliRunner, target_file: Path):
        result = runner.invoke(cli, ["verify", str(target_file), "--key", "no-equals-sign"])
        assert result.exit_code == 2

    def test_parse_key_options(self):
        assert parse_key_options((f"{ALICE}=a.pub",)) == {ALICE: Path("a.pub")}


class TestConfigOption:
    """Test the --config group option."""

    def test_config_file_suffix(self, runner: CliRunner, target_file: Path, tmp_path: Path, key_files):
        config = tmp_path / "filesign.yaml"
        config.write_text("sidecar_suffix: .sig\n")

        result = runner.invoke(cli, [
            "--config", str(config),
            "sign", str(target_file), "--email", ALICE, "--private-key", str(key_files[ALICE][0]),
        ])

        assert result.exit_code == 0, result.output
        assert Path(f"{target_file}.sig").exists()
