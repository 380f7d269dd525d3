"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from filesign.config import FileSignConfig


class TestFileSignConfig:
    """Test the FileSignConfig class."""

    def test_defaults(self):
        config = FileSignConfig()
        assert config.sidecar_suffix == ".jwt.sign"
        assert config.algorithm == "RS256"
        assert config.lock_timeout is None
        assert config.allow_embedded_keys is True
        assert config.limits.max_file_size == config.max_file_size

    @pytest.mark.parametrize("overrides", [
        {"algorithm": "HS256"},
        {"algorithm": "none"},
        {"sidecar_suffix": ""},
        {"sidecar_suffix": "/x"},
        {"max_file_size": 0},
        {"lock_timeout": -1},
    ])
    def test_validation(self, overrides):
        with pytest.raises(ValueError):
            FileSignConfig(**overrides)

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("FILESIGN_SIDECAR_SUFFIX", ".sig")
        monkeypatch.setenv("FILESIGN_ALGORITHM", "PS256")
        monkeypatch.setenv("FILESIGN_MAX_FILE_SIZE", "1024")
        monkeypatch.setenv("FILESIGN_LOCK_TIMEOUT", "2.5")
        monkeypatch.setenv("FILESIGN_ALLOW_EMBEDDED_KEYS", "false")

        config = FileSignConfig.from_env()

        assert config.sidecar_suffix == ".sig"
        assert config.algorithm == "PS256"
        assert config.max_file_size == 1024
        assert config.lock_timeout == 2.5
        assert config.allow_embedded_keys is False

    def test_from_env_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in (
            "FILESIGN_SIDECAR_SUFFIX",
            "FILESIGN_ALGORITHM",
            "FILESIGN_MAX_FILE_SIZE",
            "FILESIGN_MAX_SIDECAR_SIZE",
            "FILESIGN_LOCK_TIMEOUT",
            "FILESIGN_ALLOW_EMBEDDED_KEYS",
        ):
            monkeypatch.delenv(name, raising=False)

        assert FileSignConfig.from_env() == FileSignConfig()

    def test_from_file(self, tmp_path: Path):
        path = tmp_path / "filesign.yaml"
        path.write_text(
            "filesign:\n"
            "  sidecar_suffix: .signatures\n"
            "  lock_timeout: 10\n"
            "  unknown_key: ignored\n"
        )

        config = FileSignConfig.from_file(path)

        assert config.sidecar_suffix == ".signatures"
        assert config.lock_timeout == 10

    def test_from_file_flat(self, tmp_path: Path):
        path = tmp_path / "filesign.yaml"
        path.write_text("algorithm: RS512\n")

        assert FileSignConfig.from_file(path).algorithm == "RS512"

    def test_from_file_not_mapping(self, tmp_path: Path):
        path = tmp_path / "filesign.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            FileSignConfig.from_file(path)

    def test_with_overrides(self):
        config = FileSignConfig().with_overrides(lock_timeout=3.0, algorithm=None)
        assert config.lock_timeout == 3.0
        assert config.algorithm == "RS256"
