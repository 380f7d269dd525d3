"""Tests for content digests."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from filesign.digest import DIGEST_ALGORITHMS, DigestSet
from filesign.errors import ErrorCode, FileNotFound
from filesign.security import SecurityError, SecurityLimits


class TestDigestSet:
    """Test the DigestSet class."""

    def test_compute_matches_hashlib(self, tmp_path: Path):
        """Digests agree with an independent computation."""
        data = b"Hello, World!" * 1000
        path = tmp_path / "data.bin"
        path.write_bytes(data)

        digests = DigestSet.compute(path)

        assert digests.algorithms == DIGEST_ALGORITHMS
        assert digests["sha256"] == hashlib.sha256(data).hexdigest()
        assert digests["sha1"] == hashlib.sha1(data).hexdigest()
        assert digests["md5"] == hashlib.md5(data).hexdigest()

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty"
        path.write_bytes(b"")

        digests = DigestSet.compute(path)

        assert digests["sha256"] == hashlib.sha256(b"").hexdigest()

    def test_missing_file(self, tmp_path: Path):
        """Computing digests of a missing file raises FileNotFound."""
        with pytest.raises(FileNotFound) as exc_info:
            DigestSet.compute(tmp_path / "nope.txt")
        assert exc_info.value.code is ErrorCode.FILE_NOT_FOUND

    def test_directory_is_not_a_file(self, tmp_path: Path):
        with pytest.raises(FileNotFound):
            DigestSet.compute(tmp_path)

    def test_size_limit(self, tmp_path: Path):
        path = tmp_path / "big.bin"
        path.write_bytes(b"0" * 2048)

        with pytest.raises(SecurityError):
            DigestSet.compute(path, limits=SecurityLimits(max_file_size=1024))

    def test_matches(self, tmp_path: Path):
        """Each algorithm is compared independently."""
        path = tmp_path / "data.txt"
        path.write_text("content")
        digests = DigestSet.compute(path)

        claims = digests.to_dict()
        claims["md5"] = "0" * 32

        assert digests.matches(claims) == {"sha256": True, "sha1": True, "md5": False}

    def test_matches_missing_claim(self, tmp_path: Path):
        path = tmp_path / "data.txt"
        path.write_text("content")
        digests = DigestSet.compute(path)

        result = digests.matches({"sha256": digests["sha256"]})

        assert result["sha256"] is True
        assert result["sha1"] is False
        assert result["md5"] is False

    def test_immutable(self, tmp_path: Path):
        path = tmp_path / "data.txt"
        path.write_text("content")
        digests = DigestSet.compute(path)

        with pytest.raises(AttributeError):
            digests.digests = ()  # type: ignore[misc]
