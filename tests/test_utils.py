"""Tests for pvetemplate.utils module."""

from __future__ import annotations

import io
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import bcrypt
import pytest

from pvetemplate.exceptions import DownloadError
from pvetemplate.utils import (
    download_file,
    ensure_directory,
    get_env,
    get_env_path,
    hash_password,
    log,
    run,
)


class TestLog:
    def test_info_level(self, capsys):
        log("INFO", "test message")
        captured = capsys.readouterr()
        assert "[INFO]" in captured.out
        assert "test message" in captured.out
        assert captured.err == ""

    def test_error_goes_to_stderr(self, capsys):
        log("ERROR", "boom")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "[ERROR]" in captured.err
        assert "boom" in captured.err

    def test_warn_goes_to_stderr(self, capsys):
        log("WARN", "careful")
        assert "[WARN]" in capsys.readouterr().err

    def test_debug_suppressed_by_default(self, capsys):
        log("DEBUG", "should not appear")
        captured = capsys.readouterr()
        assert captured.out == ""

    def test_debug_shown_when_verbose(self, capsys):
        with patch("pvetemplate.utils._LOG_VERBOSE", True):
            log("DEBUG", "visible")
        assert "[DEBUG]" in capsys.readouterr().out


class TestGetEnv:
    def test_returns_value(self, monkeypatch):
        monkeypatch.setenv("TEST_VAR", "hello")
        assert get_env("TEST_VAR") == "hello"

    def test_returns_default(self, monkeypatch):
        monkeypatch.delenv("TEST_VAR", raising=False)
        assert get_env("TEST_VAR", "fallback") == "fallback"

    def test_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TEST_PATH", str(tmp_path))
        assert get_env_path("TEST_PATH", Path("/default")) == tmp_path

    def test_path_default(self, monkeypatch):
        monkeypatch.delenv("TEST_PATH", raising=False)
        assert get_env_path("TEST_PATH", Path("/default")) == Path("/default")


class TestEnsureDirectory:
    def test_creates_nested(self, tmp_path):
        target = tmp_path / "a" / "b"
        ensure_directory(target)
        assert target.is_dir()
        ensure_directory(target)


class TestHashPassword:
    def test_bcrypt_roundtrip(self):
        hashed = hash_password("s3cret")
        assert hashed.startswith("$2")
        assert bcrypt.checkpw(b"s3cret", hashed.encode("utf-8"))


def _response(payload: bytes, length: bool = True) -> MagicMock:
    response = MagicMock()
    response.headers = {"Content-Length": str(len(payload))} if length else {}
    response.read = io.BytesIO(payload).read
    return response


class TestDownloadFile:
    def test_writes_destination(self, tmp_path, capsys):
        dest = tmp_path / "image.img"
        with patch("pvetemplate.utils.urlopen", return_value=_response(b"x" * 1000)):
            download_file("https://example.com/image.img", dest)
        assert dest.read_bytes() == b"x" * 1000
        assert list(tmp_path.iterdir()) == [dest]
        assert "[SUCCESS]" in capsys.readouterr().out

    def test_response_closed(self, tmp_path):
        response = _response(b"abc")
        with patch("pvetemplate.utils.urlopen", return_value=response):
            download_file("https://example.com/image.img", tmp_path / "image.img")
        response.__exit__.assert_called_once()

    def test_without_content_length(self, tmp_path):
        dest = tmp_path / "image.img"
        with patch("pvetemplate.utils.urlopen", return_value=_response(b"abc", length=False)):
            download_file("https://example.com/image.img", dest)
        assert dest.read_bytes() == b"abc"

    def test_http_error(self, tmp_path):
        err = HTTPError("https://example.com/x", 404, "Not Found", {}, None)
        with patch("pvetemplate.utils.urlopen", side_effect=err):
            with pytest.raises(DownloadError, match="404 Not Found"):
                download_file("https://example.com/x", tmp_path / "x")

    def test_url_error(self, tmp_path):
        with patch("pvetemplate.utils.urlopen", side_effect=URLError("no route")):
            with pytest.raises(DownloadError, match="no route"):
                download_file("https://example.com/x", tmp_path / "x")

    def test_truncated_download_leaves_nothing(self, tmp_path):
        response = _response(b"abc")
        response.headers = {"Content-Length": "10"}
        dest = tmp_path / "x.img"
        with patch("pvetemplate.utils.urlopen", return_value=response):
            with pytest.raises(DownloadError, match="Incomplete download"):
                download_file("https://example.com/x.img", dest)
        assert list(tmp_path.iterdir()) == []

    def test_interrupted_read_cleans_temp_file(self, tmp_path):
        response = MagicMock()
        response.headers = {}
        response.read.side_effect = ConnectionResetError("reset")
        with patch("pvetemplate.utils.urlopen", return_value=response):
            with pytest.raises(DownloadError, match="interrupted"):
                download_file("https://example.com/x.img", tmp_path / "x.img")
        assert list(tmp_path.iterdir()) == []
        response.__exit__.assert_called_once()


class TestRun:
    def test_passes_through(self):
        with patch("pvetemplate.utils.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(["qm"], 0, stdout="ok")
            result = run(["qm", "list"], capture_output=True)
        mock_run.assert_called_once_with(["qm", "list"], check=True, text=True, capture_output=True)
        assert result.stdout == "ok"
