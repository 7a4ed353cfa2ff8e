"""Tests for pvetemplate.images module."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from pvetemplate.exceptions import DownloadError
from pvetemplate.images import ensure_distro_image, ensure_image

URL = "https://cloud-images.example.com/noble.img"


def _fake_download(url, destination, label="Downloading"):
    destination.write_bytes(b"image-bytes")


class TestEnsureImage:
    def test_downloads_when_missing(self, tmp_path):
        target_dir = tmp_path / "iso"
        with patch("pvetemplate.images.download_file", side_effect=_fake_download) as mock_download:
            path = ensure_image(target_dir, URL, "noble.img")
        assert path == target_dir / "noble.img"
        assert path.read_bytes() == b"image-bytes"
        mock_download.assert_called_once()
        assert mock_download.call_args[0][:2] == (URL, target_dir / "noble.img")

    def test_idempotent_single_download(self, tmp_path):
        with patch("pvetemplate.images.download_file", side_effect=_fake_download) as mock_download:
            first = ensure_image(tmp_path, URL, "noble.img")
            second = ensure_image(tmp_path, URL, "noble.img")
        assert first == second
        assert mock_download.call_count == 1

    def test_existing_file_reused_without_validation(self, tmp_path, capsys):
        (tmp_path / "noble.img").write_bytes(b"")
        with patch("pvetemplate.images.download_file") as mock_download:
            ensure_image(tmp_path, URL, "noble.img")
        mock_download.assert_not_called()
        assert "already exists" in capsys.readouterr().out

    def test_download_failure_propagates(self, tmp_path):
        with patch("pvetemplate.images.download_file", side_effect=DownloadError("HTTP 404")):
            with pytest.raises(DownloadError, match="HTTP 404"):
                ensure_image(tmp_path, URL, "noble.img")
        assert not (tmp_path / "noble.img").exists()


class TestEnsureDistroImage:
    def test_uses_profile_filename(self, ubuntu_profile, tmp_path):
        image = ubuntu_profile.image(tmp_path)
        with patch("pvetemplate.images.download_file", side_effect=_fake_download) as mock_download:
            path = ensure_distro_image(image)
        assert path == tmp_path / "ubuntu-24.04-server-cloudimg-amd64.img"
        assert mock_download.call_args[0][0] == ubuntu_profile.url
