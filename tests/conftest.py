"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pvetemplate.models import DistroProfile, HostConfig, ProvisionRequest
from pvetemplate.qm import QmClient

SSH_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyMaterialForTests ataylor@labnet.zone"


@pytest.fixture
def ubuntu_profile() -> DistroProfile:
    return DistroProfile(
        key="ubuntu-2404",
        name="Ubuntu 24.04 LTS",
        family="apt",
        version="24.04",
        url="https://cloud-images.ubuntu.com/releases/24.04/release/ubuntu-24.04-server-cloudimg-amd64.img",
        vm_name_prefix="ubuntu",
        packages=["qemu-guest-agent", "btop", "htop"],
        home_packages=["eza", "neofetch"],
        setup_commands=["apt install -y helix"],
    )


@pytest.fixture
def fedora_profile() -> DistroProfile:
    return DistroProfile(
        key="fedora-40",
        name="Fedora 40 Cloud Base",
        family="dnf",
        version="40",
        url="https://example.com/fedora/Fedora-Cloud-Base-Generic.x86_64-40-1.14.qcow2",
        vm_name_prefix="fedora",
        packages=["qemu-guest-agent", "htop"],
        home_packages=["neofetch"],
        setup_commands=["dnf install -y eza"],
    )


@pytest.fixture
def host_config(tmp_path) -> HostConfig:
    return HostConfig(
        image_dir=tmp_path / "iso",
        snippets_dir=tmp_path / "snippets",
        snippets_storage="local",
        storage="local-lvm",
        bridge="vmbr0",
        timezone="Europe/London",
    )


@pytest.fixture
def ssh_key_file(tmp_path) -> Path:
    path = tmp_path / "ataylor.pub"
    path.write_text(SSH_KEY + "\n")
    return path


@pytest.fixture
def home_dir(tmp_path) -> Path:
    home = tmp_path / "home_simple"
    (home / ".config" / "helix").mkdir(parents=True)
    (home / ".bashrc").write_text("alias ll='ls -alF'\n")
    (home / ".config" / "helix" / "config.toml").write_text('theme = "onedark"\n')
    return home


@pytest.fixture
def make_request(ssh_key_file):
    def _make(**overrides) -> ProvisionRequest:
        fields = {
            "size": "small",
            "image_id": 9004,
            "username": "ataylor",
            "ssh_key_path": ssh_key_file,
        }
        fields.update(overrides)
        return ProvisionRequest(**fields)

    return _make


@pytest.fixture
def mock_qm() -> MagicMock:
    qm = MagicMock(spec=QmClient)
    qm.import_disk.return_value = "local-lvm:vm-9004-disk-0"
    return qm


@pytest.fixture
def cached_image(host_config, ubuntu_profile) -> Path:
    """Place a fake cloud image in the cache so no download happens."""
    host_config.image_dir.mkdir(parents=True, exist_ok=True)
    path = host_config.image_dir / ubuntu_profile.image_filename
    path.write_bytes(b"qcow2")
    return path
