"""Global constants and path configuration for pve-cloud-template."""

from __future__ import annotations

import os
import re
from pathlib import Path

from pvetemplate.models import SizeProfile

# Shipped distribution catalogue; DISTROS_CONFIG points at an alternative file.
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "distros.yaml"

# Proxmox "local" storage layout on a stock PVE host
DEFAULT_IMAGE_DIR = Path("/var/lib/vz/template/iso")
DEFAULT_SNIPPETS_DIR = Path("/var/lib/vz/snippets")
DEFAULT_SNIPPETS_STORAGE = "local"
DEFAULT_STORAGE = "local-lvm"
DEFAULT_BRIDGE = "vmbr0"
DEFAULT_TIMEZONE = "Europe/London"

PVE_CONFIG_DIR = Path("/etc/pve")
QM_BINARY = os.environ.get("QM_BINARY", "qm")
REQUIRED_TOOLS = (QM_BINARY,)

TRUTHY = {"1", "true", "yes", "on"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

SIZE_PROFILES = {
    "small": SizeProfile(memory_mb=2048, cores=2, disk_size="10G"),
    "medium": SizeProfile(memory_mb=4096, cores=4, disk_size="20G"),
}

PACKAGE_MANAGERS = {
    "apt": ("apt update -y", "apt upgrade -y"),
    "dnf": ("dnf update -y", "dnf upgrade -y"),
}

USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")

_SENSITIVE_FIELDS = {"password"}

# Cloud-init layout
CLOUD_INIT_HEADER = "#cloud-config"
USER_SUDO = "ALL=(ALL) NOPASSWD:ALL"
USER_SHELL = "/bin/bash"
USER_GROUPS = "users, admin"
GUEST_AGENT_SERVICE = "qemu-guest-agent"
HOME_ARCHIVE_GUEST_PATH = "/tmp/home_contents.tar.gz"
HOME_ARCHIVE_PERMISSIONS = "0644"
# Large inline payloads bloat the snippet and slow the config drive.
HOME_ARCHIVE_WARN_BYTES = 8 * 1024 * 1024
POWER_STATE_TIMEOUT = 1800

SNIPPET_NAME_TEMPLATE = "custom_cloudinit_{image_id}.yml"
