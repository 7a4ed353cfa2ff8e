"""Host environment detection for pve-cloud-template."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from typing import List, Sequence

from pvetemplate.constants import PVE_CONFIG_DIR, REQUIRED_TOOLS
from pvetemplate.exceptions import MissingToolError, PrivilegeError
from pvetemplate.utils import log


@dataclass
class HostInfo:
    root: bool
    proxmox: bool
    missing_tools: List[str] = field(default_factory=list)


def _is_root() -> bool:
    """Check the effective uid; ``qm`` and the snippets directory need root."""
    return os.geteuid() == 0


def _is_proxmox_host() -> bool:
    """A PVE node mounts its cluster filesystem at /etc/pve."""
    return PVE_CONFIG_DIR.is_dir()


def _missing_tools(tools: Sequence[str]) -> List[str]:
    return [tool for tool in tools if shutil.which(tool) is None]


def detect_host(tools: Sequence[str] = REQUIRED_TOOLS) -> HostInfo:
    """Detect privilege level, Proxmox presence and missing command-line tools."""
    info = HostInfo(root=_is_root(), proxmox=_is_proxmox_host(), missing_tools=_missing_tools(tools))
    if not info.proxmox:
        log("DEBUG", f"{PVE_CONFIG_DIR} not found; this does not look like a Proxmox VE node")
    return info


def require_host(info: HostInfo) -> None:
    """Raise if the host cannot run the provisioning workflow."""
    if not info.root:
        raise PrivilegeError("This command must be run as root")
    if info.missing_tools:
        missing = ", ".join(info.missing_tools)
        raise MissingToolError(f"{missing} could not be found. Please install it and try again.")
