"""Data models for pve-cloud-template."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, NamedTuple, Optional
from urllib.parse import urlparse


class SizeProfile(NamedTuple):
    memory_mb: int
    cores: int
    disk_size: str


@dataclass(frozen=True)
class DistroImage:
    version: str
    filename: str
    url: str
    local_dir: Path

    @property
    def path(self) -> Path:
        return self.local_dir / self.filename


@dataclass(frozen=True)
class DistroProfile:
    key: str
    name: str
    family: str  # "apt" or "dnf"
    version: str
    url: str
    vm_name_prefix: str
    packages: List[str] = field(default_factory=list)
    # Extra packages installed only when a home directory is shipped
    home_packages: List[str] = field(default_factory=list)
    setup_commands: List[str] = field(default_factory=list)

    @property
    def image_filename(self) -> str:
        return Path(urlparse(self.url).path).name

    def image(self, local_dir: Path) -> DistroImage:
        return DistroImage(
            version=self.version,
            filename=self.image_filename,
            url=self.url,
            local_dir=local_dir,
        )

    def vm_name(self, size: str) -> str:
        return f"{self.vm_name_prefix}-cloud-{size}"


@dataclass(frozen=True)
class HostConfig:
    image_dir: Path
    snippets_dir: Path
    snippets_storage: str
    storage: str
    bridge: str
    timezone: str


@dataclass(frozen=True)
class ProvisionRequest:
    size: str
    image_id: int
    username: str
    ssh_key_path: Path
    home_dir_path: Optional[Path] = None
    password: Optional[str] = None

    @property
    def with_home(self) -> bool:
        return self.home_dir_path is not None
