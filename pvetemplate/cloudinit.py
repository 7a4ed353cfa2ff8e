"""Cloud-init user-data generation for pve-cloud-template.

Only the subset of the cloud-config schema the templates rely on is
modelled. Documents are built as plain mappings and serialised with
``yaml.safe_dump`` so user names, keys and commands are always quoted as
YAML requires.
"""

from __future__ import annotations

import base64
import tarfile
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from pvetemplate.constants import (
    CLOUD_INIT_HEADER,
    DEFAULT_TIMEZONE,
    GUEST_AGENT_SERVICE,
    HOME_ARCHIVE_GUEST_PATH,
    HOME_ARCHIVE_PERMISSIONS,
    HOME_ARCHIVE_WARN_BYTES,
    PACKAGE_MANAGERS,
    POWER_STATE_TIMEOUT,
    USER_GROUPS,
    USER_SHELL,
    USER_SUDO,
)
from pvetemplate.exceptions import MissingHomeDirError
from pvetemplate.models import DistroProfile
from pvetemplate.utils import log

# A runcmd entry is either a shell string or an argv list (run without a shell).
RunCommand = Union[str, List[str]]


@dataclass
class CloudInitUser:
    name: str
    ssh_authorized_keys: List[str]
    sudo: str = USER_SUDO
    groups: str = USER_GROUPS
    shell: str = USER_SHELL
    passwd: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "name": self.name,
            "ssh_authorized_keys": list(self.ssh_authorized_keys),
            "sudo": self.sudo,
            "groups": self.groups,
            "shell": self.shell,
        }
        if self.passwd:
            data["lock_passwd"] = False
            data["passwd"] = self.passwd
        return data


@dataclass
class WriteFile:
    path: str
    content: str
    encoding: Optional[str] = None
    permissions: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {}
        if self.encoding:
            data["encoding"] = self.encoding
        data["content"] = self.content
        data["path"] = self.path
        if self.permissions:
            data["permissions"] = self.permissions
        return data


@dataclass
class PowerState:
    mode: str = "reboot"
    timeout: int = POWER_STATE_TIMEOUT
    condition: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {"mode": self.mode, "timeout": self.timeout, "condition": self.condition}


@dataclass
class CloudInitDocument:
    users: List[CloudInitUser]
    packages: List[str] = field(default_factory=list)
    package_update: bool = True
    package_upgrade: bool = True
    timezone: str = DEFAULT_TIMEZONE
    write_files: List[WriteFile] = field(default_factory=list)
    runcmd: List[RunCommand] = field(default_factory=list)
    power_state: PowerState = field(default_factory=PowerState)

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "users": [user.to_dict() for user in self.users],
            "packages": list(self.packages),
            "package_update": self.package_update,
            "package_upgrade": self.package_upgrade,
            "timezone": self.timezone,
        }
        if self.write_files:
            data["write_files"] = [entry.to_dict() for entry in self.write_files]
        data["runcmd"] = [list(cmd) if isinstance(cmd, list) else cmd for cmd in self.runcmd]
        data["power_state"] = self.power_state.to_dict()
        return data

    def render(self) -> str:
        return CLOUD_INIT_HEADER + "\n" + yaml.safe_dump(
            self.to_dict(), sort_keys=False, default_flow_style=False
        )


def archive_home_dir(home_dir: Path) -> str:
    """Tar and gzip the contents of ``home_dir`` and return it base64-encoded.

    Members are stored relative to ``.`` so the archive extracts straight into
    the target home directory. The tarball only lives in a temporary
    directory for the duration of the call.
    """
    if not home_dir.is_dir():
        raise MissingHomeDirError(f"The specified home directory does not exist: {home_dir}")
    with tempfile.TemporaryDirectory() as tmpdir:
        tarball = Path(tmpdir) / "home_contents.tar.gz"
        with tarfile.open(tarball, "w:gz") as tar:
            tar.add(str(home_dir), arcname=".")
        encoded = base64.b64encode(tarball.read_bytes()).decode("ascii")
    if len(encoded) > HOME_ARCHIVE_WARN_BYTES:
        log(
            "WARN",
            f"Encoded home directory archive is {len(encoded) / (1024 * 1024):.1f} MiB; "
            "large snippets may be rejected or slow down the first boot",
        )
    return encoded


def guest_agent_commands() -> List[RunCommand]:
    return [
        f"systemctl enable {GUEST_AGENT_SERVICE}",
        f"systemctl start {GUEST_AGENT_SERVICE}",
    ]


def home_restore_commands(username: str) -> List[RunCommand]:
    home = f"/home/{username}"
    return [
        ["tar", "-xzf", HOME_ARCHIVE_GUEST_PATH, "-C", home],
        ["chown", "-R", f"{username}:{username}", home],
        ["rm", HOME_ARCHIVE_GUEST_PATH],
    ]


def build_runcmds(distro: DistroProfile, timezone: str) -> List[RunCommand]:
    """Ordered first-boot commands for a distro, excluding home restoration."""
    commands = guest_agent_commands()
    commands.extend(PACKAGE_MANAGERS[distro.family])
    commands.extend(distro.setup_commands)
    commands.append(f"timedatectl set-timezone {timezone}")
    return commands


def build_cloud_init(
    username: str,
    ssh_key_content: str,
    packages: Sequence[str],
    runcmds: Sequence[RunCommand],
    home_tarball_b64: Optional[str] = None,
    timezone: str = DEFAULT_TIMEZONE,
    password_hash: Optional[str] = None,
) -> CloudInitDocument:
    user = CloudInitUser(
        name=username,
        ssh_authorized_keys=[ssh_key_content.strip()],
        passwd=password_hash,
    )
    doc = CloudInitDocument(
        users=[user],
        packages=list(packages),
        timezone=timezone,
        runcmd=list(runcmds),
    )
    if home_tarball_b64 is not None:
        doc.write_files.append(
            WriteFile(
                path=HOME_ARCHIVE_GUEST_PATH,
                content=home_tarball_b64,
                encoding="base64",
                permissions=HOME_ARCHIVE_PERMISSIONS,
            )
        )
        doc.runcmd.extend(home_restore_commands(username))
    return doc


def render_cloud_init(
    username: str,
    ssh_key_content: str,
    packages: Sequence[str],
    runcmds: Sequence[RunCommand],
    home_tarball_b64: Optional[str] = None,
    timezone: str = DEFAULT_TIMEZONE,
    password_hash: Optional[str] = None,
) -> str:
    """Render a ``#cloud-config`` user-data document as YAML text."""
    return build_cloud_init(
        username,
        ssh_key_content,
        packages,
        runcmds,
        home_tarball_b64=home_tarball_b64,
        timezone=timezone,
        password_hash=password_hash,
    ).render()
