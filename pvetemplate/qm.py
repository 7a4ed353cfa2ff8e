"""Thin client over the Proxmox ``qm`` command-line tool."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Union

from pvetemplate.constants import QM_BINARY
from pvetemplate.exceptions import DiskImportError, HypervisorCommandError, MissingToolError
from pvetemplate.utils import log, run

OptionValue = Union[str, int]


class QmClient:
    def __init__(self, binary: str = QM_BINARY) -> None:
        self.binary = binary

    def _qm(self, *args: OptionValue) -> str:
        cmd = [self.binary] + [str(arg) for arg in args]
        try:
            result = run(cmd, capture_output=True)
        except FileNotFoundError:
            raise MissingToolError(f"{self.binary} could not be found. Is this a Proxmox VE host?") from None
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            detail = f": {stderr}" if stderr else ""
            raise HypervisorCommandError(
                f"'{' '.join(cmd)}' failed with exit code {exc.returncode}{detail}",
                returncode=exc.returncode,
                stderr=stderr,
            ) from None
        return result.stdout or ""

    def create_vm(self, vmid: int, name: str, memory_mb: int, cores: int, bridge: str) -> None:
        self._qm(
            "create", vmid,
            "--memory", memory_mb,
            "--cores", cores,
            "--name", name,
            "--net0", f"virtio,bridge={bridge}",
        )

    def get_config(self, vmid: int) -> Dict[str, str]:
        """Return ``qm config`` as a mapping of option name to raw value."""
        config: Dict[str, str] = {}
        for line in self._qm("config", vmid).splitlines():
            key, sep, value = line.partition(":")
            if sep and key.strip() and not key.startswith(" "):
                config[key.strip()] = value.strip()
        return config

    def import_disk(self, vmid: int, image_path: Path, storage: str) -> str:
        """Import ``image_path`` into ``storage`` and return the new volume id.

        Proxmox attaches an imported disk as the lowest free ``unusedN``
        slot, so the volume id is read back from the VM configuration.
        """
        before = set(self._unused_volumes(vmid).values())
        self._qm("importdisk", vmid, image_path, storage)
        unused = self._unused_volumes(vmid)
        for _, volume in sorted(unused.items()):
            if volume.startswith(f"{storage}:") and volume not in before:
                log("DEBUG", f"Imported {image_path.name} as {volume}")
                return volume
        raise DiskImportError(f"Failed to determine the imported disk name for VM {vmid} on {storage}")

    def _unused_volumes(self, vmid: int) -> Dict[int, str]:
        volumes: Dict[int, str] = {}
        for key, value in self.get_config(vmid).items():
            suffix = key[len("unused"):]
            if key.startswith("unused") and suffix.isdigit():
                volumes[int(suffix)] = value.split(",", 1)[0]
        return volumes

    def set_options(self, vmid: int, options: Mapping[str, OptionValue]) -> None:
        """Apply ``qm set`` options in insertion order with a single call."""
        args: List[OptionValue] = ["set", vmid]
        for key, value in options.items():
            args.extend([f"--{key}", value])
        self._qm(*args)

    def resize_disk(self, vmid: int, disk: str, size: str) -> None:
        self._qm("resize", vmid, disk, size)

    def convert_to_template(self, vmid: int) -> None:
        self._qm("template", vmid)
