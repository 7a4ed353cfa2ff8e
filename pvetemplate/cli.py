"""CLI entry points for pve-cloud-template."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import List, Optional

from pvetemplate.config import (
    build_request,
    check_request_paths,
    load_distro_profile,
    load_distros,
    parse_env,
    resolve_size_profile,
)
from pvetemplate.constants import _SENSITIVE_FIELDS, SIZE_PROFILES
from pvetemplate.exceptions import DistroConfigError, InvalidRequestError, TemplateError
from pvetemplate.host import detect_host, require_host
from pvetemplate.models import DistroProfile, HostConfig, ProvisionRequest
from pvetemplate.provisioner import TemplateProvisioner
from pvetemplate.utils import get_env, log

DEFAULT_DISTRO = "ubuntu-2404"


def list_distros(config_path: Optional[Path] = None) -> None:
    """Print available distributions; raises DistroConfigError on a bad catalogue."""
    distros = load_distros(config_path)
    if not distros:
        log("WARN", "No distributions found")
        return

    invalid = [str(key) for key, info in distros.items() if not isinstance(info, dict)]
    if invalid:
        raise DistroConfigError(f"Distribution entries must be mappings: {', '.join(invalid)}")

    max_key = max(len(str(k)) for k in distros)
    for key in sorted(distros, key=str):
        info = distros[key]
        name = info.get("name", key)
        family = info.get("family", "?")
        print(f"  {key:<{max_key}}  {name}  (family={family})")


def show_config(request: ProvisionRequest, distro: DistroProfile, host: HostConfig) -> None:
    """Print the resolved configuration."""
    for title, obj in (("request", request), ("distro", distro), ("host", host)):
        print(f"{title}:")
        for field in dataclasses.fields(obj):
            value = getattr(obj, field.name)
            if field.name in _SENSITIVE_FIELDS and value:
                print(f"  {field.name}: ********")
            else:
                print(f"  {field.name}: {value}")


def dry_run(request: ProvisionRequest, distro: DistroProfile, host: HostConfig) -> int:
    """Report what would be provisioned and which host checks fail."""
    log("INFO", "=== Configuration ===")
    show_config(request, distro, host)
    log("INFO", "=== Environment Checks ===")
    info = detect_host()
    if info.root:
        log("SUCCESS", "Privileges:  root")
    else:
        log("WARN", "Privileges:  not root (provisioning will fail)")
    if info.proxmox:
        log("SUCCESS", "Proxmox VE:  detected")
    else:
        log("WARN", "Proxmox VE:  not detected")
    for tool in info.missing_tools:
        log("WARN", f"Tool:        {tool} NOT found")
    image_path = host.image_dir / distro.image_filename
    if image_path.is_file():
        log("SUCCESS", f"Image:       {image_path} (cached)")
    else:
        log("INFO", f"Image:       {distro.url} (will download)")
    profile = resolve_size_profile(request.size)
    log(
        "INFO",
        f"VM:          {request.image_id} {distro.vm_name(request.size)} | Memory: {profile.memory_mb} MiB "
        f"| Cores: {profile.cores} | Disk: {profile.disk_size}",
    )
    log("INFO", "=== Dry-run complete (no VM created) ===")
    return 0


class _Parser(argparse.ArgumentParser):
    """Argument parser that reports usage errors as InvalidRequestError."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise InvalidRequestError(message)


def build_parser(default_distro: str = DEFAULT_DISTRO) -> argparse.ArgumentParser:
    parser = _Parser(
        description="Create a Proxmox VM template from a distro cloud image using cloud-init",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pve-cloud-template small 9004 ataylor ~/.ssh/ataylor.pub
  pve-cloud-template --distro fedora-40 medium 9003 ataylor ~/.ssh/ataylor.pub ./home_simple
  pve-cloud-template --list-distros
        """,
    )
    parser.add_argument(
        "--distro",
        default=default_distro,
        help=f"Distribution key from the catalogue (default: {default_distro})",
    )
    parser.add_argument("--list-distros", action="store_true", help="List available distributions and exit")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    parser.add_argument("--dry-run", action="store_true", help="Validate configuration and host, then exit")
    parser.add_argument("size", nargs="?", help=f"VM size: {', '.join(SIZE_PROFILES)}")
    parser.add_argument("image_id", nargs="?", help="Proxmox VM ID for the template")
    parser.add_argument("username", nargs="?", help="User to create in the guest")
    parser.add_argument("ssh_key_path", nargs="?", help="Path to the SSH public key file")
    parser.add_argument("home_dir_path", nargs="?", help="Directory whose contents populate the user's home")
    return parser


def main(argv: Optional[List[str]] = None, default_distro: str = DEFAULT_DISTRO) -> int:
    parser = build_parser(default_distro)
    try:
        args = parser.parse_args(argv)
    except InvalidRequestError as exc:
        parser.print_usage()
        log("ERROR", str(exc))
        return 1

    if args.list_distros:
        try:
            list_distros()
        except TemplateError as exc:
            log("ERROR", str(exc))
            return 1
        return 0

    positional = (args.size, args.image_id, args.username, args.ssh_key_path)
    if any(value is None for value in positional):
        parser.print_usage()
        log("ERROR", "size, image_id, username and ssh_key_path are required")
        return 1

    try:
        request = build_request(
            args.size,
            args.image_id,
            args.username,
            args.ssh_key_path,
            args.home_dir_path,
            password=get_env("GUEST_PASSWORD"),
        )
        distro = load_distro_profile(args.distro)
        host = parse_env()
    except TemplateError as exc:
        log("ERROR", str(exc))
        return 1

    if args.show_config:
        show_config(request, distro, host)
        return 0

    if args.dry_run:
        return dry_run(request, distro, host)

    if request.with_home:
        log("INFO", f"Creating {distro.name} VM template with populated home directory")
    else:
        log("INFO", f"Creating {distro.name} VM template")

    try:
        require_host(detect_host())
        check_request_paths(request)
        TemplateProvisioner(request, distro, host).provision()
        return 0
    except TemplateError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1


def create_ubuntu_template(argv: Optional[List[str]] = None) -> int:
    return main(argv, default_distro="ubuntu-2404")


def create_fedora_template(argv: Optional[List[str]] = None) -> int:
    return main(argv, default_distro="fedora-40")
