"""Configuration loading and request validation for pve-cloud-template."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from pvetemplate.constants import (
    DEFAULT_BRIDGE,
    DEFAULT_CONFIG_PATH,
    DEFAULT_IMAGE_DIR,
    DEFAULT_SNIPPETS_DIR,
    DEFAULT_SNIPPETS_STORAGE,
    DEFAULT_STORAGE,
    DEFAULT_TIMEZONE,
    PACKAGE_MANAGERS,
    SIZE_PROFILES,
    USERNAME_RE,
)
from pvetemplate.exceptions import (
    DistroConfigError,
    InvalidRequestError,
    InvalidSizeError,
    MissingHomeDirError,
    MissingSSHKeyError,
)
from pvetemplate.models import DistroProfile, HostConfig, ProvisionRequest, SizeProfile
from pvetemplate.utils import get_env, get_env_path

_REQUIRED_DISTRO_FIELDS = ("name", "family", "version", "url", "vm_name_prefix")


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    if config_path is not None:
        return config_path
    return get_env_path("DISTROS_CONFIG", DEFAULT_CONFIG_PATH)


def load_distros(config_path: Optional[Path] = None) -> Dict[str, dict]:
    config_path = resolve_config_path(config_path)
    if not config_path.exists():
        raise DistroConfigError(f"Distribution config missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise DistroConfigError(f"Distribution config {config_path} contains invalid YAML: {exc}")
    distros = data.get("distributions", {}) if isinstance(data, dict) else None
    if not isinstance(distros, dict):
        raise DistroConfigError(f"'distributions' in {config_path} must be a mapping")
    return distros


def load_distro_config(distro: str, config_path: Optional[Path] = None) -> dict:
    distros = load_distros(config_path)
    if distro not in distros:
        available = sorted(distros.keys())
        available_list = "\n    ".join(available)
        raise DistroConfigError(
            f"Unknown distro '{distro}'.\n"
            f"  Available distributions:\n"
            f"    {available_list}\n"
            f"  Use --list-distros to see details."
        )
    return distros[distro]


def _string_list(distro: str, info: dict, key: str) -> List[str]:
    value = info.get(key) or []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise DistroConfigError(f"Distribution '{distro}': '{key}' must be a list of strings")
    return list(value)


def load_distro_profile(distro: str, config_path: Optional[Path] = None) -> DistroProfile:
    info = load_distro_config(distro, config_path)
    if not isinstance(info, dict):
        raise DistroConfigError(f"Distribution '{distro}' entry is not a mapping")
    missing = [key for key in _REQUIRED_DISTRO_FIELDS if not info.get(key)]
    if missing:
        raise DistroConfigError(f"Distribution '{distro}' is missing required field(s): {', '.join(missing)}")
    family = str(info["family"]).strip().lower()
    if family not in PACKAGE_MANAGERS:
        supported = ", ".join(sorted(PACKAGE_MANAGERS))
        raise DistroConfigError(f"Distribution '{distro}' has unsupported family '{family}'. Supported: {supported}")
    return DistroProfile(
        key=distro,
        name=str(info["name"]),
        family=family,
        version=str(info["version"]),
        url=str(info["url"]),
        vm_name_prefix=str(info["vm_name_prefix"]),
        packages=_string_list(distro, info, "packages"),
        home_packages=_string_list(distro, info, "home_packages"),
        setup_commands=_string_list(distro, info, "setup_commands"),
    )


def resolve_size_profile(size: str) -> SizeProfile:
    try:
        return SIZE_PROFILES[size]
    except KeyError:
        choices = "' or '".join(SIZE_PROFILES)
        raise InvalidSizeError(f"Invalid size '{size}'. Use '{choices}'.") from None


def parse_env() -> HostConfig:
    """Read host-level settings from the environment."""
    return HostConfig(
        image_dir=get_env_path("IMAGE_DIR", DEFAULT_IMAGE_DIR),
        snippets_dir=get_env_path("SNIPPETS_DIR", DEFAULT_SNIPPETS_DIR),
        snippets_storage=(get_env("SNIPPETS_STORAGE") or DEFAULT_SNIPPETS_STORAGE).strip(),
        storage=(get_env("STORAGE") or DEFAULT_STORAGE).strip(),
        bridge=(get_env("NETWORK_BRIDGE") or DEFAULT_BRIDGE).strip(),
        timezone=(get_env("TIMEZONE") or DEFAULT_TIMEZONE).strip(),
    )


def build_request(
    size: str,
    image_id: str,
    username: str,
    ssh_key_path: str,
    home_dir_path: Optional[str] = None,
    password: Optional[str] = None,
) -> ProvisionRequest:
    """Validate raw CLI values and build an immutable request.

    Only the field formats are checked here; filesystem preconditions are
    left to :func:`check_request_paths`.
    """
    resolve_size_profile(size)
    try:
        vmid = int(image_id)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"image_id must be an integer (got '{image_id}')")
    if vmid < 1:
        raise InvalidRequestError(f"image_id must be a positive integer (got {vmid})")
    if not USERNAME_RE.match(username or ""):
        raise InvalidRequestError(
            f"Invalid username '{username}'. Use lowercase letters, digits, '_' or '-' "
            "(starting with a letter or '_', at most 32 characters)"
        )
    return ProvisionRequest(
        size=size,
        image_id=vmid,
        username=username,
        ssh_key_path=Path(ssh_key_path).expanduser(),
        home_dir_path=Path(home_dir_path).expanduser() if home_dir_path else None,
        password=password or None,
    )


def check_ssh_key(path: Path) -> str:
    """Return the public key text, raising if the file is absent, unreadable or empty."""
    if not path.is_file():
        raise MissingSSHKeyError(f"SSH key not found at {path}. Please ensure the key exists.")
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MissingSSHKeyError(f"SSH key at {path} could not be read: {exc}") from exc
    if not content.strip():
        raise MissingSSHKeyError(f"SSH key at {path} is empty")
    return content


def check_request_paths(request: ProvisionRequest) -> None:
    if request.home_dir_path is not None and not request.home_dir_path.is_dir():
        raise MissingHomeDirError(f"The specified home directory does not exist: {request.home_dir_path}")
    check_ssh_key(request.ssh_key_path)
