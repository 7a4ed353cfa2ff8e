"""pve-cloud-template package."""

__all__ = [
    "cli",
    "cloudinit",
    "config",
    "constants",
    "exceptions",
    "host",
    "images",
    "models",
    "provisioner",
    "qm",
    "utils",
]
