"""Cloud image cache for pve-cloud-template."""

from __future__ import annotations

from pathlib import Path

from pvetemplate.models import DistroImage
from pvetemplate.utils import download_file, ensure_directory, log


def ensure_image(directory: Path, url: str, filename: str) -> Path:
    """Return ``directory/filename``, downloading it from ``url`` if absent.

    The cache is keyed on the filename only; an existing file is reused
    without any size or checksum validation.
    """
    target = directory / filename
    if target.is_file():
        log("INFO", f"Cloud image {filename} already exists. Skipping download.")
        return target
    ensure_directory(directory)
    download_file(url, target, label=f"Downloading cloud image {filename}")
    return target


def ensure_distro_image(image: DistroImage) -> Path:
    return ensure_image(image.local_dir, image.url, image.filename)
