"""Utility functions for pve-cloud-template."""

from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

try:
    import bcrypt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("bcrypt is required but not installed") from exc

from pvetemplate.constants import _LOG_VERBOSE
from pvetemplate.exceptions import DownloadError

_LEVEL_COLOURS = {
    "INFO": "\033[0;34m",
    "WARN": "\033[1;33m",
    "ERROR": "\033[0;31m",
    "SUCCESS": "\033[0;32m",
    "DEBUG": "\033[0;90m",
}
_STDERR_LEVELS = {"WARN", "ERROR"}

_MIB = 1024 * 1024
_CHUNK_SIZE = 256 * 1024
_BAR_WIDTH = 30
_USER_AGENT = "pve-cloud-template/0.1"


def log(level: str, message: str) -> None:
    """Print a ``[LEVEL]`` tagged line; warnings and errors go to stderr."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colour = _LEVEL_COLOURS.get(level, "")
    tag = f"{colour}[{level}]\033[0m" if colour else f"[{level}]"
    stream = sys.stderr if level in _STDERR_LEVELS else sys.stdout
    print(f"{tag} {message}", file=stream, flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_path(name: str, default: Path) -> Path:
    raw = (get_env(name) or "").strip()
    return Path(raw) if raw else default


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _progress_line(done: int, total: Optional[int], started: float) -> str:
    elapsed = time.time() - started
    rate = done / elapsed / _MIB if elapsed > 0 else 0.0
    if not total:
        return f"  {done / _MIB:.1f} MiB downloaded ({rate:.1f} MiB/s)"
    filled = int(_BAR_WIDTH * done / total)
    bar = "#" * filled + "-" * (_BAR_WIDTH - filled)
    return f"  [{bar}] {done * 100 / total:5.1f}% {done / _MIB:.1f}/{total / _MIB:.1f} MiB ({rate:.1f} MiB/s)"


def download_file(url: str, destination: Path, label: str = "Downloading") -> None:
    """Stream ``url`` to ``destination`` with a progress bar.

    Data lands in a ``.part`` file in the destination directory which is only
    renamed over ``destination`` after the full body has arrived, so a failed
    or truncated transfer never leaves a file that looks like a cached image.
    """
    log("INFO", f"{label}: {url}")
    try:
        response = urlopen(Request(url, headers={"User-Agent": _USER_AGENT}), timeout=60)
    except HTTPError as exc:
        raise DownloadError(f"HTTP error downloading {url}: {exc.code} {exc.reason}") from exc
    except URLError as exc:
        raise DownloadError(f"Failed to download {url}: {exc.reason}") from exc

    with response:
        length = response.headers.get("Content-Length")
        expected = int(length) if length else None
        received = 0
        started = time.time()

        with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent, suffix=".part") as part:
            part_path = Path(part.name)
            try:
                for chunk in iter(lambda: response.read(_CHUNK_SIZE), b""):
                    part.write(chunk)
                    received += len(chunk)
                    print("\r" + _progress_line(received, expected, started), end="", flush=True)
                print(flush=True)
            except OSError as exc:
                part_path.unlink(missing_ok=True)
                raise DownloadError(f"Download of {url} interrupted: {exc}") from exc
            except Exception:
                part_path.unlink(missing_ok=True)
                raise

    if expected is not None and received != expected:
        part_path.unlink(missing_ok=True)
        raise DownloadError(f"Incomplete download of {url}: got {received} of {expected} bytes")

    part_path.replace(destination)
    log("SUCCESS", f"Downloaded {received / _MIB:.1f} MiB in {time.time() - started:.1f}s")


def hash_password(password: str) -> str:
    """Return a bcrypt hash suitable for the cloud-init ``passwd`` field."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, check=check, text=True, **kwargs)
