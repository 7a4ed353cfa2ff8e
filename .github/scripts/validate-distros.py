#!/usr/bin/env python3
"""Check pvetemplate/distros.yaml: entry schema first, then cloud image URLs."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Iterator, Optional

import requests
import yaml

DISTROS_PATH = Path(__file__).resolve().parents[2] / "pvetemplate" / "distros.yaml"
VALID_FAMILIES = {"apt", "dnf"}
REQUIRED_STRINGS = ("name", "version", "url", "vm_name_prefix")
LIST_FIELDS = ("packages", "home_packages", "setup_commands")
URL_RE = re.compile(r"^https?://")
REQUEST_TIMEOUT = 30
USER_AGENT = "pve-cloud-template/catalogue-check"


def load_distros(path: Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _entry_errors(key: str, entry: dict) -> Iterator[str]:
    for name in REQUIRED_STRINGS:
        if name not in entry:
            yield f"[{key}] missing required field '{name}'"
        elif not isinstance(entry[name], str):
            yield f"[{key}] '{name}' must be a string"

    url = entry.get("url")
    if isinstance(url, str) and not URL_RE.match(url):
        yield f"[{key}] 'url' must start with http:// or https://"

    family = entry.get("family")
    if family is None:
        yield f"[{key}] missing required field 'family'"
    elif family not in VALID_FAMILIES:
        yield f"[{key}] 'family' must be one of {sorted(VALID_FAMILIES)}, got '{family}'"

    for name in LIST_FIELDS:
        value = entry.get(name, [])
        if not (isinstance(value, list) and all(isinstance(item, str) for item in value)):
            yield f"[{key}] '{name}' must be a list of strings"


def validate_schema(data: dict) -> list[str]:
    if "distributions" not in data:
        return ["Top-level 'distributions' key is missing"]
    distros = data["distributions"]
    if not isinstance(distros, dict):
        return ["'distributions' must be a mapping"]

    errors: list[str] = []
    for key, entry in distros.items():
        if isinstance(entry, dict):
            errors.extend(_entry_errors(key, entry))
        else:
            errors.append(f"[{key}] entry is not a mapping")
    return errors


def check_url(key: str, url: str) -> Optional[str]:
    """Return an error string if the URL is unreachable, else None."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    try:
        resp = session.head(url, timeout=REQUEST_TIMEOUT, allow_redirects=True)
        # Some mirrors refuse HEAD
        if resp.status_code in (403, 405):
            resp = session.get(url, timeout=REQUEST_TIMEOUT, allow_redirects=True, stream=True)
            resp.close()
    except requests.RequestException as exc:
        return f"[{key}] {exc.__class__.__name__}: {exc} for {url}"
    if resp.status_code < 400:
        return None
    return f"[{key}] HTTP {resp.status_code} for {url}"


def validate_urls(data: dict) -> list[str]:
    results = (check_url(key, entry["url"]) for key, entry in data["distributions"].items() if entry.get("url"))
    return [err for err in results if err]


def _report(errors: list[str], summary: str) -> int:
    for err in errors:
        print(f"  ERROR: {err}")
    print(f"\n{summary}")
    return 1


def main() -> int:
    print(f"Loading {DISTROS_PATH}")
    data = load_distros(DISTROS_PATH)

    print("\n--- schema ---")
    errors = validate_schema(data)
    if errors:
        return _report(errors, f"Schema validation failed with {len(errors)} error(s)")
    count = len(data["distributions"])
    print(f"  OK: {count} distributions")

    print("\n--- image URLs ---")
    errors = validate_urls(data)
    if errors:
        return _report(errors, f"URL validation failed: {len(errors)}/{count} unreachable")
    print(f"  OK: all {count} cloud image URLs reachable")
    return 0


if __name__ == "__main__":
    sys.exit(main())
