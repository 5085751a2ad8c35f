"""Suggest the image scanning command after a successful build."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Callable, Optional, TextIO, Union

SCAN_SUGGEST_MSG = (
    "Use 'docker scan' to run Snyk tests against images to find "
    "vulnerabilities and learn how to fix them"
)


def docker_config_dir() -> Path:
    """Return the client configuration directory (DOCKER_CONFIG or ~/.docker)."""
    configured = os.environ.get("DOCKER_CONFIG")
    if configured:
        return Path(configured)
    return Path.home() / ".docker"


def scan_already_invoked(config_dir: Optional[Union[str, Path]] = None) -> bool:
    """Return True if the scan tool has been opted into, or its state is unclear."""
    base = Path(config_dir) if config_dir is not None else docker_config_dir()
    filename = base / "scan" / "config.json"
    if not filename.exists():
        return False
    if filename.is_dir():
        return True
    try:
        data = json.loads(filename.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return True
    if data is None:
        return False
    if not isinstance(data, dict):
        return True
    optin = data.get("optin")
    if optin is None:
        return False
    if not isinstance(optin, bool):
        return True
    return optin


def display_scan_suggest_msg(
    scan_available: Union[bool, Callable[[], bool]],
    config_dir: Optional[Union[str, Path]] = None,
    stream: Optional[TextIO] = None,
) -> bool:
    """Print the scan suggestion when appropriate; return whether it was shown.

    ``scan_available`` tells whether the scan plugin is installed, either as a
    value or as a callable consulted only when needed.
    """
    if os.environ.get("DOCKER_SCAN_SUGGEST") == "false":
        return False
    available = scan_available() if callable(scan_available) else scan_available
    if not available:
        return False
    if scan_already_invoked(config_dir):
        return False
    out = stream if stream is not None else sys.stderr
    out.write("\n" + SCAN_SUGGEST_MSG + "\n")
    return True