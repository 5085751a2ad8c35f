"""Checks on the state of compose services."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from composekit.harness import CLI


def check_service_state(ps_output: str, service: str, state: str) -> List[Dict[str, Any]]:
    """Check that every container in ``ps`` JSON output is ``service`` in ``state``.

    The state comparison ignores letter case. Returns the parsed entries;
    raises ValueError on invalid JSON and AssertionError on a mismatch.
    """
    try:
        entries = json.loads(ps_output)
    except ValueError as exc:
        raise ValueError("Invalid `compose ps` JSON output") from exc
    if not isinstance(entries, list):
        raise ValueError("Invalid `compose ps` JSON output")
    for entry in entries:
        if entry.get("Service") != service:
            raise AssertionError(
                f"Found ps output for unexpected service: {entry.get('Service')!r}"
            )
        actual = entry.get("State")
        if not isinstance(actual, str) or actual.lower() != state.lower():
            raise AssertionError(
                f"Service {service!r} ({entry.get('Name')}) not in expected state"
            )
    return entries


def require_service_state(cli: CLI, service: str, state: str) -> List[Dict[str, Any]]:
    """Query ``compose ps`` for ``service`` and check it is in ``state``."""
    result = cli.run_docker_compose_cmd("ps", "--format=json", service)
    return check_service_state(result.stdout, service, state)