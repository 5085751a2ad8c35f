import json

import pytest

from composekit.harness import Cmd, Result
from composekit.service_state import check_service_state, require_service_state


def _ps(*entries):
    return json.dumps(list(entries))


def test_matching_state_case_insensitive():
    output = _ps(
        {"Service": "web", "State": "Running", "Name": "p-web-1"},
        {"Service": "web", "State": "running", "Name": "p-web-2"},
    )
    entries = check_service_state(output, "web", "RUNNING")
    assert [e["Name"] for e in entries] == ["p-web-1", "p-web-2"]


def test_empty_output_passes():
    assert check_service_state("[]", "web", "running") == []


def test_wrong_state_raises():
    output = _ps({"Service": "web", "State": "exited", "Name": "p-web-1"})
    entries = check_service_state(output, "web", "exited")
    assert [e["Name"] for e in entries] == ["p-web-1"]
    with pytest.raises(AssertionError):
        check_service_state(output, "web", "running")


def test_unexpected_service_raises():
    output = _ps({"Service": "db", "State": "running", "Name": "p-db-1"})
    entries = check_service_state(output, "db", "running")
    assert [e["Name"] for e in entries] == ["p-db-1"]
    with pytest.raises(AssertionError):
        check_service_state(output, "web", "running")


def test_invalid_json_raises():
    with pytest.raises(ValueError):
        check_service_state("not json", "web", "running")


class _FakeCLI:
    def __init__(self, stdout):
        self.stdout = stdout
        self.calls = []

    def run_docker_compose_cmd(self, *args):
        self.calls.append(args)
        return Result(Cmd(["docker", "compose", *args]), 0, self.stdout)


def test_require_service_state_queries_ps():
    fake = _FakeCLI(_ps({"Service": "app", "State": "running", "Name": "p-app-1"}))
    entries = require_service_state(fake, "app", "running")
    assert fake.calls == [("ps", "--format=json", "app")]
    assert entries[0]["Name"] == "p-app-1"


def test_require_service_state_mismatch():
    fake = _FakeCLI(_ps({"Service": "app", "State": "exited", "Name": "p-app-1"}))
    entries = require_service_state(fake, "app", "exited")
    assert [e["State"] for e in entries] == ["exited"]
    with pytest.raises(AssertionError):
        require_service_state(fake, "app", "running")
    assert fake.calls == [("ps", "--format=json", "app"), ("ps", "--format=json", "app")]