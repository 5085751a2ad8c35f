"""Helpers for driving the container CLI from end-to-end tests."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import tempfile
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

PLUGIN_NAME = "compose"
WINDOWS_EXECUTABLE_SUFFIX = ".exe"

_SUFFIX = WINDOWS_EXECUTABLE_SUFFIX if sys.platform.startswith("win") else ""

DOCKER_EXECUTABLE_NAME = "docker" + _SUFFIX
DOCKER_COMPOSE_EXECUTABLE_NAME = "docker-" + PLUGIN_NAME + _SUFFIX
DOCKER_SCAN_EXECUTABLE_NAME = "docker-scan" + _SUFFIX

# Whether compose is invoked as a standalone binary rather than a CLI plugin.
COMPOSE_STANDALONE_MODE = False

BUILD_DIRS = ("../../bin/build", "../../../bin/build")

PathLike = Union[str, "os.PathLike[str]"]


class CommandError(Exception):
    """A command did not behave as the test expected."""


@dataclass
class Cmd:
    """A command line with its environment and working directory."""

    command: List[str]
    env: Optional[List[str]] = None
    directory: Optional[str] = None
    timeout: Optional[float] = None

    def __str__(self) -> str:
        return " ".join(self.command)


@dataclass
class Result:
    """The outcome of running a :class:`Cmd`."""

    cmd: Cmd
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None

    def combined(self) -> str:
        """Return stdout followed by stderr."""
        return self.stdout + self.stderr

    def assert_success(self) -> "Result":
        """Raise CommandError unless the command exited with status 0."""
        if self.exit_code != 0 or self.error is not None:
            raise CommandError(
                f"command {str(self.cmd)!r} failed\n"
                f"ExitCode: {self.exit_code}\n"
                f"Error: {self.error}\n"
                f"Stdout: {self.stdout}\n"
                f"Stderr: {self.stderr}"
            )
        return self


def _env_dict(entries: Sequence[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if sep:
            env[key] = value
    return env


def _text(value: Union[str, bytes, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _has_separator(name: str) -> bool:
    return os.sep in name or (os.altsep is not None and os.altsep in name)


def run_command(cmd: Cmd) -> Result:
    """Run ``cmd`` to completion and capture its output.

    The executable is looked up on this process's PATH. A command that cannot
    be started yields exit code 127 with ``error`` set.
    """
    if not cmd.command:
        raise ValueError("require at least one command in parameters")
    argv = list(cmd.command)
    if not _has_separator(argv[0]):
        found = shutil.which(argv[0])
        if found:
            argv[0] = found
    env = _env_dict(cmd.env) if cmd.env is not None else None
    try:
        proc = subprocess.run(
            argv,
            env=env,
            cwd=cmd.directory,
            capture_output=True,
            text=True,
            timeout=cmd.timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        return Result(
            cmd, -1, _text(exc.stdout), _text(exc.stderr), f"timed out after {cmd.timeout}s"
        )
    except OSError as exc:
        return Result(cmd, 127, "", "", str(exc))
    error = None if proc.returncode == 0 else f"exit status {proc.returncode}"
    return Result(cmd, proc.returncode, proc.stdout, proc.stderr, error)


def _wait_on(check: Callable[[], Tuple[bool, str]], delay: float, timeout: float) -> None:
    deadline = time.monotonic() + timeout
    while True:
        ok, message = check()
        if ok:
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(f"timeout hit after {timeout}s: {message}")
        time.sleep(min(delay, remaining))


@dataclass
class CLI:
    """Runs commands against isolated configuration and home directories."""

    config_dir: str
    home_dir: str
    env: List[str] = field(default_factory=list)
    standalone: bool = COMPOSE_STANDALONE_MODE
    _temp_dirs: List[str] = field(default_factory=list, init=False, repr=False)

    def __enter__(self) -> "CLI":
        return self

    def __exit__(self, *exc_info: object) -> None:
        for directory in self._temp_dirs:
            shutil.rmtree(directory, ignore_errors=True)
        self._temp_dirs.clear()

    def base_environment(self) -> List[str]:
        """Return the minimal environment shared by every command."""
        return [
            "HOME=" + self.home_dir,
            "USER=" + os.environ.get("USER", ""),
            "DOCKER_CONFIG=" + self.config_dir,
            "KUBECONFIG=invalid",
        ]

    def new_cmd(self, command: str, *args: str) -> Cmd:
        """Build a command with the test environment applied."""
        return Cmd(command=[command, *args], env=self.base_environment() + list(self.env))

    def new_cmd_with_env(self, envvars: Sequence[str], command: str, *args: str) -> Cmd:
        """Build a command whose environment also carries ``envvars``."""
        env = self.base_environment() + list(self.env) + list(envvars)
        return Cmd(command=[command, *args], env=env)

    def metrics_socket(self) -> str:
        """Return the path where metrics are sent."""
        return os.path.join(self.config_dir, "docker-cli.sock")

    def new_docker_cmd(self, *args: str) -> Cmd:
        """Build a docker command without running it."""
        if PLUGIN_NAME in args:
            raise CommandError(
                "This test called 'RunDockerCmd' for 'compose'. Please prefer "
                "'RunDockerComposeCmd' to be able to test as a plugin and standalone"
            )
        return self.new_cmd(DOCKER_EXECUTABLE_NAME, *args)

    def run_docker_or_exit_error(self, *args: str) -> Result:
        """Run a docker command and return its result whatever it is."""
        logger.info("\tdocker %s", " ".join(args))
        return run_command(self.new_docker_cmd(*args))

    def run_cmd(self, *args: str) -> Result:
        """Run a command that must succeed."""
        logger.info("\t%s", " ".join(args))
        if not args:
            raise ValueError("require at least one command in parameters")
        return run_command(self.new_cmd(args[0], *args[1:])).assert_success()

    def run_cmd_in_dir(self, directory: PathLike, *args: str) -> Result:
        """Run a command in ``directory``; it must succeed."""
        logger.info("\t%s", " ".join(args))
        if not args:
            raise ValueError("require at least one command in parameters")
        cmd = self.new_cmd(args[0], *args[1:])
        cmd.directory = os.fspath(directory)
        return run_command(cmd).assert_success()

    def run_docker_cmd(self, *args: str) -> Result:
        """Run a docker command that must succeed."""
        return self.run_docker_or_exit_error(*args).assert_success()

    def run_docker_compose_cmd(self, *args: str) -> Result:
        """Run a compose command that must succeed."""
        return self.run_docker_compose_cmd_no_check(*args).assert_success()

    def run_docker_compose_cmd_no_check(self, *args: str) -> Result:
        """Run a compose command and return its result whatever it is."""
        return run_command(self.new_docker_compose_cmd(*args))

    def new_docker_compose_cmd(self, *args: str) -> Cmd:
        """Build a compose command, as a plugin or standalone."""
        if self.standalone:
            return self.new_cmd(self.compose_standalone_path(), *args)
        return self.new_cmd(DOCKER_EXECUTABLE_NAME, PLUGIN_NAME, *args)

    def compose_standalone_path(self) -> str:
        """Return the path of the locally built standalone compose binary."""
        if not self.standalone:
            raise CommandError("Not running in standalone mode")
        try:
            return find_executable(DOCKER_COMPOSE_EXECUTABLE_NAME, BUILD_DIRS)
        except FileNotFoundError as exc:
            raise CommandError(
                f"Could not find standalone Compose binary ({DOCKER_COMPOSE_EXECUTABLE_NAME!r})"
            ) from exc

    def wait_for_cmd_result(
        self,
        command: Cmd,
        predicate: Callable[[Result], bool],
        timeout: float,
        delay: float,
    ) -> Result:
        """Run ``command`` until its result satisfies ``predicate``."""
        if not timeout > delay:
            raise ValueError("timeout must be greater than delay")
        outcome: List[Result] = []

        def check() -> Tuple[bool, str]:
            logger.info("\t%s", " ".join(command.command))
            res = run_command(command)
            outcome[:] = [res]
            if not predicate(res):
                return False, f"Cmd output did not match requirement: {res.combined()!r}"
            return True, ""

        _wait_on(check, delay, timeout)
        return outcome[0]

    def wait_for_condition(
        self,
        predicate: Callable[[], Tuple[bool, str]],
        timeout: float,
        delay: float,
    ) -> None:
        """Wait until ``predicate`` returns a true first item."""

        def check() -> Tuple[bool, str]:
            passed, description = predicate()
            if not passed:
                return False, f"Condition not met: {description!r}"
            return True, ""

        _wait_on(check, delay, timeout)


CLIOption = Callable[[CLI], None]


def with_env(*args: str) -> CLIOption:
    """Return an option adding ``KEY=VALUE`` entries to every command."""

    def apply(cli: CLI) -> None:
        cli.env.extend(args)

    return apply


def _initialize_plugins(config_dir: str) -> None:
    os.makedirs(os.path.join(config_dir, "cli-plugins"), mode=0o755, exist_ok=True)
    try:
        plugin = find_executable(DOCKER_COMPOSE_EXECUTABLE_NAME, BUILD_DIRS)
    except FileNotFoundError:
        logger.warning("docker-compose cli-plugin not found")
        return
    plugins = os.path.join(config_dir, "cli-plugins")
    copy_file(plugin, os.path.join(plugins, DOCKER_COMPOSE_EXECUTABLE_NAME))
    # the scan plugin only needs to be a valid plugin binary
    copy_file(plugin, os.path.join(plugins, DOCKER_SCAN_EXECUTABLE_NAME))


def new_cli(*args: CLIOption, standalone: bool = COMPOSE_STANDALONE_MODE) -> CLI:
    """Create a CLI with fresh configuration and home directories."""
    config_dir = tempfile.mkdtemp(prefix="compose-config-")
    home_dir = tempfile.mkdtemp(prefix="compose-home-")
    _initialize_plugins(config_dir)
    cli = CLI(config_dir=config_dir, home_dir=home_dir, standalone=standalone)
    cli._temp_dirs.extend([config_dir, home_dir])
    for option in args:
        option(cli)
    return cli


def find_executable(executable_name: str, paths: Sequence[PathLike]) -> str:
    """Return the absolute path of the first ``executable_name`` found in ``paths``."""
    for directory in paths:
        candidate = os.path.abspath(os.path.join(os.fspath(directory), executable_name))
        if os.path.exists(candidate):
            return candidate
    raise FileNotFoundError(f"executable not found: {executable_name}")


def copy_file(source_file: PathLike, destination_file: PathLike) -> None:
    """Copy a file, making the destination executable (mode 0755)."""
    with open(source_file, "rb") as src, open(destination_file, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.chmod(destination_file, 0o755)


def dir_contents(directory: PathLike) -> List[str]:
    """List ``directory`` and every path below it, in lexical walk order."""
    root = os.fspath(directory)
    result = [root]

    def walk(path: str) -> None:
        try:
            names = sorted(os.listdir(path))
        except OSError:
            return
        for name in names:
            child = os.path.join(path, name)
            result.append(child)
            if os.path.isdir(child) and not os.path.islink(child):
                walk(child)

    walk(root)
    return result


def stdout_contains(expected: str) -> Callable[[Result], bool]:
    """Return a predicate that holds when a result's stdout contains ``expected``."""
    return lambda res: expected in res.stdout


def lines(output: str) -> List[str]:
    """Split trimmed ``output`` into lines."""
    return output.strip().split("\n")


def http_get_with_retry(
    endpoint: str,
    expected_status: int,
    retry_delay: float,
    timeout: float,
) -> str:
    """GET ``endpoint`` until it answers ``expected_status``; return the body.

    ``retry_delay`` is also the timeout of each request. Raises TimeoutError
    when the expected status was not seen in time.
    """
    logger.info("\tGET %s", endpoint)
    body: List[bytes] = []

    def check() -> Tuple[bool, str]:
        try:
            with urllib.request.urlopen(endpoint, timeout=retry_delay) as response:
                status = response.status
                content = response.read()
        except urllib.error.HTTPError as exc:
            status = exc.code
            content = exc.read()
        except (urllib.error.URLError, OSError) as exc:
            return False, f"reaching {endpoint!r}: Error {exc}"
        body[:] = [content]
        if status == expected_status:
            return True, ""
        return False, f"reaching {endpoint!r}: {status} != {expected_status}"

    _wait_on(check, retry_delay, timeout)
    return body[0].decode("utf-8", errors="replace") if body else ""