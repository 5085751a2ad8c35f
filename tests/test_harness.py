import http.server
import os
import sys
import threading

import pytest

from composekit import harness
from composekit.harness import (
    CLI,
    Cmd,
    CommandError,
    Result,
    copy_file,
    dir_contents,
    find_executable,
    http_get_with_retry,
    lines,
    new_cli,
    run_command,
    stdout_contains,
    with_env,
)


@pytest.fixture
def cli(tmp_path):
    config = tmp_path / "config"
    home = tmp_path / "home"
    config.mkdir()
    home.mkdir()
    return CLI(config_dir=str(config), home_dir=str(home))


def test_base_environment(cli):
    env = cli.base_environment()
    assert env[0] == "HOME=" + cli.home_dir
    assert "DOCKER_CONFIG=" + cli.config_dir in env
    assert env[-1] == "KUBECONFIG=invalid"


def test_new_cmd_appends_cli_env(cli):
    with_env("A=1", "B=2")(cli)
    cmd = cli.new_cmd("echo", "x")
    assert cmd.command == ["echo", "x"]
    assert cmd.env[-2:] == ["A=1", "B=2"]
    assert cmd.env[:4] == cli.base_environment()


def test_new_cmd_with_env_order(cli):
    with_env("A=1")(cli)
    cmd = cli.new_cmd_with_env(["A=2"], "echo")
    assert cmd.env[-2:] == ["A=1", "A=2"]


def test_metrics_socket(cli):
    assert cli.metrics_socket() == os.path.join(cli.config_dir, "docker-cli.sock")


def test_new_docker_cmd_rejects_compose(cli):
    with pytest.raises(CommandError):
        cli.new_docker_cmd("compose", "up")


def test_new_docker_cmd(cli):
    cmd = cli.new_docker_cmd("ps", "--all")
    assert cmd.command == [harness.DOCKER_EXECUTABLE_NAME, "ps", "--all"]


def test_new_docker_compose_cmd_plugin_mode(cli):
    cmd = cli.new_docker_compose_cmd("ps")
    assert cmd.command == [harness.DOCKER_EXECUTABLE_NAME, "compose", "ps"]


def test_compose_standalone_path_requires_standalone(cli):
    with pytest.raises(CommandError):
        cli.compose_standalone_path()


def test_run_cmd_sees_environment(cli):
    with_env("EXTRA=value")(cli)
    res = cli.run_cmd(
        sys.executable, "-c", "import os; print(os.environ['DOCKER_CONFIG'], os.environ['EXTRA'])"
    )
    assert res.exit_code == 0
    assert res.stdout.strip() == cli.config_dir + " value"


def test_run_cmd_failure_raises(cli):
    with pytest.raises(CommandError):
        cli.run_cmd(sys.executable, "-c", "import sys; sys.exit(3)")


def test_run_cmd_requires_arguments(cli):
    with pytest.raises(ValueError):
        cli.run_cmd()


def test_run_cmd_in_dir(cli, tmp_path):
    res = cli.run_cmd_in_dir(tmp_path, sys.executable, "-c", "import os; print(os.getcwd())")
    assert os.path.realpath(res.stdout.strip()) == os.path.realpath(tmp_path)


def test_run_command_exit_code_and_output():
    res = run_command(
        Cmd([sys.executable, "-c", "import sys; print('out'); sys.stderr.write('err'); sys.exit(2)"])
    )
    assert res.exit_code == 2
    assert res.error is not None
    assert res.combined() == "out\nerr"
    with pytest.raises(CommandError):
        res.assert_success()


def test_run_command_missing_executable(tmp_path):
    res = run_command(Cmd([str(tmp_path / "no-such-binary")]))
    assert res.exit_code == 127
    assert res.error


def test_result_assert_success_returns_self():
    res = Result(Cmd(["x"]), 0, "a", "b")
    assert res.assert_success() is res


def test_find_executable(tmp_path):
    (tmp_path / "bin").mkdir()
    target = tmp_path / "bin" / "tool"
    target.write_text("x")
    found = find_executable("tool", [tmp_path / "missing", tmp_path / "bin"])
    assert found == os.path.abspath(target)
    with pytest.raises(FileNotFoundError):
        find_executable("other", [tmp_path / "bin"])


def test_copy_file(tmp_path):
    src = tmp_path / "src"
    src.write_bytes(b"payload")
    dst = tmp_path / "dst"
    copy_file(src, dst)
    assert dst.read_bytes() == b"payload"
    assert os.access(dst, os.X_OK)


def test_dir_contents(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "c.txt").write_text("c")
    (tmp_path / "a.txt").write_text("a")
    contents = dir_contents(tmp_path)
    assert contents == [
        str(tmp_path),
        str(tmp_path / "a.txt"),
        str(tmp_path / "b"),
        str(tmp_path / "b" / "c.txt"),
    ]


def test_lines():
    assert lines("  one\ntwo\n\n") == ["one", "two"]


def test_stdout_contains():
    predicate = stdout_contains("hello")
    assert predicate(Result(Cmd(["x"]), 0, "say hello there"))
    assert not predicate(Result(Cmd(["x"]), 0, "", "hello"))


def test_wait_for_condition(cli):
    calls = []

    def predicate():
        calls.append(1)
        return len(calls) >= 3, "not yet"

    outcome = cli.wait_for_condition(predicate, 5, 0.01)
    assert outcome is None
    assert len(calls) == 3


def test_wait_for_condition_times_out(cli):
    with pytest.raises(TimeoutError):
        cli.wait_for_condition(lambda: (False, "never"), 0.05, 0.01)


def test_wait_for_cmd_result(cli):
    cmd = cli.new_cmd(sys.executable, "-c", "print('ready')")
    res = cli.wait_for_cmd_result(cmd, stdout_contains("ready"), 5, 0.01)
    assert res.stdout.strip() == "ready"


def test_wait_for_cmd_result_rejects_short_timeout(cli):
    cmd = cli.new_cmd(sys.executable, "-c", "pass")
    with pytest.raises(ValueError):
        cli.wait_for_cmd_result(cmd, stdout_contains("x"), 1, 1)


def test_new_cli_with_env_and_plugins(tmp_path, monkeypatch):
    build = tmp_path / "bin" / "build"
    build.mkdir(parents=True)
    (build / harness.DOCKER_COMPOSE_EXECUTABLE_NAME).write_bytes(b"plugin")
    work = tmp_path / "a" / "b"
    work.mkdir(parents=True)
    monkeypatch.chdir(work)
    with new_cli(with_env("K=V"), standalone=True) as created:
        plugins = os.path.join(created.config_dir, "cli-plugins")
        with open(os.path.join(plugins, harness.DOCKER_SCAN_EXECUTABLE_NAME), "rb") as f:
            assert f.read() == b"plugin"
        assert created.env == ["K=V"]
        path = created.compose_standalone_path()
        assert path == os.path.abspath(build / harness.DOCKER_COMPOSE_EXECUTABLE_NAME)
        assert created.new_docker_compose_cmd("up").command == [path, "up"]
        config_dir = created.config_dir
    assert not os.path.exists(config_dir)


class _Handler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):
        body = b"hello from server"
        self.send_response(200)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def server():
    srv = http.server.HTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{srv.server_address[1]}/"
    srv.shutdown()
    srv.server_close()


def test_http_get_with_retry(server):
    assert http_get_with_retry(server, 200, 1.0, 5.0) == "hello from server"


def test_http_get_with_retry_wrong_status(server):
    with pytest.raises(TimeoutError):
        http_get_with_retry(server, 404, 0.05, 0.2)