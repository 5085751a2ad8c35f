# composekit

Building blocks for command-line tooling that drives containers:

- **Progress reporting** (`composekit.progress`, `composekit.events`,
  `composekit.spinner`): a live terminal view of many concurrent tasks, with
  a plain line-by-line fallback when output is not a terminal.
- **Output helpers** (`composekit.linewriter`, `composekit.safebuffer`):
  split a byte stream into lines, or collect output safely from several
  threads and wait until it contains a given text.
- **Small utilities** (`composekit.stringutils`, `composekit.scan_suggest`,
  `composekit.prompt`): lenient boolean parsing, membership checks by value,
  a post-build hint to scan images, and interactive prompts.
- **End-to-end harness** (`composekit.harness`, `composekit.service_state`):
  run `docker` and `docker compose` with an isolated configuration directory,
  poll until output matches, and check the state reported for a service.

The package has no runtime dependencies beyond the standard library.

## Installation

```
pip install composekit
```

To run the test suite:

```
pip install "composekit[test]"
pytest
```

## Progress reporting

An `Event` describes the state of one task; its `status` is an
`EventStatus` (`WORKING`, `DONE`, `ERROR`, `WARNING`). Helper constructors
cover the usual life cycle of a container:

```python
from composekit import events

events.creating_event("Container web-1")   # WORKING, "Creating"
events.started_event("Container web-1")    # DONE, "Started"
events.error_message_event("Container db-1", "port is already allocated")
```

`new_writer(out, mode)` picks a renderer for an output stream according to a
`ProgressMode` (`AUTO`, `TTY`, `PLAIN`; `AUTO` when no mode is given):

- `TTYWriter` redraws a block of event lines in place, each with a
  `Spinner`, the status text and the elapsed time, coloured by status. It is
  chosen in `AUTO` mode when the stream is a terminal; asking for `TTY` on a
  stream that is not a terminal raises `ValueError`.
- `PlainWriter` prints one line per event.
- `NoopWriter` discards everything.

Every writer offers `start`, `stop`, `event`, `events` and `tail_msgf`; on
the terminal writer, `tail_msgf` messages are printed once, after the final
redraw. `start` blocks until `stop` is called and raises
`concurrent.futures.CancelledError` if the `threading.Event` passed as
`cancel` is set first.

`run(func)` and `run_with_status(func)` start a writer on a background
thread (on standard error unless `out` is given), call `func`, stop the
writer and return what `func` returned. Inside `func`, `current_writer()`
gives the active writer; outside, it gives a `NoopWriter`. `use_writer` is a
context manager that installs a writer for a block of code.

`line_text`, `align` and `num_done` are the formatting helpers the terminal
writer uses, and can be called directly.

## Line splitting

```python
from composekit.linewriter import get_writer

lines = []
writer = get_writer(lines.append)
writer.write(b"hel")
writer.write(b"lo\nworld!\n")
writer.close()
# lines == ["hello", "world!"]
```

Whatever is left without a trailing newline is passed on when the writer is
closed; a `SplitWriter` can also be used as a context manager.

## Shared buffer

`SafeBuffer` is a thread-safe byte buffer: `write` appends, `read` consumes,
`getvalue` and `text` look without consuming. `wait_for(needle, timeout,
interval)` drains the buffer until the collected content contains `needle`
and raises `TimeoutError` otherwise.

## Utilities

```python
from composekit.stringutils import contains, string_contains, string_to_bool

string_to_bool(" TRUE ")      # True
string_to_bool("nonsense")    # False
string_contains(["a", "b"], "b")
contains([{"os": "linux"}], {"os": "linux"})
```

`duration_seconds_to_int` turns a `timedelta` into whole seconds, passing
`None` through.

`composekit.scan_suggest.display_scan_suggest_msg(scan_available)` prints a
suggestion to scan freshly built images, unless `DOCKER_SCAN_SUGGEST=false`
is set, `scan_available` is false, or `scan/config.json` in the client
configuration directory (`docker_config_dir()`) records an opt-in. It
returns whether the message was shown.

`composekit.prompt.User` implements the `UI` interface — `select`, `input`,
`confirm` and `password` — on the terminal, or on the `stdin` and `stdout`
streams it is given.

## End-to-end harness

`new_cli` creates a `CLI` with its own temporary configuration and home
directories, copying a locally built `docker-compose` plugin into place when
one is found in `../../bin/build` or `../../../bin/build`. Used as a context
manager, the `CLI` removes those directories on exit. Commands are described
by `Cmd` objects and their outcome by `Result`:

```python
from composekit.harness import new_cli, with_env, lines

with new_cli(with_env("COMPOSE_PROJECT_NAME=demo")) as cli:
    result = cli.run_docker_compose_cmd("-f", "compose.yaml", "up", "-d")
    print(lines(result.combined()))
```

Compose runs as `docker compose` by default; pass `standalone=True` to
`new_cli` to run the locally built standalone binary instead.

`run_cmd`, `run_cmd_in_dir`, `run_docker_cmd` and `run_docker_compose_cmd`
raise `CommandError` when the command fails; `run_docker_or_exit_error` and
`run_docker_compose_cmd_no_check` return the `Result` whatever it is.
`wait_for_cmd_result` and `wait_for_condition` retry until a predicate holds
and raise `TimeoutError` when it does not in time; `stdout_contains` builds a
ready-made predicate, and `http_get_with_retry` polls an HTTP endpoint until
it answers with the expected status.

`composekit.service_state.require_service_state(cli, "web", "running")`
checks the JSON output of `compose ps` for a service;
`check_service_state` does the same on output you already have.

## What this package does not do

It does not manage containers itself. There is no command of its own: the
harness only starts an installed `docker` client (and, optionally, a
separately built compose binary), and the progress writers only render the
events you give them.