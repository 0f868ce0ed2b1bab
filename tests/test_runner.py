from __future__ import annotations

import os
import sys
from pathlib import Path

import allure
import pytest

from brain_cli.process.body import CommandBody
from brain_cli.process.runner import ProcessRunError, ProcessRunner

pytestmark = [
    allure.epic("Process Execution"),
    allure.feature("Hooks & Subprocess"),
]


_SPAWNING_AGENT = """\
import os, subprocess, sys, time
helper = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
print(os.getpid(), helper.pid, flush=True)
time.sleep(30)
"""


def _append_line(marker: str) -> str:
    return f"echo {marker} >> events.log"


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def _events(cwd: Path) -> list[str]:
    return (cwd / "events.log").read_text("utf-8").split()


@pytest.mark.skipif(os.name == "nt", reason="hooks use a POSIX shell")
def test_hooks_run_around_successful_process(tmp_path: Path) -> None:
    body = CommandBody(
        command=_python("open('events.log', 'a').write('main\\n')"),
        commands={
            "before": [_append_line("before")],
            "after": [_append_line("after")],
            "exit": [_append_line("exit")],
        },
    )

    exit_code = ProcessRunner().open(body, tmp_path)

    assert exit_code == 0
    assert _events(tmp_path) == ["before", "main", "after", "exit"]


@pytest.mark.skipif(os.name == "nt", reason="hooks use a POSIX shell")
def test_after_hooks_are_skipped_on_failure(tmp_path: Path) -> None:
    body = CommandBody(
        command=_python("import sys; sys.exit(3)"),
        commands={
            "before": [_append_line("before")],
            "after": [_append_line("after")],
            "exit": [_append_line("exit")],
        },
    )

    exit_code = ProcessRunner().open(body, tmp_path)

    assert exit_code == 3
    assert _events(tmp_path) == ["before", "exit"]


@pytest.mark.skipif(os.name == "nt", reason="hooks use a POSIX shell")
def test_exit_hooks_run_when_binary_is_missing(tmp_path: Path) -> None:
    body = CommandBody(
        command=[str(tmp_path / "missing-agent")],
        commands={"exit": [_append_line("exit")]},
    )

    with pytest.raises(ProcessRunError, match="Agent command not found") as error:
        ProcessRunner().open(body, tmp_path)

    assert error.value.transient is False
    assert _events(tmp_path) == ["exit"]


def test_run_streams_non_empty_lines(tmp_path: Path) -> None:
    lines: list[str] = []
    body = CommandBody(command=_python("print('first'); print(); print('  second  ')"))

    exit_code = ProcessRunner().run(body, tmp_path, lines.append)

    assert exit_code == 0
    assert lines == ["first", "second"]


def test_body_env_overrides_base_env(tmp_path: Path) -> None:
    lines: list[str] = []
    body = CommandBody(
        command=_python("import os; print(os.environ['BRAIN_TEST_VALUE'])"),
        env={"BRAIN_TEST_VALUE": "from-body"},
    )
    runner = ProcessRunner(base_env={**os.environ, "BRAIN_TEST_VALUE": "from-base"})

    runner.run(body, tmp_path, lines.append)

    assert lines == ["from-body"]


def test_empty_command_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ProcessRunError, match="empty command"):
        ProcessRunner().open(CommandBody(), tmp_path)


@pytest.mark.skipif(os.name == "nt", reason="hooks use a POSIX shell")
def test_failing_callback_stops_agent_and_its_children(tmp_path: Path, wait_for_exit) -> None:
    pids: list[int] = []

    def _callback(line: str) -> None:
        pids.extend(int(token) for token in line.split())
        raise RuntimeError("callback failed")

    body = CommandBody(
        command=_python(_SPAWNING_AGENT),
        commands={"exit": [_append_line("exit")]},
    )

    with pytest.raises(RuntimeError, match="callback failed"):
        ProcessRunner().run(body, tmp_path, _callback)

    assert len(pids) == 2
    agent_pid, helper_pid = pids
    assert wait_for_exit(agent_pid)
    assert wait_for_exit(helper_pid)
    assert _events(tmp_path) == ["exit"]
