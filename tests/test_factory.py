from __future__ import annotations

import shutil
import signal
import sys

import allure
import pytest

from brain_cli.agents import Agent
from brain_cli.clients.base import AgentClient
from brain_cli.clients.claude import ClaudeClient
from brain_cli.clients.codex import GroqClient
from brain_cli.config import Settings
from brain_cli.process.errors import PreconditionError, StateError
from brain_cli.process.output import ProcessInit, ProcessMessage, ProcessResult
from brain_cli.process.payload import Payload
from brain_cli.process.types import ProcessType

pytestmark = [
    allure.epic("Process Composition"),
    allure.feature("Build Driver"),
]


_SCRIPT = """\
import json
for line in (
    {"type": "system", "subtype": "init", "session_id": "s-1"},
    {"type": "assistant", "message": {"id": "m-1", "type": "message",
        "content": [{"type": "text", "text": "hello"}]}},
    "not json",
    {"type": "result", "subtype": "success", "usage": {"input_tokens": 3, "output_tokens": 5}},
):
    print(line if isinstance(line, str) else json.dumps(line))
"""


class _EmptyInstallClient(AgentClient):
    agent = Agent.CLAUDE
    folder = ".empty"
    instruction_file = "EMPTY.md"

    def process_payload(self, payload: Payload) -> Payload:
        return payload.install_behavior([]).update_behavior("npm").program_behavior("agent")


class _ScriptedClaudeClient(ClaudeClient):
    def process_payload(self, payload: Payload) -> Payload:
        return (
            super()
            .process_payload(payload)
            .program_behavior([sys.executable, "-c", _SCRIPT])
            .ask_behavior(lambda factory, prompt: [])
            .json_behavior([])
        )


def test_build_composes_claude_ask_with_json(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN)

    body = factory.build({"ask": "hi", "json": True, "model": "opus"}).to_body()

    assert body.command == [
        "claude",
        "hi",
        "--print",
        "--output-format",
        "stream-json",
        "--verbose",
        "--model",
        "opus",
    ]
    assert body.env == {"ENABLE_TOOL_SEARCH": "1"}


def test_build_install_only_resolves_install(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.INSTALL)

    body = factory.build({"install": True, "ask": "ignored"}).to_body()

    assert body.command == ["npm", "install", "-g", "@anthropic-ai/claude-code"]
    assert not factory.reflection.is_used("program")


def test_json_without_ask_is_rejected(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN).program()

    with pytest.raises(PreconditionError, match="Ask is not selected"):
        factory.json()


def test_slot_before_program_is_rejected(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN)

    with pytest.raises(PreconditionError, match="Program is not selected"):
        factory.model("opus")


def test_program_cannot_be_selected_twice(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN).program()

    with pytest.raises(PreconditionError, match="Program is already selected"):
        factory.program()


def test_install_after_program_is_rejected(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN).program()

    with pytest.raises(PreconditionError, match="Program is already selected"):
        factory.install()


def test_system_and_system_append_are_mutually_exclusive(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN).program().system("Be brief")

    with pytest.raises(PreconditionError, match="System is already selected"):
        factory.system_append("more")


def test_no_mcp_is_forbidden_after_allow_tools(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN).program().ask("q")
    factory.allow_tools(["Read"])

    with pytest.raises(PreconditionError, match="AllowTools is already selected"):
        factory.no_mcp()


def test_when_skips_falsy_conditions_and_evaluates_callables(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN).program()

    factory.when(False, "model", "skipped").when(True, "model", lambda f: "from-callable")

    assert factory.to_body().command == ["claude", "--model", "from-callable"]
    assert factory.reflection.used_arguments("model") == ("from-callable",)


def test_to_body_resolves_append_once_for_program_runs(settings: Settings) -> None:
    settings.environ = {"GROQ_AKI_KEY": "secret"}
    factory = GroqClient(settings).process(ProcessType.RUN).build({"ask": "hi"})

    body = factory.to_body()
    again = factory.to_body()

    assert body is again
    assert body.command == [
        "codex",
        "--search",
        "exec",
        "hi",
        "--model",
        "openai/gpt-oss-120b",
        "-c",
        'model_providers.groq={name = "Groq", base_url = "https://api.groq.com/openai/v1", '
        'env_key = "GROQ_AKI_KEY"}',
        "-c",
        'model_provider="groq"',
    ]
    assert body.env["GROQ_AKI_KEY"] == "secret"
    assert body.env["CODEX_HOME"] == str(settings.project_dir / ".codex")


def test_to_body_rejects_empty_command(settings: Settings) -> None:
    factory = _EmptyInstallClient(settings).process(ProcessType.INSTALL).install()

    with pytest.raises(StateError, match="command part is empty"):
        factory.to_body()


def test_env_helper_adds_environment(settings: Settings) -> None:
    factory = ClaudeClient(settings).process(ProcessType.RUN).program().env({"EXTRA": "1"})

    assert factory.to_body().env == {"ENABLE_TOOL_SEARCH": "1", "EXTRA": "1"}


def test_run_parses_streamed_records(settings: Settings) -> None:
    records: list = []
    factory = _ScriptedClaudeClient(settings).process(ProcessType.RUN)
    factory.build({"ask": "hi", "json": True})

    exit_code = factory.run(records.append)

    assert exit_code == 0
    assert len(factory.output) == 4
    assert records == [
        ProcessInit(session_id="s-1", process_type=ProcessType.RUN, agent="claude"),
        ProcessMessage(id="m-1", content="hello", agent="claude"),
        ProcessResult(input_tokens=3, output_tokens=5, agent="claude"),
    ]


_SELF_TERMINATING_AGENT = """\
import os, pathlib, signal, subprocess, sys, time
helper = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
pathlib.Path("pids.txt").write_text(f"{os.getpid()} {helper.pid}")
os.kill(os.getppid(), signal.SIGTERM)
time.sleep(30)
"""


class _SelfTerminatingClaudeClient(ClaudeClient):
    def process_payload(self, payload: Payload) -> Payload:
        return (
            super()
            .process_payload(payload)
            .program_behavior([sys.executable, "-c", _SELF_TERMINATING_AGENT])
            .append_behavior({"commands": {"exit": ["echo exit >> events.log"]}})
        )


class _FailingAppendClaudeClient(ClaudeClient):
    def process_payload(self, payload: Payload) -> Payload:
        def _append(factory) -> None:
            raise RuntimeError("append failed")

        return super().process_payload(payload).append_behavior(_append)


@pytest.mark.skipif(not hasattr(signal, "SIGHUP"), reason="POSIX signals only")
def test_sigterm_stops_agent_and_still_cleans_up(settings: Settings, wait_for_exit) -> None:
    instructions = settings.project_dir / ".claude" / "CLAUDE.md"
    instructions.parent.mkdir()
    instructions.write_text("base", "utf-8")
    handler_before = signal.getsignal(signal.SIGTERM)
    factory = _SelfTerminatingClaudeClient(settings).process(ProcessType.RUN)
    factory.program().system_append("extra")

    exit_code = factory.open()

    assert exit_code == 128 + signal.SIGTERM
    assert signal.getsignal(signal.SIGTERM) is handler_before
    assert instructions.read_text("utf-8") == "base"
    assert (settings.project_dir / "events.log").read_text("utf-8").split() == ["exit"]
    agent_pid, helper_pid = (
        int(token) for token in (settings.project_dir / "pids.txt").read_text("utf-8").split()
    )
    assert wait_for_exit(agent_pid)
    if shutil.which("pgrep"):
        assert wait_for_exit(helper_pid)


def test_to_body_failure_still_runs_exit_callback(settings: Settings) -> None:
    instructions = settings.project_dir / ".claude" / "CLAUDE.md"
    factory = _FailingAppendClaudeClient(settings).process(ProcessType.RUN)
    factory.program().system_append("extra")
    assert instructions.is_file()

    with pytest.raises(RuntimeError, match="append failed"):
        factory.open()

    assert not instructions.exists()
