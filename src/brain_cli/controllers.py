"""Controllers for agent CLI commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from brain_cli.agents import Agent
from brain_cli.clients import create_client
from brain_cli.config import Settings
from brain_cli.process.output import ProcessRecord
from brain_cli.process.runner import ProcessRunner
from brain_cli.process.slots import SlotName
from brain_cli.process.types import ProcessType

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AgentRunCommand:
    """CLI input for one agent invocation."""

    agent: str
    project_dir: Path | None = None
    install: bool = False
    update: bool = False
    resume: str | None = None
    continue_session: bool = False
    prompt: str | None = None
    ask: str | None = None
    json_output: bool = False
    schema: str | None = None
    no_mcp: bool = False
    model: str | None = None
    system: str | None = None
    system_append: str | None = None
    yolo: bool = False
    allow_tools: tuple[str, ...] = ()
    dump: bool = False


@dataclass(slots=True)
class AgentRunResult:
    """Outcome of an agent invocation."""

    exit_code: int
    process_type: ProcessType
    lines: list[str] = field(default_factory=list)


class AgentCliController:
    """Build agent processes from CLI options and run them."""

    def __init__(self, runner: ProcessRunner | None = None) -> None:
        self._runner = runner

    def agents(self) -> list[str]:
        return [
            f"{agent.value:<12} {agent.label:<12} default model: {agent.general_model}"
            for agent in Agent
        ]

    def run(
        self,
        command: AgentRunCommand,
        emit: Callable[[str], None] | None = None,
    ) -> AgentRunResult:
        settings = Settings.from_env(project_dir=command.project_dir)
        client = create_client(command.agent, settings)
        options = _command_options(command)
        process_type = ProcessType.detect(options)
        logger.info("Building %s process for agent=%s", process_type.value, client.agent.value)

        factory = client.process(process_type, runner=self._runner)
        try:
            factory.build(options)
            if command.dump:
                body = factory.to_body()
                return AgentRunResult(
                    exit_code=0,
                    process_type=process_type,
                    lines=[json.dumps(body.to_dict(), ensure_ascii=False, indent=2)],
                )
        except BaseException:
            client.restore_temporal_files()
            raise
        finally:
            if command.dump:
                client.restore_temporal_files()

        if not factory.reflection.is_used(SlotName.JSON):
            return AgentRunResult(exit_code=factory.open(), process_type=process_type)

        lines: list[str] = []

        def _on_record(record: ProcessRecord) -> None:
            line = json.dumps(record.to_dict(), ensure_ascii=False)
            if emit is not None:
                emit(line)
            else:
                lines.append(line)

        exit_code = factory.run(_on_record)
        return AgentRunResult(exit_code=exit_code, process_type=process_type, lines=lines)


def _command_options(command: AgentRunCommand) -> dict[str, Any]:
    return {
        "install": command.install,
        "update": command.update,
        "resume": command.resume,
        "continue": command.continue_session,
        "prompt": command.prompt,
        "ask": command.ask,
        "json": command.json_output,
        "schema": _parse_schema(command.schema),
        "no_mcp": command.no_mcp,
        "model": command.model,
        "system": command.system,
        "system_append": command.system_append,
        "yolo": command.yolo,
        "allow_tools": list(command.allow_tools),
        "dump": command.dump,
    }


def _parse_schema(raw: str | None) -> dict[str, Any] | None:
    if raw is None or not raw.strip():
        return None
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as error:
        raise ValueError("The provided schema is not a valid JSON.") from error
    if not isinstance(decoded, dict):
        raise ValueError("The provided schema must be a JSON object.")
    return decoded
