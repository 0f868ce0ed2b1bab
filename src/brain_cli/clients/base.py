"""Shared behavior of per-agent clients."""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from brain_cli.agents import Agent
from brain_cli.config import Settings
from brain_cli.process.factory import ProcessFactory
from brain_cli.process.output import (
    ProcessInit,
    ProcessMessage,
    ProcessRecord,
    ProcessResult,
    extract_json,
)
from brain_cli.process.payload import Payload
from brain_cli.process.runner import ProcessRunner
from brain_cli.process.slots import SlotName
from brain_cli.process.types import ProcessType

logger = logging.getLogger(__name__)

_SCHEMA_INSTRUCTIONS = """\
YOU ARE A SERVICE THAT RETURNS ONLY VALID `JSON` (#example-01).
DO NOT ADD EXPLANATIONS, COMMENTS, OR TEXT OUTSIDE OF THE `JSON`.
USE ONLY DOUBLE QUOTES FOR KEYS AND VALUES.
DO NOT USE `undefined`, ONLY `null` IF THERE IS NO DATA.
YOU MUST FOLLOW THE SCHEMA BELOW EXACTLY.
IF A VALUE CANNOT BE DETERMINED, RETURN `null` FOR THAT VALUE.
IF YOU UNDERSTAND THESE INSTRUCTIONS, RESPOND ONLY WITH THE REQUIRED `JSON` STRUCTURE.
NEVER RESPOND WITH ANYTHING OTHER THAN THE REQUIRED `JSON` (#example-01) STRUCTURE."""


def dump_json(value: Any, *, indent: int | None = None) -> str:
    if indent is None:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(value, ensure_ascii=False, indent=indent)


class AgentClient(ABC):
    """Registers an agent's slot producers and parses its output stream."""

    agent: Agent
    folder: str
    instruction_file: str
    settings_file: str | None = None
    # Insert appended rules before ``</system>`` (True) or after ``<system>``.
    system_append_at_end: bool = True

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or Settings.from_env()
        self._backups: dict[Path, Path | None] = {}

    @property
    def settings_path(self) -> str:
        return self.settings_file or f"{self.folder}/settings.json"

    def process(
        self,
        type: ProcessType,  # noqa: A002
        runner: ProcessRunner | None = None,
    ) -> ProcessFactory:
        """Create a build driver with this agent's producers registered."""

        return ProcessFactory(
            type=type,
            client=self,
            payload=self.process_payload(Payload()),
            runner=runner,
        )

    @abstractmethod
    def process_payload(self, payload: Payload) -> Payload:
        """Assign every slot this agent supports."""

    @property
    def binary_prefix(self) -> str:
        """Prefix of the ``*_PROGRAM_PATH`` and ``*_NPM_PROGRAM_PATH`` variables."""

        return self.agent.env_prefix

    def install_command(self, package: str) -> list[str]:
        return [self.config.npm_path(self.binary_prefix), "install", "-g", package]

    def program_path(self, default: str) -> str:
        return self.config.program_path(self.binary_prefix, default)

    def process_exit_callback(self, factory: ProcessFactory, exit_code: int) -> None:
        logger.debug("%s process finished with code %d", self.agent.value, exit_code)
        self.restore_temporal_files()

    # Output parsing.

    def parse_output(self, factory: ProcessFactory, line: str) -> list[ProcessRecord]:
        """Map one JSON line of agent output to records."""

        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            return []
        if not isinstance(payload, dict):
            return []

        records: list[ProcessRecord] = []
        result = self.parse_output_result(factory, payload)
        session_id = self.parse_output_init(factory, payload)
        if session_id:
            records.append(
                ProcessInit(
                    session_id=session_id,
                    process_type=factory.type,
                    agent=self.agent.value,
                ),
            )
        message = self.parse_output_message(factory, payload)
        if message is not None:
            message_id, content = message
            if content and factory.reflection.is_used(SlotName.SCHEMA) and isinstance(content, str):
                content = extract_json(content)
            records.append(ProcessMessage(id=message_id, content=content, agent=self.agent.value))
        if result is not None:
            records.append(
                ProcessResult(
                    input_tokens=result[0],
                    output_tokens=result[1],
                    agent=self.agent.value,
                ),
            )
        return records

    def parse_output_init(self, factory: ProcessFactory, payload: dict[str, Any]) -> str | None:
        return None

    def parse_output_message(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[str | None, str] | None:
        return None

    def parse_output_result(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[int, int] | None:
        return None

    # Prompt helpers.

    @staticmethod
    def read_prompt(value: str) -> str:
        """Return prompt text, reading ``@path`` references from disk."""

        if value.startswith("@"):
            return Path(value[1:]).read_text("utf-8")
        return value

    @staticmethod
    def generate_rules_of_schema(schema: dict[str, Any]) -> str:
        return (
            "<output_format>\n"
            f"{_SCHEMA_INSTRUCTIONS}\n"
            "<answer-example id='example-01'>\n"
            f"```json\n{dump_json(schema)}\n```\n"
            "</answer-example>\n"
            "</output_format>\n"
        )

    # Temporal files: written for one run, restored by the exit callback.

    def temporal_file(
        self,
        content: str | dict[str, Any],
        prepend_from_file: str | None = None,
        salt: str | None = None,
    ) -> str:
        """Write content to a temp file and return its path.

        ``@path`` content points at an existing file instead. Mapping content
        is merged over the JSON of ``prepend_from_file`` and of the previous
        file with the same ``salt``.
        """

        if isinstance(content, str) and content.startswith("@"):
            existing = Path(content[1:])
            if not existing.is_file():
                raise FileNotFoundError(f"Temporal file source does not exist: {existing}")
            return str(existing.resolve())

        prefix = f"brain-{self.agent.value}-temporal-file-"
        prepend_text = ""
        if prepend_from_file:
            prepend_candidate = self._project_file(prepend_from_file)
            if prepend_candidate.is_file():
                prepend_text = prepend_candidate.read_text("utf-8")

        target: Path | None = None
        old_text = ""
        if salt:
            target = self.config.temp_dir / (prefix + _md5(salt))
            if target.is_file():
                old_text = target.read_text("utf-8")

        if isinstance(content, dict):
            merged = {**_json_mapping(prepend_text), **_json_mapping(old_text), **content}
            text = dump_json(merged, indent=4)
        else:
            text = prepend_text + old_text + content

        if target is None:
            target = self.config.temp_dir / (prefix + _md5(text))
        self._backups.setdefault(target, None)
        target.write_text(text, "utf-8")
        return str(target)

    def temporal_replace_file(self, file: str, content: str | dict[str, Any]) -> bool:
        """Replace a project file for the duration of one run."""

        if isinstance(content, str) and content.startswith("@"):
            content = Path(content[1:]).read_text("utf-8")

        original = self._project_file(file)
        in_temp = self._is_temp(original)
        if not in_temp:
            backup = self.config.temp_dir / f"brain-{self.agent.value}-backup-{_md5(file)}"
            if original.is_file() and not backup.is_file():
                shutil.move(original, backup)
            self._backups.setdefault(original, backup)

        text = dump_json(content, indent=4) if isinstance(content, dict) else content
        original.parent.mkdir(parents=True, exist_ok=True)
        original.write_text(text, "utf-8")
        return bool(text)

    def temporal_append_file(self, file: str, content: str | dict[str, Any]) -> bool:
        """Append rules to a project file for the duration of one run."""

        if isinstance(content, str) and content.startswith("@"):
            content = Path(content[1:]).read_text("utf-8")

        original = self._project_file(file)
        original_text = original.read_text("utf-8") if original.is_file() else ""
        if isinstance(content, dict):
            merged: str | dict[str, Any] = {**_json_mapping(original_text), **content}
        else:
            marker = "</system>" if self.system_append_at_end else "<system>"
            if marker in original_text:
                insert = f"\n<iron_rule>\n{content}\n</iron_rule>\n"
                if self.system_append_at_end:
                    insert = f"{insert}\n{marker}"
                else:
                    insert = f"{marker}\n{insert}"
                merged = original_text.replace(marker, insert)
            else:
                merged = f"{original_text}\n{content}" if original_text else content
        return self.temporal_replace_file(file, merged)

    def restore_temporal_files(self) -> None:
        for original, backup in self._backups.items():
            if original.is_file():
                original.unlink()
            if backup is not None and backup.is_file():
                shutil.move(backup, original)
        self._backups.clear()

    def _project_file(self, file: str) -> Path:
        path = Path(file)
        if path.is_absolute():
            return path
        return self.config.project_path(file)

    def _is_temp(self, path: Path) -> bool:
        try:
            path.relative_to(self.config.temp_dir)
        except ValueError:
            return False
        return True


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()  # noqa: S324


def _json_mapping(text: str) -> dict[str, Any]:
    if not text:
        return {}
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return decoded if isinstance(decoded, dict) else {}
