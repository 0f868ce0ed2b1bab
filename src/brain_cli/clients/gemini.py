"""Gemini CLI client and its Qwen Code fork."""

from __future__ import annotations

from typing import Any

from brain_cli.agents import Agent
from brain_cli.clients.base import AgentClient, dump_json
from brain_cli.config import Settings
from brain_cli.process.factory import ProcessFactory
from brain_cli.process.payload import Payload
from brain_cli.process.runner import ProcessRunner
from brain_cli.process.types import ProcessType


class GeminiClient(AgentClient):
    agent = Agent.GEMINI
    folder = ".gemini"
    instruction_file = "GEMINI.md"
    package = "@google/gemini-cli@latest"
    system_md_env = "GEMINI_SYSTEM_MD"
    settings_path_env = "GEMINI_CLI_SYSTEM_SETTINGS_PATH"

    def __init__(self, config: Settings | None = None) -> None:
        super().__init__(config)
        self._reset_run_state()

    def process(
        self,
        type: ProcessType,  # noqa: A002
        runner: ProcessRunner | None = None,
    ) -> ProcessFactory:
        self._reset_run_state()
        return super().process(type, runner)

    def _reset_run_state(self) -> None:
        self._system_file: str | None = None
        self._message_id = ""
        self._message_content = ""
        self._message_done = False

    def process_payload(self, payload: Payload) -> Payload:
        install = self.install_command(self.package)

        return (
            payload.install_behavior(install)
            .update_behavior(install)
            .program_behavior(self.program_path(self.agent.value))
            .resume_behavior(lambda factory, session_id: ["--resume", session_id])
            .continue_behavior("--resume")
            .prompt_behavior(lambda factory, prompt: ["--prompt-interactive", prompt])
            .ask_behavior(lambda factory, prompt: prompt)
            .json_behavior(["--output-format", "stream-json"])
            .yolo_behavior("--yolo")
            .allow_tools_behavior(
                lambda factory, tools: ["--allowed-tools", dump_json(list(tools))],
            )
            .model_behavior(lambda factory, model: ["--model", model])
            .system_behavior(self._system)
            .system_append_behavior(
                lambda factory, system_prompt: self.temporal_append_file(
                    self.instruction_file,
                    self.read_prompt(system_prompt),
                ),
            )
            .schema_behavior(self._schema)
            .no_mcp_behavior(["--allowed-mcp-server-names", "[]"])
            .settings_behavior(self._settings)
        )

    def _system(self, factory: ProcessFactory, system_prompt: str) -> dict[str, Any]:
        self._system_file = self.temporal_file(system_prompt)
        return {"env": {self.system_md_env: self._system_file}}

    def _schema(self, factory: ProcessFactory, schema: dict[str, Any]) -> bool:
        rules = self.generate_rules_of_schema(schema)
        return self.temporal_append_file(self._system_file or self.instruction_file, rules)

    def _settings(self, factory: ProcessFactory, settings: dict[str, Any]) -> dict[str, Any]:
        path = self.temporal_file(settings, self.settings_path, factory.type.name)
        return {"env": {self.settings_path_env: path}}

    def parse_output_init(self, factory: ProcessFactory, payload: dict[str, Any]) -> str | None:
        if payload.get("type") == "init":
            return payload.get("session_id")
        return None

    def parse_output_message(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[str | None, str] | None:
        # Assistant text arrives in chunks and is emitted once the result line lands.
        if self._message_done:
            message = (self._message_id, self._message_content)
            self._message_id, self._message_content, self._message_done = "", "", False
            return message if message[1] else None
        if payload.get("type") == "message" and payload.get("role") == "assistant":
            self._message_id = str(payload.get("timestamp") or "0")
            self._message_content += str(payload.get("content") or "")
        return None

    def parse_output_result(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[int, int] | None:
        stats = payload.get("stats")
        if payload.get("type") != "result" or not isinstance(stats, dict):
            return None
        self._message_done = True
        return int(stats.get("input_tokens") or 0), int(stats.get("output_tokens") or 0)


class QwenClient(GeminiClient):
    agent = Agent.QWEN
    folder = ".qwen"
    instruction_file = "QWEN.md"
    package = "@qwen-code/qwen-code@v0.4.0-preview.1"
    system_md_env = "QWEN_SYSTEM_MD"
    settings_path_env = "QWEN_CODE_SYSTEM_SETTINGS_PATH"

    def process_payload(self, payload: Payload) -> Payload:
        return super().process_payload(payload).prompt_behavior(None)
