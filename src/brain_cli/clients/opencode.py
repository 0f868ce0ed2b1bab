"""OpenCode client."""

from __future__ import annotations

import json
from typing import Any

from brain_cli.agents import Agent
from brain_cli.clients.base import AgentClient
from brain_cli.process.factory import ProcessFactory
from brain_cli.process.payload import Payload


class OpenCodeClient(AgentClient):
    agent = Agent.OPENCODE
    folder = ".opencode"
    instruction_file = "AGENTS.md"

    def process_payload(self, payload: Payload) -> Payload:
        install = self.install_command("opencode-ai@latest")

        return (
            payload.install_behavior(install)
            .update_behavior(install)
            .program_behavior(
                {
                    "command": [self.program_path("opencode")],
                    "env": {"OPENCODE_CONFIG": str(self.config.project_path(self.settings_path))},
                },
            )
            .resume_behavior(lambda factory, session_id: ["--session", session_id])
            .continue_behavior("--continue")
            .prompt_behavior(lambda factory, prompt: ["--prompt", prompt])
            .ask_behavior(lambda factory, prompt: ["run", prompt])
            .json_behavior(["--format", "json"])
            .yolo_behavior([])
            .allow_tools_behavior(lambda factory, tools: [])
            .model_behavior(lambda factory, model: ["--model", model])
            .system_behavior(
                lambda factory, system_prompt: self.temporal_replace_file(
                    self.instruction_file,
                    system_prompt,
                ),
            )
            .system_append_behavior(
                lambda factory, system_prompt: self.temporal_append_file(
                    self.instruction_file,
                    system_prompt,
                ),
            )
            .schema_behavior(
                lambda factory, schema: self.temporal_append_file(
                    self.instruction_file,
                    self.generate_rules_of_schema(schema),
                ),
            )
            .no_mcp_behavior(self._no_mcp)
            .settings_behavior(self._settings)
        )

    def _project_settings(self) -> dict[str, Any] | None:
        path = self.config.project_path(self.settings_path)
        if not path.is_file():
            return None
        try:
            decoded = json.loads(path.read_text("utf-8") or "{}")
        except json.JSONDecodeError:
            return {}
        return decoded if isinstance(decoded, dict) else {}

    def _no_mcp(self, factory: ProcessFactory) -> dict[str, Any] | None:
        settings = self._project_settings()
        if settings is None:
            return None
        settings.pop("mcp", None)
        return {"env": {"OPENCODE_CONFIG": self.temporal_file(settings)}}

    def _settings(self, factory: ProcessFactory, settings: dict[str, Any]) -> dict[str, Any]:
        path = self.temporal_file(settings, self.settings_path, factory.type.name)
        return {"env": {"OPENCODE_CONFIG": path}}

    def parse_output_init(self, factory: ProcessFactory, payload: dict[str, Any]) -> str | None:
        if payload.get("type") == "step_start":
            return payload.get("sessionID")
        return None

    def parse_output_message(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[str | None, str] | None:
        part = payload.get("part")
        if payload.get("type") != "text" or not isinstance(part, dict):
            return None
        if part.get("type") != "text":
            return None
        return part.get("messageID"), str(part.get("text") or "")

    def parse_output_result(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[int, int] | None:
        part = payload.get("part")
        if payload.get("type") != "step_finish" or not isinstance(part, dict):
            return None
        if part.get("type") != "step-finish":
            return None
        tokens = part.get("tokens") or {}
        return int(tokens.get("input") or 0), int(tokens.get("output") or 0)
