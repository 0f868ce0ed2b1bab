"""Claude Code client."""

from __future__ import annotations

import json
import os
from typing import Any

from brain_cli.agents import Agent
from brain_cli.clients.base import AgentClient, dump_json
from brain_cli.process.factory import ProcessFactory
from brain_cli.process.output import usage_tokens
from brain_cli.process.payload import Payload
from brain_cli.process.slots import SlotName


class ClaudeClient(AgentClient):
    agent = Agent.CLAUDE
    folder = ".claude"
    instruction_file = ".claude/CLAUDE.md"

    def process_payload(self, payload: Payload) -> Payload:
        install = self.install_command("@anthropic-ai/claude-code")

        return (
            payload.install_behavior(install)
            .update_behavior(install)
            .program_behavior(
                {
                    "env": self._program_env(),
                    "command": self.program_path("claude"),
                },
            )
            .resume_behavior(lambda factory, session_id: ["--resume", session_id])
            .prompt_behavior(lambda factory, prompt: prompt)
            .continue_behavior("--continue")
            .ask_behavior(lambda factory, prompt: [prompt, "--print"])
            .json_behavior(["--output-format", "stream-json", "--verbose"])
            .schema_behavior(self._schema)
            .yolo_behavior("--dangerously-skip-permissions")
            .allow_tools_behavior(lambda factory, tools: ["--allowedTools", " ".join(tools)])
            .model_behavior(lambda factory, model: ["--model", model])
            .system_behavior(
                lambda factory, system_prompt: [
                    "--system-prompt",
                    self.read_prompt(system_prompt),
                ],
            )
            .system_append_behavior(self._system_append)
            .no_mcp_behavior(self._no_mcp)
            .settings_behavior(self._settings)
        )

    def _program_env(self) -> dict[str, str]:
        env = {"ENABLE_TOOL_SEARCH": "1"}
        if self.config.debug:
            env["NODE_EXTRA_CA_CERTS"] = os.path.join(
                self.config.home_dir(),
                ".cc-wiretap",
                "ca.pem",
            )
            env["HTTPS_PROXY"] = "http://localhost:8080"
        return env

    def _schema(self, factory: ProcessFactory, schema: dict[str, Any]) -> Any:
        rules = self.generate_rules_of_schema(schema)
        if factory.reflection.is_used(SlotName.SYSTEM):

            def _extend_system_prompt(value: str, key: int, previous: str | None, _: Any) -> Any:
                if previous == "--system-prompt":
                    return f"{value}\n\n{rules}"
                return value

            return factory.reflection.map_command(_extend_system_prompt)
        return self.temporal_append_file(self.instruction_file, rules)

    def _system_append(self, factory: ProcessFactory, system_prompt: str) -> None:
        self.temporal_append_file(self.instruction_file, self.read_prompt(system_prompt))

    def _no_mcp(self, factory: ProcessFactory) -> list[str]:
        factory.reflection.validated_used(SlotName.ASK)
        return ["--tools", "''"]

    def _settings(self, factory: ProcessFactory, settings: dict[str, Any]) -> Any:
        if factory.reflection.has_command("--settings"):

            def _merge_settings(value: str, key: int, previous: str | None, _: Any) -> Any:
                if previous == "--settings":
                    return dump_json({**json.loads(value), **settings})
                return value

            return factory.reflection.map_command(_merge_settings)
        return ["--settings", dump_json(settings)]

    def parse_output_init(self, factory: ProcessFactory, payload: dict[str, Any]) -> str | None:
        if payload.get("type") == "system" and payload.get("subtype") == "init":
            return payload.get("session_id")
        return None

    def parse_output_message(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[str | None, str] | None:
        if payload.get("type") != "assistant":
            return None
        message = payload.get("message")
        if not isinstance(message, dict) or message.get("type") != "message":
            return None
        content = message.get("content")
        if not isinstance(content, list) or not content or not isinstance(content[0], dict):
            return None
        text = content[0].get("text")
        if not text:
            return None
        return message.get("id"), text

    def parse_output_result(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[int, int] | None:
        if payload.get("type") == "result" and payload.get("subtype") == "success":
            return usage_tokens(payload)
        return None
