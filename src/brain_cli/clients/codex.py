"""Codex client and the providers that run through the Codex binary."""

from __future__ import annotations

from typing import Any

from brain_cli.agents import Agent
from brain_cli.clients.base import AgentClient, dump_json
from brain_cli.process.factory import ProcessFactory
from brain_cli.process.output import usage_tokens
from brain_cli.process.payload import Payload


class CodexClient(AgentClient):
    agent = Agent.CODEX
    folder = ".codex"
    instruction_file = "AGENTS.md"
    settings_file = ".codex/config.toml"
    system_append_at_end = False

    def process_payload(self, payload: Payload) -> Payload:
        install = self.install_command("@openai/codex@latest")

        return (
            payload.install_behavior(install)
            .update_behavior(install)
            .program_behavior(lambda factory: self._program())
            .resume_behavior(lambda factory, session_id: ["resume", session_id])
            .continue_behavior(["resume", "--last"])
            .ask_behavior(lambda factory, prompt: ["exec", prompt])
            .json_behavior("--json")
            .yolo_behavior("--dangerously-bypass-approvals-and-sandbox")
            # Codex has no per-run tool allow list.
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
            .no_mcp_behavior(["-c", "mcp_servers={}"])
            .settings_behavior(self._settings)
        )

    def _program(self) -> dict[str, Any]:
        return {
            "command": [self.program_path("codex"), "--search"],
            "env": {"CODEX_HOME": str(self.config.project_path(self.folder))},
        }

    def _settings(self, factory: ProcessFactory, settings: dict[str, Any]) -> list[str]:
        args: list[str] = []
        for key, value in settings.items():
            rendered = to_config_value(value)
            args.extend(["-c", f"{key}={rendered}"])
        return args

    def parse_output_init(self, factory: ProcessFactory, payload: dict[str, Any]) -> str | None:
        if payload.get("type") == "thread.started":
            return payload.get("thread_id")
        return None

    def parse_output_message(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[str | None, str] | None:
        item = payload.get("item")
        if payload.get("type") != "item.completed" or not isinstance(item, dict):
            return None
        if item.get("type") != "agent_message" or not item.get("text"):
            return None
        return item.get("id"), item["text"]

    def parse_output_result(
        self,
        factory: ProcessFactory,
        payload: dict[str, Any],
    ) -> tuple[int, int] | None:
        if payload.get("type") == "turn.completed":
            return usage_tokens(payload)
        return None


def to_config_value(value: Any) -> str:
    """Render a value for ``codex -c key=value``; mappings become inline tables."""

    if isinstance(value, dict):
        parts = [f"{key} = {to_config_value(item)}" for key, item in value.items()]
        return "{" + ", ".join(parts) + "}"
    return dump_json(value)


class _CodexProviderClient(CodexClient):
    """Codex binary pointed at an OpenAI-compatible provider."""

    provider_id: str
    base_url_env: str
    default_base_url: str
    api_key_env: str | None = None

    @property
    def binary_prefix(self) -> str:
        return Agent.CODEX.env_prefix

    def process_payload(self, payload: Payload) -> Payload:
        return (
            super()
            .process_payload(payload)
            .default_options_behavior(
                lambda options: {"model": options.get("model") or self.agent.general_model},
            )
            .append_behavior(self._append)
        )

    def _append(self, factory: ProcessFactory) -> dict[str, Any] | None:
        provider: dict[str, Any] = {
            "name": self.agent.label,
            "base_url": self.config.env(self.base_url_env, self.default_base_url),
        }
        if self.api_key_env:
            provider["env_key"] = self.api_key_env
        factory.settings(
            {
                f"model_providers.{self.provider_id}": provider,
                "model_provider": self.provider_id,
            },
        )
        if not self.api_key_env:
            return None
        return {"env": {self.api_key_env: self.config.env(self.api_key_env)}}


class GroqClient(_CodexProviderClient):
    agent = Agent.GROQ
    provider_id = "groq"
    base_url_env = "GROQ_BASE_URL"
    default_base_url = "https://api.groq.com/openai/v1"
    api_key_env = "GROQ_AKI_KEY"


class LMStudioClient(_CodexProviderClient):
    agent = Agent.LMSTUDIO
    provider_id = "lm_studio"
    base_url_env = "LM_STUDIO_BASE_URL"
    default_base_url = "http://127.0.0.1:1234/v1"


class OpenRouterClient(_CodexProviderClient):
    agent = Agent.OPENROUTER
    provider_id = "openrouter"
    base_url_env = "OPENROUTER_BASE_URL"
    default_base_url = "https://openrouter.ai/api/v1"
    api_key_env = "OPENROUTER_API_KEY"
