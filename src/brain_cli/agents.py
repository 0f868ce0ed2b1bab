"""Supported agent binaries."""

from __future__ import annotations

from enum import Enum


class Agent(str, Enum):
    """External AI coding agents a process can be built for."""

    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    QWEN = "qwen"
    OPENCODE = "opencode"
    GROQ = "groq"
    LMSTUDIO = "lmstudio"
    OPENROUTER = "openrouter"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def general_model(self) -> str:
        """Model used when the caller does not pick one."""

        return _GENERAL_MODELS[self]

    @property
    def env_prefix(self) -> str:
        return self.value.upper()


_LABELS = {
    Agent.CLAUDE: "Claude Code",
    Agent.CODEX: "Codex",
    Agent.GEMINI: "Gemini CLI",
    Agent.QWEN: "Qwen Code",
    Agent.OPENCODE: "OpenCode",
    Agent.GROQ: "Groq",
    Agent.LMSTUDIO: "LM Studio",
    Agent.OPENROUTER: "OpenRouter",
}

_GENERAL_MODELS = {
    Agent.CLAUDE: "claude-sonnet-4-5",
    Agent.CODEX: "gpt-5.1-codex",
    Agent.GEMINI: "gemini-2.5-pro",
    Agent.QWEN: "qwen3-coder-plus",
    Agent.OPENCODE: "opencode/glm-4.7-free",
    Agent.GROQ: "openai/gpt-oss-120b",
    Agent.LMSTUDIO: "openai/gpt-oss-20b",
    Agent.OPENROUTER: "openai/gpt-oss-20b:free",
}
