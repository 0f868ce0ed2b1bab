"""Per-agent process clients."""

from brain_cli.agents import Agent
from brain_cli.clients.base import AgentClient
from brain_cli.clients.claude import ClaudeClient
from brain_cli.clients.codex import CodexClient, GroqClient, LMStudioClient, OpenRouterClient
from brain_cli.clients.gemini import GeminiClient, QwenClient
from brain_cli.clients.opencode import OpenCodeClient
from brain_cli.config import Settings

CLIENTS: dict[Agent, type[AgentClient]] = {
    Agent.CLAUDE: ClaudeClient,
    Agent.CODEX: CodexClient,
    Agent.GEMINI: GeminiClient,
    Agent.QWEN: QwenClient,
    Agent.OPENCODE: OpenCodeClient,
    Agent.GROQ: GroqClient,
    Agent.LMSTUDIO: LMStudioClient,
    Agent.OPENROUTER: OpenRouterClient,
}


def create_client(agent: Agent | str, config: Settings | None = None) -> AgentClient:
    """Instantiate the client registered for ``agent``."""

    try:
        resolved = Agent(agent)
    except ValueError as error:
        supported = ", ".join(item.value for item in Agent)
        raise ValueError(f"Unsupported agent {agent!r}; expected one of: {supported}") from error
    return CLIENTS[resolved](config)


__all__ = [
    "CLIENTS",
    "AgentClient",
    "ClaudeClient",
    "CodexClient",
    "GeminiClient",
    "GroqClient",
    "LMStudioClient",
    "OpenCodeClient",
    "OpenRouterClient",
    "QwenClient",
    "create_client",
]
