"""Records parsed from an agent's streaming JSON output."""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from typing import Any

from brain_cli.process.types import ProcessType

_JSON_SPAN = re.compile(r"[{\[].*[}\]]", re.DOTALL)


@dataclass(slots=True)
class ProcessInit:
    """Session started by the agent."""

    session_id: str
    process_type: ProcessType
    agent: str

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["process_type"] = self.process_type.value
        return payload


@dataclass(slots=True)
class ProcessMessage:
    """Assistant message emitted by the agent."""

    id: str | None
    content: str | dict[str, Any] | list[Any]
    agent: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ProcessResult:
    """Token usage reported at the end of a turn."""

    input_tokens: int
    output_tokens: int
    agent: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


ProcessRecord = ProcessInit | ProcessMessage | ProcessResult


def extract_json(value: str) -> dict[str, Any] | list[Any]:
    """Pull the outermost JSON object or array out of free text.

    Returns an error mapping instead of raising so a malformed answer can
    still be reported.
    """

    match = _JSON_SPAN.search(value)
    candidate = match.group(0).strip() if match else ""
    if not candidate:
        return {
            "error": "invalid_json",
            "message": "The provided content is not valid JSON.",
            "original": value,
            "value": candidate,
        }
    try:
        decoded = json.loads(candidate)
    except json.JSONDecodeError as error:
        return {
            "error": "invalid_json",
            "message": str(error),
            "original": value,
            "value": candidate,
        }
    if not isinstance(decoded, (dict, list)):
        return {
            "error": "invalid_json",
            "message": "Decoded JSON is not an object or array.",
            "original": value,
            "value": candidate,
        }
    return decoded


def usage_tokens(payload: dict[str, Any]) -> tuple[int, int]:
    usage = payload.get("usage")
    if not isinstance(usage, dict):
        return 0, 0
    return int(usage.get("input_tokens") or 0), int(usage.get("output_tokens") or 0)
