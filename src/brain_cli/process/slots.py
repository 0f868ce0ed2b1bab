"""Closed set of invocation slots and their constraint table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SlotName(str, Enum):
    """Named behaviors a build driver may resolve."""

    INSTALL = "install"
    UPDATE = "update"
    PROGRAM = "program"
    SYSTEM = "system"
    SYSTEM_APPEND = "systemAppend"
    RESUME = "resume"
    CONTINUE = "continue"
    PROMPT = "prompt"
    ASK = "ask"
    JSON = "json"
    YOLO = "yolo"
    SCHEMA = "schema"
    ALLOW_TOOLS = "allowTools"
    NO_MCP = "noMcp"
    MODEL = "model"
    SETTINGS = "settings"
    APPEND = "append"


@dataclass(frozen=True, slots=True)
class SlotConstraint:
    """Declarative metadata for one slot.

    ``required`` is checked when a reflection binds the payload.
    ``used_with`` and ``forbidden_with`` are only enforced by whoever calls
    ``Reflection.validated_used`` / ``validated_not_used`` for them.
    """

    required: bool = False
    used_with: frozenset[SlotName] = frozenset()
    forbidden_with: frozenset[SlotName] = frozenset()


def _constraint(
    *,
    required: bool = False,
    used_with: tuple[SlotName, ...] = (),
    forbidden_with: tuple[SlotName, ...] = (),
) -> SlotConstraint:
    return SlotConstraint(
        required=required,
        used_with=frozenset(used_with),
        forbidden_with=frozenset(forbidden_with),
    )


SLOT_CONSTRAINTS: dict[SlotName, SlotConstraint] = {
    SlotName.INSTALL: _constraint(
        required=True,
        forbidden_with=(SlotName.PROGRAM, SlotName.UPDATE),
    ),
    SlotName.UPDATE: _constraint(
        required=True,
        forbidden_with=(SlotName.PROGRAM, SlotName.INSTALL),
    ),
    SlotName.PROGRAM: _constraint(
        required=True,
        forbidden_with=(SlotName.PROGRAM, SlotName.UPDATE, SlotName.INSTALL),
    ),
    SlotName.SYSTEM: _constraint(
        used_with=(SlotName.PROGRAM,),
        forbidden_with=(SlotName.SYSTEM_APPEND,),
    ),
    SlotName.SYSTEM_APPEND: _constraint(
        used_with=(SlotName.PROGRAM,),
        forbidden_with=(SlotName.SYSTEM,),
    ),
    SlotName.RESUME: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.CONTINUE: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.PROMPT: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.ASK: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.JSON: _constraint(used_with=(SlotName.PROGRAM, SlotName.ASK)),
    SlotName.YOLO: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.SCHEMA: _constraint(used_with=(SlotName.PROGRAM, SlotName.ASK)),
    SlotName.ALLOW_TOOLS: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.NO_MCP: _constraint(
        used_with=(SlotName.PROGRAM,),
        forbidden_with=(SlotName.ALLOW_TOOLS,),
    ),
    SlotName.MODEL: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.SETTINGS: _constraint(used_with=(SlotName.PROGRAM,)),
    SlotName.APPEND: _constraint(used_with=(SlotName.PROGRAM,)),
}


def slot_name(name: str | SlotName) -> SlotName:
    """Coerce a raw slot name, raising ``ValueError`` for unknown names."""

    if isinstance(name, SlotName):
        return name
    try:
        return SlotName(name)
    except ValueError as error:
        raise ValueError(f"Unknown slot name: {name!r}") from error
