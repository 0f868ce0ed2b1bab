"""Registry of invocation behaviors for one agent process."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol

from brain_cli.process.body import Fragment, normalize_result
from brain_cli.process.errors import StateError, UnsupportedOperationError
from brain_cli.process.slots import SLOT_CONSTRAINTS, SlotConstraint, SlotName, slot_name

if TYPE_CHECKING:
    from brain_cli.process.reflection import Reflection

logger = logging.getLogger(__name__)


class Producer(Protocol):
    """Deferred slot value computed against the invocation context."""

    def __call__(self, context: Any, *args: Any) -> Any: ...


SlotValue = str | Sequence[str] | Mapping[str, Any] | Producer | None
OptionsCallback = Callable[[dict[str, Any]], Mapping[str, Any] | None]


class Payload:
    """Holds one value per slot: a literal, a producer, or nothing."""

    def __init__(self) -> None:
        self._slots: dict[SlotName, SlotValue] = dict.fromkeys(SlotName)
        self._default_options_callback: OptionsCallback | None = None
        self._reflection: Reflection | None = None

    # Setters, one per slot.

    def install_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.INSTALL, value)

    def update_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.UPDATE, value)

    def program_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.PROGRAM, value)

    def system_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.SYSTEM, value)

    def system_append_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.SYSTEM_APPEND, value)

    def resume_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.RESUME, value)

    def continue_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.CONTINUE, value)

    def prompt_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.PROMPT, value)

    def ask_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.ASK, value)

    def json_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.JSON, value)

    def yolo_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.YOLO, value)

    def schema_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.SCHEMA, value)

    def allow_tools_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.ALLOW_TOOLS, value)

    def no_mcp_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.NO_MCP, value)

    def model_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.MODEL, value)

    def settings_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.SETTINGS, value)

    def append_behavior(self, value: SlotValue) -> Payload:
        return self._set(SlotName.APPEND, value)

    def default_options_behavior(self, callback: OptionsCallback) -> Payload:
        self._default_options_callback = callback
        return self

    # Queries.

    def get(self, name: str | SlotName) -> SlotValue:
        return self._slots[slot_name(name)]

    def is_set(self, name: str | SlotName) -> bool:
        return self.get(name) is not None

    @staticmethod
    def constraint(name: str | SlotName) -> SlotConstraint:
        return SLOT_CONSTRAINTS[slot_name(name)]

    def is_valid(self) -> bool:
        """Return False when a required slot holds nothing."""

        return all(
            self._slots[name] is not None
            for name, constraint in SLOT_CONSTRAINTS.items()
            if constraint.required
        )

    def missing_required(self) -> list[SlotName]:
        return [
            name
            for name, constraint in SLOT_CONSTRAINTS.items()
            if constraint.required and self._slots[name] is None
        ]

    def default_options(self, options: dict[str, Any]) -> dict[str, Any]:
        """Merge agent defaults into caller options."""

        if self._default_options_callback is None:
            return options
        result = self._default_options_callback(options)
        if isinstance(result, Mapping):
            return {**options, **result}
        return options

    # Reflection link.

    def bind(self, reflection: Reflection) -> None:
        self._reflection = reflection

    @property
    def reflection(self) -> Reflection:
        if self._reflection is None:
            raise StateError("Process reflection is not set yet")
        return self._reflection

    def resolve(self, name: str | SlotName, *args: Any) -> Fragment:
        """Compute a slot's fragment and record it as used.

        Resolving an already used slot runs its producer again; the ledger
        keeps the first arguments.
        """

        slot = slot_name(name)
        value = self._slots[slot]
        reflection = self.reflection
        if value is None:
            raise UnsupportedOperationError(slot.value)
        if callable(value):
            value = value(reflection.factory(), *args)

        fragment = normalize_result(value)
        if not reflection.use(slot, args):
            logger.debug("Slot %s resolved again", slot.value)
        logger.debug(
            "Resolved slot %s: %d command tokens, %d env entries",
            slot.value,
            len(fragment.command),
            len(fragment.env),
        )
        return fragment

    def _set(self, name: SlotName, value: SlotValue) -> Payload:
        self._slots[name] = value
        return self
