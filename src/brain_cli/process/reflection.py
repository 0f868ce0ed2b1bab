"""Per-build ledger of used slots and the command body they produced."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from brain_cli.process.body import CommandBody, Fragment, MapCallback
from brain_cli.process.errors import ConfigurationError, PreconditionError, StateError
from brain_cli.process.payload import Payload
from brain_cli.process.slots import SlotName, slot_name

logger = logging.getLogger(__name__)


class Reflection:
    """Tracks which slots one build consumed and accumulates their output.

    Binding validates the payload once; a payload with an empty required
    slot never produces a command.
    """

    def __init__(self, payload: Payload, context: Any = None) -> None:
        if not payload.is_valid():
            missing = ", ".join(name.value for name in payload.missing_required())
            raise ConfigurationError(
                f"Invalid command payload structure, required slots are empty: {missing}",
            )
        self.payload = payload
        self.used_state: dict[SlotName, tuple[Any, ...]] = {}
        self.body = CommandBody()
        self._context = context
        payload.bind(self)

    def attach(self, context: Any) -> Reflection:
        self._context = context
        return self

    def factory(self) -> Any:
        """Return the invocation context handed to every producer."""

        if self._context is None:
            raise StateError("Command factory is not set yet")
        return self._context

    def is_used(self, name: str | SlotName) -> bool:
        return slot_name(name) in self.used_state

    def use(self, name: str | SlotName, args: Iterable[Any] = ()) -> bool:
        slot = slot_name(name)
        if slot in self.used_state:
            return False
        self.used_state[slot] = tuple(args)
        return True

    def used_arguments(self, name: str | SlotName) -> tuple[Any, ...] | None:
        return self.used_state.get(slot_name(name))

    def validated_used(self, name: str | SlotName) -> None:
        if not self.is_used(name):
            raise PreconditionError(f"{_title(slot_name(name))} is not selected")

    def validated_not_used(self, name: str | SlotName) -> None:
        if self.is_used(name):
            raise PreconditionError(f"{_title(slot_name(name))} is already selected")

    def validate_constraints(self, name: str | SlotName) -> None:
        """Enforce a slot's ``used_with`` then ``forbidden_with`` metadata."""

        constraint = self.payload.constraint(name)
        for required in sorted(constraint.used_with, key=_order):
            self.validated_used(required)
        for forbidden in sorted(constraint.forbidden_with, key=_order):
            self.validated_not_used(forbidden)

    def resolve(self, name: str | SlotName, *args: Any) -> Fragment:
        return self.payload.resolve(name, *args)

    def fill_body(self, fragment: Fragment) -> Reflection:
        self.body.add_command(fragment.command)
        self.body.add_commands(fragment.commands)
        self.body.add_env(fragment.env)
        return self

    # Body shortcuts used by producers.

    def add_command(self, command: str | Iterable[str]) -> Reflection:
        self.body.add_command(command)
        return self

    def add_env(self, name: str | Mapping[str, str], value: str | None = None) -> Reflection:
        self.body.add_env(name, value)
        return self

    def map_command(self, callback: MapCallback) -> Reflection:
        self.body.map_command(callback)
        return self

    def map_env(self, callback: MapCallback) -> Reflection:
        self.body.map_env(callback)
        return self

    def has_command(self, prefix: str) -> bool:
        return self.body.has_command(prefix)

    def has_env(self, name: str) -> bool:
        return self.body.has_env(name)


_SLOT_ORDER = {name: index for index, name in enumerate(SlotName)}


def _order(name: SlotName) -> int:
    return _SLOT_ORDER[name]


def _title(name: SlotName) -> str:
    return name.value[:1].upper() + name.value[1:]
