"""Composition of agent child-process invocations."""

from brain_cli.process.body import CommandBody, Fragment, normalize_result
from brain_cli.process.errors import (
    ConfigurationError,
    PreconditionError,
    ProcessBuildError,
    StateError,
    UnsupportedOperationError,
)
from brain_cli.process.factory import ProcessFactory
from brain_cli.process.payload import Payload
from brain_cli.process.reflection import Reflection
from brain_cli.process.slots import SLOT_CONSTRAINTS, SlotConstraint, SlotName
from brain_cli.process.types import ProcessType

__all__ = [
    "SLOT_CONSTRAINTS",
    "CommandBody",
    "ConfigurationError",
    "Fragment",
    "Payload",
    "PreconditionError",
    "ProcessBuildError",
    "ProcessFactory",
    "ProcessType",
    "Reflection",
    "SlotConstraint",
    "SlotName",
    "StateError",
    "UnsupportedOperationError",
    "normalize_result",
]
