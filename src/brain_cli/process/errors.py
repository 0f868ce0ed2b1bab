"""Errors raised while composing a child-process invocation."""

from __future__ import annotations


class ProcessBuildError(RuntimeError):
    """Base error for a failed command build."""


class ConfigurationError(ProcessBuildError):
    """Payload is missing a required slot."""


class UnsupportedOperationError(ProcessBuildError):
    """Slot has no value for the current agent."""

    def __init__(self, slot: str) -> None:
        super().__init__(f"{_title(slot)} is not supported by this command")
        self.slot = slot


class PreconditionError(ProcessBuildError):
    """Slot ordering precondition failed."""


class StateError(ProcessBuildError):
    """Build collaborator accessed before it was attached."""


def _title(name: str) -> str:
    return name[:1].upper() + name[1:]
