"""Top-level process actions."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any


class ProcessType(str, Enum):
    """Action requested from an agent binary."""

    RUN = "run"
    RESUME = "resume"
    CONTINUE = "continue"
    INSTALL = "install"
    UPDATE = "update"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_program(self) -> bool:
        return self in {ProcessType.RUN, ProcessType.RESUME, ProcessType.CONTINUE}

    @property
    def is_install(self) -> bool:
        return self is ProcessType.INSTALL

    @property
    def is_update(self) -> bool:
        return self is ProcessType.UPDATE

    @classmethod
    def detect(cls, options: Mapping[str, Any]) -> ProcessType:
        """Pick the process type from CLI options, install winning over all."""

        if options.get("install"):
            return cls.INSTALL
        if options.get("update"):
            return cls.UPDATE
        if options.get("resume"):
            return cls.RESUME
        if options.get("continue"):
            return cls.CONTINUE
        return cls.RUN


_LABELS = {
    ProcessType.RUN: "The run of a process",
    ProcessType.RESUME: "Resuming a process",
    ProcessType.CONTINUE: "Continuing a process",
    ProcessType.INSTALL: "Installation process",
    ProcessType.UPDATE: "Update process",
}
