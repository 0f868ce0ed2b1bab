"""Runtime configuration for agent process composition."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class Settings:
    """Environment-derived settings shared by all agent clients."""

    project_dir: Path = field(default_factory=Path.cwd)
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    debug: bool = False
    environ: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, project_dir: Path | None = None) -> Settings:
        """Load settings from the process environment."""

        environ = dict(os.environ)
        return cls(
            project_dir=project_dir
            or Path(environ.get("BRAIN_CLI_PROJECT_DIR", "") or Path.cwd()),
            temp_dir=Path(environ.get("BRAIN_CLI_TEMP_DIR", "") or tempfile.gettempdir()),
            debug=_env_bool(environ, "BRAIN_CLI_DEBUG", default=False),
            environ=environ,
        )

    def env(self, name: str, default: str | None = None) -> str | None:
        """Look up a variable, treating empty values as unset."""

        value = self.environ.get(name, "")
        if not value.strip():
            return default
        return value

    def program_path(self, agent_prefix: str, default: str) -> str:
        return self.env(f"{agent_prefix}_PROGRAM_PATH", default) or default

    def npm_path(self, agent_prefix: str) -> str:
        return (
            self.env(f"{agent_prefix}_NPM_PROGRAM_PATH")
            or self.env("NPM_PROGRAM_PATH")
            or "npm"
        )

    def home_dir(self) -> str:
        return (self.env("HOME", "") or "").rstrip("/\\")

    def project_path(self, *parts: str) -> Path:
        return self.project_dir.joinpath(*parts)


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
