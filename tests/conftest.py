"""Shared test fixtures."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from brain_cli.config import Settings


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in an isolated project and temp directory."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    temp_dir = tmp_path / "tmp"
    temp_dir.mkdir()
    return Settings(
        project_dir=project_dir,
        temp_dir=temp_dir,
        environ={"HOME": str(tmp_path)},
    )


@pytest.fixture()
def isolated_env(tmp_path: Path, monkeypatch) -> Path:
    """Strip agent binary overrides from the process environment."""
    for name in (
        "BRAIN_CLI_PROJECT_DIR",
        "BRAIN_CLI_DEBUG",
        "NPM_PROGRAM_PATH",
        "CLAUDE_PROGRAM_PATH",
        "CLAUDE_NPM_PROGRAM_PATH",
        "CODEX_PROGRAM_PATH",
        "GROQ_AKI_KEY",
        "GROQ_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    temp_dir = tmp_path / "cli-tmp"
    temp_dir.mkdir()
    monkeypatch.setenv("BRAIN_CLI_TEMP_DIR", str(temp_dir))
    project_dir = tmp_path / "cli-project"
    project_dir.mkdir()
    return project_dir


def _is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    stat = Path(f"/proc/{pid}/stat")
    try:
        state = stat.read_text("utf-8").rsplit(")", 1)[1].split()[0]
    except (OSError, IndexError):
        return True
    return state != "Z"


@pytest.fixture()
def wait_for_exit() -> Callable[[int], bool]:
    """Return a helper that waits until a pid is gone or a zombie."""

    def _wait(pid: int, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not _is_alive(pid):
                return True
            time.sleep(0.05)
        return not _is_alive(pid)

    return _wait
