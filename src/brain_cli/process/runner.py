"""Subprocess execution of a finished command body."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

from brain_cli.process.body import CommandBody

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS = 0.05
_TERMINATE_WAIT_SECONDS = 2
_SHUTDOWN_SIGNALS = ("SIGTERM", "SIGHUP")
_SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)


class ProcessRunError(RuntimeError):
    """Agent binary could not be started."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


class ProcessTerminated(RuntimeError):
    """brain-cli itself received a shutdown signal during a run."""

    def __init__(self, signum: int) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        super().__init__(f"Received {name}, agent process stopped")
        self.signum = signum

    @property
    def exit_code(self) -> int:
        return 128 + self.signum


@contextmanager
def shutdown_signals() -> Iterator[None]:
    """Raise ``ProcessTerminated`` on SIGTERM/SIGHUP while the block runs.

    Only the first signal raises, so cleanup in ``finally`` blocks is not
    interrupted by a repeated one.
    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    raised = False

    def _handler(signum: int, _: object | None) -> None:
        nonlocal raised
        if raised:
            return
        raised = True
        raise ProcessTerminated(signum)

    originals: dict[int, object] = {}
    try:
        for name in _SHUTDOWN_SIGNALS:
            signum = getattr(signal, name, None)
            if signum is None:
                continue
            originals[signum] = signal.getsignal(signum)
            signal.signal(signum, _handler)
        yield
    finally:
        for signum, original in originals.items():
            signal.signal(signum, original)


class ProcessRunner:
    """Run hooks and the main agent process described by a ``CommandBody``."""

    def __init__(self, base_env: Mapping[str, str] | None = None) -> None:
        self._base_env = dict(os.environ if base_env is None else base_env)

    def open(self, body: CommandBody, cwd: Path) -> int:
        """Run attached to the current terminal and return the exit code."""

        return self._execute(body, cwd, line_callback=None)

    def run(self, body: CommandBody, cwd: Path, callback: Callable[[str], None]) -> int:
        """Run with stdout captured, feeding each non-empty line to ``callback``."""

        return self._execute(body, cwd, line_callback=callback)

    def _execute(
        self,
        body: CommandBody,
        cwd: Path,
        line_callback: Callable[[str], None] | None,
    ) -> int:
        if not body.command:
            raise ProcessRunError("Cannot run an empty command.", transient=False)
        env = {**self._base_env, **body.env}
        hooks = body.commands
        exit_code = 1
        try:
            self._run_hooks("before", hooks.get("before", []), cwd, env)
            exit_code = self._run_main(body.command, cwd, env, line_callback)
            if exit_code == 0:
                self._run_hooks("after", hooks.get("after", []), cwd, env)
            return exit_code
        finally:
            self._run_hooks("exit", hooks.get("exit", []), cwd, env)
            logger.info("Agent process %s exited with code %d", body.command[0], exit_code)

    def _run_main(
        self,
        command: list[str],
        cwd: Path,
        env: dict[str, str],
        line_callback: Callable[[str], None] | None,
    ) -> int:
        # Captured runs get their own process group; attached runs must stay in
        # the terminal's foreground group to keep reading from the TTY.
        own_group = line_callback is not None and os.name == "posix"
        try:
            process = subprocess.Popen(  # noqa: S603
                command,
                cwd=cwd,
                env=env,
                stdout=subprocess.PIPE if line_callback is not None else None,
                text=True,
                start_new_session=own_group,
            )
        except FileNotFoundError as error:
            raise ProcessRunError(
                f"Agent command not found: {command[0]}",
                transient=False,
            ) from error
        except OSError as error:
            raise ProcessRunError(
                f"Agent command failed to start: {error}",
                transient=True,
            ) from error

        try:
            if line_callback is not None and process.stdout is not None:
                for raw_line in process.stdout:
                    line = raw_line.strip()
                    if line:
                        line_callback(line)
            while (returncode := process.poll()) is None:
                time.sleep(_POLL_INTERVAL_SECONDS)
        except KeyboardInterrupt:
            _terminate_process(process, own_group=own_group)
            return 130
        except ProcessTerminated as error:
            logger.warning("%s", error)
            _terminate_process(process, own_group=own_group)
            return error.exit_code
        except BaseException:
            _terminate_process(process, own_group=own_group)
            raise
        finally:
            if process.stdout is not None:
                process.stdout.close()
        return returncode

    @staticmethod
    def _run_hooks(kind: str, hooks: list[str], cwd: Path, env: dict[str, str]) -> None:
        for hook in hooks:
            if not hook.strip():
                continue
            logger.debug("Running %s hook: %s", kind, hook)
            completed = subprocess.run(  # noqa: S602
                hook,
                shell=True,
                cwd=cwd,
                env=env,
                check=False,
            )
            if completed.returncode != 0:
                logger.warning(
                    "%s hook exited with code %d: %s",
                    kind.capitalize(),
                    completed.returncode,
                    hook,
                )


def _terminate_process(process: subprocess.Popen[str], *, own_group: bool) -> None:
    """Stop the agent and everything it spawned, escalating to SIGKILL."""

    descendants = [] if own_group else _descendant_pids(process.pid)
    _signal_tree(process, descendants, signal.SIGTERM, own_group=own_group)
    try:
        process.wait(timeout=_TERMINATE_WAIT_SECONDS)
    except subprocess.TimeoutExpired:
        if not own_group:
            descendants = _descendant_pids(process.pid)
        _signal_tree(process, descendants, _SIGKILL, own_group=own_group)
        process.wait(timeout=_TERMINATE_WAIT_SECONDS)


def _signal_tree(
    process: subprocess.Popen[str],
    descendants: list[int],
    signum: int,
    *,
    own_group: bool,
) -> None:
    if own_group:
        try:
            os.killpg(process.pid, signum)
        except OSError:
            pass
        return
    # Deepest descendants first, then the agent itself.
    for pid in reversed(descendants):
        try:
            os.kill(pid, signum)
        except OSError:
            continue
    try:
        process.send_signal(signum)
    except OSError:
        return


def _descendant_pids(pid: int) -> list[int]:
    """Return descendants of ``pid``, each parent listed before its children."""

    if os.name != "posix":
        return []
    try:
        completed = subprocess.run(  # noqa: S603
            ["pgrep", "-P", str(pid)],  # noqa: S607
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return []
    pids: list[int] = []
    for token in completed.stdout.split():
        if token.isdigit():
            child = int(token)
            pids.append(child)
            pids.extend(_descendant_pids(child))
    return pids
