"""Build driver that composes and launches one agent process."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from brain_cli.process.body import CommandBody
from brain_cli.process.errors import StateError
from brain_cli.process.output import ProcessRecord
from brain_cli.process.payload import Payload
from brain_cli.process.reflection import Reflection
from brain_cli.process.runner import ProcessRunner, shutdown_signals
from brain_cli.process.slots import SlotName
from brain_cli.process.types import ProcessType

if TYPE_CHECKING:
    from brain_cli.clients.base import AgentClient

logger = logging.getLogger(__name__)


class ProcessFactory:
    """Resolve slots in order, enforce their constraints and run the result.

    The factory is the invocation context handed to every producer, so
    producers can inspect ``factory.reflection`` or call other slots.
    """

    def __init__(
        self,
        *,
        type: ProcessType,  # noqa: A002
        client: AgentClient,
        payload: Payload,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.type = type
        self.client = client
        self.payload = payload
        self.cwd: Path = client.config.project_dir
        self.output: list[str] = []
        self.reflection = Reflection(payload, context=self)
        self._runner = runner or ProcessRunner()
        self._dump = False

    # Slot calls.

    def call(self, name: str | SlotName, *args: Any) -> ProcessFactory:
        """Validate a slot's constraints, resolve it and fold it into the body."""

        self.reflection.validate_constraints(name)
        self.reflection.fill_body(self.reflection.resolve(name, *args))
        return self

    def when(self, condition: Any, name: str | SlotName, *args: Any) -> ProcessFactory:
        """Call a slot only when ``condition`` is truthy.

        A callable first argument is evaluated with the factory first.
        """

        if not condition:
            return self
        if args and callable(args[0]):
            args = (args[0](self), *args[1:])
        return self.call(name, *args)

    def install(self) -> ProcessFactory:
        return self.call(SlotName.INSTALL)

    def update(self) -> ProcessFactory:
        return self.call(SlotName.UPDATE)

    def program(self) -> ProcessFactory:
        return self.call(SlotName.PROGRAM)

    def resume(self, session_id: str) -> ProcessFactory:
        return self.call(SlotName.RESUME, session_id)

    def prompt(self, prompt: str) -> ProcessFactory:
        return self.call(SlotName.PROMPT, prompt)

    def continue_(self) -> ProcessFactory:
        return self.call(SlotName.CONTINUE)

    def ask(self, prompt: str) -> ProcessFactory:
        return self.call(SlotName.ASK, prompt)

    def json(self) -> ProcessFactory:
        return self.call(SlotName.JSON)

    def yolo(self) -> ProcessFactory:
        return self.call(SlotName.YOLO)

    def allow_tools(self, tools: Sequence[str]) -> ProcessFactory:
        return self.call(SlotName.ALLOW_TOOLS, list(tools))

    def no_mcp(self) -> ProcessFactory:
        return self.call(SlotName.NO_MCP)

    def model(self, model: str) -> ProcessFactory:
        return self.call(SlotName.MODEL, model)

    def system(self, system_prompt: str) -> ProcessFactory:
        return self.call(SlotName.SYSTEM, system_prompt)

    def system_append(self, system_prompt: str) -> ProcessFactory:
        return self.call(SlotName.SYSTEM_APPEND, system_prompt)

    def settings(self, settings: Mapping[str, Any]) -> ProcessFactory:
        return self.call(SlotName.SETTINGS, dict(settings))

    def schema(self, schema: Mapping[str, Any]) -> ProcessFactory:
        return self.call(SlotName.SCHEMA, dict(schema))

    def append(self) -> ProcessFactory:
        return self.call(SlotName.APPEND)

    # Helpers.

    def env(self, env: Mapping[str, str]) -> ProcessFactory:
        self.reflection.add_env(env)
        return self

    def apply(self, callback: Callable[[ProcessFactory], Any]) -> ProcessFactory:
        callback(self)
        return self

    def dump(self, dump: bool = True) -> ProcessFactory:
        self._dump = dump
        return self

    def build(self, options: Mapping[str, Any]) -> ProcessFactory:
        """Resolve the standard slot sequence for this process type."""

        options = self.payload.default_options(dict(options))
        if self.type.is_install:
            return self.install()
        if self.type.is_update:
            return self.update()

        return (
            self.program()
            .when(options.get("ask"), SlotName.ASK, options.get("ask"))
            .when(options.get("prompt"), SlotName.PROMPT, options.get("prompt"))
            .when(options.get("json"), SlotName.JSON)
            .when(options.get("resume"), SlotName.RESUME, options.get("resume"))
            .when(options.get("continue"), SlotName.CONTINUE)
            .when(options.get("yolo"), SlotName.YOLO)
            .when(options.get("model"), SlotName.MODEL, options.get("model"))
            .when(options.get("system"), SlotName.SYSTEM, options.get("system"))
            .when(
                options.get("system_append"),
                SlotName.SYSTEM_APPEND,
                options.get("system_append"),
            )
            .when(options.get("allow_tools"), SlotName.ALLOW_TOOLS, options.get("allow_tools"))
            .when(options.get("no_mcp"), SlotName.NO_MCP)
            .when(options.get("schema"), SlotName.SCHEMA, options.get("schema"))
            .dump(bool(options.get("dump")))
        )

    def to_body(self) -> CommandBody:
        """Return the finished body, resolving ``append`` for program runs."""

        if (
            self.payload.is_set(SlotName.APPEND)
            and self.reflection.is_used(SlotName.PROGRAM)
            and not self.reflection.is_used(SlotName.APPEND)
        ):
            self.append()

        body = self.reflection.body
        if self._dump:
            logger.info("Process body: %s", json.dumps(body.to_dict(), ensure_ascii=False))
        if not body.command:
            raise StateError("Incorrect command build: command part is empty")
        return body

    # Execution.

    def open(self) -> int:
        """Run attached to the terminal and return the exit code.

        SIGTERM and SIGHUP stop the agent tree and still run exit hooks and
        the client's exit callback.
        """

        exit_code = 1
        with shutdown_signals():
            try:
                exit_code = self._runner.open(self.to_body(), self.cwd)
            finally:
                self.client.process_exit_callback(self, exit_code)
        return exit_code

    def run(self, callback: Callable[[ProcessRecord], None] | None = None) -> int:
        """Run with captured output, parsing each line into records."""

        def _on_line(line: str) -> None:
            self.output.append(line)
            for record in self.client.parse_output(self, line):
                if callback is not None:
                    callback(record)

        exit_code = 1
        with shutdown_signals():
            try:
                exit_code = self._runner.run(self.to_body(), self.cwd, _on_line)
            finally:
                self.client.process_exit_callback(self, exit_code)
        return exit_code
