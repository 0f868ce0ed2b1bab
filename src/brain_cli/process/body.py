"""Command body accumulated while composing one child-process invocation."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

HOOK_KINDS: tuple[str, ...] = ("before", "after", "exit")

MapCallback = Callable[[Any, Any, Any, Any], Any]


def _empty_hooks() -> dict[str, list[str]]:
    return {kind: [] for kind in HOOK_KINDS}


@dataclass(slots=True)
class Fragment:
    """Normalized contribution of a single slot resolution."""

    command: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    commands: dict[str, list[str]] = field(default_factory=_empty_hooks)

    def is_empty(self) -> bool:
        return not self.command and not self.env and not any(self.commands.values())


def normalize_result(raw: Any) -> Fragment:
    """Turn a raw producer result into a ``Fragment``.

    Structured mappings carry ``command``, ``env`` and ``commands`` keys; a
    plain list is taken as argv tokens; a string is a single token. Anything
    else contributes nothing.
    """

    fragment = Fragment()
    command: list[Any] = []

    if isinstance(raw, Mapping):
        if _is_structured(raw):
            value = raw.get("command")
            if isinstance(value, str):
                command.append(value)
            elif isinstance(value, (list, tuple)):
                command.extend(value)

            env = raw.get("env")
            if isinstance(env, Mapping):
                for name, env_value in env.items():
                    if env_value is None:
                        continue
                    fragment.env[str(name)] = str(env_value)

            hooks = raw.get("commands")
            if isinstance(hooks, Mapping):
                for kind in HOOK_KINDS:
                    if hooks.get(kind) is not None:
                        fragment.commands[kind] = _normalize_hooks(hooks[kind])
    elif isinstance(raw, (list, tuple)):
        command.extend(raw)
    elif isinstance(raw, str):
        command.append(raw)

    fragment.command = [str(token) for token in command if token is not None and token != ""]
    return fragment


def _is_structured(raw: Mapping[str, Any]) -> bool:
    if raw.get("command") is not None or raw.get("env") is not None:
        return True
    hooks = raw.get("commands")
    if not isinstance(hooks, Mapping):
        return False
    return any(hooks.get(kind) is not None for kind in HOOK_KINDS)


def _normalize_hooks(value: Any) -> list[str]:
    items = value if isinstance(value, (list, tuple)) else [value]
    deduped: list[str] = []
    seen: set[str] = set()
    for item in items:
        if item is None:
            continue
        normalized = str(item).strip()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        deduped.append(normalized)
    return deduped


@dataclass(slots=True)
class CommandBody:
    """Argv, environment and hook lists that describe one child process."""

    command: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    commands: dict[str, list[str]] = field(default_factory=_empty_hooks)

    def add_command(self, command: str | Iterable[str]) -> CommandBody:
        if isinstance(command, str):
            self.command.append(command)
        else:
            self.command.extend(command)
        return self

    def add_commands(self, commands: Mapping[str, Iterable[str]]) -> CommandBody:
        for kind, items in commands.items():
            self.commands.setdefault(kind, []).extend(items)
        return self

    def add_env(self, name: str | Mapping[str, str], value: str | None = None) -> CommandBody:
        if isinstance(name, Mapping):
            self.env.update(name)
        elif value is not None:
            self.env[name] = value
        return self

    def has_command(self, prefix: str) -> bool:
        return any(token.startswith(prefix) for token in self.command)

    def has_env(self, name: str) -> bool:
        return name in self.env

    def map_command(self, callback: MapCallback) -> CommandBody:
        """Rewrite argv tokens in place.

        ``callback(value, index, previous_value, previous_index)`` may return
        a string (replace, dropped when blank), a list or tuple (splice 1->N), a
        bool (keep or drop) or anything else (keep unchanged).
        """

        entries = _map_entries(list(enumerate(self.command)), callback, pair_items=False)
        self.command = [value for _, value in entries]
        return self

    def map_env(self, callback: MapCallback) -> CommandBody:
        """Rewrite environment entries in order.

        Same result rules as ``map_command``; sequence results hold
        ``(name, value)`` pairs and a mapping result splices its items.
        """

        self.env = dict(_map_entries(list(self.env.items()), callback, pair_items=True))
        return self

    def dedupe_hooks(self) -> CommandBody:
        """Drop repeated hook commands across all contributions."""

        for kind, items in self.commands.items():
            self.commands[kind] = _normalize_hooks(items)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": list(self.command),
            "env": dict(self.env),
            "commands": {kind: list(items) for kind, items in self.commands.items()},
        }


def _map_entries(
    entries: list[tuple[Any, Any]],
    callback: MapCallback,
    *,
    pair_items: bool,
) -> list[tuple[Any, Any]]:
    mapped: list[tuple[Any, Any]] = []
    previous_key: Any = None
    previous_value: Any = None
    for key, value in entries:
        result = callback(value, key, previous_value, previous_key)
        if isinstance(result, bool):
            if result:
                mapped.append((key, value))
        elif isinstance(result, str):
            if result.strip():
                mapped.append((key, result))
        elif pair_items and isinstance(result, Mapping):
            mapped.extend(_spliced(result.items(), key, pair_items=True))
        elif isinstance(result, Sequence):
            mapped.extend(_spliced(result, key, pair_items=pair_items))
        else:
            mapped.append((key, value))
        previous_key = key
        previous_value = value
    return mapped


def _spliced(items: Iterable[Any], key: Any, *, pair_items: bool) -> list[tuple[Any, str]]:
    spliced: list[tuple[Any, str]] = []
    for item in items:
        if pair_items:
            item_key, item_value = item
        else:
            item_key, item_value = key, item
        if item_value is not None and str(item_value).strip():
            spliced.append((item_key, str(item_value)))
    return spliced
