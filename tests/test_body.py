from __future__ import annotations

import allure

from brain_cli.process.body import CommandBody, normalize_result

pytestmark = [
    allure.epic("Process Composition"),
    allure.feature("Command Body"),
]


def test_normalize_result_list_filters_empty_tokens_and_keeps_duplicates() -> None:
    fragment = normalize_result(["a", "a", "", None, "b", 3])

    assert fragment.command == ["a", "a", "b", "3"]
    assert fragment.env == {}
    assert fragment.commands == {"before": [], "after": [], "exit": []}


def test_normalize_result_string_is_single_token() -> None:
    assert normalize_result("--continue").command == ["--continue"]
    assert normalize_result("").is_empty()


def test_normalize_result_structured_mapping() -> None:
    fragment = normalize_result(
        {
            "command": ["codex", "--search"],
            "env": {"CODEX_HOME": "/p/.codex", "PORT": 8080, "SKIP": None},
            "commands": {"before": ["echo a", " echo a ", "", "echo b"], "exit": "echo done"},
        },
    )

    assert fragment.command == ["codex", "--search"]
    assert fragment.env == {"CODEX_HOME": "/p/.codex", "PORT": "8080"}
    assert fragment.commands == {
        "before": ["echo a", "echo b"],
        "after": [],
        "exit": ["echo done"],
    }


def test_normalize_result_ignores_unstructured_values() -> None:
    assert normalize_result({"unrelated": "value"}).is_empty()
    assert normalize_result(42).is_empty()
    assert normalize_result(None).is_empty()
    assert normalize_result(True).is_empty()


def test_map_command_keeps_drops_replaces_and_splices() -> None:
    body = CommandBody(command=["keep", "drop", "replace", "blank", "splice", "other"])

    def _callback(value, index, previous_value, previous_index):
        if value == "drop":
            return False
        if value == "keep":
            return True
        if value == "replace":
            return "replaced"
        if value == "blank":
            return "   "
        if value == "splice":
            return ["x", "", "y", "z"]
        return None

    body.map_command(_callback)

    assert body.command == ["keep", "replaced", "x", "y", "z", "other"]


def test_map_command_passes_previous_source_entry() -> None:
    body = CommandBody(command=["claude", "--settings", "{}"])
    seen: list[tuple] = []

    def _callback(value, index, previous_value, previous_index):
        seen.append((value, index, previous_value, previous_index))
        if previous_value == "--settings":
            return '{"a":1}'
        return value

    body.map_command(_callback)

    assert seen == [
        ("claude", 0, None, None),
        ("--settings", 1, "claude", 0),
        ("{}", 2, "--settings", 1),
    ]
    assert body.command == ["claude", "--settings", '{"a":1}']


def test_map_env_rewrites_entries_in_order() -> None:
    body = CommandBody(env={"A": "1", "B": "2", "C": "3"})

    def _callback(value, name, previous_value, previous_name):
        if name == "A":
            return False
        if name == "B":
            return [("B1", "x"), ("B2", "")]
        if name == "C":
            return "three"
        return True

    body.map_env(_callback)

    assert body.env == {"B1": "x", "C": "three"}
    assert list(body.env) == ["B1", "C"]


def test_has_command_matches_prefix_and_has_env_matches_name() -> None:
    body = CommandBody(command=["claude", "--settings", "{}"], env={"FOO": "1"})

    assert body.has_command("--set")
    assert not body.has_command("--model")
    assert body.has_env("FOO")
    assert not body.has_env("BAR")


def test_add_env_overwrites_and_dedupe_hooks_collapses_repeats() -> None:
    body = CommandBody()
    body.add_env({"FOO": "1"}).add_env("FOO", "2").add_env("BAR", None)
    body.add_commands({"before": ["echo a"]}).add_commands({"before": ["echo a", "echo b"]})

    assert body.env == {"FOO": "2"}
    assert body.commands["before"] == ["echo a", "echo a", "echo b"]

    body.dedupe_hooks()

    assert body.commands["before"] == ["echo a", "echo b"]
    assert body.to_dict() == {
        "command": [],
        "env": {"FOO": "2"},
        "commands": {"before": ["echo a", "echo b"], "after": [], "exit": []},
    }


def test_map_command_splices_tuple_results() -> None:
    body = CommandBody(command=["a", "b"])

    def _callback(value, index, previous_value, previous_index):
        return ("x", "y") if value == "a" else value

    body.map_command(_callback)

    assert body.command == ["x", "y", "b"]


def test_map_env_splices_mapping_and_tuple_results() -> None:
    body = CommandBody(env={"A": "1", "B": "2", "C": "3"})

    def _callback(value, name, previous_value, previous_name):
        if name == "A":
            return {"A2": "x", "A3": " "}
        if name == "B":
            return (("B2", "y"),)
        return True

    body.map_env(_callback)

    assert body.env == {"A2": "x", "B2": "y", "C": "3"}
