"""Tests for action models and structural path helpers."""

import pytest

from divcore.domain.actions import (
    Action,
    ArrayInsertValue,
    DictSetValue,
    SetState,
    SetVariable,
    check_index,
    parse_command,
    split_path,
    update_path,
)
from divcore.domain.errors import IncorrectValue, OutOfBounds, PathError
from divcore.domain.values import TypedValue, ValueType


class TestParseCommand:
    def test_set_variable(self) -> None:
        command = parse_command(
            {
                "type": "set_variable",
                "variable_name": "counter",
                "value": {"type": "integer", "value": 3},
            }
        )
        assert isinstance(command, SetVariable)
        assert command.value.to_typed("counter") == TypedValue(ValueType.INTEGER, 3)

    def test_optional_fields(self) -> None:
        insert = parse_command(
            {
                "type": "array_insert_value",
                "variable_name": "items",
                "value": {"type": "string", "value": "x"},
            }
        )
        assert isinstance(insert, ArrayInsertValue)
        assert insert.index is None
        delete = parse_command({"type": "dict_set_value", "variable_name": "d", "key": "k"})
        assert isinstance(delete, DictSetValue)
        assert delete.value is None

    def test_set_state_target(self) -> None:
        command = parse_command({"type": "set_state", "state_id": 7, "temporary_state_id": "b"})
        assert isinstance(command, SetState)
        assert command.target == "7"

    def test_unknown_type(self) -> None:
        with pytest.raises(IncorrectValue, match="Unknown action type"):
            parse_command({"type": "launch_rocket"})

    def test_invalid_payload(self) -> None:
        with pytest.raises(IncorrectValue) as exc_info:
            parse_command({"type": "array_remove_value", "variable_name": "items", "index": "0"})
        assert exc_info.value.message == "Incorrect action"
        assert any("index" in p for p in exc_info.value.detail["problems"])

    def test_unknown_value_type(self) -> None:
        with pytest.raises(IncorrectValue):
            parse_command(
                {
                    "type": "set_variable",
                    "variable_name": "x",
                    "value": {"type": "vector", "value": 1},
                }
            )


class TestAction:
    def test_extra_fields_allowed(self) -> None:
        action = Action.model_validate({"log_id": "tap", "payload": {"a": 1}})
        assert action.log_id == "tap"
        assert action.typed_type is None

    def test_typed_type(self) -> None:
        action = Action(typed={"type": "set_state"})
        assert action.typed_type == "set_state"


class TestPaths:
    @pytest.mark.parametrize("path", ["", "/a", "a/", "a//b"])
    def test_malformed(self, path: str) -> None:
        with pytest.raises(PathError):
            split_path(path)

    def test_update_nested(self) -> None:
        items = [{"name": "a"}, {"name": "b"}]
        updated = update_path(items, "0/name", "X")
        assert updated == [{"name": "X"}, {"name": "b"}]
        assert items == [{"name": "a"}, {"name": "b"}]

    def test_missing_intermediate(self) -> None:
        with pytest.raises(PathError):
            update_path([{"name": "a"}, {"name": "b"}], "1/2/3", "X")

    def test_scalar_intermediate(self) -> None:
        with pytest.raises(PathError, match="not a container"):
            update_path({"a": 1}, "a/b", 2)

    def test_dict_leaf_is_created(self) -> None:
        assert update_path({"a": {}}, "a/new", 1) == {"a": {"new": 1}}

    def test_array_leaf_out_of_bounds(self) -> None:
        with pytest.raises(OutOfBounds):
            update_path([1, 2], "2", 3)

    def test_array_leaf_not_an_index(self) -> None:
        with pytest.raises(PathError):
            update_path([1, 2], "first", 3)


class TestCheckIndex:
    def test_exclusive(self) -> None:
        check_index(1, 2)
        with pytest.raises(OutOfBounds):
            check_index(2, 2)
        with pytest.raises(OutOfBounds):
            check_index(-1, 2)

    def test_inclusive(self) -> None:
        check_index(2, 2, inclusive=True)
        with pytest.raises(OutOfBounds):
            check_index(3, 2, inclusive=True)
