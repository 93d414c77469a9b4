"""Tests for CardService — the operations behind the CLI."""

from typing import Any

import pytest

from divcore.config.models import TemplatesConfig
from divcore.config.settings import DivSettings
from divcore.domain.errors import IncorrectValue
from divcore.domain.values import TypedValue, ValueType
from divcore.services.card import CardService, parse_var_spec
from tests.conftest import increment


def _card(div: dict[str, Any], **extra: Any) -> dict[str, Any]:
    card: dict[str, Any] = {"states": [{"state_id": 0, "div": div}]}
    card.update(extra)
    return {"card": card}


@pytest.fixture
def service(settings: DivSettings) -> CardService:
    return CardService(settings)


class TestParseVarSpec:
    def test_valid(self) -> None:
        assert parse_var_spec("n:integer=5") == ("n", TypedValue(ValueType.INTEGER, 5))

    def test_value_may_contain_equals(self) -> None:
        assert parse_var_spec("q:string=a=b")[1].value == "a=b"

    def test_malformed(self) -> None:
        with pytest.raises(IncorrectValue, match="name:type=value"):
            parse_var_spec("oops")


class TestResolve:
    def test_resolves(self, service: CardService, sample_card: dict[str, Any]) -> None:
        result = service.resolve(sample_card)
        assert result.ok
        assert result.data["root"]["items"][0]["items"][0]["text"] == "Hi"
        assert result.data["errors"] == []

    def test_depth_errors_are_warnings(self, settings: DivSettings) -> None:
        service = CardService(settings.model_copy(update={"templates": TemplatesConfig(max_depth=4)}))
        data = {
            "templates": {"a": {"type": "b"}, "b": {"type": "a"}},
            **_card({"type": "a"}),
        }
        result = service.resolve(data)
        assert result.ok
        assert result.data["errors"][0]["code"] == "RESOLUTION_ERROR"
        assert result.warnings == ["Template expansion exceeded max depth 4"]

    def test_unusable_card(self, service: CardService) -> None:
        result = service.resolve({"templates": {}})
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "INCORRECT_VALUE"


class TestEvaluate:
    def test_bare_expression(self, service: CardService) -> None:
        result = service.evaluate("1 + 2 * 3")
        assert result.data["value"] == 7
        assert result.data["type"] == "integer"
        assert result.data["text"] == "7"

    def test_bound_string(self, service: CardService) -> None:
        result = service.evaluate("Hello, @{name}!", variables=["name:string=World"])
        assert result.data["text"] == "Hello, World!"
        assert result.data["used_variables"] == ["name"]

    def test_card_variables(self, service: CardService, sample_card: dict[str, Any]) -> None:
        result = service.evaluate("len(items) + counter", data=sample_card)
        assert result.data["value"] == 2
        assert result.data["used_variables"] == ["counter", "items"]

    def test_specs_override_card(self, service: CardService, sample_card: dict[str, Any]) -> None:
        result = service.evaluate("counter", data=sample_card, variables=["counter:integer=9"])
        assert result.data["value"] == 9

    def test_boolean_text(self, service: CardService) -> None:
        assert service.evaluate("1 < 2").data["text"] == "true"

    @pytest.mark.parametrize(
        ("expression", "variables", "code"),
        [
            ("ghost + 1", [], "VARIABLE_NOT_FOUND"),
            ("1 +", [], "PARSE_ERROR"),
            ("1 / 0", [], "EVALUATION_ERROR"),
            ("x", ["x"], "INCORRECT_VALUE"),
            ("x", ["x:integer=abc"], "INCORRECT_VALUE"),
        ],
    )
    def test_errors(
        self, service: CardService, expression: str, variables: list[str], code: str
    ) -> None:
        result = service.evaluate(expression, variables=variables)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == code
        assert result.data["expression"] == expression


class TestRun:
    @pytest.mark.asyncio
    async def test_run_reports_variables(
        self, service: CardService, sample_card: dict[str, Any]
    ) -> None:
        result = await service.run(sample_card, [increment(), increment(log_id="tap")])
        assert result.ok
        assert result.data["variables"]["counter"] == {"type": "integer", "value": 2}
        assert "host_width" not in result.data["variables"]
        assert result.data["executed"] == 2
        assert result.data["stats"] == [{"type": "action", "log_id": "tap"}]

    @pytest.mark.asyncio
    async def test_run_collects_effects(
        self, service: CardService, sample_card: dict[str, Any]
    ) -> None:
        actions = [
            {"url": "div-action://close"},
            {"typed": {"type": "copy_to_clipboard", "content": {"type": "text", "value": "@{name}"}}},
            {"typed": {"type": "array_remove_value", "variable_name": "items", "index": 5}},
        ]
        result = await service.run(sample_card, actions)
        assert result.data["custom_actions"] == ["div-action://close"]
        assert result.data["clipboard"] == ["divkit"]
        assert result.data["failed"] == 1
        assert result.data["errors"][0]["code"] == "OUT_OF_BOUNDS"

    @pytest.mark.asyncio
    async def test_load_errors_become_warnings(self, service: CardService) -> None:
        data = _card(
            {"type": "text", "text": "x"},
            variables=[
                {"name": "a", "type": "integer", "value": 1},
                {"name": "a", "type": "integer", "value": 2},
            ],
        )
        result = await service.run(data, [])
        assert result.ok
        assert result.warnings == ["Variable with the same name already exists"]
        assert result.data["errors"] == []

    @pytest.mark.asyncio
    async def test_unusable_card(self, service: CardService) -> None:
        result = await service.run({"card": {"states": []}}, [increment()])
        assert not result.ok
        assert result.error is not None
        assert result.error.message == "Card document could not be loaded"
        assert result.data["errors"][0]["code"] == "INCORRECT_VALUE"


class TestCheck:
    def test_clean_card(self, service: CardService, sample_card: dict[str, Any]) -> None:
        result = service.check(sample_card)
        assert result.data == {"issues": [], "count": 0}

    def test_template_cycle(self, service: CardService) -> None:
        data = {
            "templates": {"b": {"type": "a"}, "a": {"type": "b"}},
            **_card({"type": "text", "text": "ok"}),
        }
        issues = service.check(data).data["issues"]
        assert issues[0]["category"] == "templates"
        assert issues[0]["message"] == "Template cycle: a -> b -> a"

    def test_unknown_div_type(self, service: CardService) -> None:
        data = _card({"type": "container", "items": [{"type": "gizmo"}]})
        issues = service.check(data).data["issues"]
        assert issues == [
            {
                "category": "div_types",
                "severity": "warning",
                "path": "/items/0",
                "message": "Unknown div type: gizmo",
            }
        ]

    def test_parse_error_has_offset(self, service: CardService) -> None:
        data = _card({"type": "text", "text": "Hi @{1 +}"})
        (issue,) = service.check(data).data["issues"]
        assert issue["category"] == "expressions"
        assert issue["code"] == "PARSE_ERROR"
        assert issue["path"] == "/text"
        assert isinstance(issue["offset"], int)

    def test_bad_variables(self, service: CardService) -> None:
        data = _card(
            {"type": "text", "text": "x"},
            variables=[{"name": "n", "type": "integer", "value": "abc"}],
        )
        (issue,) = service.check(data).data["issues"]
        assert issue["category"] == "variables"
        assert issue["path"] == "/card/variables"

    def test_min_severity_error(self, service: CardService) -> None:
        data = _card(
            {"type": "container", "items": [{"type": "gizmo"}, {"type": "text", "text": "@{"}]}
        )
        assert service.check(data).data["count"] == 2
        filtered = service.check(data, min_severity="error").data["issues"]
        assert [i["category"] for i in filtered] == ["expressions"]

    def test_unusable_card(self, service: CardService) -> None:
        result = service.check({"card": "nope"})
        assert not result.ok
