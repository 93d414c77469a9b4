"""Tests for derived bindings and dependency tracking."""

from divcore.domain.errors import DivError, ParseError, VariableNotFound
from divcore.domain.values import TypedValue, ValueType
from divcore.domain.variables import Variable, VariableStore
from divcore.services.binding import Binding, BindingSet


def _login_store() -> VariableStore:
    return VariableStore(
        [
            Variable.create("isLoggedIn", "boolean", False),
            Variable.create("userName", "string", "Ann"),
        ]
    )


class TestDependencyTracking:
    def test_ternary_switches_dependencies(self) -> None:
        store = _login_store()
        published: list[TypedValue] = []
        binding = Binding(
            "@{isLoggedIn ? userName : 'Guest'}", store, published.append
        ).start()

        assert binding.watched == {"isLoggedIn"}
        assert published == [TypedValue(ValueType.STRING, "Guest")]
        assert store.get("userName").subscriber_count == 0

        store.set("userName", "Bob")
        assert published == [TypedValue(ValueType.STRING, "Guest")]

        store.set("isLoggedIn", True)
        assert binding.watched == {"isLoggedIn", "userName"}
        assert published[-1] == TypedValue(ValueType.STRING, "Bob")

        store.set("isLoggedIn", False)
        assert binding.watched == {"isLoggedIn"}
        assert store.get("userName").subscriber_count == 0

    def test_unchanged_result_is_not_republished(self, store: VariableStore) -> None:
        published: list[TypedValue] = []
        Binding("@{counter > 5}", store, published.append).start()
        store.set("counter", 1)
        store.set("counter", 2)
        assert published == [TypedValue(ValueType.BOOLEAN, False)]

    def test_mixed_text_binding(self, store: VariableStore) -> None:
        binding = Binding("Count: @{counter}", store).start()
        store.set("counter", 4)
        assert binding.value == TypedValue(ValueType.STRING, "Count: 4")


class TestFailures:
    def test_failure_keeps_last_good_value(self) -> None:
        store = VariableStore([Variable.create("d", "integer", 2)])
        errors: list[DivError] = []
        published: list[TypedValue] = []
        binding = Binding("@{10 / d}", store, published.append, on_error=errors.append).start()
        assert binding.value == TypedValue(ValueType.INTEGER, 5)

        store.set("d", 0)
        assert binding.value == TypedValue(ValueType.INTEGER, 5)
        assert len(errors) == 1
        assert errors[0].detail["expression"] == "@{10 / d}"

        store.set("d", 5)
        assert binding.value == TypedValue(ValueType.INTEGER, 2)
        assert [v.value for v in published] == [5, 2]

    def test_parse_error_is_reported(self, store: VariableStore) -> None:
        errors: list[DivError] = []
        binding = Binding("@{counter +}", store, on_error=errors.append).start()
        assert binding.value is None
        assert isinstance(errors[0], ParseError)
        assert binding.watched == frozenset()

    def test_non_ascii_identifier_is_a_parse_error(self, store: VariableStore) -> None:
        errors: list[DivError] = []
        binding = Binding("@{café}", store, on_error=errors.append).start()
        assert binding.value is None
        assert isinstance(errors[0], ParseError)
        assert errors[0].offset == 5

    def test_missing_variable_then_recovery(self, store: VariableStore) -> None:
        errors: list[DivError] = []
        binding = Binding(
            "@{enabled ? ghost : name}", store, on_error=errors.append
        ).start()
        assert isinstance(errors[0], VariableNotFound)
        assert binding.value is None
        assert binding.watched == {"enabled"}

        store.set("enabled", False)
        assert binding.value == TypedValue(ValueType.STRING, "divkit")


class TestLifecycle:
    def test_close_releases_subscriptions(self, store: VariableStore) -> None:
        published: list[TypedValue] = []
        with Binding("@{counter + len(name)}", store, published.append) as binding:
            assert store.get("counter").subscriber_count == 1
            assert store.get("name").subscriber_count == 1
        assert binding.closed
        assert store.get("counter").subscriber_count == 0
        assert store.get("name").subscriber_count == 0

        store.set("counter", 10)
        assert len(published) == 1

    def test_start_is_idempotent(self, store: VariableStore) -> None:
        published: list[TypedValue] = []
        binding = Binding("@{counter}", store, published.append)
        binding.start()
        binding.start()
        assert len(published) == 1
        assert store.get("counter").subscriber_count == 1


class TestBindingSet:
    def test_bind_tree_paths(self, store: VariableStore) -> None:
        tree = {
            "type": "container",
            "items": [
                {"type": "text", "text": "@{name}"},
                {"type": "text", "text": "static"},
                {"type": "text", "text": "@{counter}", "actions": [{"url": "@{name}"}]},
            ],
        }
        updates: list[tuple[str, TypedValue]] = []
        bindings = BindingSet.bind_tree(tree, store, lambda path, value: updates.append((path, value)))
        assert sorted(bindings) == ["items/0/text", "items/2/text"]
        assert bindings["items/0/text"].value == TypedValue(ValueType.STRING, "divkit")

        store.set("counter", 9)
        assert updates[-1] == ("items/2/text", TypedValue(ValueType.INTEGER, 9))

        bindings.close()
        assert store.get("counter").subscriber_count == 0

    def test_errors_carry_path(self, store: VariableStore) -> None:
        errors: list[DivError] = []
        BindingSet.bind_tree({"text": "@{ghost}"}, store, on_error=errors.append)
        assert errors[0].detail["path"] == "text"
