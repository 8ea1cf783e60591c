"""Tests for {{ $json.path }} expression resolution."""
import pytest

from node_sdk.expressions import (
    get_path,
    has_expression,
    lookup,
    resolve_string,
    resolve_value,
    stringify,
)


class TestWholeStringExpressions:
    """A string that is exactly one expression keeps the value's type."""

    @pytest.mark.parametrize(
        "value",
        [5, 2.5, True, None, [1, 2], {"c": 1}, "text"],
    )
    def test_type_preserved(self, value):
        assert resolve_string("{{ $json.a.b }}", {"a": {"b": value}}) == value

    def test_int_stays_int(self):
        result = resolve_value("{{ $json.a.b }}", {"a": {"b": 5}})
        assert result == 5
        assert isinstance(result, int)

    def test_whitespace_is_optional(self):
        assert resolve_string("{{$json.name}}", {"name": "n8n"}) == "n8n"

    def test_unresolved_is_none(self):
        assert resolve_string("{{ $json.missing }}", {}) is None

    def test_missing_intermediate_key_is_unresolved(self):
        assert resolve_string("{{ $json.a.b.c }}", {"a": {}}) is None
        assert resolve_string("{{ $json.a.b }}", {"a": 3}) is None


class TestEmbeddedExpressions:
    """Expressions inside larger strings are interpolated."""

    def test_number(self):
        assert resolve_value("x={{ $json.a.b }}", {"a": {"b": 5}}) == "x=5"

    def test_several_occurrences(self):
        data = {"first": "Ada", "last": "Lovelace"}
        assert resolve_value("{{ $json.first }} {{ $json.last }}", data) == "Ada Lovelace"

    def test_unresolved_becomes_empty(self):
        assert resolve_value("id={{ $json.nope }}!", {}) == "id=!"

    def test_structured_values_use_json_form(self):
        data = {"obj": {"k": 1}, "flag": False, "items": [1, "a"]}
        assert resolve_value("o={{ $json.obj }}", data) == 'o={"k": 1}'
        assert resolve_value("f={{ $json.flag }}", data) == "f=false"
        assert resolve_value("l={{ $json.items }}", data) == 'l=[1, "a"]'


class TestResolveValue:

    def test_nested_structures(self):
        value = {"url": "/users/{{ $json.id }}", "ids": ["{{ $json.id }}", 7]}
        assert resolve_value(value, {"id": 42}) == {"url": "/users/42", "ids": [42, 7]}

    def test_non_strings_untouched(self):
        assert resolve_value(10, {"a": 1}) == 10
        assert resolve_value("plain", {"a": 1}) == "plain"

    def test_none_item(self):
        assert resolve_value("{{ $json.a }}", None) is None


class TestPaths:

    def test_list_index(self):
        assert lookup({"rows": [{"v": 1}, {"v": 2}]}, "rows.1.v") == 2

    def test_lookup_default(self):
        assert lookup({}, "a.b", default="d") == "d"

    def test_get_path_missing_index(self):
        assert lookup({"rows": []}, "rows.0", default="none") == "none"
        assert get_path({"a": 1}, "a") == 1

    def test_stringify(self):
        assert stringify(None) == ""
        assert stringify(3) == "3"
        assert stringify(True) == "true"

    def test_has_expression(self):
        assert has_expression("a {{ $json.x }}")
        assert not has_expression("{{ other }}")
        assert not has_expression(5)
