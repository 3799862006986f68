"""Unit tests for template interpolation and condition evaluation."""
import pytest

from vibeflow.workflow.errors import InvalidCondition
from vibeflow.workflow.expressions import (
    BoolOp,
    Compare,
    ExpressionError,
    Name,
    evaluate_condition,
    interpolate,
    parse_expression,
    resolve,
)


class TestInterpolate:
    """Test {{key}} placeholder substitution."""

    def test_replaces_every_placeholder(self):
        assert interpolate("{{a}} and {{b}}", {"a": "x", "b": "y"}) == "x and y"

    def test_missing_placeholder_left_verbatim(self):
        assert interpolate("{{missing}}", {}) == "{{missing}}"

    def test_node_ids_with_hyphens(self):
        assert interpolate("Review: {{input-1}}", {"input-1": "code"}) == "Review: code"

    def test_dotted_path_into_result(self):
        bindings = {"llm-1": {"content": "hello", "usage": {"tokens": 3}}}
        assert interpolate("{{llm-1.content}} ({{llm-1.usage.tokens}})", bindings) == "hello (3)"

    def test_exact_key_with_dot_wins(self):
        assert interpolate("{{a.b}}", {"a.b": "exact", "a": {"b": "nested"}}) == "exact"

    def test_non_string_values(self):
        bindings = {"n": 10, "flag": True, "none": None, "obj": {"k": [1, 2]}}
        assert interpolate("{{n}}", bindings) == "10"
        assert interpolate("{{flag}}", bindings) == "true"
        assert interpolate("{{none}}", bindings) == "null"
        assert interpolate("{{obj}}", bindings) == '{"k":[1,2]}'

    def test_placeholder_with_spaces_is_not_matched(self):
        assert interpolate("{{ a }}", {"a": "x"}) == "{{ a }}"

    def test_resolve_walks_structures(self):
        value = {"query": "{{q}}", "limit": 5, "tags": ["{{t}}", "fixed"]}
        assert resolve(value, {"q": "cats", "t": "pets"}) == {
            "query": "cats",
            "limit": 5,
            "tags": ["pets", "fixed"],
        }


class TestParseExpression:
    """Test the restricted expression parser."""

    def test_builds_comparison_tree(self):
        expr = parse_expression("{{n}} > 5 && name == 'bob'")
        assert isinstance(expr, BoolOp)
        assert expr.op == "and"
        left, right = expr.operands
        assert left == Compare(">", Name("n", placeholder=True), left.right)
        assert isinstance(right, Compare)
        assert right.left == Name("name")

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "(a > 1",
            "a > 1)",
            "a >",
            "__import__('os').system('ls')",
            "a + 1",
            "a > 1 b",
            "[1, 2]",
        ],
    )
    def test_rejects_malformed_or_unsupported_syntax(self, text):
        with pytest.raises(ExpressionError):
            parse_expression(text)

    def test_deep_nesting_rejected(self):
        with pytest.raises(ExpressionError):
            parse_expression("(" * 200 + "true" + ")" * 200)


class TestEvaluateCondition:
    """Test condition evaluation against bindings."""

    def test_greater_than_true(self):
        assert evaluate_condition("{{n}} > 5", {"n": 10}) == {"expression": "10 > 5", "result": True}

    def test_greater_than_false(self):
        assert evaluate_condition("{{n}} > 5", {"n": 2})["result"] is False

    def test_numeric_string_is_coerced(self):
        assert evaluate_condition("{{n}} >= 5", {"n": "7"})["result"] is True
        assert evaluate_condition("{{n}} == 7", {"n": "7"})["result"] is True

    def test_strict_equality_checks_type(self):
        assert evaluate_condition("n === 7", {"n": "7"})["result"] is False
        assert evaluate_condition("n !== 7", {"n": "7"})["result"] is True
        assert evaluate_condition("{{n}} === '7'", {"n": 7})["result"] is False

    def test_placeholder_inside_string_literal(self):
        assert evaluate_condition("'{{status}}' === 'ok'", {"status": "ok"}) == {
            "expression": "'ok' === 'ok'",
            "result": True,
        }
        assert evaluate_condition("\"{{a}}-{{b}}\" == \"x-y\"", {"a": "x", "b": "y"})["result"] is True

    def test_placeholder_string_read_as_literal(self):
        assert evaluate_condition("{{flag}}", {"flag": "false"}) == {"expression": "false", "result": False}
        assert evaluate_condition("{{flag}} == true", {"flag": "true"})["result"] is True
        assert evaluate_condition("{{n}} === 7", {"n": "7"})["result"] is True
        assert evaluate_condition("{{v}} == null", {"v": "null"})["result"] is True

    def test_boolean_connectives(self):
        bindings = {"a": 1, "b": 0, "name": "bob"}
        assert evaluate_condition("a > 0 && name == \"bob\"", bindings)["result"] is True
        assert evaluate_condition("b > 0 || not (a > 0)", bindings)["result"] is False
        assert evaluate_condition("!(b > 0) and a == 1", bindings)["result"] is True

    def test_literals(self):
        assert evaluate_condition("true", {})["result"] is True
        assert evaluate_condition("null == None", {})["result"] is True
        assert evaluate_condition("-1.5 < 0", {})["result"] is True

    def test_lone_operand_truthiness(self):
        assert evaluate_condition("{{flag}}", {"flag": "yes"})["result"] is True
        assert evaluate_condition("{{flag}}", {"flag": ""})["result"] is False

    def test_nested_result_access(self):
        bindings = {"cond-1": {"result": True}}
        assert evaluate_condition("{{cond-1.result}} == true", bindings)["result"] is True

    def test_short_circuit_skips_missing_identifier(self):
        assert evaluate_condition("false && missing", {})["result"] is False

    def test_missing_placeholder_is_invalid(self):
        with pytest.raises(InvalidCondition) as exc_info:
            evaluate_condition("{{missing}} > 1", {})
        assert str(exc_info.value) == "Invalid condition: {{missing}} > 1"

    def test_incomparable_operands_are_invalid(self):
        with pytest.raises(InvalidCondition):
            evaluate_condition("{{obj}} > 1", {"obj": {"a": 1}})

    def test_code_is_never_executed(self):
        with pytest.raises(InvalidCondition):
            evaluate_condition("__import__('os').getcwd()", {})
