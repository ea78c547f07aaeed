"""
Tests for the condition expression evaluator.
"""

import pytest


class TestEvaluateCondition:
    """Test parsing and evaluation."""

    @pytest.mark.parametrize("expression, expected", [
        ("true", True),
        ("TRUE", True),
        ("False", False),
        ("1 < 2", True),
        ("2 >= 3", False),
        ("'a' == 'a'", True),
        ("'a' !== \"b\"", True),
        ("true && false", False),
        ("true || false", True),
        ("not false and true", True),
        ("!(1 == 1)", False),
        ("null == none", True),
    ])
    def test_literals_and_operators(self, expression, expected):
        from flowbuilder.workflow.expressions import evaluate_condition

        assert evaluate_condition(expression) is expected

    def test_name_lookup(self):
        from flowbuilder.workflow.expressions import evaluate_condition

        scope = {"input": "refund please", "score": 7, "result": {"status": "ok"}}

        assert evaluate_condition("input contains 'refund'", scope)
        assert evaluate_condition("score > 5 && result.status === 'ok'", scope)
        assert not evaluate_condition("result.missing.deeper == 'x'", scope)

    def test_unknown_name_is_none(self):
        from flowbuilder.workflow.expressions import evaluate, evaluate_condition

        assert evaluate("nobody") is None
        assert evaluate_condition("nobody == null")
        assert not evaluate_condition("nobody contains 'x'")

    def test_precedence(self):
        from flowbuilder.workflow.expressions import evaluate_condition

        # and binds tighter than or
        assert evaluate_condition("true || false && false")
        assert not evaluate_condition("(true || false) && false")

    @pytest.mark.parametrize("expression, expected", [
        ("output != null and output > 5", False),
        ("output == null or output > 5", True),
        ("false && missing.deeper < 3", False),
        ("true || 1 < 'a'", True),
        ("not (output != null && output > 5)", True),
    ])
    def test_short_circuit_guards(self, expression, expected):
        from flowbuilder.workflow.expressions import evaluate_condition

        assert evaluate_condition(expression, {"output": None}) is expected

    def test_guard_evaluates_right_side_when_needed(self):
        from flowbuilder.workflow.expressions import evaluate_condition

        assert evaluate_condition("output != null and output > 5", {"output": 7})
        assert not evaluate_condition("output == null or output > 5", {"output": 3})

    def test_negative_numbers(self):
        from flowbuilder.workflow.expressions import evaluate, evaluate_condition

        assert evaluate("-1") == -1
        assert evaluate("-2.5") == -2.5
        assert evaluate_condition("output > -1", {"output": 0})
        assert not evaluate_condition("output < -(3)", {"output": -3})

    @pytest.mark.parametrize("expression", [
        "",
        "-'a'",
        "false && (1 ==",
        "1 ==",
        "(true",
        "true false",
        "a = b",
        "x.",
        "1 < 'a'",
    ])
    def test_errors(self, expression):
        from flowbuilder.workflow.errors import ExpressionError
        from flowbuilder.workflow.expressions import evaluate_condition

        with pytest.raises(ExpressionError):
            evaluate_condition(expression)

    def test_no_code_execution(self):
        from flowbuilder.workflow.errors import ExpressionError
        from flowbuilder.workflow.expressions import evaluate_condition

        with pytest.raises(ExpressionError):
            evaluate_condition("__import__('os').system('true')")


class TestBuildScope:
    """Test the names visible to condition nodes."""

    def test_scope_bindings(self):
        from flowbuilder.workflow.expressions import build_scope

        scope = build_scope(
            "hello",
            {"classifier": "technical", "node-abc": "x"},
            last_output="x",
            labels={"classifier": "Classifier", "node-abc": "Classifier Agent"},
        )

        assert scope["input"] == "hello"
        assert scope["output"] == "x"
        assert scope["classifier"] == "technical"
        assert scope["classifier_agent"] == "x"
        assert "node-abc" not in scope
        assert scope["variables"]["node-abc"] == "x"

    @pytest.mark.parametrize("label, slug", [
        ("Classifier Agent", "classifier_agent"),
        ("  PII / Detection ", "pii_detection"),
        ("3rd step", "_3rd_step"),
        ("!!!", ""),
    ])
    def test_slugify_label(self, label, slug):
        from flowbuilder.workflow.expressions import slugify_label

        assert slugify_label(label) == slug
