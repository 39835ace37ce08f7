"""Tests for formula evaluation and the fallback chain."""

import logging
import math

import pytest
from django.test import override_settings

from tarifas.context import EvaluationContext
from tarifas.dsl import FormulaEvaluationError, FormulaSyntaxError, safe_evaluate
from tarifas.formula import (
    ALTERNATIVE,
    BASIC,
    EMPTY,
    PRIMARY,
    basic_computation,
    evaluate_formula,
    evaluate_formula_report,
    evaluate_strict,
    prepare_expression,
    simplify_numeric_ternaries,
)

ROUTE = {"Valor": 100, "Palets": 5, "Peaje": 10}


def no_ternaries(expression):
    """An evaluator without ternary support, to drive the alternative stage."""
    if "?" in expression:
        raise FormulaSyntaxError("Ternaries are not supported")
    return safe_evaluate(expression)


class TestPrimaryStage:
    def test_default_formula(self):
        assert evaluate_formula("Valor * Palets + Peaje", ROUTE) == 510.0

    @pytest.mark.parametrize(
        "formula, expected",
        [
            ("SI(1;100;200)", 100.0),
            ("SI(0;100;200)", 200.0),
            ("REDONDEAR(3.14159;2)", 3.14),
            ("PROMEDIO(10;20;30)", 20.0),
            ("TARIFAESCALONADA(150; 100:10; 200:20; 300:30)", 20.0),
            ("TARIFAESCALONADA(50; 100:10; 200:20)", 10.0),
            ("TARIFAESCALONADA(500; 100:10; 200:20)", 20.0),
            ("TARIFAESCALONADA(100; 100:10; 200:20)", 10.0),
            ("TARIFAESCALONADA(150; 200:20; 100:10)", 20.0),
        ],
    )
    def test_custom_functions(self, formula, expected):
        assert evaluate_formula(formula) == pytest.approx(expected)

    def test_conditional_with_locale_decimals(self):
        variables = {"Distancia": 150, "Valor": 100}
        assert evaluate_formula("SI(Distancia>100;Valor*1,2;Valor)", variables) == pytest.approx(120.0)

    def test_numeric_strings(self):
        assert evaluate_formula("Valor * Palets + Peaje", {"Valor": "100", "Palets": "5", "Peaje": "10"}) == 510.0

    def test_string_comparison(self):
        assert evaluate_formula('SI(Zona == "Norte"; 10; 20)', {"Zona": "Norte"}) == 10.0
        assert evaluate_formula('SI(Zona == "Norte"; 10; 20)', {"Zona": "Sur"}) == 20.0

    def test_string_value_named_like_a_variable(self):
        variables = {"Zona": "Valor", "Valor": 100}
        assert evaluate_formula('SI(Zona == "Valor"; 1; 2)', variables) == 1.0

    def test_calendar_functions(self, saturday_clock, wednesday_clock):
        formula = "SI(ESFINDESEMANA();Valor*1.5;Valor)"
        assert evaluate_formula(formula, {"Valor": 100}, clock=saturday_clock) == 150.0
        assert evaluate_formula(formula, {"Valor": 100}, clock=wednesday_clock) == 100.0

    def test_calendar_from_context(self, saturday_clock):
        context = EvaluationContext(mes=12)
        assert evaluate_formula("SI(MES() == 12; 2; 1)", context=context, clock=saturday_clock) == 2.0

    def test_native_functions_over_variables(self):
        assert evaluate_formula("max(Valor,Palets) + min(Valor;Palets)", ROUTE) == 105.0

    def test_report(self):
        report = evaluate_formula_report("Valor * Palets", ROUTE)
        assert report.stage == PRIMARY
        assert report.expression == "100 * 5"
        assert not report.degraded
        assert report.to_dict()["attempts"] == [{"stage": PRIMARY, "value": 500.0, "error": None}]


class TestAlternativeStage:
    def test_numeric_ternary_is_simplified(self):
        report = evaluate_formula_report("SI(1;100;200) + Peaje", ROUTE, evaluator=no_ternaries)
        assert report.value == 110.0
        assert report.stage == ALTERNATIVE
        assert report.expression == "100 + 10"
        assert report.degraded

    def test_condition_must_be_positive(self):
        report = evaluate_formula_report("SI(Valor;1;2)", {"Valor": -5}, evaluator=no_ternaries)
        assert report.stage == ALTERNATIVE
        assert report.value == 2.0

    def test_skipped_when_nothing_to_simplify(self):
        report = evaluate_formula_report("Valor * Desconocida", ROUTE)
        assert [attempt.name for attempt in report.attempts] == [PRIMARY, ALTERNATIVE, BASIC]
        assert not report.attempts[1].ok


class TestSimplifyNumericTernaries:
    def test_nested_ternaries_collapse(self):
        assert simplify_numeric_ternaries("((1 ? 2 : 3) ? 4 : 5)") == "4"

    def test_negative_literals(self):
        assert simplify_numeric_ternaries("((-1) ? 2 : (-3)) * 2") == "(-3) * 2"

    def test_non_numeric_ternaries_are_kept(self):
        expression = "((150) <= 100 ? 10 : 20)"
        assert simplify_numeric_ternaries(expression) == expression


class TestBasicStage:
    def test_unknown_variable_falls_back(self):
        report = evaluate_formula_report("Valor * Desconocida", ROUTE)
        assert report.value == 510.0
        assert report.stage == BASIC

    def test_basic_computation_ignores_non_numeric_values(self):
        assert basic_computation({"Valor": "abc", "Palets": 5, "Peaje": "10"}) == 10.0

    def test_basic_computation_without_variables(self):
        assert basic_computation({}) == 0.0

    def test_unexpected_evaluator_errors_are_contained(self, caplog):
        def broken(expression):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="tarifas.formula"):
            report = evaluate_formula_report("Valor * Palets + Peaje", ROUTE, evaluator=broken)

        assert report.value == 510.0
        assert report.stage == BASIC
        assert report.attempts[0].error == "RuntimeError: boom"
        assert "raised unexpectedly" in caplog.text

    def test_stage_failures_are_logged_as_warnings(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tarifas.formula"):
            evaluate_formula("Valor * Desconocida", ROUTE)
        assert "Evaluation stage 'primary' failed" in caplog.text


class TestNeverRaises:
    @pytest.mark.parametrize(
        "formula",
        [
            "sqrt(-1)",
            "1 / 0",
            "10 ^ 400",
            "Valor * ",
            "SI(1;2)",
            '"texto"',
            "1 > 0",
            "exec(1)",
            "(" * 3000,
        ],
    )
    def test_result_is_always_finite(self, formula):
        result = evaluate_formula(formula, {"Valor": 1e308, "Palets": 10})
        assert math.isfinite(result)

    def test_empty_formula(self):
        assert evaluate_formula("") == 0.0
        assert evaluate_formula("   ") == 0.0
        assert evaluate_formula_report("").stage == EMPTY

    def test_overflowing_basic_computation_is_zero(self):
        assert evaluate_formula("nope(", {"Valor": 1e308, "Palets": 1e308}) == 0.0


class TestLimits:
    def test_over_long_formula_uses_basic_computation(self):
        formula = "Valor + " * 200 + "Valor"
        report = evaluate_formula_report(formula, ROUTE)
        assert report.stage == BASIC
        assert report.value == 510.0

    def test_nested_tiered_rates_use_basic_computation(self, nested_tiered_rate):
        report = evaluate_formula_report(nested_tiered_rate(4), ROUTE)
        assert report.stage == BASIC
        assert report.value == 510.0

    def test_huge_rounding_decimals_use_basic_computation(self):
        report = evaluate_formula_report("round(Valor; 20000000) + Peaje", ROUTE)
        assert report.stage == BASIC
        assert report.value == 510.0

    def test_length_limit_is_configurable(self):
        with override_settings(TARIFAS_ENGINE={"MAX_FORMULA_LENGTH": 10}):
            assert evaluate_formula_report("Valor * Palets", ROUTE).stage == BASIC
        assert evaluate_formula_report("Valor * Palets", ROUTE).stage == PRIMARY


class TestStrict:
    def test_returns_the_primary_value(self):
        assert evaluate_strict("Valor * Palets", ROUTE) == 500.0

    def test_raises_instead_of_falling_back(self):
        with pytest.raises(FormulaEvaluationError):
            evaluate_strict("Valor * Desconocida", ROUTE)

    def test_empty_formula_raises(self):
        with pytest.raises(FormulaEvaluationError):
            evaluate_strict("")


class TestPrepareExpression:
    def test_full_pipeline(self, saturday_clock):
        expression = prepare_expression("SI(Palets>MES();Valor;0)", ROUTE, clock=saturday_clock)
        assert expression == "(5>6 ? 100 : 0)"
