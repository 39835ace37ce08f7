"""Tests for formula validation and analysis."""

import pytest
from django.test import override_settings

from tarifas.validator import (
    analyze_formula,
    check_resource_limits,
    extract_variables,
    validate_formula,
)


class TestExtractVariables:
    def test_function_names_are_not_variables(self):
        formula = "SI(Distancia>100;REDONDEAR(Valor*1.2;2);max(Valor, Peso))"
        assert extract_variables(formula) == ["Distancia", "Valor", "Peso"]

    def test_string_literals_are_ignored(self):
        assert extract_variables('SI(Zona == "Norte"; 1; 2)') == ["Zona"]


class TestValidateFormula:
    @pytest.mark.parametrize(
        "formula",
        [
            "Valor * Palets + Peaje",
            "SI(Distancia>100;Valor*1.2;Valor)",
            "REDONDEAR(Valor / 3;2)",
            "PROMEDIO(Valor;Peaje;Cantidad)",
            "TARIFAESCALONADA(Palets; 10:50; 20:45) * Palets",
            "SI(ESFINDESEMANA();Valor*1.5;Valor) + MES() + DIASEMANA()",
            "max(Valor, Peso) / Volumen",
        ],
    )
    def test_valid_formulas(self, formula):
        outcome = validate_formula(formula, [])
        assert outcome.valid, outcome.message
        assert outcome.message == "Formula is valid"

    def test_unknown_variable(self):
        outcome = validate_formula("Valor + UnknownVar", [])
        assert not outcome.valid
        assert "UnknownVar" in outcome.message
        assert outcome.used_variables == ["Valor", "UnknownVar"]

    def test_available_variables_are_accepted(self):
        outcome = validate_formula("Valor + Recargo", ["Recargo"])
        assert outcome.valid
        assert outcome.used_variables == ["Valor", "Recargo"]

    def test_lists_every_unknown_variable(self):
        outcome = validate_formula("Foo * Bar + Valor", None)
        assert outcome.message == "Unknown variables: Foo, Bar"

    @pytest.mark.parametrize("formula", ["", "   ", None])
    def test_empty_formula(self, formula):
        outcome = validate_formula(formula)
        assert not outcome.valid
        assert outcome.message == "Formula is empty"

    @pytest.mark.parametrize("formula", ["Valor / 0", "Valor *", "(Valor", "sqrt(0 - Valor)"])
    def test_evaluation_errors(self, formula):
        outcome = validate_formula(formula, [])
        assert not outcome.valid
        assert outcome.message.startswith("Formula error:")

    def test_unknown_function_is_reported_as_unknown(self):
        outcome = validate_formula("exec(Valor)", [])
        assert not outcome.valid
        assert outcome.message == "Unknown variables: exec"

    def test_malformed_custom_function(self):
        assert not validate_formula("SI(Valor>1;2)", []).valid

    def test_idempotent(self):
        first = validate_formula("Valor + UnknownVar", [])
        second = validate_formula("Valor + UnknownVar", [])
        assert first == second

    def test_to_dict(self):
        assert validate_formula("Valor", []).to_dict() == {
            "valid": True,
            "message": "Formula is valid",
            "used_variables": ["Valor"],
        }


class TestResourceLimits:
    def test_too_long(self):
        outcome = validate_formula("Valor + " * 200 + "Valor", [])
        assert not outcome.valid
        assert outcome.message.startswith("Formula is too long")

    def test_too_many_arguments(self):
        formula = "PROMEDIO(" + ";".join(["Valor"] * 51) + ")"
        assert check_resource_limits(formula) == "Function PROMEDIO has 51 arguments (maximum 50)"
        assert not validate_formula(formula, []).valid

    def test_comma_separated_arguments_count_too(self):
        formula = "max(" + ",".join(["1"] * 51) + ")"
        assert check_resource_limits(formula) is not None

    def test_limits_are_configurable(self):
        with override_settings(TARIFAS_ENGINE={"MAX_FUNCTION_ARGUMENTS": 2}):
            assert check_resource_limits("PROMEDIO(1;2;3)") is not None
        assert check_resource_limits("PROMEDIO(1;2;3)") is None


class TestAnalyzeFormula:
    def test_simple_formula(self):
        analysis = analyze_formula("Valor * Palets + Peaje")
        assert analysis.variables == ["Valor", "Palets", "Peaje"]
        assert analysis.functions == []
        assert analysis.operators == ["*", "+"]
        assert not analysis.has_parentheses
        assert not analysis.has_conditionals
        assert analysis.complexity == "low"
        assert analysis.warnings == []

    def test_conditional_formula(self):
        analysis = analyze_formula("SI(Distancia>100;REDONDEAR(Valor*1.2;2);Valor)")
        assert analysis.functions == ["SI", "REDONDEAR"]
        assert analysis.has_conditionals
        assert analysis.complexity_factors == ["conditional logic"]

    def test_complex_formula(self):
        formula = "SI(A>1;SI(B>1;SI(C>1;SI(D>1;1;2);3);4);5) + E + F + G + H + I + J" + " " * 60
        analysis = analyze_formula(formula)
        assert analysis.complexity == "very high"
        assert analysis.complexity_score == 9

    @pytest.mark.parametrize(
        "formula, warning",
        [
            ("(Valor * 2", "Unbalanced parentheses"),
            ("Valor ** 2", "Consecutive operators"),
            ("Valor / 0", "Possible division by zero"),
            ("Valor + " * 70 + "1", "Formula is very long, consider simplifying it"),
        ],
    )
    def test_warnings(self, formula, warning):
        assert warning in analyze_formula(formula).warnings

    def test_decimal_divisor_is_not_division_by_zero(self):
        assert analyze_formula("Valor / 0.5").warnings == []

    def test_empty(self):
        analysis = analyze_formula("")
        assert analysis.length == 0
        assert analysis.complexity == "low"


class TestExpansionLimits:
    def test_nested_tiered_rates_are_rejected(self, nested_tiered_rate):
        formula = nested_tiered_rate(4)
        assert check_resource_limits(formula).startswith("Expanded formula is too long")
        outcome = validate_formula(formula, [])
        assert not outcome.valid
        assert outcome.message.startswith("Expanded formula is too long")

    def test_shallow_nesting_is_valid(self, nested_tiered_rate):
        assert validate_formula(nested_tiered_rate(2), []).valid

    def test_huge_rounding_decimals_are_an_error(self):
        outcome = validate_formula("round(Valor; 20000000)", [])
        assert not outcome.valid
        assert outcome.message.startswith("Formula error:")


class TestCalendarVariables:
    @pytest.mark.parametrize(
        "formula", ["Valor * Mes", "Valor * Trimestre + EsFinDeSemana + DiaSemana"]
    )
    def test_calendar_names_are_standard(self, formula):
        assert validate_formula(formula, []).valid


class TestSuggestions:
    def test_range_suggestion(self):
        assert analyze_formula("Valor * Palets + Peaje").suggestions == [
            "Consider MAX() or MIN() to keep values within a valid range"
        ]

    def test_unguarded_division(self):
        suggestions = analyze_formula("Peso / Volumen").suggestions
        assert 'Consider using "Valor" as the base of the calculation' in suggestions
        assert "Guard divisions with SI() so the divisor is never zero" in suggestions

    def test_guarded_formula_needs_nothing(self):
        assert analyze_formula("SI(Volumen > 0; max(Valor, 1) / Volumen; 0)").suggestions == []

    def test_many_variables(self):
        suggestions = analyze_formula("min(Valor + A + B + C + D + E, 10)").suggestions
        assert suggestions == ["With this many variables, make sure the formula is well documented"]
