from rest_framework import serializers

from .calculator import METHOD_FIXED, METHOD_KILOMETER, METHOD_PALLET
from .conf import get_setting
from .context import EvaluationContext


def validate_formula_length(value):
    max_length = get_setting("MAX_FORMULA_LENGTH")
    if len(value) > max_length:
        raise serializers.ValidationError(f"formula must be at most {max_length} characters")
    return value


# Formula Serializers
class FormulaValidateSerializer(serializers.Serializer):
    """Serializer for formula validation requests."""
    formula = serializers.CharField()
    available_variables = serializers.ListField(
        child=serializers.RegexField(r"^[A-Za-z]\w*$"), required=False, default=list
    )

    def validate_formula(self, value):
        return validate_formula_length(value)


# Tariff Serializers
class ExtraSerializer(serializers.Serializer):
    """A priced extra added on top of the route tariff."""
    id = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField()
    value = serializers.FloatField()


class TariffCalculateSerializer(serializers.Serializer):
    """Serializer for route price requests."""
    base = serializers.FloatField()
    toll = serializers.FloatField(required=False, default=0)
    pallets = serializers.FloatField(required=False, default=0)
    formula = serializers.CharField(required=False, allow_blank=True, default="")
    method = serializers.ChoiceField(
        choices=[METHOD_PALLET, METHOD_KILOMETER, METHOD_FIXED], required=False, default=METHOD_PALLET
    )
    distance = serializers.FloatField(required=False, allow_null=True, default=None)
    extras = ExtraSerializer(many=True, required=False, default=list)

    def validate_formula(self, value):
        return validate_formula_length(value)

    def validate(self, attrs):
        """Kilometer pricing needs a distance."""
        if not attrs.get("formula") and attrs.get("method") == METHOD_KILOMETER and not attrs.get("distance"):
            raise serializers.ValidationError("distance is required for the Kilometro method")
        return attrs


class TariffSimulateSerializer(serializers.Serializer):
    """Serializer for simulating a formula over a full evaluation context."""
    formula = serializers.CharField()
    context = serializers.DictField(required=False, default=dict)
    fecha = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def validate_formula(self, value):
        return validate_formula_length(value)

    def validate(self, attrs):
        """Build the EvaluationContext from the raw mapping."""
        data = dict(attrs.get("context") or {})
        if attrs.get("fecha") is not None:
            data["fecha"] = attrs["fecha"]
        try:
            attrs["evaluation_context"] = EvaluationContext.from_mapping(data)
        except TypeError as e:
            raise serializers.ValidationError({"context": str(e)})
        return attrs
