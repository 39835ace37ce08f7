import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .calculator import compute_context_tariff, compute_route_price
from .formula import evaluate_formula_report
from .serializers import FormulaValidateSerializer, TariffCalculateSerializer, TariffSimulateSerializer
from .validator import analyze_formula, validate_formula

logger = logging.getLogger(__name__)


# Formula Views
class FormulaValidateAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = FormulaValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        formula = serializer.validated_data["formula"]
        outcome = validate_formula(formula, serializer.validated_data["available_variables"])
        analysis = analyze_formula(formula)

        logger.debug(f"Formula validated: valid={outcome.valid}, variables={len(outcome.used_variables)}")

        message = "Formula validated successfully" if outcome.valid else "Formula contains errors"
        data = {**outcome.to_dict(), "analysis": analysis.to_dict()}
        return Response({"status": 200, "message": message, "data": data}, status=status.HTTP_200_OK)


# Tariff Views
class TariffCalculateAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = TariffCalculateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        price = compute_route_price(
            base=params["base"],
            toll=params["toll"],
            pallets=params["pallets"],
            extras=params["extras"],
            formula=params["formula"] or None,
            method=params["method"],
            distance=params["distance"],
        )
        return Response({"status": 200, "data": price.to_dict()}, status=status.HTTP_200_OK)


class TariffSimulateAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = TariffSimulateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        formula = serializer.validated_data["formula"]
        context = serializer.validated_data["evaluation_context"]

        report = evaluate_formula_report(formula, context.as_variables(), context=context)
        tariff = compute_context_tariff(context, formula)

        return Response(
            {"status": 200, "data": {"tariff": tariff.to_dict(), "evaluation": report.to_dict()}},
            status=status.HTTP_200_OK,
        )
