from django.urls import path
from .views import FormulaValidateAPIView, TariffCalculateAPIView, TariffSimulateAPIView


urlpatterns = [
    # Formulas
    path("formulas/validate/", FormulaValidateAPIView.as_view(), name="formula-validate"),

    # Tariffs
    path("tariffs/calculate/", TariffCalculateAPIView.as_view(), name="tariff-calculate"),
    path("tariffs/simulate/", TariffSimulateAPIView.as_view(), name="tariff-simulate"),
]
