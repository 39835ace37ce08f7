"""
Tariff computation for freight routes.

Every public function here returns a fully populated result and never raises;
failures are logged and answered with the documented fallback.
"""
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .conf import get_setting
from .context import Clock, EvaluationContext
from .formula import evaluate_formula
from .utils import round_money, to_number

logger = logging.getLogger(__name__)

TOLL_VARIABLE = "Peaje"
TOLL_TERM = "+ Peaje"

METHOD_PALLET = "Palet"
METHOD_KILOMETER = "Kilometro"
METHOD_FIXED = "Fijo"


@dataclass(frozen=True)
class TariffResult:
    base: float
    toll: float
    total: float

    @classmethod
    def rounded(cls, base: float, toll: float, total: float) -> "TariffResult":
        return cls(base=round_money(base), toll=round_money(toll), total=round_money(total))

    @classmethod
    def zero(cls) -> "TariffResult":
        return cls(base=0.0, toll=0.0, total=0.0)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class RoutePrice:
    base: float
    toll: float
    extras: List[Dict[str, Any]] = field(default_factory=list)
    extras_total: float = 0.0
    total: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _pallet_fallback(base: float, toll: float, pallets: float) -> TariffResult:
    tariff_base = base * pallets
    return TariffResult.rounded(tariff_base, toll, tariff_base + toll)


def compute_pallet_tariff(
    base: Any,
    toll: Any,
    pallets: Any,
    formula: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> TariffResult:
    """
    Compute a tariff from a route's base value, toll and pallet count.

    Args:
        base: Route base value (``Valor``); numbers or numeric strings.
        toll: Route toll (``Peaje``).
        pallets: Pallet count (``Palets``).
        formula: Client formula; defaults to "Valor * Palets + Peaje".
        clock: Source of "now" for calendar functions.

    Returns:
        TariffResult. When the formula mentions Peaje but neither Valor nor
        Palets, the toll-only shortcut returns base, toll and their sum
        without evaluating anything.
    """
    base_value = to_number(base)
    toll_value = to_number(toll)
    pallet_count = to_number(pallets)
    formula_text = formula or get_setting("DEFAULT_FORMULA")

    logger.debug(
        f"Pallet tariff: base={base_value}, toll={toll_value}, pallets={pallet_count}, formula={formula_text}"
    )

    try:
        if TOLL_VARIABLE in formula_text and "Valor" not in formula_text and "Palets" not in formula_text:
            return TariffResult.rounded(base_value, toll_value, base_value + toll_value)

        variables = {"Valor": base_value, "Peaje": toll_value, "Palets": pallet_count}
        total = evaluate_formula(formula_text, variables, clock=clock)

        # Toll is only split out when it is added as a plain term
        toll_component = toll_value if TOLL_TERM in formula_text else 0.0
        return TariffResult.rounded(total - toll_component, toll_component, total)
    except Exception as e:
        logger.error(f"Error computing pallet tariff with formula '{formula_text}': {e}")
        return _pallet_fallback(base_value, toll_value, pallet_count)


def compute_context_tariff(
    context: EvaluationContext,
    formula: str,
    clock: Optional[Clock] = None,
) -> TariffResult:
    """
    Compute a tariff from a full evaluation context.

    ``base`` is the formula total, minus the context toll when the formula
    references Peaje. Returns the zero triple on any error; formulas are
    expected to be validated beforehand.
    """
    try:
        total = evaluate_formula(formula, context.as_variables(), context=context, clock=clock)
        toll = 0.0
        if TOLL_VARIABLE in formula:
            toll = to_number(context.peaje)
        return TariffResult.rounded(total - toll, toll, total)
    except Exception as e:
        logger.error(f"Error computing context tariff with formula '{formula}': {e}")
        return TariffResult.zero()


def compute_method_tariff(
    base: Any,
    toll: Any,
    method: Optional[str],
    pallets: Any = 0,
    distance: Any = None,
) -> TariffResult:
    """
    Compute a tariff by calculation method, without a client formula.

    - Kilometro: base * distance (when a distance is given)
    - Fijo: base
    - anything else (Palet): base * pallets
    """
    try:
        base_value = to_number(base)
        toll_value = to_number(toll)
        distance_value = to_number(distance)

        if method == METHOD_KILOMETER and distance_value:
            tariff_base = base_value * distance_value
            logger.debug(f"Kilometer tariff: {base_value} * {distance_value} = {tariff_base}")
        elif method == METHOD_FIXED:
            tariff_base = base_value
            logger.debug(f"Fixed tariff: {tariff_base}")
        else:
            pallet_count = to_number(pallets)
            tariff_base = base_value * pallet_count
            logger.debug(f"Pallet tariff: {base_value} * {pallet_count} = {tariff_base}")

        return TariffResult.rounded(tariff_base, toll_value, tariff_base + toll_value)
    except Exception as e:
        logger.error(f"Error computing tariff for method '{method}': {e}")
        return TariffResult.zero()


def _normalize_extras(extras: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "id": extra.get("id"),
            "name": extra.get("name", ""),
            "value": round_money(to_number(extra.get("value"))),
        }
        for extra in extras
    ]


def compute_route_price(
    base: Any,
    toll: Any,
    pallets: Any,
    extras: Iterable[Mapping[str, Any]] = (),
    formula: Optional[str] = None,
    method: Optional[str] = None,
    distance: Any = None,
    clock: Optional[Clock] = None,
) -> RoutePrice:
    """
    Price a route: formula tariff when a formula is given, method tariff otherwise,
    plus extras. Returns an all-zero price on error.
    """
    try:
        if formula:
            tariff = compute_pallet_tariff(base, toll, pallets, formula, clock=clock)
        else:
            tariff = compute_method_tariff(base, toll, method or METHOD_PALLET, pallets, distance)

        extras_detail = _normalize_extras(extras)
        extras_total = sum(extra["value"] for extra in extras_detail)

        return RoutePrice(
            base=tariff.base,
            toll=tariff.toll,
            extras=extras_detail,
            extras_total=round_money(extras_total),
            total=round_money(tariff.total + extras_total),
        )
    except Exception as e:
        logger.error(f"Error computing route price with extras: {e}")
        return RoutePrice(base=0.0, toll=0.0)
