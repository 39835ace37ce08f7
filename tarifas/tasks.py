"""
Celery tasks for the tariff engine.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping

from celery import shared_task

from .calculator import compute_context_tariff
from .context import EvaluationContext
from .formula import evaluate_formula_report

logger = logging.getLogger(__name__)


def simulate_item(item: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Simulate a single formula against its context.

    Args:
        item: Mapping with "formula" and an optional "context" mapping.

    Returns:
        Dict with the formula, the tariff triple and the evaluation report.
    """
    formula = item.get("formula")
    if not isinstance(formula, str):
        raise ValueError("item has no formula")

    context = EvaluationContext.from_mapping(item.get("context") or {})
    report = evaluate_formula_report(formula, context.as_variables(), context=context)
    tariff = compute_context_tariff(context, formula)

    return {
        "formula": formula,
        "tariff": tariff.to_dict(),
        "evaluation": report.to_dict(),
    }


@shared_task
def simulate_tariff_batch(items: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Simulate a batch of formulas.

    A broken item yields {"index": i, "error": "..."} and the rest of the
    batch carries on.
    """
    results = []
    degraded = 0

    for index, item in enumerate(items):
        try:
            result = simulate_item(item)
        except Exception as e:
            logger.error(f"Error simulating batch item {index}: {e}")
            results.append({"index": index, "error": str(e)})
            continue

        if result["evaluation"]["degraded"]:
            degraded += 1
        results.append({"index": index, **result})

    logger.info(f"Simulated {len(results)} tariff formulas ({degraded} degraded)")
    return results
