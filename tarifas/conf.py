"""
Engine settings, overridable through the ``TARIFAS_ENGINE`` Django setting.
"""
from typing import Any, Dict

DEFAULTS: Dict[str, Any] = {
    "DEFAULT_FORMULA": "Valor * Palets + Peaje",
    "MAX_FORMULA_LENGTH": 1000,
    "MAX_FUNCTION_ARGUMENTS": 50,
    "MAX_TRANSPILE_PASSES": 10,
    "MAX_EXPANDED_LENGTH": 10000,
}


def get_setting(name: str) -> Any:
    """
    Look up an engine setting.

    Falls back to DEFAULTS when Django settings are not configured, so the
    engine stays usable from plain scripts and workers.
    """
    from django.conf import settings

    overrides = getattr(settings, "TARIFAS_ENGINE", None) if settings.configured else None
    if overrides and name in overrides:
        return overrides[name]
    return DEFAULTS[name]
