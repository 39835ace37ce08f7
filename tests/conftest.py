"""Pytest configuration for the tariff engine tests.

Configures a minimal Django settings module so the DRF views, serializers and
engine settings can be exercised without a project or a database.
"""

from datetime import datetime

import django
import pytest
from django.conf import settings


def pytest_configure():
    if not settings.configured:
        settings.configure(
            SECRET_KEY="tarifas-tests",
            DEBUG=True,
            USE_TZ=True,
            INSTALLED_APPS=[
                "django.contrib.contenttypes",
                "django.contrib.auth",
                "rest_framework",
                "tarifas",
            ],
            DATABASES={},
            ROOT_URLCONF="tarifas.urls",
            REST_FRAMEWORK={
                "DEFAULT_AUTHENTICATION_CLASSES": [],
                "UNAUTHENTICATED_USER": None,
            },
        )
    django.setup()


# Saturday 8 June 2024: day of week 6, month 6, quarter 2, weekend
SATURDAY = datetime(2024, 6, 8, 10, 30, 0)
# Wednesday 15 January 2025: day of week 3, month 1, quarter 1
WEDNESDAY = datetime(2025, 1, 15, 9, 0, 0)


@pytest.fixture
def saturday_clock():
    return lambda: SATURDAY


@pytest.fixture
def wednesday_clock():
    return lambda: WEDNESDAY


@pytest.fixture
def nested_tiered_rate():
    """Build TARIFAESCALONADA calls nested ``depth`` levels deep over Palets."""
    def build(depth, tiers=12):
        steps = "; ".join(f"{i}:{i}" for i in range(1, tiers + 1))
        formula = "Palets"
        for _ in range(depth):
            formula = f"TARIFAESCALONADA({formula}; {steps})"
        return formula
    return build
