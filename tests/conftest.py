"""
Pytest Configuration and Fixtures
==================================
Shared P&L line snapshots and month windows.
"""

import pytest

from forecast_config import EngineSettings
from forecast_engine import ForecastEngine
from forecast_periods import month_range
from pl_lines import ForecastMethod, ForecastMethodConfig, PLCategory, PLLine


@pytest.fixture
def baseline_keys():
    """FY25 baseline: Jul 2024 - Jun 2025."""
    return month_range('2024-07', '2025-06')


@pytest.fixture
def forecast_keys():
    """Full FY26: Jul 2025 - Jun 2026."""
    return month_range('2025-07', '2026-06')


@pytest.fixture
def engine():
    return ForecastEngine(EngineSettings())


@pytest.fixture
def flat_revenue_line(baseline_keys):
    """Revenue line with 1000 every baseline month."""
    return PLLine(
        id='rev',
        account_name='Sales',
        category=PLCategory.REVENUE,
        actual_months={key: 1000.0 for key in baseline_keys},
    )


@pytest.fixture
def sample_lines(baseline_keys):
    """A small P&L: two revenue lines, COGS driven by sales, rising rent, other items."""
    seasonal = [800, 900, 1000, 1100, 1200, 1500, 700, 800, 900, 1000, 1100, 1000]
    rent = [100] * 6 + [120] * 6
    return [
        PLLine(
            id='rev',
            account_name='Sales',
            category=PLCategory.REVENUE,
            actual_months={key: 1000.0 for key in baseline_keys},
            forecast_method=ForecastMethodConfig(ForecastMethod.STRAIGHT_LINE, percentage_increase=0.1),
        ),
        PLLine(
            id='svc',
            account_name='Service Income',
            category=PLCategory.REVENUE,
            actual_months={key: float(v) for key, v in zip(baseline_keys, seasonal)},
            forecast_method=ForecastMethodConfig(ForecastMethod.SEASONAL_PATTERN),
        ),
        PLLine(
            id='cogs',
            account_name='Purchases',
            category=PLCategory.COST_OF_SALES,
            actual_months={key: 400.0 for key in baseline_keys},
            forecast_method=ForecastMethodConfig(
                ForecastMethod.DRIVER_BASED, driver_line_id='rev', driver_percentage=0.4
            ),
        ),
        PLLine(
            id='rent',
            account_name='Rent',
            category=PLCategory.OPERATING_EXPENSES,
            actual_months={key: float(v) for key, v in zip(baseline_keys, rent)},
        ),
        PLLine(
            id='interest',
            account_name='Interest Received',
            category=PLCategory.OTHER_INCOME,
            actual_months={key: 10.0 for key in baseline_keys},
            forecast_method=ForecastMethodConfig(ForecastMethod.NONE),
        ),
        PLLine(
            id='fx',
            account_name='FX Losses',
            category=PLCategory.OTHER_EXPENSES,
            actual_months={key: 5.0 for key in baseline_keys},
            forecast_method=ForecastMethodConfig(ForecastMethod.MANUAL),
            forecast_months={'2025-07': 50.0},
        ),
    ]


@pytest.fixture
def sample_records(sample_lines):
    """The sample lines as the persistence layer stores them."""
    return [line.to_dict() for line in sample_lines]
