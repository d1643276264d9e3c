"""
Forecast Periods
================
Month keys, fiscal-year period boundaries and month column layout.

Fiscal years run July to June: FY26 is Jul 2025 - Jun 2026. A forecast
for FY N always uses FY N-1 as its baseline. When today falls inside
FY N the forecast is "rolling": completed months are actuals (YTD) and
only the remaining months are projected.
"""

import re
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import List, Optional, Tuple, Union

import pandas as pd
from dateutil.relativedelta import relativedelta

from forecast_errors import InvalidMonthKeyError


MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
               'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

FISCAL_YEAR_START_MONTH = 7

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


# =============================================================================
# MONTH KEYS
# =============================================================================

def parse_month_key(key: str) -> Tuple[int, int]:
    """Split a 'YYYY-MM' key into (year, month)."""
    match = _MONTH_KEY_RE.match(key) if isinstance(key, str) else None
    if not match:
        raise InvalidMonthKeyError(key)
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidMonthKeyError(key)
    return year, month


def format_month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def month_key_for(value: Union[date, datetime]) -> str:
    return format_month_key(value.year, value.month)


def add_months(key: str, months: int) -> str:
    year, month = parse_month_key(key)
    shifted = date(year, month, 1) + relativedelta(months=months)
    return month_key_for(shifted)


def month_range(start: str, end: str) -> List[str]:
    """Inclusive list of month keys from start to end; empty if start is after end."""
    parse_month_key(start)
    parse_month_key(end)
    if start > end:
        return []
    return pd.period_range(start=start, end=end, freq='M').strftime('%Y-%m').tolist()


def month_label(key: str) -> str:
    """Human-readable label, e.g. '2024-07' -> 'Jul 24'."""
    year, month = parse_month_key(key)
    return f"{MONTH_NAMES[month - 1]} {str(year)[-2:]}"


# =============================================================================
# PERIOD CALCULATOR
# =============================================================================

@dataclass(frozen=True)
class ForecastPeriods:
    """Baseline, actual (YTD) and forecast boundaries for one fiscal year."""
    baseline_start_month: str
    baseline_end_month: str
    actual_start_month: str
    actual_end_month: str
    forecast_start_month: str
    forecast_end_month: str
    is_rolling: bool

    def baseline_months(self) -> List[str]:
        return month_range(self.baseline_start_month, self.baseline_end_month)

    def actual_months(self) -> List[str]:
        return month_range(self.actual_start_month, self.actual_end_month)

    def forecast_months(self) -> List[str]:
        return month_range(self.forecast_start_month, self.forecast_end_month)

    def to_dict(self) -> dict:
        return asdict(self)


def fiscal_year_bounds(fiscal_year: int) -> Tuple[date, date]:
    """First and last day of a July-June fiscal year."""
    return date(fiscal_year - 1, FISCAL_YEAR_START_MONTH, 1), date(fiscal_year, 6, 30)


def calculate_forecast_periods(
    fiscal_year: int,
    today: Union[date, datetime]
) -> ForecastPeriods:
    """
    Derive period boundaries for a fiscal year as seen from `today`.

    Args:
        fiscal_year: Target fiscal year (e.g. 2026 for Jul 2025 - Jun 2026)
        today: Reference date

    Returns:
        ForecastPeriods. When today is outside the fiscal year the actual
        range is empty (actual_end_month precedes actual_start_month) and the
        forecast covers all twelve months.
    """
    if isinstance(today, datetime):
        today = today.date()

    fy_start, fy_end = fiscal_year_bounds(fiscal_year)
    baseline_start = format_month_key(fiscal_year - 2, FISCAL_YEAR_START_MONTH)
    baseline_end = format_month_key(fiscal_year - 1, 6)
    fy_first_month = format_month_key(fiscal_year - 1, FISCAL_YEAR_START_MONTH)
    fy_last_month = format_month_key(fiscal_year, 6)

    if fy_start <= today <= fy_end:
        current_month = today.replace(day=1)
        last_complete = current_month - relativedelta(months=1)
        return ForecastPeriods(
            baseline_start_month=baseline_start,
            baseline_end_month=baseline_end,
            actual_start_month=fy_first_month,
            actual_end_month=month_key_for(last_complete),
            forecast_start_month=month_key_for(current_month),
            forecast_end_month=fy_last_month,
            is_rolling=True,
        )

    return ForecastPeriods(
        baseline_start_month=baseline_start,
        baseline_end_month=baseline_end,
        actual_start_month=fy_first_month,
        actual_end_month=baseline_end,
        forecast_start_month=fy_first_month,
        forecast_end_month=fy_last_month,
        is_rolling=False,
    )


def periods_need_update(stored: Optional[dict], computed: ForecastPeriods) -> bool:
    """True when a stored forecast's month boundaries differ from freshly computed ones."""
    if not stored:
        return True
    for field_name, value in computed.to_dict().items():
        if field_name == 'is_rolling':
            continue
        if stored.get(field_name) != value:
            return True
    return False


# =============================================================================
# MONTH COLUMN BUILDER
# =============================================================================

@dataclass(frozen=True)
class MonthColumn:
    key: str
    label: str
    is_actual: bool
    is_forecast: bool
    is_baseline: bool = False


@dataclass(frozen=True)
class MonthKeySets:
    """Month keys grouped by role, in column order."""
    baseline: List[str]
    current_actual: List[str]
    forecast: List[str]

    @property
    def months_for_forecasting(self) -> List[str]:
        # Trailing history for growth/seasonal methods: baseline plus YTD
        return self.baseline + self.current_actual


def generate_month_columns(
    actual_start_month: str,
    actual_end_month: str,
    forecast_start_month: str,
    forecast_end_month: str,
    baseline_start_month: Optional[str] = None,
    baseline_end_month: Optional[str] = None
) -> List[MonthColumn]:
    """
    Build the ordered column layout: baseline block, then YTD actuals and
    forecast months as one contiguous block.
    """
    columns: List[MonthColumn] = []

    if baseline_start_month and baseline_end_month:
        for key in month_range(baseline_start_month, baseline_end_month):
            columns.append(MonthColumn(key, month_label(key), True, False, True))

    for key in month_range(actual_start_month, actual_end_month):
        columns.append(MonthColumn(key, month_label(key), True, False, False))

    for key in month_range(forecast_start_month, forecast_end_month):
        columns.append(MonthColumn(key, month_label(key), False, True, False))

    return columns


def build_month_columns(periods: ForecastPeriods, include_baseline: bool = True) -> List[MonthColumn]:
    return generate_month_columns(
        periods.actual_start_month,
        periods.actual_end_month,
        periods.forecast_start_month,
        periods.forecast_end_month,
        periods.baseline_start_month if include_baseline else None,
        periods.baseline_end_month if include_baseline else None,
    )


def last_baseline_index(columns: List[MonthColumn]) -> int:
    """Position of the last baseline column, or -1 if there is none."""
    last_idx = -1
    for idx, column in enumerate(columns):
        if column.is_baseline:
            last_idx = idx
    return last_idx


def split_month_keys(columns: List[MonthColumn]) -> MonthKeySets:
    return MonthKeySets(
        baseline=[c.key for c in columns if c.is_baseline],
        current_actual=[c.key for c in columns if c.is_actual and not c.is_baseline],
        forecast=[c.key for c in columns if c.is_forecast],
    )
