"""
Forecast Service
================
Entry points used by the UI and persistence layers.

Coordinates period calculation, column layout and the forecast engine.
Holds no state between calls besides its settings.
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Union

from forecast_config import EngineSettings, get_settings
from forecast_engine import ForecastEngine
from forecast_periods import (
    ForecastPeriods,
    MonthColumn,
    MonthKeySets,
    build_month_columns,
    calculate_forecast_periods,
    last_baseline_index,
    periods_need_update,
    split_month_keys,
)
from pl_lines import PLLine, replace_line
from pl_schemas import parse_line_records
from pl_serialize import forecast_upsert_payload
from services.validation_service import ForecastValidationService, ValidationResult

logger = logging.getLogger(__name__)


class ForecastService:
    """
    Service for forecast business logic.

    Usage:
        service = ForecastService()
        periods = service.compute_periods(2026)
        columns = service.build_month_columns(periods)
        lines = service.recalculate_for_columns(lines, columns)
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        """
        Initialize forecast service.

        Args:
            settings: Engine settings (default: loaded from the environment)
        """
        self.settings = settings or get_settings()
        self.engine = ForecastEngine(self.settings)
        self.validator = ForecastValidationService()

    def compute_periods(
        self,
        fiscal_year: int,
        today: Optional[Union[date, datetime]] = None
    ) -> ForecastPeriods:
        """
        Period boundaries for a fiscal year.

        Args:
            fiscal_year: Target fiscal year (Jul-Jun)
            today: Reference date (default: today)

        Returns:
            ForecastPeriods
        """
        periods = calculate_forecast_periods(fiscal_year, today or date.today())
        logger.info(
            "FY%s periods: baseline %s..%s, actual %s..%s, forecast %s..%s (rolling=%s)",
            fiscal_year,
            periods.baseline_start_month, periods.baseline_end_month,
            periods.actual_start_month, periods.actual_end_month,
            periods.forecast_start_month, periods.forecast_end_month,
            periods.is_rolling,
        )
        return periods

    def build_month_columns(self, periods: ForecastPeriods) -> List[MonthColumn]:
        return build_month_columns(periods)

    def last_baseline_index(self, columns: List[MonthColumn]) -> int:
        return last_baseline_index(columns)

    def periods_need_update(self, stored: Optional[dict], periods: ForecastPeriods) -> bool:
        """Whether a stored forecast's date range should be rewritten."""
        return periods_need_update(stored, periods)

    def recalculate_all(
        self,
        lines: List[PLLine],
        baseline_month_keys: List[str],
        forecast_month_keys: List[str],
        actual_month_keys: Optional[List[str]] = None
    ) -> List[PLLine]:
        """
        Recompute analysis and forecasts for every line.

        Args:
            lines: Current line snapshot (not modified)
            baseline_month_keys: Analysis window
            forecast_month_keys: Months to forecast
            actual_month_keys: History for forecasting methods (default: baseline)

        Returns:
            New line list
        """
        return self.engine.recalculate_all_forecasts(
            lines, baseline_month_keys, forecast_month_keys, actual_month_keys
        )

    def recalculate_for_columns(self, lines: List[PLLine], columns: List[MonthColumn]) -> List[PLLine]:
        """recalculate_all with month keys taken from a column layout."""
        keys: MonthKeySets = split_month_keys(columns)
        return self.recalculate_all(
            lines, keys.baseline, keys.forecast, keys.months_for_forecasting
        )

    def update_line(
        self,
        lines: List[PLLine],
        updated: PLLine,
        columns: List[MonthColumn]
    ) -> List[PLLine]:
        """
        Replace one line by id, then recalculate everything.

        Raises:
            LineNotFoundError: if updated.id is not in lines
        """
        return self.recalculate_for_columns(replace_line(lines, updated), columns)

    def load_lines(self, records: List[dict]) -> List[PLLine]:
        """
        Build lines from stored records.

        Raises:
            InvalidRecordError: if a record fails validation
        """
        return parse_line_records(records)

    def export_lines(self, lines: List[PLLine]) -> List[dict]:
        """Engine-owned fields (forecast_months, analysis) ready for upsert."""
        return [forecast_upsert_payload(line) for line in lines]

    def validate_lines(
        self,
        lines: List[PLLine],
        columns: List[MonthColumn],
        revenue_goal: Optional[float] = None
    ) -> ValidationResult:
        """Data-quality issues for a recalculated snapshot, over its forecast columns."""
        forecast_keys = split_month_keys(columns).forecast
        return self.validator.validate_lines(lines, forecast_keys, revenue_goal)
