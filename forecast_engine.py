"""
Forecast Engine
===============
Turns sparse monthly actuals of P&L lines into monthly forecasts.

Core business logic only: no UI, storage or I/O. Every public method
takes a snapshot of lines and returns new values; inputs are never
mutated, and identical inputs always give identical outputs.
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from driver_resolver import resolve_driver_order
from forecast_config import EngineSettings
from pl_lines import (
    ForecastMethod,
    ForecastMethodConfig,
    GrowthType,
    LineAnalysis,
    PLCategory,
    PLLine,
    TrendDirection,
    find_line,
)

logger = logging.getLogger(__name__)


def _finite(value) -> float:
    """Coerce to float, substituting 0 for NaN or infinity."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if np.isfinite(value) else 0.0


def _window_values(line: PLLine, month_keys: List[str]) -> np.ndarray:
    """Actuals for the given months (missing months are 0)."""
    return np.array(
        [_finite(line.actual_months.get(key, 0.0)) for key in month_keys],
        dtype=float,
    )


def _optional_finite(value) -> Optional[float]:
    value = float(value)
    return value if np.isfinite(value) else None


class ForecastEngine:
    """
    Line-level forecast engine.

    Usage:
        engine = ForecastEngine()
        lines = engine.recalculate_all_forecasts(lines, baseline_keys, forecast_keys)
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    # =========================================================================
    # Line Analysis
    # =========================================================================

    def calculate_analysis(
        self,
        line: PLLine,
        all_lines: List[PLLine],
        month_keys: List[str]
    ) -> Optional[LineAnalysis]:
        """
        Calculate analysis metrics for a line over a historical window.

        Args:
            line: Line to analyse
            all_lines: All lines (for the revenue total)
            month_keys: Analysis window, normally the baseline year

        Returns:
            LineAnalysis, or None when the window is empty
        """
        if not month_keys:
            return None

        values = _window_values(line, month_keys)
        line_total = float(values.sum())
        average = _finite(line_total / len(month_keys))

        total_revenue = sum(
            float(_window_values(rev_line, month_keys).sum())
            for rev_line in all_lines
            if rev_line.category == PLCategory.REVENUE
        )

        pct_of_total_revenue = None
        pct_of_revenue = None
        trend_direction = None
        trend_percentage = None

        if line.category == PLCategory.REVENUE and total_revenue > 0:
            pct_of_total_revenue = _optional_finite(line_total / total_revenue * 100)

        if line.category in (PLCategory.COST_OF_SALES, PLCategory.OPERATING_EXPENSES):
            if total_revenue > 0:
                pct_of_revenue = _optional_finite(line_total / total_revenue * 100)
            trend_direction, trend_percentage = self._calculate_trend(values)

        return LineAnalysis(
            average_per_month=average,
            pct_of_total_revenue=pct_of_total_revenue,
            pct_of_revenue=pct_of_revenue,
            trend_direction=trend_direction,
            trend_percentage=trend_percentage,
        )

    def _calculate_trend(self, values: np.ndarray):
        """Compare first-half and second-half averages of the window."""
        midpoint = len(values) // 2
        first_half, second_half = values[:midpoint], values[midpoint:]
        if len(first_half) == 0 or len(second_half) == 0:
            return None, None

        first_avg = float(first_half.mean())
        second_avg = float(second_half.mean())
        if not first_avg > 0:
            return None, None

        trend_pct = _optional_finite((second_avg - first_avg) / first_avg * 100)
        if trend_pct is None:
            return None, None

        if abs(trend_pct) < self.settings.trend_stable_threshold:
            direction = TrendDirection.STABLE
        elif trend_pct > 0:
            direction = TrendDirection.UP
        else:
            direction = TrendDirection.DOWN
        return direction, trend_pct

    # =========================================================================
    # Forecast Methods
    # =========================================================================

    def apply_forecast_method(
        self,
        line: PLLine,
        all_lines: List[PLLine],
        forecast_month_keys: List[str],
        history_month_keys: List[str]
    ) -> Dict[str, float]:
        """
        Generate forecast values for one line.

        Args:
            line: Line with its analysis already calculated
            all_lines: Snapshot used to look up driver lines
            forecast_month_keys: Months to forecast
            history_month_keys: Trailing actuals for growth/seasonal methods
                (baseline plus current-year YTD when available)

        Returns:
            Dict of month key -> value for exactly the requested months
        """
        config = line.forecast_method
        method = config.method if config else None

        if method == ForecastMethod.NONE:
            forecast = {key: 0.0 for key in forecast_month_keys}
        elif method == ForecastMethod.STRAIGHT_LINE:
            forecast = self._apply_straight_line(line, forecast_month_keys, config)
        elif method == ForecastMethod.GROWTH_RATE:
            forecast = self._apply_growth_rate(line, forecast_month_keys, history_month_keys, config)
        elif method == ForecastMethod.SEASONAL_PATTERN:
            forecast = self._apply_seasonal_pattern(line, forecast_month_keys, history_month_keys, config)
        elif method == ForecastMethod.DRIVER_BASED:
            forecast = self._apply_driver_based(line, all_lines, forecast_month_keys, config)
        elif method == ForecastMethod.MANUAL:
            forecast = {key: line.forecast_months.get(key, 0.0) for key in forecast_month_keys}
        else:
            # No config or unrecognized method: historical average
            average = line.analysis.average_per_month if line.analysis else 0.0
            forecast = {key: average for key in forecast_month_keys}

        result = {key: _finite(forecast.get(key, 0.0)) for key in forecast_month_keys}
        logger.debug(
            "%s: method=%s months=%d total=%.2f",
            line.account_name,
            method.value if method else 'default',
            len(result),
            sum(result.values()),
        )
        return result

    def _apply_straight_line(
        self,
        line: PLLine,
        forecast_month_keys: List[str],
        config: ForecastMethodConfig
    ) -> Dict[str, float]:
        """Same amount every month."""
        if config.base_amount is not None:
            base_amount = config.base_amount
        else:
            base_amount = line.analysis.average_per_month if line.analysis else 0.0
        amount = base_amount * (1 + (config.percentage_increase or 0.0))
        return {key: amount for key in forecast_month_keys}

    def _apply_growth_rate(
        self,
        line: PLLine,
        forecast_month_keys: List[str],
        history_month_keys: List[str],
        config: ForecastMethodConfig
    ) -> Dict[str, float]:
        """Compound month-over-month from the last actual, or year-over-year by position."""
        growth = 1 + (config.growth_rate or 0.0)
        forecast: Dict[str, float] = {}

        if config.growth_type == GrowthType.MOM:
            previous = 0.0
            if history_month_keys:
                previous = _finite(line.actual_months.get(history_month_keys[-1], 0.0))
            for key in forecast_month_keys:
                previous = _finite(previous * growth)
                forecast[key] = previous
            return forecast

        history = _window_values(line, history_month_keys)
        for index, key in enumerate(forecast_month_keys):
            if index < len(history):
                prior_year_value = float(history[index])
            elif index >= 12:
                prior_year_value = forecast[forecast_month_keys[index - 12]]
            else:
                prior_year_value = 0.0
            forecast[key] = _finite(prior_year_value * growth)
        return forecast

    def _apply_seasonal_pattern(
        self,
        line: PLLine,
        forecast_month_keys: List[str],
        history_month_keys: List[str],
        config: ForecastMethodConfig
    ) -> Dict[str, float]:
        """Repeat the historical shape, scaled to the average plus any increase."""
        n_history = len(history_month_keys)
        if n_history == 0:
            return {key: 0.0 for key in forecast_month_keys}

        history = _window_values(line, history_month_keys)
        total = float(history.sum())
        if total != 0:
            pattern = history / total
        else:
            pattern = np.full(n_history, 1.0 / n_history)

        increase = 1 + (config.percentage_increase or 0.0)
        forecast_total = (total / n_history) * len(forecast_month_keys) * increase

        return {
            key: float(forecast_total * pattern[index % n_history])
            for index, key in enumerate(forecast_month_keys)
        }

    def _apply_driver_based(
        self,
        line: PLLine,
        all_lines: List[PLLine],
        forecast_month_keys: List[str],
        config: ForecastMethodConfig
    ) -> Dict[str, float]:
        """Percentage of another line's forecast."""
        driver_line = find_line(all_lines, config.driver_line_id)
        if driver_line is None:
            logger.warning(
                "%s: driver line %r not found, forecasting zero",
                line.account_name, config.driver_line_id,
            )
            return {key: 0.0 for key in forecast_month_keys}

        percentage = config.driver_percentage or 0.0
        return {
            key: driver_line.forecast_months.get(key, 0.0) * percentage
            for key in forecast_month_keys
        }

    # =========================================================================
    # Batch Recalculation
    # =========================================================================

    def recalculate_all_forecasts(
        self,
        lines: List[PLLine],
        baseline_month_keys: List[str],
        forecast_month_keys: List[str],
        actual_month_keys: Optional[List[str]] = None
    ) -> List[PLLine]:
        """
        Recalculate analysis and forecasts for every line.

        Args:
            lines: Current line snapshot
            baseline_month_keys: Baseline period, used for analysis only
            forecast_month_keys: Months to forecast
            actual_month_keys: Trailing history for forecasting methods;
                defaults to the baseline months

        Returns:
            New lines in input order
        """
        analysed = [
            line.with_analysis(self.calculate_analysis(line, lines, baseline_month_keys))
            for line in lines
        ]
        history = actual_month_keys if actual_month_keys is not None else baseline_month_keys

        if self.settings.resolution_strategy == 'sweep':
            return self._sweep(analysed, range(len(analysed)), forecast_month_keys, history)
        return self._resolve_in_driver_order(analysed, forecast_month_keys, history)

    def _resolve_in_driver_order(
        self,
        lines: List[PLLine],
        forecast_month_keys: List[str],
        history_month_keys: List[str]
    ) -> List[PLLine]:
        order = resolve_driver_order(lines)
        resolved = list(lines)

        # Drivers come first, so each dependent reads its driver's final values
        for idx in order.ordered:
            forecast = self.apply_forecast_method(
                resolved[idx], resolved, forecast_month_keys, history_month_keys
            )
            resolved[idx] = resolved[idx].with_forecast(forecast)

        if order.has_cycle:
            resolved = self._sweep(resolved, order.cyclic, forecast_month_keys, history_month_keys)

        # Lines fed by a cycle read its settled values
        for idx in order.downstream:
            forecast = self.apply_forecast_method(
                resolved[idx], resolved, forecast_month_keys, history_month_keys
            )
            resolved[idx] = resolved[idx].with_forecast(forecast)
        return resolved

    def _sweep(
        self,
        lines: List[PLLine],
        indices,
        forecast_month_keys: List[str],
        history_month_keys: List[str]
    ) -> List[PLLine]:
        """
        Bounded fixed-point iteration over the given lines.

        Each sweep reads only the previous sweep's snapshot, so the result
        does not depend on line order. The iteration cap is the only
        termination condition.
        """
        indices = list(indices)
        current = list(lines)
        for _ in range(self.settings.max_driver_iterations):
            snapshot = current
            current = list(snapshot)
            for idx in indices:
                forecast = self.apply_forecast_method(
                    snapshot[idx], snapshot, forecast_month_keys, history_month_keys
                )
                current[idx] = snapshot[idx].with_forecast(forecast)
        return current
