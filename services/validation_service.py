"""
Validation Service
==================
Data-quality checks on P&L lines and forecasts.

Checks never raise and never change lines; they return ValidationIssue
values for the UI to show next to the forecast.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from driver_resolver import resolve_driver_order
from pl_lines import ForecastMethod, PLCategory, PLLine, find_line, lines_in_category


LARGE_VALUE_THRESHOLD = 1_000_000_000
GOAL_TOLERANCE = 0.05  # 5%

COMPLETENESS_WEIGHTS = {
    'revenue_goal': 20,
    'distribution_method': 10,
    'cogs': 15,
    'forecast_months': 30,
    'revenue_lines': 15,
    'expense_lines': 10,
}


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ValidationIssue:
    severity: IssueSeverity
    field: str
    message: str
    value: Any = None
    suggestion: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'severity': self.severity.value,
            'field': self.field,
            'message': self.message,
            'value': self.value,
            'suggestion': self.suggestion,
        }


@dataclass(frozen=True)
class ValidationResult:
    issues: List[ValidationIssue] = field(default_factory=list)
    completeness: int = 0  # 0-100

    @property
    def is_valid(self) -> bool:
        return not any(issue.severity == IssueSeverity.ERROR for issue in self.issues)


class ForecastValidationService:
    """
    Service for forecast data-quality checks.

    Usage:
        result = ForecastValidationService().validate_lines(lines, forecast_keys)
        if not result.is_valid:
            ...
    """

    # =========================================================================
    # Single Values
    # =========================================================================

    def validate_cogs_percentage(self, percentage: float) -> Optional[ValidationIssue]:
        """COGS as % of revenue: must be 0-100, warn outside 5-95."""
        if percentage < 0 or percentage > 100:
            return ValidationIssue(
                IssueSeverity.ERROR, 'cogs_percentage',
                'COGS percentage must be between 0% and 100%', percentage,
                'Enter a valid percentage between 0 and 100',
            )
        if percentage < 5:
            return ValidationIssue(
                IssueSeverity.WARNING, 'cogs_percentage',
                'COGS percentage seems unusually low (<5%)', percentage,
                'Most businesses have COGS between 20-60%. Please verify this is correct.',
            )
        if percentage > 95:
            return ValidationIssue(
                IssueSeverity.WARNING, 'cogs_percentage',
                'COGS percentage seems unusually high (>95%)', percentage,
                'This leaves very little gross profit. Please verify this is correct.',
            )
        return None

    def validate_revenue_goal(self, revenue: float) -> Optional[ValidationIssue]:
        if revenue < 0:
            return ValidationIssue(
                IssueSeverity.ERROR, 'revenue_goal', 'Revenue goal cannot be negative', revenue,
                'Enter a positive revenue target',
            )
        if revenue == 0:
            return ValidationIssue(
                IssueSeverity.ERROR, 'revenue_goal', 'Revenue goal is required', revenue,
                'Enter your annual revenue target to continue',
            )
        if revenue < 10000:
            return ValidationIssue(
                IssueSeverity.WARNING, 'revenue_goal', 'Revenue goal seems unusually low', revenue,
                'Most businesses target at least $10,000 in annual revenue',
            )
        return None

    def validate_forecast_vs_goal(
        self,
        forecast_total: float,
        goal_total: float,
        tolerance: float = GOAL_TOLERANCE
    ) -> Optional[ValidationIssue]:
        """
        Warn when a forecast total is off its goal by more than tolerance.

        Args:
            forecast_total: Forecast sum for the period
            goal_total: Target for the same period (0 = no goal, nothing to check)
            tolerance: Allowed relative variance (0.05 = 5%)
        """
        if goal_total == 0:
            return None

        variance = abs(forecast_total - goal_total) / abs(goal_total)
        if variance <= tolerance:
            return None

        direction = 'higher' if forecast_total > goal_total else 'lower'
        return ValidationIssue(
            IssueSeverity.WARNING, 'forecast_total',
            f"Forecast total is {variance * 100:.1f}% {direction} than goal",
            forecast_total,
            f"Goal: ${goal_total:,.0f}, Forecast: ${forecast_total:,.0f}. "
            "Consider adjusting your forecast or goals.",
        )

    def validate_line_value(
        self,
        value: float,
        category: PLCategory,
        account_name: str
    ) -> Optional[ValidationIssue]:
        """Sign and magnitude check for one monthly amount."""
        if category == PLCategory.REVENUE and value < 0:
            return ValidationIssue(
                IssueSeverity.WARNING, account_name, 'Revenue values are typically positive', value,
                'Use "Other Expenses" category for refunds or discounts',
            )
        if category in (PLCategory.COST_OF_SALES, PLCategory.OPERATING_EXPENSES) and value < 0:
            return ValidationIssue(
                IssueSeverity.WARNING, account_name,
                'Expense values are typically positive (they reduce profit)', value,
                'Enter the amount as a positive number',
            )
        if abs(value) > LARGE_VALUE_THRESHOLD:
            return ValidationIssue(
                IssueSeverity.WARNING, account_name, 'Value seems unusually large', value,
                'Please verify this amount is correct (over $1 billion)',
            )
        return None

    # =========================================================================
    # Lines
    # =========================================================================

    def validate_months_complete(
        self,
        forecast_months: Dict[str, float],
        expected_month_keys: List[str],
        field_name: str = 'forecast_months'
    ) -> List[ValidationIssue]:
        """Flag expected months with no finite forecast value."""
        missing = [
            key for key in expected_month_keys
            if not _is_number(forecast_months.get(key))
        ]
        if not missing:
            return []

        more = '...' if len(missing) > 3 else ''
        return [ValidationIssue(
            IssueSeverity.WARNING, field_name,
            f"{len(missing)} month(s) missing forecast data", missing,
            f"Missing: {', '.join(missing[:3])}{more}",
        )]

    def validate_drivers(self, lines: List[PLLine]) -> List[ValidationIssue]:
        """Driver-based lines whose driver is missing or sits on a cycle."""
        issues = []
        for line in lines:
            if line.method != ForecastMethod.DRIVER_BASED:
                continue
            driver_id = line.forecast_method.driver_line_id
            if find_line(lines, driver_id) is None:
                issues.append(ValidationIssue(
                    IssueSeverity.WARNING, line.account_name,
                    'Driver line not found; forecast will be zero', driver_id,
                    'Pick an existing line as the driver',
                ))

        order = resolve_driver_order(lines)
        for idx in order.cyclic:
            issues.append(ValidationIssue(
                IssueSeverity.WARNING, lines[idx].account_name,
                'Circular driver reference', lines[idx].forecast_method.driver_line_id,
                'Drive this line from a line that does not depend on it',
            ))
        return issues

    def calculate_completeness(
        self,
        has_revenue_goal: bool,
        has_distribution_method: bool,
        has_cogs: bool,
        forecast_months_count: int,
        expected_months_count: int,
        has_revenue_line: bool,
        has_expense_line: bool
    ) -> int:
        """Weighted 0-100 score; forecast months count proportionally."""
        weights = COMPLETENESS_WEIGHTS
        score = 0.0
        if has_revenue_goal:
            score += weights['revenue_goal']
        if has_distribution_method:
            score += weights['distribution_method']
        if has_cogs:
            score += weights['cogs']
        if has_revenue_line:
            score += weights['revenue_lines']
        if has_expense_line:
            score += weights['expense_lines']
        if expected_months_count > 0:
            ratio = min(forecast_months_count / expected_months_count, 1)
            score += weights['forecast_months'] * ratio
        return int(math.floor(score + 0.5))

    def validate_lines(
        self,
        lines: List[PLLine],
        forecast_month_keys: List[str],
        revenue_goal: Optional[float] = None,
        has_distribution_method: bool = False
    ) -> ValidationResult:
        """
        Run every line-level check over a recalculated snapshot.

        Args:
            lines: Lines after recalculation
            forecast_month_keys: Months that should carry a forecast
            revenue_goal: Annual revenue target, if one was set
            has_distribution_method: Whether the goal has a monthly distribution

        Returns:
            ValidationResult with issues and a completeness score
        """
        issues: List[ValidationIssue] = []

        for line in lines:
            # One value issue per line: the first month that trips a check
            for key in sorted({**line.actual_months, **line.forecast_months}):
                value = line.forecast_months.get(key, line.actual_months.get(key))
                if not _is_number(value):
                    continue
                issue = self.validate_line_value(value, line.category, line.account_name)
                if issue is not None:
                    issues.append(issue)
                    break

            if line.method not in (None, ForecastMethod.NONE):
                issues.extend(self.validate_months_complete(
                    line.forecast_months, forecast_month_keys, line.account_name
                ))

        issues.extend(self.validate_drivers(lines))

        revenue_lines = lines_in_category(lines, PLCategory.REVENUE)
        if revenue_goal:
            forecast_revenue = sum(
                line.forecast_months.get(key, 0.0) for line in revenue_lines for key in forecast_month_keys
            )
            goal_issue = self.validate_forecast_vs_goal(forecast_revenue, revenue_goal)
            if goal_issue is not None:
                issues.append(goal_issue)

        forecast_months_count = sum(
            1 for key in forecast_month_keys
            if any(_is_number(line.forecast_months.get(key)) for line in lines)
        )
        completeness = self.calculate_completeness(
            has_revenue_goal=bool(revenue_goal and revenue_goal > 0),
            has_distribution_method=has_distribution_method,
            has_cogs=bool(lines_in_category(lines, PLCategory.COST_OF_SALES)),
            forecast_months_count=forecast_months_count,
            expected_months_count=len(forecast_month_keys),
            has_revenue_line=bool(revenue_lines),
            has_expense_line=bool(lines_in_category(lines, PLCategory.OPERATING_EXPENSES)),
        )
        return ValidationResult(issues=issues, completeness=completeness)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
