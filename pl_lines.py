"""
P&L Line Model
==============
Profit-and-loss lines, their forecast method configuration and derived
analysis.

Lines are immutable values. Updating a line means building a new one
(dataclasses.replace) and swapping it into the collection by id.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from forecast_errors import InvalidCategoryError, LineNotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# VOCABULARY
# =============================================================================

class PLCategory(str, Enum):
    """The five P&L categories. Profit rollup depends on this fixed set."""
    REVENUE = "Revenue"
    COST_OF_SALES = "Cost of Sales"
    OPERATING_EXPENSES = "Operating Expenses"
    OTHER_INCOME = "Other Income"
    OTHER_EXPENSES = "Other Expenses"

    @classmethod
    def parse(cls, value: Any) -> 'PLCategory':
        if isinstance(value, cls):
            return value
        for category in cls:
            if category.value == value:
                return category
        raise InvalidCategoryError(value)


class ForecastMethod(str, Enum):
    NONE = "none"                          # Zero out, don't forecast
    STRAIGHT_LINE = "straight_line"        # Same amount each month
    GROWTH_RATE = "growth_rate"            # MoM or YoY compounding
    SEASONAL_PATTERN = "seasonal_pattern"  # Repeat historical shape
    DRIVER_BASED = "driver_based"          # % of another line's forecast
    MANUAL = "manual"                      # User-entered values

    @classmethod
    def parse(cls, value: Any) -> Optional['ForecastMethod']:
        """Accept 'straight_line' or 'straightLine'; None when unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.replace('_', '').lower()
        for method in cls:
            if method.value.replace('_', '') == normalized:
                return method
        logger.warning("Unrecognized forecast method %r, using straight-line average", value)
        return None


class GrowthType(str, Enum):
    MOM = "MoM"
    YOY = "YoY"

    @classmethod
    def parse(cls, value: Any) -> 'GrowthType':
        """Unset means MoM; any other value than 'MoM' means YoY."""
        if isinstance(value, cls):
            return value
        if value is None or value == '':
            return cls.MOM
        if isinstance(value, str) and value.lower() == 'mom':
            return cls.MOM
        return cls.YOY


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


# =============================================================================
# DATA STRUCTURES
# =============================================================================

def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


@dataclass(frozen=True)
class ForecastMethodConfig:
    """Projection strategy for one line. method=None means unrecognized."""
    method: Optional[ForecastMethod]
    percentage_increase: Optional[float] = None  # 0.05 = +5%
    growth_rate: Optional[float] = None          # 0.05 = 5% per period
    growth_type: GrowthType = GrowthType.MOM
    driver_line_id: Optional[str] = None
    driver_percentage: Optional[float] = None    # 0.25 = 25% of driver
    base_amount: Optional[float] = None

    def to_dict(self) -> dict:
        data = {
            'method': self.method.value if self.method else None,
            'percentage_increase': self.percentage_increase,
            'growth_rate': self.growth_rate,
            'growth_type': self.growth_type.value,
            'driver_line_id': self.driver_line_id,
            'driver_percentage': self.driver_percentage,
            'base_amount': self.base_amount,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> 'ForecastMethodConfig':
        return cls(
            method=ForecastMethod.parse(data.get('method')),
            percentage_increase=_optional_float(data.get('percentage_increase')),
            growth_rate=_optional_float(data.get('growth_rate')),
            growth_type=GrowthType.parse(data.get('growth_type')),
            driver_line_id=data.get('driver_line_id'),
            driver_percentage=_optional_float(data.get('driver_percentage')),
            base_amount=_optional_float(data.get('base_amount')),
        )


@dataclass(frozen=True)
class LineAnalysis:
    """Descriptive metrics over the baseline window. Always recomputable."""
    average_per_month: float = 0.0
    pct_of_total_revenue: Optional[float] = None  # Revenue lines
    pct_of_revenue: Optional[float] = None        # Cost of Sales / OpEx lines
    trend_direction: Optional[TrendDirection] = None
    trend_percentage: Optional[float] = None

    def to_dict(self) -> dict:
        data = {
            'average_per_month': self.average_per_month,
            'pct_of_total_revenue': self.pct_of_total_revenue,
            'pct_of_revenue': self.pct_of_revenue,
            'trend_direction': self.trend_direction.value if self.trend_direction else None,
            'trend_percentage': self.trend_percentage,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class PLLine:
    """One account row of the P&L."""
    account_name: str
    category: PLCategory
    id: Optional[str] = None
    actual_months: Dict[str, float] = field(default_factory=dict)
    forecast_months: Dict[str, float] = field(default_factory=dict)
    forecast_method: Optional[ForecastMethodConfig] = None
    analysis: Optional[LineAnalysis] = None
    account_code: Optional[str] = None
    sort_order: Optional[int] = None

    @property
    def method(self) -> Optional[ForecastMethod]:
        return self.forecast_method.method if self.forecast_method else None

    def with_forecast(self, forecast_months: Dict[str, float]) -> 'PLLine':
        return replace(self, forecast_months=dict(forecast_months))

    def with_analysis(self, analysis: Optional[LineAnalysis]) -> 'PLLine':
        return replace(self, analysis=analysis)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'account_name': self.account_name,
            'account_code': self.account_code,
            'category': self.category.value,
            'sort_order': self.sort_order,
            'actual_months': dict(self.actual_months),
            'forecast_months': dict(self.forecast_months),
            'forecast_method': self.forecast_method.to_dict() if self.forecast_method else None,
            'analysis': self.analysis.to_dict() if self.analysis else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PLLine':
        config = data.get('forecast_method')
        return cls(
            id=data.get('id'),
            account_name=data.get('account_name', ''),
            account_code=data.get('account_code'),
            category=PLCategory.parse(data.get('category')),
            sort_order=data.get('sort_order'),
            actual_months={k: float(v) for k, v in (data.get('actual_months') or {}).items()},
            forecast_months={k: float(v) for k, v in (data.get('forecast_months') or {}).items()},
            forecast_method=ForecastMethodConfig.from_dict(config) if config else None,
        )


# =============================================================================
# COLLECTION HELPERS
# =============================================================================

def find_line(lines: List[PLLine], line_id: Optional[str]) -> Optional[PLLine]:
    if line_id is None:
        return None
    for line in lines:
        if line.id == line_id:
            return line
    return None


def replace_line(lines: List[PLLine], updated: PLLine) -> List[PLLine]:
    """Return a new list with the line sharing updated.id swapped out."""
    if updated.id is None or find_line(lines, updated.id) is None:
        raise LineNotFoundError(updated.id)
    return [updated if line.id == updated.id else line for line in lines]


def lines_in_category(lines: List[PLLine], category: PLCategory) -> List[PLLine]:
    return [line for line in lines if line.category == category]
