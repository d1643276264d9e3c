"""
Financial Statements
====================
P&L aggregation over a snapshot of lines:
- Category totals per month (actual or forecast)
- Gross Profit / Net Profit rollup and margins
- Period totals over a list of months or a column layout
- Summary table (one row per category/profit line, one column per month)

Every figure is recomputed from the lines on each call; nothing is cached,
so totals can never drift from their components. Missing values count as 0.
"""
from dataclasses import dataclass, asdict
from typing import Dict, List

import pandas as pd

from forecast_periods import MonthColumn
from pl_lines import PLCategory, PLLine


# Sign of each category in Net Profit
PROFIT_ROLLUP: Dict[PLCategory, int] = {
    PLCategory.REVENUE: 1,
    PLCategory.COST_OF_SALES: -1,
    PLCategory.OPERATING_EXPENSES: -1,
    PLCategory.OTHER_INCOME: 1,
    PLCategory.OTHER_EXPENSES: -1,
}

GROSS_PROFIT_CATEGORIES = (PLCategory.REVENUE, PLCategory.COST_OF_SALES)


def rollup(category_totals: Dict[PLCategory, float], categories=tuple(PLCategory)) -> float:
    """Signed sum of category totals."""
    return sum(PROFIT_ROLLUP[c] * category_totals.get(c, 0.0) for c in categories)


def margin_pct(profit: float, revenue: float) -> float:
    return (profit / revenue) * 100 if revenue > 0 else 0.0


# =============================================================================
# SINGLE MONTH
# =============================================================================

def line_value(line: PLLine, month_key: str, is_forecast: bool) -> float:
    months = line.forecast_months if is_forecast else line.actual_months
    return months.get(month_key, 0.0) or 0.0


def category_total(lines: List[PLLine], category: PLCategory, month_key: str, is_forecast: bool) -> float:
    return sum(
        line_value(line, month_key, is_forecast)
        for line in lines
        if line.category == category
    )


def category_totals(lines: List[PLLine], month_key: str, is_forecast: bool) -> Dict[PLCategory, float]:
    return {c: category_total(lines, c, month_key, is_forecast) for c in PLCategory}


def gross_profit(lines: List[PLLine], month_key: str, is_forecast: bool) -> float:
    return rollup(category_totals(lines, month_key, is_forecast), GROSS_PROFIT_CATEGORIES)


def net_profit(lines: List[PLLine], month_key: str, is_forecast: bool) -> float:
    return rollup(category_totals(lines, month_key, is_forecast))


def gross_margin(lines: List[PLLine], month_key: str, is_forecast: bool) -> float:
    revenue = category_total(lines, PLCategory.REVENUE, month_key, is_forecast)
    return margin_pct(gross_profit(lines, month_key, is_forecast), revenue)


def net_margin(lines: List[PLLine], month_key: str, is_forecast: bool) -> float:
    revenue = category_total(lines, PLCategory.REVENUE, month_key, is_forecast)
    return margin_pct(net_profit(lines, month_key, is_forecast), revenue)


# =============================================================================
# PERIOD TOTALS
# =============================================================================

def category_period_total(
    lines: List[PLLine],
    category: PLCategory,
    month_keys: List[str],
    is_forecast: bool
) -> float:
    return sum(category_total(lines, category, key, is_forecast) for key in month_keys)


def gross_profit_period_total(lines: List[PLLine], month_keys: List[str], is_forecast: bool) -> float:
    return sum(gross_profit(lines, key, is_forecast) for key in month_keys)


def net_profit_period_total(lines: List[PLLine], month_keys: List[str], is_forecast: bool) -> float:
    return sum(net_profit(lines, key, is_forecast) for key in month_keys)


def line_columns_total(line: PLLine, columns: List[MonthColumn]) -> float:
    """Actual columns read actuals, forecast columns read forecasts."""
    return sum(line_value(line, col.key, col.is_forecast) for col in columns)


def category_columns_total(lines: List[PLLine], category: PLCategory, columns: List[MonthColumn]) -> float:
    return sum(line_columns_total(line, columns) for line in lines if line.category == category)


@dataclass(frozen=True)
class PLTotals:
    revenue: float
    cost_of_sales: float
    operating_expenses: float
    other_income: float
    other_expenses: float
    gross_profit: float
    net_profit: float
    gross_margin: float
    net_margin: float

    def to_dict(self) -> dict:
        return asdict(self)


def pl_totals_for_columns(lines: List[PLLine], columns: List[MonthColumn]) -> PLTotals:
    """
    Totals over a column set, e.g. the baseline year or the current fiscal
    year (YTD actuals plus remaining forecast).
    """
    totals = {c: category_columns_total(lines, c, columns) for c in PLCategory}
    revenue = totals[PLCategory.REVENUE]
    gp = rollup(totals, GROSS_PROFIT_CATEGORIES)
    np_ = rollup(totals)
    return PLTotals(
        revenue=revenue,
        cost_of_sales=totals[PLCategory.COST_OF_SALES],
        operating_expenses=totals[PLCategory.OPERATING_EXPENSES],
        other_income=totals[PLCategory.OTHER_INCOME],
        other_expenses=totals[PLCategory.OTHER_EXPENSES],
        gross_profit=gp,
        net_profit=np_,
        gross_margin=margin_pct(gp, revenue),
        net_margin=margin_pct(np_, revenue),
    )


# =============================================================================
# SUMMARY TABLE
# =============================================================================

SUMMARY_ROWS = [c.value for c in PLCategory] + [
    'Gross Profit', 'Gross Margin %', 'Net Profit', 'Net Margin %'
]


def build_pl_summary(lines: List[PLLine], columns: List[MonthColumn]) -> pd.DataFrame:
    """
    Monthly P&L summary.

    Returns:
        DataFrame indexed by SUMMARY_ROWS with one column per month key and a
        'Total' column. Margin rows in the Total column are margins of the
        totals, not sums of monthly margins.
    """
    data = {}
    for col in columns:
        totals = category_totals(lines, col.key, col.is_forecast)
        revenue = totals[PLCategory.REVENUE]
        gp = rollup(totals, GROSS_PROFIT_CATEGORIES)
        np_ = rollup(totals)
        data[col.key] = [totals[c] for c in PLCategory] + [
            gp, margin_pct(gp, revenue), np_, margin_pct(np_, revenue)
        ]

    df = pd.DataFrame(data, index=SUMMARY_ROWS, columns=[c.key for c in columns], dtype=float)

    totals = pl_totals_for_columns(lines, columns)
    df['Total'] = [
        totals.revenue, totals.cost_of_sales, totals.operating_expenses,
        totals.other_income, totals.other_expenses,
        totals.gross_profit, totals.gross_margin, totals.net_profit, totals.net_margin,
    ]
    return df
