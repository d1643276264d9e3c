"""
Scenario Service
================
What-if adjustments on top of a recalculated forecast.

Scenarios scale forecast months by category (revenue, cost of sales,
operating expenses); actuals are never touched.
"""

from dataclasses import dataclass, replace
from typing import Dict, List

from components.financial_statements import PLTotals, margin_pct, pl_totals_for_columns
from forecast_periods import MonthColumn
from pl_lines import PLCategory, PLLine


@dataclass(frozen=True)
class ForecastScenario:
    """Multipliers: 1.00 = unchanged, 1.15 = +15%, 0.85 = -15%."""
    name: str
    revenue_multiplier: float = 1.0
    cogs_multiplier: float = 1.0
    opex_multiplier: float = 1.0

    def multiplier_for(self, category: PLCategory) -> float:
        if category == PLCategory.REVENUE:
            return self.revenue_multiplier
        if category == PLCategory.COST_OF_SALES:
            return self.cogs_multiplier
        if category == PLCategory.OPERATING_EXPENSES:
            return self.opex_multiplier
        return 1.0


@dataclass(frozen=True)
class ScenarioComparison:
    scenario: ForecastScenario
    totals: PLTotals


@dataclass(frozen=True)
class WhatIfParameters:
    revenue_change: float = 0.0  # percent, e.g. 10 = +10%
    cogs_change: float = 0.0     # percentage points of revenue
    opex_change: float = 0.0     # percent


class ScenarioService:
    """
    Service for scenario business logic.

    Stateless: every method returns new values.
    """

    def apply_scenario(self, lines: List[PLLine], scenario: ForecastScenario) -> List[PLLine]:
        """
        Scale each line's forecast months by its category multiplier.

        Args:
            lines: Recalculated lines
            scenario: Multipliers to apply

        Returns:
            New lines; unaffected categories are returned as-is
        """
        adjusted = []
        for line in lines:
            multiplier = scenario.multiplier_for(line.category)
            if multiplier == 1.0:
                adjusted.append(line)
                continue
            adjusted.append(replace(
                line,
                forecast_months={k: v * multiplier for k, v in line.forecast_months.items()},
            ))
        return adjusted

    def compare_scenarios(
        self,
        lines: List[PLLine],
        scenarios: List[ForecastScenario],
        columns: List[MonthColumn]
    ) -> List[ScenarioComparison]:
        """Totals and margins over the given columns for each scenario."""
        return [
            ScenarioComparison(
                scenario=scenario,
                totals=pl_totals_for_columns(self.apply_scenario(lines, scenario), columns),
            )
            for scenario in scenarios
        ]

    def what_if(
        self,
        baseline_revenue: float,
        baseline_cogs: float,
        baseline_opex: float,
        params: WhatIfParameters
    ) -> Dict[str, Dict[str, float]]:
        """
        Adjust annual revenue, COGS % and OpEx and report profit impact.

        COGS moves with revenue: its share of revenue is shifted by
        params.cogs_change percentage points.

        Returns:
            {'baseline': {...}, 'adjusted': {...}, 'change': {...}} with keys
            revenue, cogs, opex, gross_profit, net_profit, gross_margin, net_margin
        """
        cogs_pct = (baseline_cogs / baseline_revenue) * 100 if baseline_revenue > 0 else 0.0
        revenue = baseline_revenue * (1 + params.revenue_change / 100)
        cogs = revenue * ((cogs_pct + params.cogs_change) / 100)
        opex = baseline_opex * (1 + params.opex_change / 100)

        baseline = self._profit_summary(baseline_revenue, baseline_cogs, baseline_opex)
        adjusted = self._profit_summary(revenue, cogs, opex)
        change = {key: adjusted[key] - baseline[key] for key in baseline}
        return {'baseline': baseline, 'adjusted': adjusted, 'change': change}

    @staticmethod
    def _profit_summary(revenue: float, cogs: float, opex: float) -> Dict[str, float]:
        gross = revenue - cogs
        net = gross - opex
        return {
            'revenue': revenue,
            'cogs': cogs,
            'opex': opex,
            'gross_profit': gross,
            'net_profit': net,
            'gross_margin': margin_pct(gross, revenue),
            'net_margin': margin_pct(net, revenue),
        }
