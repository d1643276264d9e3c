"""
Unit Tests for Services
========================
Tests for ForecastService, ScenarioService and settings loading.
"""

from datetime import date

import numpy as np
import pytest

from forecast_config import EngineSettings, get_settings
from forecast_errors import ConfigurationError, InvalidRecordError, LineNotFoundError
from forecast_periods import MonthColumn, month_range
from pl_lines import (
    ForecastMethod,
    ForecastMethodConfig,
    GrowthType,
    LineAnalysis,
    PLCategory,
    PLLine,
    TrendDirection,
)
from pl_serialize import to_jsonable
from services.forecast_service import ForecastService
from services.scenario_service import ForecastScenario, ScenarioService, WhatIfParameters


@pytest.fixture
def service():
    return ForecastService(EngineSettings())


class TestForecastService:
    """Test suite for ForecastService."""

    def test_service_initialization(self, service):
        """Test service initialization."""
        assert service.engine is not None
        assert service.settings.max_driver_iterations == 5

    def test_compute_periods_and_columns(self, service):
        """Test the period and column entry points."""
        periods = service.compute_periods(2026, date(2025, 10, 18))
        columns = service.build_month_columns(periods)

        assert periods.is_rolling is True
        assert service.last_baseline_index(columns) == 11
        assert service.periods_need_update(periods.to_dict(), periods) is False

    def test_recalculate_for_columns(self, service, sample_lines):
        """Test recalculation with keys taken from the column layout."""
        columns = service.build_month_columns(service.compute_periods(2026, date(2025, 10, 18)))

        result = service.recalculate_for_columns(sample_lines, columns)

        forecast_keys = month_range('2025-10', '2026-06')
        by_id = {line.id: line for line in result}
        assert list(by_id['rev'].forecast_months) == forecast_keys
        assert all(v == pytest.approx(1100.0) for v in by_id['rev'].forecast_months.values())
        assert all(v == pytest.approx(440.0) for v in by_id['cogs'].forecast_months.values())
        assert by_id['rent'].analysis.average_per_month == pytest.approx(110.0)

    def test_update_line_replaces_by_id(self, service, sample_lines):
        """Test that editing one line replaces it by id and recalculates the rest."""
        columns = service.build_month_columns(service.compute_periods(2026, date(2025, 10, 18)))
        lines = service.recalculate_for_columns(sample_lines, columns)
        rev = lines[0]
        edited = PLLine(
            id=rev.id, account_name=rev.account_name, category=rev.category,
            actual_months=rev.actual_months,
            forecast_method=ForecastMethodConfig(ForecastMethod.STRAIGHT_LINE, base_amount=2000.0),
        )

        result = service.update_line(lines, edited, columns)

        assert [line.id for line in result] == [line.id for line in lines]
        assert set(result[0].forecast_months.values()) == {2000.0}
        assert all(v == pytest.approx(800.0) for v in result[2].forecast_months.values())

    def test_update_unknown_line(self, service, sample_lines):
        """Test that replacing an unknown id raises LineNotFoundError."""
        stray = PLLine(id='nope', account_name='Stray', category=PLCategory.REVENUE)

        with pytest.raises(LineNotFoundError):
            service.update_line(sample_lines, stray, [])

    def test_load_lines(self, service, sample_records):
        """Test building lines from stored records."""
        records = [dict(r, analysis={'average_per_month': 'stale'}) for r in sample_records]

        lines = service.load_lines(records)

        assert len(lines) == len(sample_records)
        assert lines[2].forecast_method.driver_line_id == 'rev'
        assert all(line.analysis is None for line in lines)

    def test_load_lines_unknown_method_falls_back(self, service, baseline_keys, forecast_keys):
        """Test that an unrecognized method name is accepted and forecasts the average."""
        record = {
            'id': 'x', 'account_name': 'Odd', 'category': 'Revenue',
            'actual_months': {key: 300 for key in baseline_keys},
            'forecast_method': {'method': 'crystal_ball'},
        }

        lines = service.load_lines([record])
        result = service.recalculate_all(lines, baseline_keys, forecast_keys)

        assert lines[0].forecast_method.method is None
        assert set(result[0].forecast_months.values()) == {300.0}

    def test_load_lines_camel_case_method(self, service):
        """Test that camelCase method names are understood."""
        record = {'account_name': 'A', 'category': 'Revenue', 'forecast_method': {'method': 'straightLine'}}

        assert service.load_lines([record])[0].method == ForecastMethod.STRAIGHT_LINE

    @pytest.mark.parametrize('record', [
        {'account_name': 'A', 'category': 'Marketing'},
        {'account_name': 'A', 'category': 'Revenue', 'actual_months': {'2025-13': 1}},
        {'category': 'Revenue'},
    ])
    def test_load_lines_rejects_bad_records(self, service, record):
        """Test that invalid categories, month keys and missing names are rejected."""
        with pytest.raises(InvalidRecordError) as exc:
            service.load_lines([record])
        assert exc.value.code == 'INVALID_RECORD'

    def test_export_lines(self, service, sample_lines, baseline_keys, forecast_keys):
        """Test the upsert payload carries only engine-owned fields."""
        result = service.recalculate_all(sample_lines, baseline_keys, forecast_keys)

        payload = service.export_lines(result)

        assert set(payload[0]) == {'id', 'forecast_months', 'analysis'}
        assert payload[3]['analysis']['trend_direction'] == 'up'
        assert payload[0]['forecast_months']['2025-07'] == pytest.approx(1100.0)

    def test_export_lines_is_json_safe(self, service):
        """Test non-finite forecasts export as None and enums as their values."""
        line = PLLine(
            id='x', account_name='Odd', category=PLCategory.REVENUE,
            forecast_months={'2025-07': float('nan'), '2025-08': float('inf'), '2025-09': np.float64(2.5)},
            analysis=LineAnalysis(average_per_month=1.0, trend_direction=TrendDirection.DOWN),
        )

        payload = service.export_lines([line])[0]

        assert payload['forecast_months'] == {'2025-07': None, '2025-08': None, '2025-09': 2.5}
        assert payload['analysis']['trend_direction'] == 'down'
        assert to_jsonable({'category': PLCategory.COST_OF_SALES, 'on': date(2025, 7, 1)}) == \
            {'category': 'Cost of Sales', 'on': '2025-07-01'}

    @pytest.mark.parametrize('growth_type,expected', [
        (None, GrowthType.MOM),
        ('MoM', GrowthType.MOM),
        ('YoY', GrowthType.YOY),
        ('annual', GrowthType.YOY),
    ])
    def test_load_lines_growth_type(self, service, growth_type, expected):
        """Test growth type: unset or 'MoM' compounds monthly, anything else is year over year."""
        record = {
            'account_name': 'A', 'category': 'Revenue',
            'forecast_method': {'method': 'growth_rate', 'growth_rate': 0.05, 'growth_type': growth_type},
        }

        assert service.load_lines([record])[0].forecast_method.growth_type == expected


class TestScenarioService:
    """Test suite for ScenarioService."""

    def _lines(self):
        months = ['2025-07']
        return [
            PLLine(id='r', account_name='Sales', category=PLCategory.REVENUE,
                   actual_months={'2025-06': 1.0}, forecast_months={m: 1000.0 for m in months}),
            PLLine(id='c', account_name='COGS', category=PLCategory.COST_OF_SALES,
                   forecast_months={m: 400.0 for m in months}),
            PLLine(id='o', account_name='Rent', category=PLCategory.OPERATING_EXPENSES,
                   forecast_months={m: 300.0 for m in months}),
            PLLine(id='i', account_name='Interest', category=PLCategory.OTHER_INCOME,
                   forecast_months={m: 50.0 for m in months}),
        ]

    def test_apply_scenario(self):
        """Test that forecasts scale by category and actuals are untouched."""
        scenario = ForecastScenario('Upside', revenue_multiplier=1.15, cogs_multiplier=0.9, opex_multiplier=1.0)
        lines = self._lines()

        adjusted = ScenarioService().apply_scenario(lines, scenario)

        assert adjusted[0].forecast_months['2025-07'] == pytest.approx(1150.0)
        assert adjusted[0].actual_months == {'2025-06': 1.0}
        assert adjusted[1].forecast_months['2025-07'] == pytest.approx(360.0)
        assert adjusted[2] is lines[2]
        assert adjusted[3] is lines[3]
        assert lines[0].forecast_months['2025-07'] == 1000.0

    def test_compare_scenarios(self):
        """Test comparison totals per scenario."""
        columns = [MonthColumn('2025-07', 'Jul 25', False, True)]
        scenarios = [ForecastScenario('Base'), ForecastScenario('Downside', revenue_multiplier=0.5)]

        results = ScenarioService().compare_scenarios(self._lines(), scenarios, columns)

        assert results[0].totals.net_profit == pytest.approx(350.0)
        assert results[1].totals.revenue == pytest.approx(500.0)
        assert results[1].totals.net_margin == pytest.approx(-30.0)

    def test_what_if(self):
        """Test revenue, COGS-point and OpEx adjustments."""
        result = ScenarioService().what_if(1000.0, 400.0, 300.0, WhatIfParameters(10, 5, 20))

        assert result['adjusted']['revenue'] == pytest.approx(1100.0)
        assert result['adjusted']['cogs'] == pytest.approx(495.0)
        assert result['adjusted']['opex'] == pytest.approx(360.0)
        assert result['baseline']['net_profit'] == pytest.approx(300.0)
        assert result['change']['net_profit'] == pytest.approx(245.0 - 300.0)

    def test_what_if_zero_revenue(self):
        """Test that zero revenue never produces NaN margins."""
        result = ScenarioService().what_if(0.0, 0.0, 100.0, WhatIfParameters(10, 0, 0))

        assert result['adjusted']['net_margin'] == 0.0
        assert result['baseline']['gross_margin'] == 0.0


class TestSettings:
    """Test suite for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        """Test default settings."""
        for name in ('FORECAST_MAX_DRIVER_ITERATIONS', 'FORECAST_TREND_STABLE_THRESHOLD',
                     'FORECAST_RESOLUTION_STRATEGY'):
            monkeypatch.delenv(name, raising=False)

        assert get_settings() == EngineSettings()

    def test_environment_overrides(self, monkeypatch):
        """Test overriding settings through the environment."""
        monkeypatch.setenv('FORECAST_MAX_DRIVER_ITERATIONS', '8')
        monkeypatch.setenv('FORECAST_TREND_STABLE_THRESHOLD', '2.5')
        monkeypatch.setenv('FORECAST_RESOLUTION_STRATEGY', 'SWEEP')

        settings = get_settings()

        assert settings.max_driver_iterations == 8
        assert settings.trend_stable_threshold == 2.5
        assert settings.resolution_strategy == 'sweep'

    @pytest.mark.parametrize('name,value', [
        ('FORECAST_MAX_DRIVER_ITERATIONS', 'many'),
        ('FORECAST_MAX_DRIVER_ITERATIONS', '0'),
        ('FORECAST_RESOLUTION_STRATEGY', 'topo'),
    ])
    def test_invalid_settings(self, monkeypatch, name, value):
        """Test invalid settings raise ConfigurationError."""
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError):
            get_settings()
