"""
Services Layer
==============
Entry points for the UI and persistence layers, independent of both.
"""

from .forecast_service import ForecastService
from .scenario_service import ScenarioService
from .validation_service import ForecastValidationService

__all__ = [
    'ForecastService',
    'ScenarioService',
    'ForecastValidationService',
]
