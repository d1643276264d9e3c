"""
Forecast Errors
===============
Exceptions raised at the input boundary of the forecast engine.

The calculation itself never raises: missing data and invalid arithmetic
degrade to zeros. These errors cover malformed inputs handed to the engine
(month keys, categories, records) and bad configuration.
"""


class ForecastError(Exception):
    """Base exception for all forecast errors."""

    def __init__(self, message: str, code: str = "FORECAST_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class InvalidMonthKeyError(ForecastError):
    """Raised when a month key is not of the form YYYY-MM."""

    def __init__(self, value):
        message = f"Invalid month key {value!r}: expected 'YYYY-MM'"
        super().__init__(message, code="INVALID_MONTH_KEY")
        self.value = value


class InvalidCategoryError(ForecastError):
    """Raised when a P&L category label is not one of the five known categories."""

    def __init__(self, value):
        message = f"Unknown P&L category {value!r}"
        super().__init__(message, code="INVALID_CATEGORY")
        self.value = value


class LineNotFoundError(ForecastError):
    """Raised when replacing a line whose id is not in the collection."""

    def __init__(self, line_id):
        message = f"P&L line with id {line_id!r} not found"
        super().__init__(message, code="LINE_NOT_FOUND")
        self.line_id = line_id


class InvalidRecordError(ForecastError):
    """Raised when an incoming line record fails validation."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid P&L line record: {detail}", code="INVALID_RECORD")
        self.detail = detail


class ConfigurationError(ForecastError):
    """Raised when engine settings cannot be loaded."""

    def __init__(self, message: str):
        super().__init__(message, code="CONFIGURATION_ERROR")
