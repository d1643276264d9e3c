from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from forecast_errors import InvalidMonthKeyError, InvalidRecordError
from forecast_periods import parse_month_key
from pl_lines import (
    ForecastMethod,
    ForecastMethodConfig,
    GrowthType,
    PLCategory,
    PLLine,
)


class ForecastMethodRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    method: Optional[str] = Field(None, description="Method name; unrecognized names fall back to the average")
    percentage_increase: Optional[float] = Field(None, description="0.05 = +5%")
    growth_rate: Optional[float] = Field(None, description="0.05 = 5% per period")
    growth_type: Optional[str] = Field(None, description="'MoM' or 'YoY'")
    driver_line_id: Optional[str] = None
    driver_percentage: Optional[float] = Field(None, description="0.25 = 25% of the driver line")
    base_amount: Optional[float] = None

    def to_config(self) -> ForecastMethodConfig:
        return ForecastMethodConfig(
            method=ForecastMethod.parse(self.method),
            percentage_increase=self.percentage_increase,
            growth_rate=self.growth_rate,
            growth_type=GrowthType.parse(self.growth_type),
            driver_line_id=self.driver_line_id,
            driver_percentage=self.driver_percentage,
            base_amount=self.base_amount,
        )


class PLLineRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(None, description="Stable line id")
    account_name: str
    account_code: Optional[str] = None
    category: PLCategory
    sort_order: Optional[int] = None
    actual_months: Dict[str, float] = Field(default_factory=dict)
    forecast_months: Dict[str, float] = Field(default_factory=dict)
    forecast_method: Optional[ForecastMethodRecord] = None

    @field_validator("actual_months", "forecast_months")
    @classmethod
    def _month_keys(cls, months: Dict[str, float]) -> Dict[str, float]:
        for key in months:
            try:
                parse_month_key(key)
            except InvalidMonthKeyError as e:
                raise ValueError(e.message)
        return months

    def to_line(self) -> PLLine:
        return PLLine(
            id=self.id,
            account_name=self.account_name,
            account_code=self.account_code,
            category=self.category,
            sort_order=self.sort_order,
            actual_months=dict(self.actual_months),
            forecast_months=dict(self.forecast_months),
            forecast_method=self.forecast_method.to_config() if self.forecast_method else None,
        )


def parse_line_records(records: List[dict]) -> List[PLLine]:
    """Validate raw line records and build PLLine values. Stored analysis is ignored."""
    lines = []
    for record in records:
        try:
            lines.append(PLLineRecord.model_validate(record).to_line())
        except ValidationError as e:
            raise InvalidRecordError(str(e))
    return lines
