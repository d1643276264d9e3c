from __future__ import annotations

import os
from dataclasses import dataclass

from forecast_errors import ConfigurationError


RESOLUTION_STRATEGIES = ("graph", "sweep")


@dataclass(frozen=True)
class EngineSettings:
    max_driver_iterations: int = 5
    trend_stable_threshold: float = 5.0
    resolution_strategy: str = "graph"


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def get_settings() -> EngineSettings:
    iterations = _env_number("FORECAST_MAX_DRIVER_ITERATIONS", 5, int)
    if iterations < 1:
        raise ConfigurationError("FORECAST_MAX_DRIVER_ITERATIONS must be at least 1")

    strategy = os.getenv("FORECAST_RESOLUTION_STRATEGY", "graph").strip().lower()
    if strategy not in RESOLUTION_STRATEGIES:
        raise ConfigurationError(
            f"FORECAST_RESOLUTION_STRATEGY must be one of {RESOLUTION_STRATEGIES}, got {strategy!r}"
        )

    return EngineSettings(
        max_driver_iterations=iterations,
        trend_stable_threshold=_env_number("FORECAST_TREND_STABLE_THRESHOLD", 5.0, float),
        resolution_strategy=strategy,
    )
