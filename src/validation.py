"""Validation gate for raw generative forecasts."""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional

from .horizons import HORIZON_SETTINGS, HORIZONS, MARGIN_EPSILON
from .models import RawForecast

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Gate verdict with a reason for every failed horizon."""

    passed: bool
    failures: Dict[str, str] = field(default_factory=dict)

    def usable_horizons(self):
        return [horizon for horizon in HORIZONS if horizon not in self.failures]


def check_horizon(horizon: str, price: Optional[float], current_price: float) -> Optional[str]:
    """Return a failure reason for one horizon price, or None when it is acceptable."""
    if price is None:
        return "missing"
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return "not a number"
    if not math.isfinite(price):
        return "not finite"
    if price <= 0:
        return "not positive"

    margin = HORIZON_SETTINGS[horizon].validation_margin
    change = abs(price - current_price) / current_price
    if change + MARGIN_EPSILON < margin:
        return f"differs from current price by {change:.2%}, below {margin:.1%}"
    return None


def validate_forecast(raw: RawForecast, current_price: float) -> ValidationResult:
    """
    Check a raw forecast for numeric sanity and minimal movement.

    Args:
        raw: Decoded model output
        current_price: Latest price, > 0

    Returns:
        ValidationResult; passed only when every horizon is acceptable
    """
    failures = {}
    for horizon in HORIZONS:
        reason = check_horizon(horizon, raw.predicted_price.get(horizon), current_price)
        if reason:
            failures[horizon] = reason

    if failures:
        logger.warning(f"Forecast failed validation on {len(failures)} horizon(s): {failures}")

    return ValidationResult(passed=not failures, failures=failures)
