"""Per-horizon constants shared by the gate, blender, fallback and enhancers."""

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class HorizonSettings:
    """Tunable constants for one forecast horizon."""

    key: str
    label: str
    # Smallest allowed |price/current - 1| in the final forecast
    min_margin: float
    # Base history share (alpha) at N=1 prior forecast; the blender uses
    # 1 - (1 - alpha) / N so the share grows toward 1 as history accumulates
    history_weight: float
    # Smallest |raw/current - 1| the gate accepts from the model
    validation_margin: float
    # Fixed drift used by the deterministic fallback
    fallback_drift: float


HORIZON_SETTINGS: Dict[str, HorizonSettings] = {
    "one_month": HorizonSettings(
        key="one_month",
        label="1 month",
        min_margin=0.01,
        history_weight=0.7,
        validation_margin=0.005,
        fallback_drift=0.01,
    ),
    "three_months": HorizonSettings(
        key="three_months",
        label="3 months",
        min_margin=0.015,
        history_weight=0.7,
        validation_margin=0.005,
        fallback_drift=0.03,
    ),
    "six_months": HorizonSettings(
        key="six_months",
        label="6 months",
        min_margin=0.02,
        history_weight=0.7,
        validation_margin=0.005,
        fallback_drift=0.05,
    ),
    "one_year": HorizonSettings(
        key="one_year",
        label="1 year",
        min_margin=0.025,
        history_weight=0.7,
        validation_margin=0.01,
        fallback_drift=0.08,
    ),
}

HORIZONS: Tuple[str, ...] = tuple(HORIZON_SETTINGS)

# Trend used for a horizon when the model gave nothing usable
SEED_TREND = 0.0

# Probability that a minimum-margin nudge follows the historical direction
DIRECTION_BIAS = 0.6

# Population std-dev of one-year trends, in percentage points
CONSISTENCY_HIGH_MAX = 5.0
CONSISTENCY_MEDIUM_MAX = 15.0

# Comparisons against margins tolerate float noise from price arithmetic
MARGIN_EPSILON = 1e-9
