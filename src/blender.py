"""Blends raw forecasts with an instrument's own forecasting history."""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .horizons import (
    CONSISTENCY_HIGH_MAX,
    CONSISTENCY_MEDIUM_MAX,
    DIRECTION_BIAS,
    HORIZON_SETTINGS,
    HORIZONS,
    MARGIN_EPSILON,
    SEED_TREND,
)
from .models import ForecastHistoryEntry

logger = logging.getLogger(__name__)


@dataclass
class BlendResult:
    """Prices after blending, margin enforcement and clamping."""

    prices: Dict[str, float]
    trends: Dict[str, float]
    historical_trends: Dict[str, float]
    consistency: Optional[str] = None
    perturbed: List[str] = field(default_factory=list)
    clamped: List[str] = field(default_factory=list)


class HistoricalConsistencyBlender:
    """Reconciles per-horizon trends with history, margins and bounds."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Args:
            rng: Random source for minimum-margin nudges; inject a seeded
                instance for reproducible output
        """
        self.rng = rng or random.Random()

    @staticmethod
    def history_weight(base_weight: float, history_length: int) -> float:
        """Weight on the historical trend; base_weight at one entry, approaching 1."""
        if history_length <= 0:
            return 0.0
        return 1 - (1 - base_weight) / history_length

    @staticmethod
    def historical_trends(history: Sequence[ForecastHistoryEntry]) -> Dict[str, float]:
        """
        Recency-weighted mean trend per horizon.

        Entry i (0 = newest) of N gets weight (N - i) / N.
        """
        n = len(history)
        if n == 0:
            return {horizon: SEED_TREND for horizon in HORIZONS}

        weights = np.array([(n - i) / n for i in range(n)])
        trends = {}
        for horizon in HORIZONS:
            values = np.array([entry.trend(horizon) for entry in history])
            trends[horizon] = float(np.average(values, weights=weights))
        return trends

    @staticmethod
    def consistency_label(history: Sequence[ForecastHistoryEntry]) -> Optional[str]:
        """High / Medium / Low spread of past one-year trends, None without history."""
        if not history:
            return None
        spread = float(np.std([entry.trend("one_year") * 100 for entry in history]))
        if spread < CONSISTENCY_HIGH_MAX:
            return "High"
        if spread < CONSISTENCY_MEDIUM_MAX:
            return "Medium"
        return "Low"

    def enforce(
        self,
        price: float,
        current_price: float,
        horizon: str,
        bound: float,
        historical_trend: float = SEED_TREND,
    ) -> Tuple[float, bool, bool]:
        """
        Apply the minimum margin, then the bound clamp, to one price.

        Returns:
            (price, perturbed, clamped)
        """
        margin = HORIZON_SETTINGS[horizon].min_margin
        perturbed = False
        if abs(price / current_price - 1) + MARGIN_EPSILON < margin:
            price = self._nudge(current_price, margin, historical_trend)
            perturbed = True

        low = current_price * (1 - bound)
        high = current_price * (1 + bound)
        clamped = price < low or price > high
        price = min(max(price, low), high)
        return price, perturbed, clamped

    def _nudge(self, current_price: float, margin: float, historical_trend: float) -> float:
        """Move a price to a random distance in [margin, 2*margin] from current."""
        dominant = -1 if historical_trend < 0 else 1
        direction = dominant if self.rng.random() < DIRECTION_BIAS else -dominant
        magnitude = self.rng.uniform(margin, 2 * margin)
        return current_price * (1 + direction * magnitude)

    def blend(
        self,
        current_price: float,
        bounds: Mapping[str, float],
        history: Sequence[ForecastHistoryEntry],
        raw_prices: Optional[Mapping[str, Optional[float]]] = None,
    ) -> BlendResult:
        """
        Produce final per-horizon prices.

        Args:
            current_price: Latest price, > 0
            bounds: Max fractional deviation per horizon
            history: Prior forecasts, newest first
            raw_prices: Validated model prices; a missing or None horizon
                falls back to the zero seed trend

        Returns:
            BlendResult
        """
        raw_prices = raw_prices or {}
        hist_trends = self.historical_trends(history)
        n = len(history)

        result = BlendResult(
            prices={},
            trends={},
            historical_trends=hist_trends,
            consistency=self.consistency_label(history),
        )

        for horizon, settings in HORIZON_SETTINGS.items():
            raw_price = raw_prices.get(horizon)
            raw_trend = raw_price / current_price - 1 if raw_price else SEED_TREND

            if n:
                weight = self.history_weight(settings.history_weight, n)
                trend = weight * hist_trends[horizon] + (1 - weight) * raw_trend
            else:
                trend = raw_trend

            price, perturbed, clamped = self.enforce(
                current_price * (1 + trend),
                current_price,
                horizon,
                bounds[horizon],
                hist_trends[horizon],
            )
            result.prices[horizon] = price
            result.trends[horizon] = price / current_price - 1
            if perturbed:
                result.perturbed.append(horizon)
            if clamped:
                result.clamped.append(horizon)

        if result.perturbed or result.clamped:
            logger.info(
                f"Blend adjusted horizons: perturbed={result.perturbed}, clamped={result.clamped}"
            )
        return result
