"""Signal enhancers that fold external analyst and earnings data into a forecast.

Each enhancer takes a StockPrediction plus one signal and returns an updated
copy. A missing or degenerate signal returns the prediction unchanged.
"""

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from .models import (
    AnalystData,
    EarningsData,
    FundamentalsAnnotation,
    MarketSentiment,
    StockPrediction,
)

logger = logging.getLogger(__name__)

# Share of the new one-year price taken from the analyst-implied price
ANALYST_BLEND_WEIGHT = 0.5

RECOMMENDATION_WEIGHTS = {
    "strong_buy": 2,
    "buy": 1,
    "hold": 0,
    "sell": -1,
    "strong_sell": -2,
}
# Confidence points per unit of recommendation score
CONFIDENCE_PER_SCORE_POINT = 5.0
MAX_CONFIDENCE_ADJUSTMENT = 10.0


def _to_float(value: Any) -> Optional[float]:
    """Best-effort numeric conversion; None for anything non-finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> int:
    number = _to_float(value)
    return int(number) if number is not None and number > 0 else 0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value[:10]).date()
        except ValueError:
            return None
    return None


def apply_analyst_estimates(prediction: StockPrediction, estimates: Optional[Dict[str, Any]]) -> StockPrediction:
    """
    Blend the one-year price with the price implied by consensus EPS growth.

    Args:
        prediction: Current forecast
        estimates: {"period", "eps_avg", "eps_growth", "revenue_avg", "analyst_count"}

    Returns:
        Updated prediction with analyst_data attached
    """
    if not estimates:
        return prediction
    eps_growth = _to_float(estimates.get("eps_growth"))
    if eps_growth is None or eps_growth <= -1:
        return prediction

    current = prediction.current_price
    implied_price = current * (1 + eps_growth)
    one_year = prediction.predicted_price.one_year
    blended = (1 - ANALYST_BLEND_WEIGHT) * one_year + ANALYST_BLEND_WEIGHT * implied_price

    analyst_count = _to_float(estimates.get("analyst_count"))
    analyst_data = AnalystData(
        period=estimates.get("period"),
        eps_estimate=_to_float(estimates.get("eps_avg")),
        eps_growth=eps_growth,
        revenue_estimate=_to_float(estimates.get("revenue_avg")),
        analyst_count=int(analyst_count) if analyst_count is not None else None,
        implied_price=implied_price,
    )
    logger.info(
        f"Analyst estimates for {prediction.symbol}: EPS growth {eps_growth:.1%}, "
        f"one-year {one_year:.2f} -> {blended:.2f}"
    )

    prices = prediction.predicted_price.model_copy(update={"one_year": blended})
    return prediction.model_copy(update={"predicted_price": prices, "analyst_data": analyst_data})


def recommendation_score(counts: Dict[str, Any]) -> Optional[float]:
    """Count-weighted recommendation score in [-2, 2], None when there are no votes."""
    total = 0
    weighted = 0.0
    for key, weight in RECOMMENDATION_WEIGHTS.items():
        count = _to_int(counts.get(key))
        total += count
        weighted += weight * count
    if total == 0:
        return None
    return weighted / total


def consensus_label(score: float) -> str:
    if score >= 1.5:
        return "Strong Buy"
    if score >= 0.5:
        return "Buy"
    if score > -0.5:
        return "Hold"
    if score > -1.5:
        return "Sell"
    return "Strong Sell"


def apply_recommendation_trends(prediction: StockPrediction, counts: Optional[Dict[str, Any]]) -> StockPrediction:
    """
    Nudge confidence toward the analyst recommendation consensus.

    Args:
        prediction: Current forecast
        counts: {"strong_buy", "buy", "hold", "sell", "strong_sell"} vote counts

    Returns:
        Updated prediction with market_sentiment attached
    """
    if not counts:
        return prediction
    score = recommendation_score(counts)
    if score is None:
        return prediction

    adjustment = _clamp(
        score * CONFIDENCE_PER_SCORE_POINT,
        -MAX_CONFIDENCE_ADJUSTMENT,
        MAX_CONFIDENCE_ADJUSTMENT,
    )
    confidence = _clamp(prediction.confidence_level + adjustment, 0.0, 100.0)

    sentiment = MarketSentiment(
        **{key: _to_int(counts.get(key)) for key in RECOMMENDATION_WEIGHTS},
        score=round(score, 4),
        consensus=consensus_label(score),
        confidence_adjustment=adjustment,
    )
    logger.info(f"Recommendation score for {prediction.symbol}: {score:+.2f}, confidence {adjustment:+.1f}")
    return prediction.model_copy(update={"confidence_level": confidence, "market_sentiment": sentiment})


def apply_enterprise_value(prediction: StockPrediction, ev_data: Optional[Dict[str, Any]]) -> StockPrediction:
    """Attach enterprise-value figures; prices are left untouched."""
    if not ev_data:
        return prediction
    enterprise_value = _to_float(ev_data.get("enterprise_value"))
    if enterprise_value is None:
        return prediction

    market_cap = _to_float(ev_data.get("market_cap"))
    annotation = FundamentalsAnnotation(
        enterprise_value=enterprise_value,
        ev_to_market_cap=enterprise_value / market_cap if market_cap else None,
        total_debt=_to_float(ev_data.get("total_debt")),
        cash_and_equivalents=_to_float(ev_data.get("cash_and_equivalents")),
        ev_to_ebitda=_to_float(ev_data.get("ev_to_ebitda")),
        ev_to_revenue=_to_float(ev_data.get("ev_to_revenue")),
    )
    return prediction.model_copy(update={"fundamentals": annotation})


def _surprise(actual: Optional[float], estimate: Optional[float]) -> Optional[float]:
    if actual is None or estimate is None:
        return None
    return actual - estimate


def apply_earnings_calendar(
    prediction: StockPrediction,
    events: Optional[List[Dict[str, Any]]],
    today: Optional[date] = None,
) -> StockPrediction:
    """
    Add the next earnings date as a catalyst and the last report's surprise.

    Args:
        prediction: Current forecast
        events: [{"date", "eps_estimate", "eps_actual", "revenue_estimate", "revenue_actual"}]
        today: Reference date, defaults to the current UTC date

    Returns:
        Updated prediction with upcoming_catalysts and earnings_data
    """
    if not events:
        return prediction
    today = today or datetime.now(timezone.utc).date()

    dated = []
    for event in events:
        if not isinstance(event, dict):
            continue
        event_date = _to_date(event.get("date"))
        if event_date is not None:
            dated.append((event_date, event))
    if not dated:
        return prediction

    upcoming = sorted((item for item in dated if item[0] >= today), key=lambda item: item[0])
    reported = sorted(
        (item for item in dated if item[0] < today and _to_float(item[1].get("eps_actual")) is not None),
        key=lambda item: item[0],
        reverse=True,
    )
    if not upcoming and not reported:
        return prediction

    catalysts = list(prediction.upcoming_catalysts)
    earnings = EarningsData()

    if upcoming:
        next_date, next_event = upcoming[0]
        eps_estimate = _to_float(next_event.get("eps_estimate"))
        catalyst = f"Upcoming earnings report on {next_date.isoformat()}"
        if eps_estimate is not None:
            catalyst += f" (consensus EPS {eps_estimate:.2f})"
        if catalyst not in catalysts:
            catalysts.append(catalyst)
        earnings.next_earnings_date = next_date.isoformat()

    if reported:
        last_date, last_event = reported[0]
        eps_actual = _to_float(last_event.get("eps_actual"))
        eps_estimate = _to_float(last_event.get("eps_estimate"))
        revenue_actual = _to_float(last_event.get("revenue_actual"))
        revenue_estimate = _to_float(last_event.get("revenue_estimate"))
        eps_surprise = _surprise(eps_actual, eps_estimate)

        earnings.last_report_date = last_date.isoformat()
        earnings.eps_actual = eps_actual
        earnings.eps_estimate = eps_estimate
        earnings.eps_surprise = eps_surprise
        if eps_surprise is not None and eps_estimate:
            earnings.eps_surprise_percent = eps_surprise / abs(eps_estimate) * 100
        earnings.revenue_actual = revenue_actual
        earnings.revenue_estimate = revenue_estimate
        earnings.revenue_surprise = _surprise(revenue_actual, revenue_estimate)

    return prediction.model_copy(update={"upcoming_catalysts": catalysts, "earnings_data": earnings})


def apply_signal_enhancers(
    prediction: StockPrediction,
    signals: Dict[str, Any],
    today: Optional[date] = None,
) -> StockPrediction:
    """
    Run every enhancer in fixed order.

    Args:
        prediction: Forecast after blending
        signals: {"analyst_estimates", "recommendation_trends", "enterprise_value", "earnings_calendar"}
        today: Reference date for the earnings calendar

    Returns:
        Enhanced prediction; bounds are re-applied by the caller
    """
    prediction = apply_analyst_estimates(prediction, signals.get("analyst_estimates"))
    prediction = apply_recommendation_trends(prediction, signals.get("recommendation_trends"))
    prediction = apply_enterprise_value(prediction, signals.get("enterprise_value"))
    prediction = apply_earnings_calendar(prediction, signals.get("earnings_calendar"), today=today)
    return prediction
