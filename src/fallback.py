"""Deterministic forecast used when nothing better is available."""

import logging
from typing import List, Optional, Sequence

from .horizons import HORIZON_SETTINGS
from .industry import IndustryProfile, get_industry_profile
from .models import HorizonPrices, StockPrediction

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 75.0
FALLBACK_LIST_SIZE = 4


def outlook_label(growth_ratio: float) -> str:
    """Sentiment word for a one-year price ratio."""
    if growth_ratio > 1.15:
        return "strongly positive"
    if growth_ratio > 1.05:
        return "positive"
    if growth_ratio > 0.95:
        return "neutral"
    return "cautious"


def describe_outlook(symbol: str, profile: IndustryProfile, growth_ratio: float) -> str:
    """Narrative paragraph for a forecast whose one-year ratio is growth_ratio."""
    label = outlook_label(growth_ratio)
    opening = (
        f"Based on recent financial data and {profile.sentiment_context}, "
        f"the overall sentiment for {symbol} appears {label}."
    )
    if label == "strongly positive":
        body = "The company shows strong growth potential over the coming year, though market volatility may influence short-term performance."
    elif label == "positive":
        body = "The company shows moderate growth potential over the coming year, though market volatility may influence short-term performance."
    elif label == "neutral":
        body = "The company shows stable performance expectations over the coming year, with potential for modest changes depending on market conditions."
    else:
        body = "The company may face challenges in the coming year that could impact growth expectations, particularly if market conditions deteriorate."
    context = f"Companies in this segment typically show {profile.growth_context}."
    return f"{opening} {body} {context}"


def default_items(options: Sequence[str], count: int = FALLBACK_LIST_SIZE) -> List[str]:
    """First `count` entries of an industry default list, in order."""
    return list(options[:count])


def create_fallback_prediction(
    symbol: str,
    current_price: float,
    industry: Optional[str] = None,
) -> StockPrediction:
    """
    Build a forecast from fixed drifts and industry defaults.

    Deterministic: identical inputs always yield identical output apart
    from the generation timestamp.

    Args:
        symbol: Ticker symbol
        current_price: Latest price, > 0
        industry: Industry name used for narrative and default lists

    Returns:
        StockPrediction tagged with forecast_source="fallback"
    """
    profile = get_industry_profile(industry)
    prices = {
        horizon: current_price * (1 + settings.fallback_drift)
        for horizon, settings in HORIZON_SETTINGS.items()
    }
    predicted = HorizonPrices(**prices)

    logger.info(
        f"Fallback forecast for {symbol} ({profile.name}): "
        f"1y {predicted.one_year:.2f} from {current_price:.2f}"
    )

    return StockPrediction(
        symbol=symbol,
        current_price=current_price,
        predicted_price=predicted,
        sentiment_analysis=describe_outlook(symbol, profile, predicted.one_year / current_price),
        confidence_level=FALLBACK_CONFIDENCE,
        key_drivers=default_items(profile.drivers),
        risks=default_items(profile.risks),
        forecast_source="fallback",
    )
