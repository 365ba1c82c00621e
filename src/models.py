"""Pydantic models for forecast inputs, outputs and history."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .horizons import HORIZONS


# Sentinel for a metric that could not be derived; never substituted by 0
UNKNOWN = "unknown"

MetricValue = Union[float, Literal["unknown"]]


def is_known(value: Any) -> bool:
    """Return True when a metric holds a real number rather than UNKNOWN."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class CamelModel(BaseModel):
    """Base model serialising to the camelCase wire format."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HorizonPrices(CamelModel):
    """Predicted price for each of the four horizons."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    one_month: float = Field(..., gt=0)
    three_months: float = Field(..., gt=0)
    six_months: float = Field(..., gt=0)
    one_year: float = Field(..., gt=0)

    def get(self, horizon: str) -> float:
        return getattr(self, horizon)

    def as_dict(self) -> Dict[str, float]:
        return {horizon: getattr(self, horizon) for horizon in HORIZONS}


# ─── Analysis record ───


class FundamentalsSummary(CamelModel):
    """Headline fundamentals; each value is a float or UNKNOWN."""
    revenue_growth: MetricValue = UNKNOWN
    profit_margin: MetricValue = UNKNOWN
    pe_ratio: MetricValue = UNKNOWN
    market_cap: MetricValue = UNKNOWN

    @property
    def is_empty(self) -> bool:
        return not any(
            is_known(value)
            for value in (self.revenue_growth, self.profit_margin, self.pe_ratio, self.market_cap)
        )


class TechnicalSummary(CamelModel):
    """Quote-derived technical metrics; each value is a float or UNKNOWN."""
    price: MetricValue = UNKNOWN
    change_percent: MetricValue = UNKNOWN
    day_high: MetricValue = UNKNOWN
    day_low: MetricValue = UNKNOWN
    year_high: MetricValue = UNKNOWN
    year_low: MetricValue = UNKNOWN
    price_avg_50: MetricValue = UNKNOWN
    price_avg_200: MetricValue = UNKNOWN
    volume: MetricValue = UNKNOWN
    avg_volume: MetricValue = UNKNOWN


class Headline(CamelModel):
    """A news headline as presented to the forecasting model."""
    title: str
    published_at: Optional[str] = None
    summary: str = ""


class NewsSummary(CamelModel):
    """Recent headlines with an aggregate sentiment label."""
    headlines: List[Headline] = Field(default_factory=list)
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    article_count: int = 0


class ForecastHistoryEntry(CamelModel):
    """A previously issued forecast; immutable once created."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    symbol: str
    current_price: float = Field(..., gt=0)
    predicted_price: HorizonPrices
    sentiment: str = "neutral"
    confidence: float = Field(75.0, ge=0, le=100)
    key_drivers: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def trend(self, horizon: str) -> float:
        """Fractional move this entry predicted for a horizon."""
        return self.predicted_price.get(horizon) / self.current_price - 1


class AnalysisRecord(CamelModel):
    """Everything the forecasting model is told about one instrument."""
    symbol: str
    current_price: float = Field(..., gt=0)
    fundamentals: FundamentalsSummary = Field(default_factory=FundamentalsSummary)
    technicals: TechnicalSummary = Field(default_factory=TechnicalSummary)
    news: NewsSummary = Field(default_factory=NewsSummary)
    industry: Optional[str] = None
    history: List[ForecastHistoryEntry] = Field(default_factory=list)


# ─── Enhancement blocks ───


class AnalystData(CamelModel):
    """Consensus analyst estimate folded into the one-year forecast."""
    period: Optional[str] = None
    eps_estimate: Optional[float] = None
    eps_growth: float
    revenue_estimate: Optional[float] = None
    analyst_count: Optional[int] = None
    implied_price: float


class MarketSentiment(CamelModel):
    """Analyst recommendation distribution and its score in [-2, 2]."""
    strong_buy: int = 0
    buy: int = 0
    hold: int = 0
    sell: int = 0
    strong_sell: int = 0
    score: float
    consensus: str
    confidence_adjustment: float


class FundamentalsAnnotation(CamelModel):
    """Enterprise-value figures attached for display."""
    enterprise_value: float
    ev_to_market_cap: Optional[float] = None
    total_debt: Optional[float] = None
    cash_and_equivalents: Optional[float] = None
    ev_to_ebitda: Optional[float] = None
    ev_to_revenue: Optional[float] = None


class EarningsData(CamelModel):
    """Next earnings date and the most recent reported surprise."""
    next_earnings_date: Optional[str] = None
    last_report_date: Optional[str] = None
    eps_estimate: Optional[float] = None
    eps_actual: Optional[float] = None
    eps_surprise: Optional[float] = None
    eps_surprise_percent: Optional[float] = None
    revenue_estimate: Optional[float] = None
    revenue_actual: Optional[float] = None
    revenue_surprise: Optional[float] = None


# ─── Forecast output ───


class StockPrediction(CamelModel):
    """Final reconciled forecast returned to callers."""
    symbol: str
    current_price: float = Field(..., gt=0)
    predicted_price: HorizonPrices
    sentiment_analysis: str
    confidence_level: float = Field(..., ge=0, le=100)
    key_drivers: List[str]
    risks: List[str]
    analyst_data: Optional[AnalystData] = None
    market_sentiment: Optional[MarketSentiment] = None
    fundamentals: Optional[FundamentalsAnnotation] = None
    upcoming_catalysts: List[str] = Field(default_factory=list)
    earnings_data: Optional[EarningsData] = None
    forecast_source: Literal["generative", "history_blend", "fallback"] = "fallback"
    historical_consistency: Optional[Literal["High", "Medium", "Low"]] = None
    # Stamped by the engine; left unset so identical inputs compare equal
    generated_at: Optional[datetime] = None


class ForecastOptions(BaseModel):
    """Per-request switches."""
    quick_mode: bool = False
    industry: Optional[str] = None


# ─── Generative model output schema ───


class RawHorizonPrices(CamelModel):
    """Horizon prices as emitted by the model; absent horizons stay None."""
    one_month: Optional[float] = None
    three_months: Optional[float] = None
    six_months: Optional[float] = None
    one_year: Optional[float] = None

    @field_validator("one_month", "three_months", "six_months", "one_year", mode="before")
    @classmethod
    def reject_booleans(cls, value):
        if isinstance(value, bool):
            raise ValueError("boolean is not a price")
        return value

    def get(self, horizon: str) -> Optional[float]:
        return getattr(self, horizon)


class RawForecast(CamelModel):
    """Decoded but not yet trusted forecast from the generative model."""
    predicted_price: RawHorizonPrices
    sentiment_analysis: Optional[str] = None
    confidence_level: Optional[float] = None
    key_drivers: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)

    @field_validator("sentiment_analysis", mode="before")
    @classmethod
    def coerce_narrative(cls, value):
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator("confidence_level", mode="before")
    @classmethod
    def coerce_confidence(cls, value):
        if isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    @field_validator("key_drivers", "risks", mode="before")
    @classmethod
    def keep_text_items(cls, value):
        if not isinstance(value, list):
            return []
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
