"""Builds the analysis record handed to the forecasting model."""

import logging
import math
from typing import Any, Dict, List, Optional

from .models import (
    UNKNOWN,
    AnalysisRecord,
    ForecastHistoryEntry,
    FundamentalsSummary,
    Headline,
    NewsSummary,
    TechnicalSummary,
)

logger = logging.getLogger(__name__)

MAX_HEADLINES = 5
SUMMARY_MAX_CHARS = 300

POSITIVE_WORDS = (
    "beat", "beats", "exceed", "strong", "growth", "gain", "up", "positive",
    "surge", "rally", "bullish", "upgrade", "outperform", "success", "record",
)
NEGATIVE_WORDS = (
    "miss", "misses", "weak", "decline", "loss", "down", "negative",
    "fall", "drop", "bearish", "downgrade", "underperform", "concern", "risk", "warning",
)

_TECHNICAL_FIELDS = (
    "price", "change_percent", "day_high", "day_low", "year_high", "year_low",
    "price_avg_50", "price_avg_200", "volume", "avg_volume",
)


def _to_float(value: Any) -> Optional[float]:
    """Best-effort numeric conversion; None for anything non-finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _metric(value: Any):
    number = _to_float(value)
    return UNKNOWN if number is None else number


def _rows(container: Any, key: str) -> List[Dict[str, Any]]:
    """Return statement rows as a list of dicts, newest first."""
    if not isinstance(container, dict):
        return []
    rows = container.get(key)
    if not isinstance(rows, list):
        return []
    return [row for row in rows if isinstance(row, dict)]


def summarize_fundamentals(
    fundamentals: Optional[Dict[str, Any]],
    quote: Optional[Dict[str, Any]] = None,
) -> FundamentalsSummary:
    """
    Reduce statements and ratios to four headline metrics.

    Args:
        fundamentals: {"income": [...], "balance": [...], "cashflow": [...], "ratios": [...]}
        quote: Latest quote, used for market cap and P/E when ratios lack them

    Returns:
        FundamentalsSummary with UNKNOWN for anything not derivable
    """
    income = _rows(fundamentals, "income")
    ratios = _rows(fundamentals, "ratios")
    latest_ratios = ratios[0] if ratios else {}
    quote = quote if isinstance(quote, dict) else {}

    revenue_growth = None
    if len(income) >= 2:
        current_revenue = _to_float(income[0].get("revenue"))
        prior_revenue = _to_float(income[1].get("revenue"))
        if current_revenue is not None and prior_revenue:
            revenue_growth = (current_revenue - prior_revenue) / abs(prior_revenue)
    if revenue_growth is None:
        revenue_growth = _to_float(latest_ratios.get("revenue_growth"))

    profit_margin = None
    if income:
        revenue = _to_float(income[0].get("revenue"))
        net_income = _to_float(income[0].get("net_income"))
        if revenue and net_income is not None:
            profit_margin = net_income / revenue
    if profit_margin is None:
        profit_margin = _to_float(latest_ratios.get("profit_margin"))

    pe_ratio = _to_float(latest_ratios.get("pe_ratio"))
    if pe_ratio is None:
        pe_ratio = _to_float(quote.get("pe"))

    market_cap = _to_float(quote.get("market_cap"))
    if market_cap is None:
        market_cap = _to_float(latest_ratios.get("market_cap"))

    return FundamentalsSummary(
        revenue_growth=_metric(revenue_growth),
        profit_margin=_metric(profit_margin),
        pe_ratio=_metric(pe_ratio),
        market_cap=_metric(market_cap),
    )


def summarize_technicals(quote: Optional[Dict[str, Any]]) -> TechnicalSummary:
    """Copy quote fields into a TechnicalSummary, marking gaps UNKNOWN."""
    if not isinstance(quote, dict):
        return TechnicalSummary()
    return TechnicalSummary(**{name: _metric(quote.get(name)) for name in _TECHNICAL_FIELDS})


def score_headline_sentiment(texts: List[str]) -> str:
    """Keyword-count sentiment label over a batch of headline texts."""
    positive = 0
    negative = 0
    for text in texts:
        words = text.lower().split()
        positive += sum(1 for word in words if word.strip(".,!?:;\"'()") in POSITIVE_WORDS)
        negative += sum(1 for word in words if word.strip(".,!?:;\"'()") in NEGATIVE_WORDS)

    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def summarize_news(news: Optional[List[Dict[str, Any]]]) -> NewsSummary:
    """Keep the most recent headlines and label their overall tone."""
    if not isinstance(news, list):
        return NewsSummary()

    articles = [article for article in news if isinstance(article, dict) and article.get("title")]
    headlines = []
    for article in articles[:MAX_HEADLINES]:
        summary = article.get("summary") or ""
        if not isinstance(summary, str):
            summary = str(summary)
        published = article.get("published_at")
        headlines.append(Headline(
            title=str(article["title"]),
            published_at=str(published) if published else None,
            summary=summary[:SUMMARY_MAX_CHARS],
        ))

    texts = [f"{h.title} {h.summary}" for h in headlines]
    return NewsSummary(
        headlines=headlines,
        sentiment=score_headline_sentiment(texts),
        article_count=len(articles),
    )


def assemble_analysis_record(
    symbol: str,
    current_price: float,
    quote: Optional[Dict[str, Any]] = None,
    fundamentals: Optional[Dict[str, Any]] = None,
    news: Optional[List[Dict[str, Any]]] = None,
    industry: Optional[str] = None,
    history: Optional[List[ForecastHistoryEntry]] = None,
) -> AnalysisRecord:
    """
    Normalize raw market data into an AnalysisRecord.

    Malformed or missing sub-fields become UNKNOWN; this never raises for
    bad market data. Symbol and price are validated by the caller.
    """
    record = AnalysisRecord(
        symbol=symbol,
        current_price=current_price,
        fundamentals=summarize_fundamentals(fundamentals, quote),
        technicals=summarize_technicals(quote),
        news=summarize_news(news),
        industry=industry,
        history=list(history or []),
    )
    logger.debug(
        f"Assembled record for {symbol}: fundamentals_empty={record.fundamentals.is_empty}, "
        f"headlines={len(record.news.headlines)}, history={len(record.history)}"
    )
    return record
