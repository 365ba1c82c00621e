"""Shared test fixtures for the price forecast engine test suite."""

import asyncio
import json
import random
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest

from src.database import ForecastHistoryStore
from src.models import ForecastHistoryEntry, HorizonPrices


# ─── Database Fixtures ───


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary database file path."""
    return str(tmp_path / "test_price_forecasts.db")


@pytest.fixture
def history_store(tmp_db_path):
    """Create a fresh ForecastHistoryStore with a temp database."""
    return ForecastHistoryStore(tmp_db_path)


# ─── Config Fixtures ───


@pytest.fixture
def test_config():
    """Configuration dictionary suitable for testing (no real API keys)."""
    return {
        "ALPHA_VANTAGE_API_KEY": "",
        "AGENT_MAX_RETRIES": 0,
        "FORECAST_TIMEOUT": 5,
        "HISTORY_LOOKBACK": 10,
        "PERSIST_FORECASTS": True,
        "PERSIST_QUICK_MODE": False,
        "SIGNAL_ENHANCERS_ENABLED": True,
        "ENVIRONMENT": "test",
        "MAX_NEWS_ARTICLES": 10,
        "LLM_TEMPERATURE": 0.95,
        "LLM_MAX_TOKENS": 1500,
        "LLM_QUICK_MAX_TOKENS": 1000,
        "LLM_CONFIDENCE_MIN": 65.0,
        "LLM_CONFIDENCE_MAX": 90.0,
        "DATABASE_PATH": ":memory:",
        "ALPHA_VANTAGE_BASE_URL": "https://www.alphavantage.co/query",
        "llm_config": {
            "provider": "openai",
            "model": "gpt-4o-mini",
            "quick_model": "gpt-4o-mini",
            "api_key": "test_key",
            "temperature": 0.95,
            "max_tokens": 1500,
            "quick_max_tokens": 1000,
        },
    }


@pytest.fixture
def seeded_rng():
    """Deterministic random source."""
    return random.Random(1234)


# ─── History Fixtures ───


@pytest.fixture
def make_history_entry():
    """Factory for ForecastHistoryEntry objects from fractional trends."""

    def _make(
        one_year: float,
        one_month: Optional[float] = None,
        three_months: Optional[float] = None,
        six_months: Optional[float] = None,
        current_price: float = 100.0,
        symbol: str = "TEST",
        confidence: float = 80.0,
        days_ago: int = 0,
    ) -> ForecastHistoryEntry:
        trends = {
            "one_month": one_month if one_month is not None else one_year / 6,
            "three_months": three_months if three_months is not None else one_year / 3,
            "six_months": six_months if six_months is not None else one_year / 2,
            "one_year": one_year,
        }
        return ForecastHistoryEntry(
            symbol=symbol,
            current_price=current_price,
            predicted_price=HorizonPrices(**{
                horizon: current_price * (1 + trend) for horizon, trend in trends.items()
            }),
            confidence=confidence,
            key_drivers=["Past driver"],
            risks=["Past risk"],
            created_at=datetime(2026, 1, 1) - timedelta(days=days_ago),
        )

    return _make


# ─── Generative Model Fixtures ───


def forecast_payload(
    one_month: Any = 101.5,
    three_months: Any = 104.0,
    six_months: Any = 108.0,
    one_year: Any = 112.0,
    **extra,
) -> Dict[str, Any]:
    payload = {
        "predictedPrice": {
            "oneMonth": one_month,
            "threeMonths": three_months,
            "sixMonths": six_months,
            "oneYear": one_year,
        },
        "sentimentAnalysis": "Model narrative about the outlook.",
        "confidenceLevel": 80,
        "keyDrivers": ["Driver A", "Driver B", "Driver C", "Driver D"],
        "risks": ["Risk A", "Risk B", "Risk C"],
    }
    payload.update(extra)
    return payload


@pytest.fixture
def forecast_json():
    """Factory returning a model response JSON string."""

    def _make(**kwargs) -> str:
        return json.dumps(forecast_payload(**kwargs))

    return _make


class FakeLLMClient:
    """Stand-in generative client recording each call."""

    def __init__(self, response: str = "", error: Optional[Exception] = None, delay: float = 0.0, enabled: bool = True):
        self.response = response
        self.error = error
        self.delay = delay
        self.enabled = enabled
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, prompt, temperature, max_tokens, mode="full", system=None):
        self.calls.append({
            "prompt": prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "mode": mode,
            "system": system,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def fake_llm():
    """Factory for FakeLLMClient instances."""
    return FakeLLMClient


# ─── Market Data Fixtures ───


@pytest.fixture
def sample_quote():
    """Quote dict in MarketDataFetcher.get_quote format."""
    return {
        "price": 100.0,
        "change": 1.2,
        "change_percent": 1.21,
        "day_high": 101.0,
        "day_low": 98.5,
        "year_high": 130.0,
        "year_low": 80.0,
        "price_avg_50": 97.0,
        "price_avg_200": 92.0,
        "volume": 1_500_000,
        "avg_volume": 1_200_000,
        "market_cap": 250e9,
        "pe": 24.5,
        "sector": None,
        "industry": None,
    }


@pytest.fixture
def sample_fundamentals():
    """Fundamentals dict in MarketDataFetcher.get_fundamentals format."""
    return {
        "income": [
            {"date": "2025-12-31", "revenue": 1200.0, "net_income": 240.0, "eps": 2.4},
            {"date": "2024-12-31", "revenue": 1000.0, "net_income": 180.0, "eps": 1.8},
        ],
        "balance": [],
        "cashflow": [],
        "ratios": [{"pe_ratio": 25.0, "profit_margin": 0.19, "revenue_growth": 0.15, "market_cap": 240e9}],
    }


@pytest.fixture
def sample_news():
    """Articles in MarketDataFetcher.get_news format."""
    return [
        {"title": "Company beats estimates with record growth", "summary": "Strong quarter.", "published_at": "2026-01-05"},
        {"title": "Analysts upgrade shares after rally", "summary": "", "published_at": "2026-01-04"},
        {"title": "Supply concern flagged", "summary": "Minor risk noted.", "published_at": "2026-01-03"},
    ]


class FakeMarketData:
    """Stand-in market data fetcher with canned responses."""

    def __init__(self, quote=None, fundamentals=None, news=None, signals=None, error: Optional[Exception] = None):
        self.quote = quote or {}
        self.fundamentals = fundamentals or {"income": [], "balance": [], "cashflow": [], "ratios": []}
        self.news = news or []
        self.signals = signals or {}
        self.error = error

    async def get_quote(self, symbol):
        if self.error:
            raise self.error
        return self.quote

    async def get_fundamentals(self, symbol):
        if self.error:
            raise self.error
        return self.fundamentals

    async def get_news(self, symbol, limit=None):
        if self.error:
            raise self.error
        return self.news

    async def get_signals(self, symbol):
        if self.error:
            raise self.error
        return self.signals


@pytest.fixture
def fake_market_data():
    """Factory for FakeMarketData instances."""
    return FakeMarketData


@pytest.fixture
def today():
    """Fixed reference date for earnings-calendar tests."""
    return date(2026, 3, 1)
