"""Tests for MarketDataFetcher with a fake yfinance Ticker."""

from unittest.mock import AsyncMock, patch

import numpy as np
import pandas as pd
import pytest

from src.market_data import MarketDataFetcher, statement_rows


class FakeTicker:
    """Minimal yfinance.Ticker stand-in."""

    def __init__(self, **attrs):
        self.info = {
            "currentPrice": 187.5,
            "regularMarketChange": 2.1,
            "regularMarketChangePercent": 1.13,
            "dayHigh": 188.0,
            "dayLow": 184.9,
            "fiftyTwoWeekHigh": 199.6,
            "fiftyTwoWeekLow": 164.1,
            "fiftyDayAverage": 182.3,
            "twoHundredDayAverage": 178.8,
            "volume": 52_000_000,
            "averageVolume": 58_000_000,
            "marketCap": 2.9e12,
            "trailingPE": 29.4,
            "profitMargins": 0.25,
            "revenueGrowth": 0.06,
            "enterpriseValue": 2.95e12,
            "totalDebt": 1.1e11,
            "totalCash": 6.1e10,
            "sector": "Technology",
            "industry": "Consumer Electronics",
        }
        self.income_stmt = pd.DataFrame(
            {
                pd.Timestamp("2025-09-30"): [416e9, 112e9, 6.08],
                pd.Timestamp("2024-09-30"): [391e9, 94e9, 6.11],
            },
            index=["Total Revenue", "Net Income", "Diluted EPS"],
        )
        self.balance_sheet = pd.DataFrame()
        self.cashflow = None
        self.news = []
        self.earnings_estimate = pd.DataFrame()
        self.revenue_estimate = pd.DataFrame()
        self.recommendations = pd.DataFrame()
        self.earnings_dates = pd.DataFrame()
        for key, value in attrs.items():
            setattr(self, key, value)


@pytest.fixture
def fetcher(test_config):
    return MarketDataFetcher(test_config)


class TestStatementRows:
    """Tests for statement_rows()."""

    def test_flattens_newest_first(self):
        df = FakeTicker().income_stmt
        rows = statement_rows(df, {"revenue": "Total Revenue", "net_income": "Net Income", "ebit": "EBIT"})
        assert rows[0] == {"date": "2025-09-30", "revenue": 416e9, "net_income": 112e9, "ebit": None}
        assert rows[1]["revenue"] == 391e9

    def test_nan_becomes_none(self):
        df = pd.DataFrame({pd.Timestamp("2025-12-31"): [np.nan]}, index=["Total Revenue"])
        assert statement_rows(df, {"revenue": "Total Revenue"})[0]["revenue"] is None

    def test_limit(self):
        df = pd.DataFrame(
            {pd.Timestamp(f"{year}-12-31"): [1.0] for year in range(2025, 2019, -1)},
            index=["Total Revenue"],
        )
        assert len(statement_rows(df, {"revenue": "Total Revenue"}, limit=3)) == 3

    @pytest.mark.parametrize("df", [None, pd.DataFrame()])
    def test_empty(self, df):
        assert statement_rows(df, {"revenue": "Total Revenue"}) == []


class TestGetQuote:
    """Tests for get_quote()."""

    async def test_quote_from_info(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker()):
            quote = await fetcher.get_quote("aapl")
        assert quote["price"] == 187.5
        assert quote["year_high"] == 199.6
        assert quote["market_cap"] == 2.9e12
        assert quote["industry"] == "Consumer Electronics"

    async def test_alpha_vantage_overrides_price(self, fetcher):
        av_quote = {"price": 190.0, "day_high": None, "day_low": 185.0, "volume": 1.0, "change": 1.0, "change_percent": 0.5}
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker()), \
                patch.object(fetcher, "_fetch_av_quote", AsyncMock(return_value=av_quote)):
            quote = await fetcher.get_quote("AAPL")
        assert quote["price"] == 190.0
        assert quote["day_low"] == 185.0
        assert quote["day_high"] == 188.0

    async def test_no_price_returns_empty(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(info={"sector": "Technology"})):
            assert await fetcher.get_quote("AAPL") == {}

    async def test_info_is_cached(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker()) as mock_ticker:
            await fetcher.get_quote("AAPL")
            await fetcher.get_enterprise_value("AAPL")
        assert mock_ticker.call_count == 1


class TestAlphaVantageQuote:
    """Tests for the Alpha Vantage GLOBAL_QUOTE path."""

    async def test_returns_none_without_api_key(self, fetcher):
        """_av_request returns None when ALPHA_VANTAGE_API_KEY is empty."""
        assert await fetcher._av_request({"function": "GLOBAL_QUOTE", "symbol": "AAPL"}) is None

    async def test_parses_global_quote(self, fetcher):
        data = {"Global Quote": {
            "05. price": "183.15",
            "03. high": "184.00",
            "04. low": "181.50",
            "06. volume": "51234567",
            "09. change": "1.25",
            "10. change percent": "0.6872%",
        }}
        with patch.object(fetcher, "_av_request", AsyncMock(return_value=data)):
            quote = await fetcher._fetch_av_quote("AAPL")
        assert quote["price"] == 183.15
        assert quote["change_percent"] == pytest.approx(0.6872)

    async def test_empty_global_quote(self, fetcher):
        with patch.object(fetcher, "_av_request", AsyncMock(return_value={"Global Quote": {}})):
            assert await fetcher._fetch_av_quote("AAPL") is None


class TestGetFundamentals:
    """Tests for get_fundamentals()."""

    async def test_statements_and_ratios(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker()):
            data = await fetcher.get_fundamentals("AAPL")
        assert data["income"][0]["revenue"] == 416e9
        assert data["income"][0]["eps"] == 6.08
        assert data["balance"] == []
        assert data["cashflow"] == []
        assert data["ratios"][0]["pe_ratio"] == 29.4
        assert data["ratios"][0]["revenue_growth"] == 0.06


class TestGetNews:
    """Tests for get_news() across both yfinance payload shapes."""

    async def test_content_format(self, fetcher):
        news = [{"id": "1", "content": {
            "title": "Apple unveils new chip",
            "summary": "Details.",
            "pubDate": "2026-02-01T12:00:00Z",
            "canonicalUrl": {"url": "https://example.com/a"},
            "provider": {"displayName": "Reuters"},
        }}]
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(news=news)):
            articles = await fetcher.get_news("AAPL")
        assert articles == [{
            "title": "Apple unveils new chip",
            "summary": "Details.",
            "published_at": "2026-02-01T12:00:00Z",
            "url": "https://example.com/a",
            "source": "Reuters",
        }]

    async def test_legacy_format(self, fetcher):
        news = [{"title": "Old style", "publisher": "Yahoo", "link": "https://example.com/b", "providerPublishTime": 1700000000}]
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(news=news)):
            articles = await fetcher.get_news("AAPL")
        assert articles[0]["source"] == "Yahoo"
        assert articles[0]["url"] == "https://example.com/b"
        assert articles[0]["published_at"].startswith("2023-11-14")

    async def test_limit_and_untitled(self, fetcher):
        news = [{"title": f"Story {i}"} for i in range(5)] + [{"summary": "untitled"}]
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(news=news)):
            articles = await fetcher.get_news("AAPL", limit=3)
        assert [a["title"] for a in articles] == ["Story 0", "Story 1", "Story 2"]

    async def test_non_list_news(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(news=None)):
            assert await fetcher.get_news("AAPL") == []


class TestSignals:
    """Tests for the enhancer signal fetchers."""

    async def test_analyst_estimates_prefers_next_year(self, fetcher):
        eps = pd.DataFrame(
            {"avg": [6.5, 7.2], "numberOfAnalysts": [30, 28], "growth": [0.07, 0.11]},
            index=["0y", "+1y"],
        )
        revenue = pd.DataFrame({"avg": [420e9, 445e9]}, index=["0y", "+1y"])
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(earnings_estimate=eps, revenue_estimate=revenue)):
            estimates = await fetcher.get_analyst_estimates("AAPL")
        assert estimates == {
            "period": "+1y",
            "eps_avg": 7.2,
            "eps_growth": 0.11,
            "revenue_avg": 445e9,
            "analyst_count": 28.0,
        }

    async def test_analyst_estimates_missing_growth(self, fetcher):
        eps = pd.DataFrame({"avg": [6.5], "growth": [np.nan]}, index=["+1y"])
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(earnings_estimate=eps)):
            assert await fetcher.get_analyst_estimates("AAPL") is None

    async def test_recommendation_trends_current_month(self, fetcher):
        df = pd.DataFrame({
            "period": ["0m", "-1m"],
            "strongBuy": [8, 7],
            "buy": [2, 3],
            "hold": [0, 1],
            "sell": [0, 0],
            "strongSell": [0, 0],
        })
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(recommendations=df)):
            counts = await fetcher.get_recommendation_trends("AAPL")
        assert counts == {"strong_buy": 8, "buy": 2, "hold": 0, "sell": 0, "strong_sell": 0}

    async def test_enterprise_value(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker()):
            ev = await fetcher.get_enterprise_value("AAPL")
        assert ev["enterprise_value"] == 2.95e12
        assert ev["market_cap"] == 2.9e12
        assert ev["cash_and_equivalents"] == 6.1e10

    async def test_earnings_calendar(self, fetcher):
        df = pd.DataFrame(
            {"EPS Estimate": [1.5, 1.2], "Reported EPS": [np.nan, 1.5]},
            index=pd.DatetimeIndex(["2026-04-28 16:00", "2026-01-27 16:00"], tz="America/New_York"),
        )
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker(earnings_dates=df)):
            events = await fetcher.get_earnings_calendar("AAPL")
        assert events[0]["date"] == "2026-04-28"
        assert events[0]["eps_actual"] is None
        assert events[1]["eps_actual"] == 1.5

    async def test_get_signals_keys(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker()):
            signals = await fetcher.get_signals("AAPL")
        assert set(signals) == {"analyst_estimates", "recommendation_trends", "enterprise_value", "earnings_calendar"}
        assert signals["analyst_estimates"] is None
        assert signals["recommendation_trends"] is None
        assert signals["earnings_calendar"] == []

    async def test_get_signals_isolates_failures(self, fetcher):
        with patch("src.market_data.yf.Ticker", return_value=FakeTicker()), \
                patch.object(fetcher, "get_analyst_estimates", AsyncMock(side_effect=RuntimeError("boom"))):
            signals = await fetcher.get_signals("AAPL")
        assert signals["analyst_estimates"] is None
        assert signals["enterprise_value"]["enterprise_value"] == 2.95e12


class TestRetryFetch:
    """Tests for _retry_fetch() with exponential backoff."""

    async def test_retry_succeeds_after_failures(self, fetcher):
        """_retry_fetch retries and succeeds on later attempt."""
        call_count = 0

        def flaky_func():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise Exception("transient failure")
            return {"success": True}

        with patch("src.market_data.asyncio.sleep", new_callable=AsyncMock):
            result = await fetcher._retry_fetch(flaky_func, max_retries=2, label="test")

        assert result == {"success": True}
        assert call_count == 2

    async def test_retry_returns_none_after_all_failures(self, fetcher):
        """_retry_fetch returns None when all retries are exhausted."""

        def always_fails():
            raise Exception("permanent failure")

        with patch("src.market_data.asyncio.sleep", new_callable=AsyncMock):
            result = await fetcher._retry_fetch(always_fails, max_retries=1, label="test")

        assert result is None

    async def test_retry_respects_max_retries(self, fetcher):
        """_retry_fetch calls func exactly max_retries + 1 times."""
        call_count = 0

        def counting_func():
            nonlocal call_count
            call_count += 1
            raise Exception("always fails")

        with patch("src.market_data.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await fetcher._retry_fetch(counting_func, max_retries=3, label="test")

        assert call_count == 4  # initial + 3 retries
        assert mock_sleep.await_count == 3

    async def test_defaults_to_config_retries(self, fetcher):
        """With AGENT_MAX_RETRIES=0 the function is tried once."""
        call_count = 0

        def counting_func():
            nonlocal call_count
            call_count += 1
            raise Exception("always fails")

        assert await fetcher._retry_fetch(counting_func, label="test") is None
        assert call_count == 1
