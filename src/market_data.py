"""Market data fetcher backed by yfinance, with Alpha Vantage as the primary quote source.

Every public method is tolerant: failures are logged and an empty structure
is returned so the forecast can proceed on whatever data is available.
"""

import asyncio
import logging
import math
import random
from typing import Any, Dict, List, Optional

import aiohttp
import pandas as pd
import yfinance as yf

_INCOME_FIELDS = {
    "revenue": "Total Revenue",
    "gross_profit": "Gross Profit",
    "operating_income": "Operating Income",
    "net_income": "Net Income",
    "eps": "Diluted EPS",
}
_BALANCE_FIELDS = {
    "total_assets": "Total Assets",
    "total_liabilities": "Total Liabilities Net Minority Interest",
    "total_equity": "Stockholders Equity",
    "total_debt": "Total Debt",
    "cash": "Cash And Cash Equivalents",
}
_CASHFLOW_FIELDS = {
    "operating_cash_flow": "Operating Cash Flow",
    "capital_expenditure": "Capital Expenditure",
    "free_cash_flow": "Free Cash Flow",
}

STATEMENT_YEARS = 3


def _to_float(value: Any) -> Optional[float]:
    """Best-effort numeric conversion; None for NaN, inf and junk."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _column_date(column: Any) -> str:
    try:
        return pd.Timestamp(column).date().isoformat()
    except (TypeError, ValueError):
        return str(column)


def statement_rows(df: Optional[pd.DataFrame], fields: Dict[str, str], limit: int = STATEMENT_YEARS) -> List[Dict[str, Any]]:
    """
    Flatten a yfinance statement (line items x periods) into per-period dicts.

    Args:
        df: Statement DataFrame, newest period first
        fields: Output key -> statement line item
        limit: Max periods to keep

    Returns:
        List of {"date": ..., <key>: float | None}, newest first
    """
    if df is None or getattr(df, "empty", True):
        return []
    rows = []
    for column in list(df.columns)[:limit]:
        row = {"date": _column_date(column)}
        for key, label in fields.items():
            row[key] = _to_float(df.at[label, column]) if label in df.index else None
        rows.append(row)
    return rows


class MarketDataFetcher:
    """Reads quotes, statements, news and analyst signals for a symbol."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize fetcher.

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self._tickers: Dict[str, Any] = {}
        self._info: Dict[str, Dict[str, Any]] = {}

    def _ticker(self, symbol: str):
        symbol = symbol.upper()
        if symbol not in self._tickers:
            self._tickers[symbol] = yf.Ticker(symbol)
        return self._tickers[symbol]

    async def _retry_fetch(self, func, max_retries: int = None, label: str = ""):
        """
        Retry a blocking function with exponential backoff + jitter.

        Args:
            func: Callable to execute
            max_retries: Max retry attempts (defaults to config AGENT_MAX_RETRIES)
            label: Label for logging

        Returns:
            Result of func, or None if all retries fail
        """
        retries = max_retries if max_retries is not None else self.config.get("AGENT_MAX_RETRIES", 2)
        for attempt in range(retries + 1):
            try:
                return await asyncio.to_thread(func)
            except Exception as e:
                if attempt == retries:
                    self.logger.warning(f"Failed to fetch {label} after {retries + 1} attempts: {e}")
                    return None
                wait = (2 ** attempt) + random.uniform(0, 1)
                self.logger.info(f"Retry {attempt + 1}/{retries} for {label} in {wait:.1f}s: {e}")
                await asyncio.sleep(wait)
        return None

    async def _av_request(self, params: Dict[str, str]) -> Optional[Dict]:
        """
        Make a request to Alpha Vantage API.

        Args:
            params: Query parameters (function, symbol, etc.); apikey is added internally

        Returns:
            JSON response dict, or None on failure
        """
        api_key = self.config.get("ALPHA_VANTAGE_API_KEY", "")
        if not api_key:
            return None

        base_url = self.config.get("ALPHA_VANTAGE_BASE_URL", "https://www.alphavantage.co/query")
        request_params = {**params, "apikey": api_key}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    base_url,
                    params=request_params,
                    timeout=aiohttp.ClientTimeout(total=15)
                ) as resp:
                    if resp.status != 200:
                        self.logger.warning(f"Alpha Vantage returned status {resp.status}")
                        return None
                    data = await resp.json(content_type=None)
                    if "Error Message" in data or "Note" in data:
                        msg = data.get("Error Message") or data.get("Note", "")
                        self.logger.warning(f"Alpha Vantage API error: {msg}")
                        return None
                    if "Information" in data and "rate limit" in data.get("Information", "").lower():
                        self.logger.warning(f"Alpha Vantage rate limited: {data['Information']}")
                        return None
                    return data
        except Exception as e:
            self.logger.warning(f"Alpha Vantage request failed: {e}")
            return None

    async def _get_info(self, symbol: str) -> Dict[str, Any]:
        symbol = symbol.upper()
        if symbol not in self._info:
            ticker_obj = self._ticker(symbol)
            info = await self._retry_fetch(lambda: ticker_obj.info, label=f"{symbol} info")
            if not isinstance(info, dict):
                return {}
            self._info[symbol] = info
        return self._info[symbol]

    async def _fetch_av_quote(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Latest quote from Alpha Vantage GLOBAL_QUOTE, or None."""
        data = await self._av_request({
            "function": "GLOBAL_QUOTE",
            "symbol": symbol,
            "datatype": "json"
        })
        if not data or not data.get("Global Quote"):
            return None

        quote = data["Global Quote"]
        price = _to_float(quote.get("05. price"))
        if not price:
            return None
        return {
            "price": price,
            "day_high": _to_float(quote.get("03. high")),
            "day_low": _to_float(quote.get("04. low")),
            "volume": _to_float(quote.get("06. volume")),
            "change": _to_float(quote.get("09. change")),
            "change_percent": _to_float(quote.get("10. change percent")),
        }

    async def get_quote(self, symbol: str) -> Dict[str, Any]:
        """
        Fetch the latest quote. Tries Alpha Vantage first, fills gaps from yfinance.

        Returns:
            Quote dict (possibly empty)
        """
        info = await self._get_info(symbol)
        quote = {
            "price": _to_float(info.get("currentPrice") or info.get("regularMarketPrice")),
            "change": _to_float(info.get("regularMarketChange")),
            "change_percent": _to_float(info.get("regularMarketChangePercent")),
            "day_high": _to_float(info.get("dayHigh")),
            "day_low": _to_float(info.get("dayLow")),
            "year_high": _to_float(info.get("fiftyTwoWeekHigh")),
            "year_low": _to_float(info.get("fiftyTwoWeekLow")),
            "price_avg_50": _to_float(info.get("fiftyDayAverage")),
            "price_avg_200": _to_float(info.get("twoHundredDayAverage")),
            "volume": _to_float(info.get("volume") or info.get("regularMarketVolume")),
            "avg_volume": _to_float(info.get("averageVolume")),
            "market_cap": _to_float(info.get("marketCap")),
            "pe": _to_float(info.get("trailingPE")),
            "sector": info.get("sector"),
            "industry": info.get("industry"),
        }

        av_quote = await self._fetch_av_quote(symbol)
        if av_quote:
            self.logger.info(f"Using Alpha Vantage quote for {symbol}")
            quote.update({key: value for key, value in av_quote.items() if value is not None})

        if quote["price"] is None:
            self.logger.warning(f"No quote available for {symbol}")
            return {}
        return quote

    async def get_fundamentals(self, symbol: str) -> Dict[str, List[Dict[str, Any]]]:
        """
        Fetch annual statements and headline ratios.

        Returns:
            {"income": [...], "balance": [...], "cashflow": [...], "ratios": [...]}
        """
        ticker_obj = self._ticker(symbol)
        income, balance, cashflow = await asyncio.gather(
            self._retry_fetch(lambda: ticker_obj.income_stmt, label=f"{symbol} income_stmt"),
            self._retry_fetch(lambda: ticker_obj.balance_sheet, label=f"{symbol} balance_sheet"),
            self._retry_fetch(lambda: ticker_obj.cashflow, label=f"{symbol} cashflow"),
        )
        info = await self._get_info(symbol)

        ratios = []
        if info:
            ratios.append({
                "pe_ratio": _to_float(info.get("trailingPE")),
                "profit_margin": _to_float(info.get("profitMargins")),
                "revenue_growth": _to_float(info.get("revenueGrowth")),
                "market_cap": _to_float(info.get("marketCap")),
            })

        return {
            "income": statement_rows(income, _INCOME_FIELDS),
            "balance": statement_rows(balance, _BALANCE_FIELDS),
            "cashflow": statement_rows(cashflow, _CASHFLOW_FIELDS),
            "ratios": ratios,
        }

    async def get_news(self, symbol: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch recent news articles.

        Returns:
            [{"title", "summary", "published_at", "url", "source"}]
        """
        limit = limit or self.config.get("MAX_NEWS_ARTICLES", 20)
        ticker_obj = self._ticker(symbol)
        raw_news = await self._retry_fetch(lambda: ticker_obj.news, label=f"{symbol} news")
        if not isinstance(raw_news, list):
            return []

        articles = []
        for item in raw_news:
            if not isinstance(item, dict):
                continue
            content = item.get("content") if isinstance(item.get("content"), dict) else item
            title = content.get("title")
            if not title:
                continue
            url = content.get("link")
            if isinstance(content.get("canonicalUrl"), dict):
                url = content["canonicalUrl"].get("url")
            provider = content.get("provider")
            published = content.get("pubDate")
            if not published and content.get("providerPublishTime"):
                published = pd.Timestamp(content["providerPublishTime"], unit="s").isoformat()
            articles.append({
                "title": title,
                "summary": content.get("summary") or "",
                "published_at": published,
                "url": url,
                "source": provider.get("displayName") if isinstance(provider, dict) else content.get("publisher"),
            })
            if len(articles) >= limit:
                break
        return articles

    async def get_analyst_estimates(self, symbol: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the consensus EPS estimate for the next fiscal year.

        Returns:
            {"period", "eps_avg", "eps_growth", "revenue_avg", "analyst_count"} or None
        """
        ticker_obj = self._ticker(symbol)
        eps_df, revenue_df = await asyncio.gather(
            self._retry_fetch(lambda: ticker_obj.earnings_estimate, label=f"{symbol} earnings_estimate"),
            self._retry_fetch(lambda: ticker_obj.revenue_estimate, label=f"{symbol} revenue_estimate"),
        )
        if eps_df is None or getattr(eps_df, "empty", True):
            return None

        for period in ("+1y", "0y"):
            if period not in eps_df.index:
                continue
            row = eps_df.loc[period]
            growth = _to_float(row.get("growth"))
            if growth is None:
                continue
            revenue_avg = None
            if revenue_df is not None and not getattr(revenue_df, "empty", True) and period in revenue_df.index:
                revenue_avg = _to_float(revenue_df.loc[period].get("avg"))
            return {
                "period": period,
                "eps_avg": _to_float(row.get("avg")),
                "eps_growth": growth,
                "revenue_avg": revenue_avg,
                "analyst_count": _to_float(row.get("numberOfAnalysts")),
            }
        return None

    async def get_recommendation_trends(self, symbol: str) -> Optional[Dict[str, int]]:
        """
        Fetch the current month's analyst recommendation counts.

        Returns:
            {"strong_buy", "buy", "hold", "sell", "strong_sell"} or None
        """
        ticker_obj = self._ticker(symbol)
        df = await self._retry_fetch(lambda: ticker_obj.recommendations, label=f"{symbol} recommendations")
        if df is None or getattr(df, "empty", True):
            return None

        current = df
        if "period" in df.columns:
            matching = df[df["period"] == "0m"]
            if not matching.empty:
                current = matching
        row = current.iloc[0]

        def _count(column: str) -> int:
            value = _to_float(row.get(column))
            return int(value) if value is not None else 0

        return {
            "strong_buy": _count("strongBuy"),
            "buy": _count("buy"),
            "hold": _count("hold"),
            "sell": _count("sell"),
            "strong_sell": _count("strongSell"),
        }

    async def get_enterprise_value(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Fetch enterprise value and its components, or None."""
        info = await self._get_info(symbol)
        enterprise_value = _to_float(info.get("enterpriseValue"))
        if enterprise_value is None:
            return None
        return {
            "enterprise_value": enterprise_value,
            "market_cap": _to_float(info.get("marketCap")),
            "total_debt": _to_float(info.get("totalDebt")),
            "cash_and_equivalents": _to_float(info.get("totalCash")),
            "ev_to_ebitda": _to_float(info.get("enterpriseToEbitda")),
            "ev_to_revenue": _to_float(info.get("enterpriseToRevenue")),
        }

    async def get_earnings_calendar(self, symbol: str) -> List[Dict[str, Any]]:
        """
        Fetch past and scheduled earnings dates.

        Returns:
            [{"date", "eps_estimate", "eps_actual", "revenue_estimate", "revenue_actual"}]
        """
        ticker_obj = self._ticker(symbol)
        df = await self._retry_fetch(lambda: ticker_obj.earnings_dates, label=f"{symbol} earnings_dates")
        if df is None or getattr(df, "empty", True):
            return []

        events = []
        for timestamp, row in df.iterrows():
            events.append({
                "date": _column_date(timestamp),
                "eps_estimate": _to_float(row.get("EPS Estimate")),
                "eps_actual": _to_float(row.get("Reported EPS")),
                "revenue_estimate": None,
                "revenue_actual": None,
            })
        return events

    async def get_signals(self, symbol: str) -> Dict[str, Any]:
        """Fetch every enhancer signal concurrently."""
        results = await asyncio.gather(
            self.get_analyst_estimates(symbol),
            self.get_recommendation_trends(symbol),
            self.get_enterprise_value(symbol),
            self.get_earnings_calendar(symbol),
            return_exceptions=True,
        )
        keys = ("analyst_estimates", "recommendation_trends", "enterprise_value", "earnings_calendar")
        signals = {}
        for key, value in zip(keys, results):
            if isinstance(value, Exception):
                self.logger.warning(f"{key} fetch raised for {symbol}: {value}")
                value = None
            signals[key] = value
        return signals
