"""Forecast engine: reconciles generative forecasts with bounds, history and signals."""

import asyncio
import logging
import math
import random
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .agents.forecast_agent import ForecastAgent, ForecastOutcome
from .blender import HistoricalConsistencyBlender
from .config import Config
from .database import ForecastHistoryStore
from .enhancers import apply_signal_enhancers
from .fallback import FALLBACK_CONFIDENCE, create_fallback_prediction, describe_outlook, outlook_label
from .horizons import HORIZONS
from .industry import IndustryProfile, determine_industry, get_industry_profile, resolve_industry_name
from .input_assembler import assemble_analysis_record
from .llm_client import GenerativeTextClient
from .market_data import MarketDataFetcher
from .models import (
    AnalysisRecord,
    ForecastHistoryEntry,
    ForecastOptions,
    HorizonPrices,
    StockPrediction,
)
from .validation import validate_forecast

MIN_LIST_ITEMS = 3
MAX_LIST_ITEMS = 5


class InvalidForecastRequest(ValueError):
    """Raised for a missing symbol or a non-positive / non-numeric price."""


def normalize_items(items: Sequence[str], defaults: Sequence[str]) -> List[str]:
    """Deduplicate to at most five items, padding from defaults to at least three."""
    result = []
    for item in items:
        if item not in result:
            result.append(item)
        if len(result) == MAX_LIST_ITEMS:
            return result
    for item in defaults:
        if len(result) >= MIN_LIST_ITEMS:
            break
        if item not in result:
            result.append(item)
    return result


class ForecastEngine:
    """Produces one bounded, history-consistent StockPrediction per request."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        history_store: Optional[ForecastHistoryStore] = None,
        market_data: Optional[MarketDataFetcher] = None,
        llm_client: Optional[GenerativeTextClient] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize engine.

        Args:
            config: Configuration dictionary (uses Config class if not provided)
            history_store: Forecast history store
            market_data: Market data fetcher
            llm_client: Generative text client
            rng: Random source for minimum-margin nudges
            clock: Returns today's date, for the earnings calendar
        """
        self.config = config or self._get_config_dict()
        self.history_store = history_store or ForecastHistoryStore(
            self.config.get("DATABASE_PATH", "price_forecasts.db")
        )
        self.market_data = market_data or MarketDataFetcher(self.config)
        self.llm_client = llm_client or GenerativeTextClient(self.config.get("llm_config", {}))
        self.blender = HistoricalConsistencyBlender(rng or self._default_rng())
        self.clock = clock or (lambda: datetime.now(timezone.utc).date())
        self.logger = logging.getLogger(__name__)

    def _get_config_dict(self) -> Dict[str, Any]:
        """Convert Config class to dictionary."""
        config_dict = {}

        for attr in dir(Config):
            if not attr.startswith('_') and not callable(getattr(Config, attr)):
                config_dict[attr] = getattr(Config, attr)

        config_dict["llm_config"] = Config.get_llm_config()

        return config_dict

    def _default_rng(self) -> random.Random:
        seed = self.config.get("FORECAST_RANDOM_SEED")
        return random.Random(seed) if seed else random.Random()

    @staticmethod
    def validate_request(symbol: Any, current_price: Any) -> Tuple[str, float]:
        """
        Check caller input.

        Returns:
            (normalized symbol, price as float)

        Raises:
            InvalidForecastRequest: On an empty symbol or a bad price
        """
        if not isinstance(symbol, str) or not symbol.strip():
            raise InvalidForecastRequest("symbol must be a non-empty string")
        if isinstance(current_price, bool) or not isinstance(current_price, (int, float)):
            raise InvalidForecastRequest(f"current price must be a number, got {current_price!r}")
        price = float(current_price)
        if not math.isfinite(price) or price <= 0:
            raise InvalidForecastRequest(f"current price must be positive and finite, got {current_price!r}")
        return symbol.strip().upper(), price

    async def forecast(
        self,
        symbol: str,
        current_price: float,
        options: Optional[ForecastOptions] = None,
    ) -> StockPrediction:
        """
        Produce a forecast for one instrument.

        Upstream failures never surface; they degrade to a history blend or
        the deterministic fallback.

        Args:
            symbol: Ticker symbol
            current_price: Latest price, > 0
            options: Quick mode and industry override

        Returns:
            StockPrediction

        Raises:
            InvalidForecastRequest: On invalid caller input
        """
        symbol, current_price = self.validate_request(symbol, current_price)
        options = options or ForecastOptions()
        start_time = time.time()

        history = self._load_history(symbol)
        quote, fundamentals, news = await self._gather_market_data(symbol)

        industry = self._resolve_industry(symbol, options.industry, quote)
        profile = get_industry_profile(industry)
        record = assemble_analysis_record(
            symbol,
            current_price,
            quote=quote,
            fundamentals=fundamentals,
            news=news,
            industry=industry,
            history=history,
        )

        agent = ForecastAgent(
            symbol,
            self.config,
            record,
            profile,
            self.llm_client,
            quick_mode=options.quick_mode,
        )
        outcome = await agent.request(timeout=self.config.get("FORECAST_TIMEOUT", 30))

        prediction = self.reconcile(record, profile, outcome)

        if self.config.get("SIGNAL_ENHANCERS_ENABLED", True):
            signals = await self._gather_signals(symbol)
            prediction = apply_signal_enhancers(prediction, signals, today=self.clock())

        prediction = self._finalize(prediction, profile, history)
        prediction = prediction.model_copy(update={"generated_at": datetime.now(timezone.utc)})
        self._save_forecast(prediction, options)

        self.logger.info(
            f"Forecast for {symbol} ({prediction.forecast_source}, {profile.name}) "
            f"completed in {time.time() - start_time:.2f}s: 1y {prediction.predicted_price.one_year:.2f}"
        )
        return prediction

    def reconcile(
        self,
        record: AnalysisRecord,
        profile: IndustryProfile,
        outcome: ForecastOutcome,
    ) -> StockPrediction:
        """
        Turn a forecast outcome into a bounded prediction.

        Usable horizons of a generative forecast are blended with history;
        failed horizons use the zero seed trend. With nothing usable and no
        history the deterministic fallback is returned.
        """
        symbol = record.symbol
        current_price = record.current_price
        history = record.history

        raw = outcome.forecast if outcome.ok else None
        raw_prices = {}
        passed = False
        if raw is not None:
            validation = validate_forecast(raw, current_price)
            passed = validation.passed
            raw_prices = {
                horizon: raw.predicted_price.get(horizon)
                for horizon in validation.usable_horizons()
            }
            if not raw_prices:
                self.logger.warning(f"Every horizon of the generative forecast for {symbol} was rejected")
                raw = None
        else:
            self.logger.warning(
                f"No generative forecast for {symbol}: {outcome.status} ({outcome.detail})"
            )

        if not raw_prices and not history:
            return create_fallback_prediction(symbol, current_price, record.industry)

        blend = self.blender.blend(current_price, profile.bounds, history, raw_prices)
        predicted = HorizonPrices(**blend.prices)

        if raw is not None and passed and raw.sentiment_analysis:
            narrative = raw.sentiment_analysis
        else:
            narrative = describe_outlook(symbol, profile, predicted.one_year / current_price)

        return StockPrediction(
            symbol=symbol,
            current_price=current_price,
            predicted_price=predicted,
            sentiment_analysis=narrative,
            confidence_level=self._confidence(raw, history),
            key_drivers=normalize_items(raw.key_drivers if raw else [], profile.drivers),
            risks=normalize_items(raw.risks if raw else [], profile.risks),
            forecast_source="generative" if raw_prices else "history_blend",
            historical_consistency=blend.consistency,
        )

    def _confidence(self, raw, history: Sequence[ForecastHistoryEntry]) -> float:
        low = self.config.get("LLM_CONFIDENCE_MIN", 65.0)
        high = self.config.get("LLM_CONFIDENCE_MAX", 90.0)
        if raw is not None:
            if raw.confidence_level is None:
                return (low + high) / 2
            return max(low, min(high, raw.confidence_level))
        if history:
            return sum(entry.confidence for entry in history) / len(history)
        return FALLBACK_CONFIDENCE

    def _finalize(
        self,
        prediction: StockPrediction,
        profile: IndustryProfile,
        history: Sequence[ForecastHistoryEntry],
    ) -> StockPrediction:
        """Re-apply minimum margins and bounds after enhancers; clamp confidence."""
        current_price = prediction.current_price
        hist_trends = self.blender.historical_trends(history)
        prices = {}
        for horizon in HORIZONS:
            price, _, _ = self.blender.enforce(
                prediction.predicted_price.get(horizon),
                current_price,
                horizon,
                profile.bound(horizon),
                hist_trends[horizon],
            )
            prices[horizon] = price

        return prediction.model_copy(update={
            "predicted_price": HorizonPrices(**prices),
            "confidence_level": max(0.0, min(100.0, prediction.confidence_level)),
            "historical_consistency": self.blender.consistency_label(history),
        })

    def _resolve_industry(self, symbol: str, override: Optional[str], quote: Optional[Dict[str, Any]]) -> Optional[str]:
        """Industry from the override, the symbol table, then the quote's industry or sector."""
        if override:
            return resolve_industry_name(override)
        known = determine_industry(symbol)
        if known:
            return known
        quote = quote or {}
        return resolve_industry_name(quote.get("industry")) or resolve_industry_name(quote.get("sector"))

    def _load_history(self, symbol: str) -> List[ForecastHistoryEntry]:
        try:
            return self.history_store.get_forecast_history(
                symbol, limit=self.config.get("HISTORY_LOOKBACK", 10)
            )
        except Exception as e:
            self.logger.warning(f"Could not load forecast history for {symbol}: {e}")
            return []

    async def _gather_market_data(self, symbol: str):
        """Fetch quote, fundamentals and news concurrently; failures become None."""
        results = await asyncio.gather(
            self.market_data.get_quote(symbol),
            self.market_data.get_fundamentals(symbol),
            self.market_data.get_news(symbol, self.config.get("MAX_NEWS_ARTICLES", 20)),
            return_exceptions=True,
        )
        cleaned = []
        for label, result in zip(("quote", "fundamentals", "news"), results):
            if isinstance(result, Exception):
                self.logger.warning(f"Market data {label} fetch raised for {symbol}: {result}")
                result = None
            cleaned.append(result)
        return tuple(cleaned)

    async def _gather_signals(self, symbol: str) -> Dict[str, Any]:
        try:
            signals = await self.market_data.get_signals(symbol)
        except Exception as e:
            self.logger.warning(f"Signal fetch failed for {symbol}: {e}")
            return {}
        return signals if isinstance(signals, dict) else {}

    def _save_forecast(self, prediction: StockPrediction, options: ForecastOptions):
        """Record the forecast in history; failures are logged, never raised."""
        if not self.config.get("PERSIST_FORECASTS", True):
            return
        if prediction.forecast_source == "fallback":
            return
        if options.quick_mode and not self.config.get("PERSIST_QUICK_MODE", False):
            return

        try:
            entry = ForecastHistoryEntry(
                symbol=prediction.symbol,
                current_price=prediction.current_price,
                predicted_price=prediction.predicted_price,
                sentiment=outlook_label(prediction.predicted_price.one_year / prediction.current_price),
                confidence=prediction.confidence_level,
                key_drivers=prediction.key_drivers,
                risks=prediction.risks,
            )
            self.history_store.save_forecast(
                entry,
                forecast_source=prediction.forecast_source,
                quick_mode=options.quick_mode,
            )
        except Exception as e:
            self.logger.warning(f"Failed to save forecast history for {prediction.symbol}: {e}")
