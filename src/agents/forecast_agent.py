"""Forecast agent: asks the generative model for a multi-horizon price forecast."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base_agent import BaseAgent
from ..blender import HistoricalConsistencyBlender
from ..forecast_decoder import ForecastDecodeError, decode_forecast
from ..horizons import HORIZON_SETTINGS
from ..industry import DEFAULT_INDUSTRY, IndustryProfile, market_cap_tier
from ..llm_client import FULL_MODE, QUICK_MODE
from ..models import AnalysisRecord, RawForecast, is_known

SUCCESS = "success"
SKIPPED = "skipped"
TIMEOUT = "timeout"
ERROR = "error"

SYSTEM_PROMPT = (
    "You are a senior equity analyst producing price forecasts. "
    "Respond with a single JSON object and nothing else."
)


@dataclass
class ForecastOutcome:
    """Result of one forecast request; forecast is set only on success."""

    status: str
    forecast: Optional[RawForecast] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS and self.forecast is not None


def _fmt_pct(value, scale: float = 100.0) -> str:
    return f"{value * scale:.1f}%" if is_known(value) else "unknown"


def _fmt_money(value) -> str:
    return f"${value:,.2f}" if is_known(value) else "unknown"


def _fmt_number(value, digits: int = 2) -> str:
    return f"{value:,.{digits}f}" if is_known(value) else "unknown"


class ForecastAgent(BaseAgent):
    """Requests a raw forecast once; never retries."""

    def __init__(
        self,
        ticker: str,
        config: Dict[str, Any],
        record: AnalysisRecord,
        profile: IndustryProfile,
        llm_client,
        quick_mode: bool = False,
    ):
        """
        Initialize forecast agent.

        Args:
            ticker: Stock ticker symbol
            config: Configuration dictionary
            record: Assembled analysis record
            profile: Industry profile supplying bounds and context
            llm_client: Object exposing async complete(prompt, temperature, max_tokens, mode, system)
            quick_mode: Use the reduced prompt and token budget
        """
        super().__init__(ticker, config)
        self.record = record
        self.profile = profile
        self.llm_client = llm_client
        self.quick_mode = quick_mode

    @property
    def mode(self) -> str:
        return QUICK_MODE if self.quick_mode else FULL_MODE

    def skip_reason(self) -> Optional[str]:
        """Why the generative call should not be made, or None to proceed."""
        if self.quick_mode and self.record.fundamentals.is_empty:
            return "quick mode without fundamentals"
        if str(self.config.get("ENVIRONMENT", "")).lower() == "development":
            return "development environment"
        if not getattr(self.llm_client, "enabled", True):
            return "no LLM credentials configured"
        return None

    async def request(self, timeout: Optional[float] = None) -> ForecastOutcome:
        """
        Run the agent under a timeout.

        Args:
            timeout: Seconds to wait; defaults to config FORECAST_TIMEOUT

        Returns:
            ForecastOutcome; failures are reported, never raised
        """
        reason = self.skip_reason()
        if reason:
            self.logger.info(f"Skipping generative forecast for {self.ticker}: {reason}")
            return ForecastOutcome(status=SKIPPED, detail=reason)

        timeout = timeout if timeout is not None else self.config.get("FORECAST_TIMEOUT", 30)
        try:
            result = await asyncio.wait_for(self.execute(), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Generative forecast for {self.ticker} timed out after {timeout}s")
            return ForecastOutcome(status=TIMEOUT, detail=f"timed out after {timeout}s")

        if not result["success"]:
            return ForecastOutcome(status=ERROR, detail=result["error"])
        return ForecastOutcome(status=SUCCESS, forecast=result["data"]["forecast"])

    async def fetch_data(self) -> Dict[str, Any]:
        """
        Call the generative model once.

        Returns:
            Dict with the response text and the mode used
        """
        if self.quick_mode:
            max_tokens = self.config.get("LLM_QUICK_MAX_TOKENS", 1000)
        else:
            max_tokens = self.config.get("LLM_MAX_TOKENS", 1500)

        text = await self.llm_client.complete(
            self.build_prompt(),
            temperature=self.config.get("LLM_TEMPERATURE", 0.95),
            max_tokens=max_tokens,
            mode=self.mode,
            system=SYSTEM_PROMPT,
        )
        return {"text": text, "mode": self.mode}

    async def analyze(self, raw_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Decode the response text.

        Raises:
            ForecastDecodeError: When the text is not a valid forecast
        """
        decoded = decode_forecast(raw_data.get("text", ""))
        if not decoded.ok:
            raise ForecastDecodeError(decoded.status, decoded.error or decoded.status)
        return {"forecast": decoded.forecast, "mode": raw_data.get("mode", self.mode)}

    def build_prompt(self) -> str:
        """
        Build the forecast prompt from the analysis record.

        Quick mode drops headline summaries and the history section.

        Returns:
            The full prompt string.
        """
        record = self.record
        fundamentals = record.fundamentals
        technicals = record.technicals

        bounds_text = ", ".join(
            f"{settings.label} ±{self.profile.bound(horizon) * 100:.0f}%"
            for horizon, settings in HORIZON_SETTINGS.items()
        )
        margins_text = ", ".join(
            f"{settings.label} {settings.min_margin * 100:.1f}%"
            for settings in HORIZON_SETTINGS.values()
        )
        industry_label = "General market" if self.profile.name == DEFAULT_INDUSTRY else self.profile.name

        prompt = f"""Forecast the share price of {record.symbol} at four horizons.

CURRENT PRICE: ${record.current_price:,.2f}
INDUSTRY CONTEXT: {industry_label} companies show {self.profile.growth_context}.
MARKET CAP: {market_cap_tier(fundamentals.market_cap)}

## FUNDAMENTALS
- Revenue Growth: {_fmt_pct(fundamentals.revenue_growth)}
- Profit Margin: {_fmt_pct(fundamentals.profit_margin)}
- P/E Ratio: {_fmt_number(fundamentals.pe_ratio)}

## TECHNICALS
- 24h Change: {_fmt_pct(technicals.change_percent, scale=1.0)}
- Day Range: {_fmt_money(technicals.day_low)} - {_fmt_money(technicals.day_high)}
- 52-Week Range: {_fmt_money(technicals.year_low)} - {_fmt_money(technicals.year_high)}
- 50-Day Average: {_fmt_money(technicals.price_avg_50)}
- 200-Day Average: {_fmt_money(technicals.price_avg_200)}
- Volume: {_fmt_number(technicals.volume, 0)} (average {_fmt_number(technicals.avg_volume, 0)})

## RECENT NEWS ({record.news.article_count} articles, tone: {record.news.sentiment})
{self._news_section()}
{self._history_section()}
## CONSTRAINTS
- Stay within these moves from the current price: {bounds_text}.
- Each horizon must differ from the current price by at least: {margins_text}.

Respond in JSON format:
{{
  "predictedPrice": {{
    "oneMonth": <number>,
    "threeMonths": <number>,
    "sixMonths": <number>,
    "oneYear": <number>
  }},
  "sentimentAnalysis": "<{'one sentence' if self.quick_mode else '2-3 sentences'} on the outlook>",
  "confidenceLevel": <number from 0 to 100>,
  "keyDrivers": ["<3 to 5 drivers>"],
  "risks": ["<3 to 5 risks>"]
}}"""
        return prompt

    def _news_section(self) -> str:
        headlines = self.record.news.headlines
        if not headlines:
            return "- No recent headlines"
        lines = []
        for i, headline in enumerate(headlines, 1):
            date = f"[{headline.published_at}] " if headline.published_at else ""
            line = f"{i}. {date}{headline.title}"
            if headline.summary and not self.quick_mode:
                line += f": {headline.summary}"
            lines.append(line)
        return "\n".join(lines)

    def _history_section(self) -> str:
        history = self.record.history
        if not history or self.quick_mode:
            return ""
        trends = HistoricalConsistencyBlender.historical_trends(history)
        consistency = HistoricalConsistencyBlender.consistency_label(history)
        moves = ", ".join(
            f"{settings.label} {trends[horizon] * 100:+.1f}%"
            for horizon, settings in HORIZON_SETTINGS.items()
        )
        return f"""
## FORECAST HISTORY
- Prior forecasts: {len(history)} (consistency: {consistency})
- Recency-weighted average moves: {moves}
"""
