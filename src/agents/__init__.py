"""Forecast Agents"""

from .base_agent import BaseAgent
from .forecast_agent import ForecastAgent, ForecastOutcome

__all__ = ["BaseAgent", "ForecastAgent", "ForecastOutcome"]
