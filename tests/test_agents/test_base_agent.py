"""Tests for BaseAgent abstract base class."""

import pytest

from src.agents.base_agent import BaseAgent


# Concrete subclass for testing (BaseAgent is abstract)
class ConcreteAgent(BaseAgent):
    """Minimal concrete agent for testing BaseAgent methods."""

    async def fetch_data(self):
        return {"ticker": self.ticker, "data": "test_data"}

    async def analyze(self, raw_data):
        return {"status": "analyzed", "ticker": raw_data["ticker"]}


class FailingFetchAgent(BaseAgent):
    """Agent whose fetch_data always raises."""

    async def fetch_data(self):
        raise ValueError("Data source unavailable")

    async def analyze(self, raw_data):
        return {}


class FailingAnalyzeAgent(BaseAgent):
    """Agent whose analyze always raises."""

    async def fetch_data(self):
        return {"ticker": self.ticker}

    async def analyze(self, raw_data):
        raise RuntimeError("Analysis engine error")


class TestBaseAgentInit:
    """Tests for BaseAgent construction."""

    def test_ticker_is_uppercased(self, test_config):
        agent = ConcreteAgent("aapl", test_config)
        assert agent.ticker == "AAPL"

    def test_cannot_instantiate_abstract(self, test_config):
        with pytest.raises(TypeError):
            BaseAgent("AAPL", test_config)


class TestBaseAgentGetAgentType:
    """Tests for get_agent_type() snake_case conversion."""

    def test_simple_name(self, test_config):
        """Single-word class name (without Agent suffix)."""
        agent = ConcreteAgent("AAPL", test_config)
        assert agent.get_agent_type() == "concrete"

    def test_multi_word_name(self, test_config):
        """CamelCase name gets converted to snake_case."""

        class MyCustomAgent(BaseAgent):
            async def fetch_data(self):
                return {}

            async def analyze(self, raw_data):
                return {}

        agent = MyCustomAgent("AAPL", test_config)
        assert agent.get_agent_type() == "my_custom"


class TestBaseAgentExecute:
    """Tests for execute() workflow."""

    async def test_execute_success_flow(self, test_config):
        """execute() calls fetch_data -> analyze -> returns success dict."""
        agent = ConcreteAgent("AAPL", test_config)
        result = await agent.execute()

        assert result["success"] is True
        assert result["agent_type"] == "concrete"
        assert result["data"]["status"] == "analyzed"
        assert result["data"]["ticker"] == "AAPL"
        assert result["error"] is None
        assert result["duration_seconds"] >= 0
        assert "timestamp" in result
        assert agent.get_result() == result["data"]
        assert agent.get_error() is None

    async def test_execute_handles_fetch_error(self, test_config):
        """execute() catches fetch_data exceptions and returns success=False."""
        agent = FailingFetchAgent("AAPL", test_config)
        result = await agent.execute()

        assert result["success"] is False
        assert "Data source unavailable" in result["error"]
        assert result["data"] is None
        assert agent.get_result() is None
        assert agent.get_error() == "Data source unavailable"

    async def test_execute_handles_analyze_error(self, test_config):
        """execute() catches analyze() exceptions and returns success=False."""
        agent = FailingAnalyzeAgent("AAPL", test_config)
        result = await agent.execute()

        assert result["success"] is False
        assert "Analysis engine error" in result["error"]

    async def test_execute_records_duration(self, test_config):
        """execute() records start/end time and reports duration."""
        agent = ConcreteAgent("AAPL", test_config)
        assert agent.get_duration() == 0.0
        result = await agent.execute()

        assert result["duration_seconds"] >= 0
        assert agent.start_time is not None
        assert agent.end_time is not None
        assert agent.get_duration() >= 0
