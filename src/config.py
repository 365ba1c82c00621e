"""Configuration settings for the price forecast engine."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration."""

    # API Keys
    ALPHA_VANTAGE_API_KEY = os.getenv("ALPHA_VANTAGE_API_KEY", "")
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    GROK_API_KEY = os.getenv("GROK_API_KEY", "")

    # LLM Configuration
    # Strip inline comments that Docker env_file doesn't handle
    LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai").split("#")[0].strip()
    LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini").split("#")[0].strip()
    LLM_QUICK_MODEL = os.getenv("LLM_QUICK_MODEL", "").split("#")[0].strip()
    LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.95"))
    LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1500"))
    LLM_QUICK_MAX_TOKENS = int(os.getenv("LLM_QUICK_MAX_TOKENS", "1000"))

    # Forecast Configuration
    FORECAST_TIMEOUT = int(os.getenv("FORECAST_TIMEOUT", "30"))  # seconds
    AGENT_MAX_RETRIES = int(os.getenv("AGENT_MAX_RETRIES", "2"))
    HISTORY_LOOKBACK = int(os.getenv("HISTORY_LOOKBACK", "10"))
    PERSIST_FORECASTS = os.getenv("PERSIST_FORECASTS", "true").lower() == "true"
    PERSIST_QUICK_MODE = os.getenv("PERSIST_QUICK_MODE", "false").lower() == "true"
    SIGNAL_ENHANCERS_ENABLED = os.getenv("SIGNAL_ENHANCERS_ENABLED", "true").lower() == "true"
    FORECAST_RANDOM_SEED = os.getenv("FORECAST_RANDOM_SEED", "").strip()
    # Generative confidence is trusted only inside this band
    LLM_CONFIDENCE_MIN = float(os.getenv("LLM_CONFIDENCE_MIN", "65"))
    LLM_CONFIDENCE_MAX = float(os.getenv("LLM_CONFIDENCE_MAX", "90"))

    # development skips the generative call entirely
    ENVIRONMENT = os.getenv("ENVIRONMENT", "production").split("#")[0].strip().lower()

    # Database Configuration
    DATABASE_PATH = os.getenv("DATABASE_PATH", "price_forecasts.db")

    # API Endpoints
    ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"

    # Data Sources Configuration
    MAX_NEWS_ARTICLES = int(os.getenv("MAX_NEWS_ARTICLES", "20"))

    # Logging Configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def validate_config(cls) -> bool:
        """
        Validate configuration.

        A missing LLM key is not fatal: the engine still answers with
        history-blended or fallback forecasts.

        Returns:
            True if configuration is valid, False otherwise
        """
        valid_providers = ("anthropic", "openai", "xai", "none")
        if cls.LLM_PROVIDER not in valid_providers:
            print(f"ERROR: Invalid LLM_PROVIDER '{cls.LLM_PROVIDER}'. Must be one of: {', '.join(valid_providers)}")
            print("Hint: Docker env_file does not strip inline comments. Remove comments from .env values.")
            return False

        if cls.LLM_CONFIDENCE_MIN > cls.LLM_CONFIDENCE_MAX:
            print("ERROR: LLM_CONFIDENCE_MIN must not exceed LLM_CONFIDENCE_MAX")
            return False

        optional_keys = []
        if not cls.get_llm_config().get("api_key") and cls.LLM_PROVIDER != "none":
            optional_keys.append(f"{cls.LLM_PROVIDER.upper()} API key")
        if not cls.ALPHA_VANTAGE_API_KEY:
            optional_keys.append("ALPHA_VANTAGE_API_KEY")

        if optional_keys:
            print(f"WARNING: Missing optional configuration: {', '.join(optional_keys)}")
            print("Forecasts fall back to history blending or deterministic defaults without an LLM key.")

        return True

    @classmethod
    def get_llm_config(cls) -> dict:
        """
        Get LLM configuration as a dictionary.

        Returns:
            Dict with LLM settings
        """
        config = {
            "provider": cls.LLM_PROVIDER,
            "model": cls.LLM_MODEL,
            "quick_model": cls.LLM_QUICK_MODEL or cls.LLM_MODEL,
            "temperature": cls.LLM_TEMPERATURE,
            "max_tokens": cls.LLM_MAX_TOKENS,
            "quick_max_tokens": cls.LLM_QUICK_MAX_TOKENS,
        }

        if cls.LLM_PROVIDER == "anthropic":
            config["api_key"] = cls.ANTHROPIC_API_KEY
        elif cls.LLM_PROVIDER == "xai":
            config["api_key"] = cls.GROK_API_KEY
            config["base_url"] = "https://api.x.ai/v1"
        elif cls.LLM_PROVIDER == "none":
            config["api_key"] = ""
        else:
            config["api_key"] = cls.OPENAI_API_KEY

        return config
