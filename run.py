#!/usr/bin/env python3
"""Command-line entry point: forecast one symbol and print the JSON result."""

import argparse
import asyncio
import json
import sys
import logging

from src.config import Config
from src.engine import ForecastEngine, InvalidForecastRequest
from src.industry import list_industries
from src.models import ForecastOptions

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL),
    format=Config.LOG_FORMAT
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multi-horizon price forecast for one symbol")
    parser.add_argument("symbol", help="Ticker symbol, e.g. AAPL")
    parser.add_argument("--price", type=float, default=None, help="Current price (fetched when omitted)")
    parser.add_argument("--quick", action="store_true", help="Quick mode: smaller prompt and token budget")
    parser.add_argument(
        "--industry",
        default=None,
        help=f"Industry override ({', '.join(list_industries())})",
    )
    parser.add_argument("--db-path", default=None, help="SQLite history path (defaults to DATABASE_PATH)")
    parser.add_argument("--reset-history", action="store_true", help="Delete stored history for the symbol first")
    return parser


async def run_forecast(args: argparse.Namespace) -> dict:
    if args.db_path:
        Config.DATABASE_PATH = args.db_path
    engine = ForecastEngine()

    if args.reset_history:
        removed = engine.history_store.delete_history(args.symbol)
        logger.info(f"Removed {removed} stored forecasts for {args.symbol.upper()}")

    price = args.price
    if price is None:
        quote = await engine.market_data.get_quote(args.symbol.upper())
        price = quote.get("price")
        if price is None:
            raise InvalidForecastRequest(f"No current price available for {args.symbol}; pass --price")

    prediction = await engine.forecast(
        args.symbol,
        price,
        ForecastOptions(quick_mode=args.quick, industry=args.industry),
    )
    return prediction.model_dump(mode="json", by_alias=True, exclude_none=True)


def main():
    """Run a single forecast."""
    if not Config.validate_config():
        logger.error("Configuration validation failed. Please check your .env file.")
        sys.exit(1)

    args = build_parser().parse_args()
    try:
        result = asyncio.run(run_forecast(args))
    except InvalidForecastRequest as e:
        logger.error(str(e))
        sys.exit(2)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
