"""SQLite storage for issued forecasts."""

import sqlite3
import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Any

from pydantic import ValidationError

from .horizons import HORIZONS
from .models import ForecastHistoryEntry, HorizonPrices

logger = logging.getLogger(__name__)

_PRICE_COLUMNS = {
    "one_month": "one_month_price",
    "three_months": "three_months_price",
    "six_months": "six_months_price",
    "one_year": "one_year_price",
}


class ForecastHistoryStore:
    """Persists forecasts and serves them back as history, newest first."""

    def __init__(self, db_path: str = "price_forecasts.db"):
        """
        Initialize history store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize_database(self):
        """Create database schema if it doesn't exist."""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS forecast_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    current_price REAL NOT NULL CHECK(current_price > 0),
                    one_month_price REAL NOT NULL CHECK(one_month_price > 0),
                    three_months_price REAL NOT NULL CHECK(three_months_price > 0),
                    six_months_price REAL NOT NULL CHECK(six_months_price > 0),
                    one_year_price REAL NOT NULL CHECK(one_year_price > 0),
                    sentiment TEXT,
                    confidence_level REAL,
                    key_drivers TEXT,
                    risks TEXT,
                    forecast_source TEXT,
                    quick_mode BOOLEAN DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_forecast_history_symbol_time
                ON forecast_history(symbol, created_at DESC)
            """)

    def _deserialize_json_list(self, value: Any) -> List[str]:
        """Best-effort decoding of a JSON list column."""
        if not value:
            return []
        try:
            decoded = json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return []
        return [item for item in decoded if isinstance(item, str)] if isinstance(decoded, list) else []

    def _row_to_entry(self, row: Dict[str, Any]) -> Optional[ForecastHistoryEntry]:
        try:
            return ForecastHistoryEntry(
                symbol=row["symbol"],
                current_price=row["current_price"],
                predicted_price=HorizonPrices(**{
                    horizon: row[column] for horizon, column in _PRICE_COLUMNS.items()
                }),
                sentiment=row.get("sentiment") or "neutral",
                confidence=row.get("confidence_level") if row.get("confidence_level") is not None else 75.0,
                key_drivers=self._deserialize_json_list(row.get("key_drivers")),
                risks=self._deserialize_json_list(row.get("risks")),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Skipping unreadable history row {row.get('id')}: {e}")
            return None

    def save_forecast(
        self,
        entry: ForecastHistoryEntry,
        forecast_source: str = "generative",
        quick_mode: bool = False,
    ) -> int:
        """
        Insert a forecast into history.

        Args:
            entry: Forecast to store
            forecast_source: generative, history_blend or fallback
            quick_mode: Whether the forecast came from a quick-mode request

        Returns:
            ID of inserted row
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO forecast_history (
                    symbol, created_at, current_price,
                    one_month_price, three_months_price, six_months_price, one_year_price,
                    sentiment, confidence_level, key_drivers, risks,
                    forecast_source, quick_mode
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                entry.symbol.upper(),
                entry.created_at.isoformat(),
                entry.current_price,
                *(entry.predicted_price.get(horizon) for horizon in HORIZONS),
                entry.sentiment,
                entry.confidence,
                json.dumps(entry.key_drivers),
                json.dumps(entry.risks),
                forecast_source,
                quick_mode,
            ))
            return cursor.lastrowid

    def get_forecast_history(
        self,
        symbol: str,
        limit: int = 10,
        include_quick_mode: bool = False,
    ) -> List[ForecastHistoryEntry]:
        """
        Get prior forecasts for a symbol, newest first.

        Args:
            symbol: Stock ticker symbol
            limit: Maximum number of entries to return
            include_quick_mode: Also return quick-mode forecasts

        Returns:
            List of history entries
        """
        query = "SELECT * FROM forecast_history WHERE symbol = ?"
        params: list = [symbol.upper()]
        if not include_quick_mode:
            query += " AND quick_mode = 0"
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()

        entries = [self._row_to_entry(dict(row)) for row in rows]
        return [entry for entry in entries if entry is not None]

    def delete_history(self, symbol: str) -> int:
        """
        Delete every stored forecast for a symbol.

        Returns:
            Number of rows removed
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM forecast_history WHERE symbol = ?", (symbol.upper(),))
            return cursor.rowcount
