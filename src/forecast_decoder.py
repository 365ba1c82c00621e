"""Strict decoding of generative model output into a RawForecast."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from .models import RawForecast

logger = logging.getLogger(__name__)

SUCCESS = "success"
PARSE_ERROR = "parse_error"
SCHEMA_ERROR = "schema_error"

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


class ForecastDecodeError(Exception):
    """Raised when model output cannot be turned into a RawForecast."""

    def __init__(self, status: str, message: str):
        super().__init__(message)
        self.status = status


@dataclass
class DecodeResult:
    """Tagged outcome of decoding model text."""

    status: str
    forecast: Optional[RawForecast] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first brace-balanced {...} span, ignoring braces in strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def extract_json(text: str) -> Any:
    """
    Pull a JSON value out of free-form model text.

    Tries the whole text, then fenced code blocks, then the first
    balanced brace object.

    Raises:
        ValueError: If no candidate parses
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError("empty response")

    candidates = [text.strip()]
    candidates.extend(match.group(1) for match in _FENCE_PATTERN.finditer(text))
    braced = _first_balanced_object(text)
    if braced:
        candidates.append(braced)

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
    raise ValueError("no JSON object found in response")


def decode_forecast(text: str) -> DecodeResult:
    """
    Decode model text into a RawForecast.

    Returns:
        DecodeResult tagged success, parse_error or schema_error
    """
    try:
        payload = extract_json(text)
    except ValueError as e:
        logger.warning(f"Forecast response could not be parsed: {e}")
        return DecodeResult(status=PARSE_ERROR, error=str(e))

    if not isinstance(payload, dict):
        logger.warning("Forecast response is not a JSON object")
        return DecodeResult(status=SCHEMA_ERROR, error="top-level value is not an object")

    try:
        forecast = RawForecast.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Forecast response failed schema validation: {e.error_count()} error(s)")
        return DecodeResult(status=SCHEMA_ERROR, error=str(e))

    return DecodeResult(status=SUCCESS, forecast=forecast)
