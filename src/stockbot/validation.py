"""Input validation for ticker symbols and numeric command options.

Slash command options arrive as free-text strings; everything here turns them
into clean values or a :class:`ParameterError` naming the offending option.
"""

from __future__ import annotations

import math
import re
from typing import Optional

from .logging_utils import get_logger

log = get_logger("validation")


# Letters, digits, dots, hyphens, carets and equals (BRK.B, BTC-USD, ^GSPC, EURUSD=X)
TICKER_PATTERN = re.compile(r"^[A-Z0-9.\-=^]+$", re.IGNORECASE)

MAX_TICKER_LENGTH = 20


class ParameterError(ValueError):
    """A command option could not be used as given."""

    def __init__(self, parameter: str, reason: str) -> None:
        super().__init__(f"{parameter}: {reason}")
        self.parameter = parameter
        self.reason = reason


def validate_ticker(ticker: Optional[str]) -> Optional[str]:
    """Validate and sanitize a ticker symbol.

    Parameters
    ----------
    ticker : str
        The ticker symbol to validate

    Returns
    -------
    str or None
        Sanitized ticker symbol in uppercase, or None if invalid

    Examples
    --------
    >>> validate_ticker("aapl")
    'AAPL'
    >>> validate_ticker(" brk.b ")
    'BRK.B'
    >>> validate_ticker("'; DROP TABLE--") is None
    True
    """
    if ticker is None:
        log.warning("ticker_validation_failed reason=none_input")
        return None

    ticker_str = str(ticker).strip()
    if not ticker_str:
        log.warning("ticker_validation_failed reason=empty_input")
        return None

    if len(ticker_str) > MAX_TICKER_LENGTH:
        log.warning(
            "ticker_validation_failed reason=too_long length=%d ticker=%s",
            len(ticker_str),
            ticker_str[:20],
        )
        return None

    if not TICKER_PATTERN.match(ticker_str) or ".." in ticker_str:
        log.warning(
            "ticker_validation_failed reason=invalid_format ticker=%s", ticker_str[:20]
        )
        return None

    return ticker_str.upper()


def parse_number(parameter: str, raw: Optional[str]) -> float:
    """Parse a numeric option such as ``"12.5"``, ``"7.61%"`` or ``"1,250"``.

    Raises
    ------
    ParameterError
        If the value is missing, not a number, or not finite
    """
    if raw is None or str(raw).strip() == "":
        raise ParameterError(parameter, "a number is required")

    text = str(raw).strip().replace(",", "").replace("$", "")
    if text.endswith("%"):
        text = text[:-1].strip()
    try:
        value = float(text)
    except ValueError:
        raise ParameterError(parameter, f"`{raw}` is not a number")
    if not math.isfinite(value):
        raise ParameterError(parameter, "must be a finite number")
    return value


def parse_positive(parameter: str, raw: Optional[str]) -> float:
    value = parse_number(parameter, raw)
    if value <= 0:
        raise ParameterError(parameter, "must be greater than zero")
    return value
