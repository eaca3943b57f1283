"""Exception types raised by the data, valuation and chart layers.

Command handlers catch these and turn them into a user-facing message; the
details only ever reach the log.
"""

from __future__ import annotations

from typing import Optional

# FetchError reasons
REASON_TRANSPORT = "transport"
REASON_TIMEOUT = "timeout"
REASON_HTTP_STATUS = "http_status"
REASON_DATA_SHAPE = "data_shape"

FETCH_REASONS = (
    REASON_TRANSPORT,
    REASON_TIMEOUT,
    REASON_HTTP_STATUS,
    REASON_DATA_SHAPE,
)


class StockBotError(Exception):
    """Base class for all errors raised by stockbot components."""


class FetchError(StockBotError):
    """Terminal failure of an outbound HTTP request.

    Parameters
    ----------
    reason : str
        One of ``transport``, ``timeout``, ``http_status``, ``data_shape``
    message : str
        Human-readable description (operators only)
    attempts : int
        Number of attempts made before giving up
    status : Optional[int]
        HTTP status code, when a response was received
    """

    def __init__(
        self,
        reason: str,
        message: str,
        attempts: int = 1,
        status: Optional[int] = None,
    ) -> None:
        if reason not in FETCH_REASONS:
            raise ValueError(f"unknown fetch error reason: {reason}")
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.attempts = attempts
        self.status = status

    def __repr__(self) -> str:
        return (
            f"FetchError(reason={self.reason!r}, attempts={self.attempts}, "
            f"status={self.status}, message={self.message!r})"
        )


class QuoteNotFound(StockBotError):
    """The market-data provider returned no result set for a symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No data found for symbol: {symbol}")
        self.symbol = symbol


class ChartError(StockBotError):
    """Base class for chart rendering failures."""


class RenderTimeout(ChartError):
    """The chart widget did not finish drawing within the wait timeout."""


class RenderFailure(ChartError):
    """Browser launch, navigation or capture failed."""


class InvalidInput(StockBotError):
    """A computation was asked to run on inputs it cannot handle."""
