"""Quote lookup against Yahoo's chart endpoint.

The response is validated with pydantic before any field is read; a payload
that does not match the schema is reported as a ``data_shape`` fetch error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from .config import Settings
from .errors import REASON_DATA_SHAPE, FetchError, QuoteNotFound
from .fetcher import FetchRequest, fetch
from .logging_utils import get_logger

log = get_logger("quotes")


class ChartMeta(BaseModel):
    regularMarketPrice: Optional[float] = None
    currency: Optional[str] = None
    longName: Optional[str] = None
    shortName: Optional[str] = None


class ChartResult(BaseModel):
    meta: ChartMeta = Field(default_factory=ChartMeta)


class ChartBody(BaseModel):
    result: Optional[List[ChartResult]] = None


class ChartResponse(BaseModel):
    chart: ChartBody = Field(default_factory=ChartBody)


@dataclass(frozen=True)
class QuoteSnapshot:
    symbol: str
    price: float = 0.0
    currency: str = ""
    display_name: str = ""

    @property
    def price_display(self) -> str:
        return f"{self.price:.2f}"


def normalize_symbol(symbol: str) -> str:
    """Uppercase and swap ``.`` class separators for Yahoo's ``-`` (BRK.B -> BRK-B)."""
    return (symbol or "").strip().replace(".", "-").upper()


def parse_quote(symbol: str, payload: object) -> QuoteSnapshot:
    """Build a :class:`QuoteSnapshot` from a decoded chart payload."""
    try:
        parsed = ChartResponse.model_validate(payload)
    except ValidationError as e:
        raise FetchError(
            REASON_DATA_SHAPE,
            f"Unexpected chart payload for {symbol}: {e.error_count()} errors",
        )

    results = parsed.chart.result
    if not results:
        raise QuoteNotFound(symbol)

    meta = results[0].meta
    price = meta.regularMarketPrice if meta.regularMarketPrice is not None else 0.0
    return QuoteSnapshot(
        symbol=symbol,
        price=round(float(price), 2),
        currency=meta.currency or "",
        display_name=meta.longName or meta.shortName or "",
    )


class QuoteClient:
    """Resolves ticker symbols to current price and display metadata."""

    def __init__(
        self,
        settings: Settings,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.settings = settings
        self.session = session

    def build_request(self, symbol: str) -> FetchRequest:
        return FetchRequest(
            url=self.settings.quote_url_template.format(symbol=symbol),
            method="GET",
            headers={"User-Agent": self.settings.http_user_agent},
            timeout_ms=self.settings.fetch_timeout_ms,
            max_retries=self.settings.fetch_max_retries,
            backoff_ms=self.settings.fetch_backoff_ms,
        )

    async def lookup(self, symbol: str) -> QuoteSnapshot:
        """
        Look up the current quote for ``symbol``.

        Raises
        ------
        QuoteNotFound
            The provider has no result set for the symbol
        FetchError
            The request failed or the payload did not match the schema
        """
        clean = normalize_symbol(symbol)
        if not clean:
            raise QuoteNotFound(symbol)

        try:
            response = await fetch(self.build_request(clean), session=self.session)
        except FetchError as e:
            # Yahoo answers unknown symbols with 404 and a null result set.
            if e.status == 404:
                raise QuoteNotFound(clean) from e
            raise
        quote = parse_quote(clean, response.body)
        log.info(
            "quote_lookup symbol=%s price=%s currency=%s attempts=%d",
            quote.symbol,
            quote.price_display,
            quote.currency,
            response.attempts,
        )
        return quote
