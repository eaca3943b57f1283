"""
Spreadsheet-backed stock notes
==============================

Clients for the two Apps Script endpoints that front the notes spreadsheet:

- the stock endpoint (POST ``ticker``) returning support levels, moving
  averages and free-form notes for one ticker
- the portfolio endpoint (POST ``password``) returning the personal
  portfolio table
"""

from __future__ import annotations

from typing import Any, List, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import Settings
from .errors import REASON_DATA_SHAPE, REASON_TRANSPORT, FetchError
from .fetcher import FetchRequest, fetch
from .logging_utils import get_logger

log = get_logger("sheets")


def _as_text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip() != ""]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class StockSheetRecord(BaseModel):
    """One row of the notes spreadsheet, as returned by the stock endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ticker: str
    long_name: str = Field(default="", alias="longName")
    thumbnail_url: Optional[str] = Field(default=None, alias="thumbnailUrl")
    regular_market_price: str = Field(default="", alias="regularMarketPrice")
    currency: str = ""
    suggestion: str = ""
    support_levels: List[str] = Field(default_factory=list, alias="supportLevels")
    sma_day: List[str] = Field(default_factory=list, alias="smaDay")
    sma_week: List[str] = Field(default_factory=list, alias="smaWeek")
    notes: List[str] = Field(default_factory=list, alias="note")

    @field_validator("ticker", mode="before")
    @classmethod
    def _ticker(cls, v: Any) -> str:
        text = _as_text(v).upper()
        if not text:
            raise ValueError("ticker missing")
        return text

    @field_validator(
        "long_name", "regular_market_price", "currency", "suggestion", mode="before"
    )
    @classmethod
    def _text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("support_levels", "sma_day", "sma_week", "notes", mode="before")
    @classmethod
    def _lists(cls, v: Any) -> List[str]:
        return _as_text_list(v)


class PortfolioRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ticker: str = ""
    regular_market_price: Optional[float] = Field(
        default=None, alias="regularMarketPrice"
    )
    support1: str = ""
    support2: str = ""
    support3: str = ""
    support4: str = ""
    note: str = ""

    @field_validator("regular_market_price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> Optional[float]:
        if v is None or str(v).strip() == "":
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @field_validator(
        "ticker", "support1", "support2", "support3", "support4", "note",
        mode="before",
    )
    @classmethod
    def _text(cls, v: Any) -> str:
        return _as_text(v)


class PortfolioTable(BaseModel):
    data: List[PortfolioRow]


class SheetClient:
    """Talks to the spreadsheet endpoints configured in :class:`Settings`."""

    def __init__(
        self,
        settings: Settings,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.settings = settings
        self.session = session

    def _post(self, url: str, form: dict) -> FetchRequest:
        return FetchRequest(
            url=url,
            method="POST",
            body=form,
            timeout_ms=self.settings.fetch_timeout_ms,
            max_retries=self.settings.fetch_max_retries,
            backoff_ms=self.settings.fetch_backoff_ms,
        )

    async def lookup(self, ticker: str) -> StockSheetRecord:
        """
        Fetch the notes row for ``ticker``.

        Raises
        ------
        FetchError
            Transport failure, or a payload without a usable ticker row
        """
        if not self.settings.sheet_url:
            raise FetchError(REASON_TRANSPORT, "GOOGLE_SCRIPT_URL not set")

        response = await fetch(
            self._post(self.settings.sheet_url, {"ticker": ticker}),
            session=self.session,
        )
        try:
            record = StockSheetRecord.model_validate(response.body)
        except ValidationError as e:
            raise FetchError(
                REASON_DATA_SHAPE,
                f"Unexpected sheet payload for {ticker}: {e.error_count()} errors",
                attempts=response.attempts,
            )
        log.info(
            "sheet_lookup ticker=%s supports=%d attempts=%d",
            record.ticker,
            len(record.support_levels),
            response.attempts,
        )
        return record

    async def portfolio(self, password: str) -> List[PortfolioRow]:
        """Fetch the personal portfolio table. The key is forwarded to the endpoint."""
        if not self.settings.portfolio_url:
            raise FetchError(
                REASON_TRANSPORT, "GOOGLE_SCRIPT_URL_PORTFOLIO not set"
            )

        response = await fetch(
            self._post(self.settings.portfolio_url, {"password": password}),
            session=self.session,
        )
        try:
            table = PortfolioTable.model_validate(response.body)
        except ValidationError as e:
            raise FetchError(
                REASON_DATA_SHAPE,
                f"Unexpected portfolio payload: {e.error_count()} errors",
                attempts=response.attempts,
            )
        log.info("portfolio_lookup rows=%d", len(table.data))
        return table.data
