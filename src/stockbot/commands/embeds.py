"""
Discord Embed Templates
========================

Rich embed builders for command responses.

Color Codes:
- Green (quote): 0x57F287
- Cyan (chart): 0x23F9FC
- Pink (DCF): 0xFC21DF
- Yellow (Graham): 0xFFF81F
- Orange (portfolio): 0xFC9003
- Red (error): 0xE74C3C
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..charts import INTERVAL_NAMES, ChartRequest
from ..quotes import QuoteSnapshot
from ..sheets import PortfolioRow, StockSheetRecord
from ..valuation import ValuationResult
from .command_registry import format_command_help

# Discord response types
RESPONSE_TYPE_PONG = 1
RESPONSE_TYPE_CHANNEL_MESSAGE = 4
RESPONSE_TYPE_DEFERRED_CHANNEL_MESSAGE = 5
RESPONSE_TYPE_MODAL = 9

# Embed color codes
COLOR_QUOTE = 0x57F287
COLOR_CHART = 0x23F9FC
COLOR_DCF = 0xFC21DF
COLOR_GRAHAM = 0xFFF81F
COLOR_PORTFOLIO = 0xFC9003
COLOR_ERROR = 0xE74C3C
COLOR_INFO = 0x95A5A6

SUPPORT_MARKERS = ["🟩", "🟨", "🟧", "🟥"]
SMA_DAY_PERIODS = [50, 100, 200]
SMA_WEEK_PERIODS = [50, 100]

NO_DATA = "```No data```"

# Discord rejects the whole message when any of these is exceeded.
EMBED_TITLE_LIMIT = 256
EMBED_FIELD_VALUE_LIMIT = 1024
EMBED_DESCRIPTION_LIMIT = 4096
ELLIPSIS = "…"

# Chart image bytes travel with the message under this key and are sent as
# multipart attachments by the follow-up sender.
FILES_KEY = "files"

Attachment = Tuple[str, bytes]


def _message(
    embeds: List[Dict[str, Any]], files: Optional[List[Attachment]] = None
) -> Dict[str, Any]:
    data: Dict[str, Any] = {"embeds": embeds}
    if files:
        data[FILES_KEY] = files
    return {"type": RESPONSE_TYPE_CHANNEL_MESSAGE, "data": data}


def _code_block(lines: Sequence[str]) -> str:
    return "```\n" + "\n".join(lines) + "\n```"


def truncate(text: str, limit: int) -> str:
    """
    Shorten ``text`` to at most ``limit`` characters.

    A value rendered as a code block keeps its closing fence so the rest of
    the embed still renders.

    Examples
    --------
    >>> truncate("abcdef", 4)
    'abc…'
    """
    if len(text) <= limit:
        return text
    if text.startswith("```"):
        tail = f"\n{ELLIPSIS}\n```"
        return text[: limit - len(tail)].rstrip("`") + tail
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def _input_block(inputs: Sequence[Tuple[str, str]]) -> str:
    width = max((len(label) for label, _ in inputs), default=0)
    return _code_block([f"▪ {label.ljust(width)} : {value}" for label, value in inputs])


def _fmt_pct(value: float) -> str:
    return f"{value:.2f} %" if value == value else "N/A"  # nan check


def format_support_levels(levels: Sequence[str]) -> str:
    if not levels:
        return NO_DATA
    return _code_block(
        [
            f"{SUPPORT_MARKERS[i % len(SUPPORT_MARKERS)]} Level {i + 1}: {v}"
            for i, v in enumerate(levels)
        ]
    )


def format_sma(values: Sequence[str], periods: Sequence[int], suffix: str) -> str:
    rows = [
        f"{f'{period}{suffix}':<6}: {value}"
        for period, value in zip(periods, values)
    ]
    return _code_block(rows) if rows else NO_DATA


def create_stock_embed(
    record: StockSheetRecord,
    chart: Optional[Tuple[ChartRequest, bytes]] = None,
) -> Dict[str, Any]:
    """
    Create the /stock response from a notes-sheet row.

    Parameters
    ----------
    record : StockSheetRecord
        Parsed sheet row
    chart : Optional[Tuple[ChartRequest, bytes]]
        Chart screenshot to attach, if one was requested and rendered

    Returns
    -------
    Dict[str, Any]
        Discord interaction response
    """
    name = f"{record.ticker} | {record.long_name}"
    author: Dict[str, Any] = {"name": truncate(name, EMBED_TITLE_LIMIT)}
    if record.thumbnail_url:
        author["icon_url"] = record.thumbnail_url

    title = f">>> **{record.regular_market_price} {record.currency}**".rstrip()
    fields = [
        {
            "name": "▶ *Support Levels*",
            "value": format_support_levels(record.support_levels),
            "inline": False,
        },
        {
            "name": "▶ *SMA (TFD)*",
            "value": format_sma(record.sma_day, SMA_DAY_PERIODS, "D"),
            "inline": False,
        },
        {
            "name": "▶ *SMA (TFW)*",
            "value": format_sma(record.sma_week, SMA_WEEK_PERIODS, "W"),
            "inline": False,
        },
        {
            "name": "▶ *Notes*",
            "value": _code_block([record.notes[0]]) if record.notes else NO_DATA,
            "inline": False,
        },
    ]
    if record.suggestion:
        fields.insert(
            0, {"name": "▶ *Suggestion*", "value": record.suggestion, "inline": False}
        )
    for field in fields:
        field["value"] = truncate(field["value"], EMBED_FIELD_VALUE_LIMIT)

    embed: Dict[str, Any] = {
        "author": author,
        "title": title,
        "color": COLOR_QUOTE,
        "fields": fields,
    }

    files: List[Attachment] = []
    if chart is not None:
        request, data = chart
        embed["image"] = {"url": f"attachment://{request.filename}"}
        files.append((request.filename, data))

    return _message([embed], files)


def stock_unavailable_embed(symbol: str) -> Dict[str, Any]:
    """Fallback /stock response when the sheet has nothing usable."""
    embed = {
        "title": "***Unable to Fetch Stock Data***",
        "description": (
            f"### > {symbol}\nThe requested stock information is currently unavailable."
        ),
        "color": COLOR_ERROR,
        "fields": [
            {
                "name": "▸ Possible Reasons",
                "value": (
                    "```・No stock in Google Sheet\n・Invalid symbol or ticker\n"
                    "・API rate limit reached\n・Request timeout```"
                ),
                "inline": False,
            }
        ],
    }
    return _message([embed])


def create_chart_embed(request: ChartRequest, data: bytes) -> Dict[str, Any]:
    embed = {
        "title": f"{request.ticker} Chart ({INTERVAL_NAMES[request.interval]})",
        "color": COLOR_CHART,
        "image": {"url": f"attachment://{request.filename}"},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return _message([embed], [(request.filename, data)])


def create_valuation_embed(
    title: str,
    quote: QuoteSnapshot,
    inputs: Sequence[Tuple[str, str]],
    result: ValuationResult,
    desired_return_pct: float,
) -> Dict[str, Any]:
    """
    Create the response for an earnings or FCF based projection.

    Parameters
    ----------
    title : str
        Embed title (names the valuation mode)
    quote : QuoteSnapshot
        Quote the projection was priced against
    inputs : Sequence[Tuple[str, str]]
        (label, formatted value) pairs echoed back to the user
    result : ValuationResult
        Engine output
    desired_return_pct : float
        Desired return as entered, for the entry-price label

    Returns
    -------
    Dict[str, Any]
        Discord interaction response
    """
    table = ["Year | Fair Value", "-----|-----------"] + [
        f"{str(year).ljust(4)} | $ {value:,.2f}"
        for year, value in enumerate(result.yearly_values, start=1)
    ]
    embed = {
        "author": {"name": f"{quote.symbol} | {quote.display_name}".rstrip(" |")},
        "title": title,
        "color": COLOR_DCF,
        "fields": [
            {
                "name": "▶ Return From Current Price",
                "value": f">>> **{_fmt_pct(result.return_from_current_price)}**",
                "inline": True,
            },
            {
                "name": f"▶ Entry Price For ***{desired_return_pct:g}%*** Return",
                "value": f">>> **$ {result.entry_price:,.2f}**",
                "inline": True,
            },
            {"name": "▶ Input Parameter", "value": _input_block(inputs), "inline": False},
            {"name": "▶ Projected Fair Value", "value": _code_block(table), "inline": False},
        ],
    }
    return _message([embed])


def create_graham_embed(
    quote: QuoteSnapshot,
    value: float,
    eps: float,
    growth_pct: float,
    bond_yield_pct: float,
) -> Dict[str, Any]:
    inputs = [
        ("Stock Price", f"{quote.price_display} {quote.currency}".strip()),
        ("EPS", f"{eps:g}"),
        ("EPS Growth Rate", f"{growth_pct:g}%"),
        ("Bond Yield", f"{bond_yield_pct:g}%"),
    ]
    embed = {
        "author": {"name": f"{quote.symbol} | {quote.display_name}".rstrip(" |")},
        "title": f">>> 🟨 **{value:,.2f}**",
        "color": COLOR_GRAHAM,
        "fields": [
            {"name": "▶ Input Parameter", "value": _input_block(inputs), "inline": False}
        ],
        "footer": {"text": "🌱 Benjamin Graham Intrinsic Value 🌱"},
    }
    return _message([embed])


def build_portfolio_table(rows: Sequence[PortfolioRow]) -> str:
    """Render portfolio rows as aligned blocks separated by rules."""
    fields = [
        ("Stock", lambda r: r.ticker),
        (
            "Price",
            lambda r: f"{r.regular_market_price:.2f}"
            if r.regular_market_price is not None
            else "",
        ),
        ("S1", lambda r: r.support1),
        ("S2", lambda r: r.support2),
        ("S3", lambda r: r.support3),
        ("S4", lambda r: r.support4),
        ("Note", lambda r: r.note),
    ]
    width = max(len(header) for header, _ in fields)
    separator = "\n=========================\n"

    blocks = []
    for row in rows:
        lines = []
        for header, getter in fields:
            value = getter(row) or "-"
            lines.append(f" ▸ {header.ljust(width)} : {value}")
        blocks.append("\n".join(lines))

    return f"```\n{separator}{separator.join(blocks)}{separator}\n```"


def create_portfolio_embed(rows: Sequence[PortfolioRow]) -> Dict[str, Any]:
    table = build_portfolio_table(rows) if rows else NO_DATA
    embed = {
        "title": "🤩 PERSONAL PORTFOLIO",
        "color": COLOR_PORTFOLIO,
        "description": truncate(table, EMBED_DESCRIPTION_LIMIT),
    }
    return _message([embed])


def create_help_embed() -> Dict[str, Any]:
    embed = {
        "title": "Stock Bot Commands",
        "description": format_command_help(),
        "color": COLOR_INFO,
    }
    data = {"embeds": [embed], "flags": 64}
    return {"type": RESPONSE_TYPE_CHANNEL_MESSAGE, "data": data}
