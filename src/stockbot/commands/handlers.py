"""
Discord Slash Command Handlers
===============================

Implements handlers for all user-facing slash commands.

Commands:
- /stock - Notes-sheet lookup, optionally with a chart
- /chart - Chart screenshot
- /dcf - Earnings-based five year projection
- /dcf-fcf - FCF-based five year projection
- /graham - Graham intrinsic value
- /portfolio - Personal portfolio table (shared-secret gated)
- /help - Show command help

Every handler returns a complete Discord interaction response and never
raises: core failures are logged and turned into the apology message.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..charts import ChartRenderer, ChartRequest
from ..config import Settings
from ..errors import ChartError, StockBotError
from ..logging_utils import get_logger
from ..quotes import QuoteClient
from ..sheets import SheetClient
from ..validation import ParameterError, parse_number, parse_positive, validate_ticker
from ..valuation import ValuationInput, dcf_earnings, dcf_fcf, graham_value
from .embeds import (
    create_chart_embed,
    create_graham_embed,
    create_help_embed,
    create_portfolio_embed,
    create_stock_embed,
    create_valuation_embed,
    stock_unavailable_embed,
)
from .errors import (
    apology_error,
    invalid_parameter_error,
    missing_parameter_error,
    permission_denied_error,
    ticker_invalid_error,
)

log = get_logger("command_handlers")


@dataclass
class Services:
    """The collaborators a handler may use, built from one :class:`Settings`."""

    settings: Settings
    quotes: QuoteClient
    sheets: SheetClient
    charts: ChartRenderer

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        return cls(
            settings=settings,
            quotes=QuoteClient(settings),
            sheets=SheetClient(settings),
            charts=ChartRenderer(settings),
        )


def _parameter_error(e: ParameterError) -> Dict[str, Any]:
    return invalid_parameter_error(e.parameter, e.reason)


def _parse_nonzero(parameter: str, raw: Optional[str]) -> float:
    value = parse_number(parameter, raw)
    if value == 0:
        raise ParameterError(parameter, "cannot be zero")
    return value


# Numeric options per command and the parser each must pass.
NUMERIC_OPTIONS = {
    "dcf": [
        ("eps", parse_number),
        ("eps-growth-rate", parse_number),
        ("pe", parse_positive),
        ("return", parse_number),
    ],
    "dcf-fcf": [
        ("fcf", parse_number),
        ("fcf-growth-rate", parse_number),
        ("fcf-yield", parse_positive),
        ("return", parse_number),
    ],
    "graham": [
        ("eps", parse_number),
        ("eps-growth", parse_number),
        ("bond-yield", _parse_nonzero),
    ],
}


def check_command_options(name: str, options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Validate a command's options without doing any I/O.

    Run before a command is deferred so that bad input is answered inline,
    where the ephemeral flag still applies.

    Parameters
    ----------
    name : str
        Command name (stock, chart, dcf, dcf-fcf or graham)
    options : Dict[str, Any]
        Flattened ``{option: value}`` mapping

    Returns
    -------
    Optional[Dict[str, Any]]
        Error response, or None if the options are usable
    """
    ticker = options.get("ticker")
    symbol = validate_ticker(ticker)
    if not symbol:
        return ticker_invalid_error(ticker or "")

    interval = options.get("interval")
    if interval or name == "chart":
        try:
            ChartRequest(symbol, interval or "D")
        except ValueError as e:
            return invalid_parameter_error("interval", str(e))

    try:
        for parameter, parse in NUMERIC_OPTIONS.get(name, ()):
            parse(parameter, options.get(parameter))
    except ParameterError as e:
        return _parameter_error(e)
    return None


async def handle_stock_command(
    services: Services,
    ticker: Optional[str],
    interval: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Handle /stock command.

    Parameters
    ----------
    services : Services
        Data clients
    ticker : str
        Stock ticker symbol
    interval : Optional[str]
        When given (D, W or M), a chart is rendered and attached

    Returns
    -------
    Dict[str, Any]
        Discord interaction response
    """
    symbol = validate_ticker(ticker)
    if not symbol:
        return ticker_invalid_error(ticker or "")

    chart_request: Optional[ChartRequest] = None
    if interval:
        try:
            chart_request = ChartRequest(symbol, interval)
        except ValueError as e:
            return invalid_parameter_error("interval", str(e))

    log.info("slash_stock ticker=%s interval=%s", symbol, interval)

    try:
        record = await services.sheets.lookup(symbol)
    except StockBotError as e:
        log.warning("stock_command_failed ticker=%s err=%r", symbol, e)
        return stock_unavailable_embed(symbol)

    chart = None
    if chart_request is not None:
        # The sheet may canonicalise the symbol; chart what it returned.
        chart_request = ChartRequest(record.ticker, chart_request.interval)
        try:
            image = await services.charts.render(chart_request)
            chart = (chart_request, image.data)
        except ChartError as e:
            # The notes are still worth sending without the picture.
            log.warning("stock_chart_failed ticker=%s err=%s", record.ticker, e)

    return create_stock_embed(record, chart)


async def handle_chart_command(
    services: Services,
    ticker: Optional[str],
    interval: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Handle /chart command.

    Returns
    -------
    Dict[str, Any]
        Discord interaction response
    """
    symbol = validate_ticker(ticker)
    if not symbol:
        return ticker_invalid_error(ticker or "")

    try:
        request = ChartRequest(symbol, interval or "D")
    except ValueError as e:
        return invalid_parameter_error("interval", str(e))

    log.info("slash_chart ticker=%s interval=%s", request.ticker, request.interval)

    try:
        image = await services.charts.render(request)
    except StockBotError as e:
        log.warning("chart_command_failed ticker=%s err=%s", symbol, e)
        return apology_error(symbol)

    return create_chart_embed(request, image.data)


async def handle_dcf_command(
    services: Services,
    ticker: Optional[str],
    eps: Optional[str],
    growth_rate: Optional[str],
    pe: Optional[str],
    desired_return: Optional[str],
) -> Dict[str, Any]:
    """
    Handle /dcf command (earnings based).

    Parameters
    ----------
    ticker : str
        Symbol whose current price anchors the return calculation
    eps : str
        Trailing EPS
    growth_rate : str
        EPS growth rate in percent
    pe : str
        Fair P/E multiple (must be positive)
    desired_return : str
        Desired annual return in percent

    Returns
    -------
    Dict[str, Any]
        Discord interaction response
    """
    symbol = validate_ticker(ticker)
    if not symbol:
        return ticker_invalid_error(ticker or "")

    try:
        eps_value = parse_number("eps", eps)
        growth_value = parse_number("eps-growth-rate", growth_rate)
        pe_value = parse_positive("pe", pe)
        return_value = parse_number("return", desired_return)
    except ParameterError as e:
        return _parameter_error(e)

    log.info(
        "slash_dcf ticker=%s eps=%s growth=%s pe=%s return=%s",
        symbol,
        eps_value,
        growth_value,
        pe_value,
        return_value,
    )

    try:
        quote = await services.quotes.lookup(symbol)
        if quote.price <= 0:
            raise StockBotError(f"no usable price for {quote.symbol}")
        result = dcf_earnings(
            ValuationInput(
                current_price=quote.price,
                per_share=eps_value,
                growth_rate_pct=growth_value,
                yield_or_multiple=pe_value,
                desired_return_pct=return_value,
            )
        )
    except StockBotError as e:
        log.warning("dcf_command_failed ticker=%s err=%r", symbol, e)
        return apology_error(symbol)

    inputs = [
        ("Stock Price", f"$ {quote.price_display}"),
        ("EPS", f"$ {eps_value:.2f}"),
        ("P/E Ratio", f"{pe_value:.2f}"),
        ("EPS Growth Rate", f"{growth_value:.2f} %"),
        ("Desired Return", f"{return_value:.2f} %"),
    ]
    return create_valuation_embed(
        "🌱 ***Earnings-Based Valuation*** 🌱", quote, inputs, result, return_value
    )


async def handle_dcf_fcf_command(
    services: Services,
    ticker: Optional[str],
    fcf: Optional[str],
    growth_rate: Optional[str],
    fcf_yield: Optional[str],
    desired_return: Optional[str],
) -> Dict[str, Any]:
    """Handle /dcf-fcf command (free-cash-flow based)."""
    symbol = validate_ticker(ticker)
    if not symbol:
        return ticker_invalid_error(ticker or "")

    try:
        fcf_value = parse_number("fcf", fcf)
        growth_value = parse_number("fcf-growth-rate", growth_rate)
        yield_value = parse_positive("fcf-yield", fcf_yield)
        return_value = parse_number("return", desired_return)
    except ParameterError as e:
        return _parameter_error(e)

    log.info(
        "slash_dcf_fcf ticker=%s fcf=%s growth=%s yield=%s return=%s",
        symbol,
        fcf_value,
        growth_value,
        yield_value,
        return_value,
    )

    try:
        quote = await services.quotes.lookup(symbol)
        if quote.price <= 0:
            raise StockBotError(f"no usable price for {quote.symbol}")
        result = dcf_fcf(
            ValuationInput(
                current_price=quote.price,
                per_share=fcf_value,
                growth_rate_pct=growth_value,
                yield_or_multiple=yield_value,
                desired_return_pct=return_value,
            )
        )
    except StockBotError as e:
        log.warning("dcf_fcf_command_failed ticker=%s err=%r", symbol, e)
        return apology_error(symbol)

    inputs = [
        ("Stock Price", f"$ {quote.price_display}"),
        ("FCF / Share", f"$ {fcf_value:.2f}"),
        ("FCF Yield", f"{yield_value:.2f} %"),
        ("FCF Growth Rate", f"{growth_value:.2f} %"),
        ("Desired Return", f"{return_value:.2f} %"),
    ]
    return create_valuation_embed(
        "💵 ***Free Cash Flow Valuation*** 💵", quote, inputs, result, return_value
    )


async def handle_graham_command(
    services: Services,
    ticker: Optional[str],
    eps: Optional[str],
    growth: Optional[str],
    bond_yield: Optional[str],
) -> Dict[str, Any]:
    """Handle /graham command."""
    symbol = validate_ticker(ticker)
    if not symbol:
        return ticker_invalid_error(ticker or "")

    try:
        eps_value = parse_number("eps", eps)
        growth_value = parse_number("eps-growth", growth)
        yield_value = _parse_nonzero("bond-yield", bond_yield)
    except ParameterError as e:
        return _parameter_error(e)

    log.info(
        "slash_graham ticker=%s eps=%s growth=%s bond_yield=%s",
        symbol,
        eps_value,
        growth_value,
        yield_value,
    )

    try:
        value = graham_value(eps_value, growth_value, yield_value)
        quote = await services.quotes.lookup(symbol)
    except StockBotError as e:
        log.warning("graham_command_failed ticker=%s err=%r", symbol, e)
        return apology_error(symbol)

    return create_graham_embed(quote, value, eps_value, growth_value, yield_value)


def check_portfolio_key(settings: Settings, key: Optional[str]) -> bool:
    """Constant-time comparison of the submitted key with the configured secret."""
    if not settings.portfolio_secret or key is None:
        return False
    return hmac.compare_digest(
        key.strip().encode("utf-8"), settings.portfolio_secret.encode("utf-8")
    )


async def handle_portfolio_command(services: Services, key: Optional[str]) -> Dict[str, Any]:
    """
    Handle the /portfolio modal submission.

    Returns
    -------
    Dict[str, Any]
        Discord interaction response
    """
    if not key:
        return missing_parameter_error("key")
    if not check_portfolio_key(services.settings, key):
        log.warning("portfolio_access_denied")
        return permission_denied_error("The key you entered is not valid.")

    try:
        rows = await services.sheets.portfolio(key.strip())
    except StockBotError as e:
        log.warning("portfolio_command_failed err=%r", e)
        return apology_error("portfolio")

    return create_portfolio_embed(rows)


def handle_help_command() -> Dict[str, Any]:
    """Handle /help command."""
    return create_help_embed()
