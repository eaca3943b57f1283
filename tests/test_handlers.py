"""Tests for slash command handlers with faked data clients."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from stockbot.charts import ChartImage, ChartRequest
from stockbot.commands.embeds import FILES_KEY, RESPONSE_TYPE_CHANNEL_MESSAGE
from stockbot.commands.errors import APOLOGY_MESSAGE, FLAG_EPHEMERAL
from stockbot.commands.handlers import (
    Services,
    check_command_options,
    check_portfolio_key,
    handle_chart_command,
    handle_dcf_command,
    handle_dcf_fcf_command,
    handle_graham_command,
    handle_help_command,
    handle_portfolio_command,
    handle_stock_command,
)
from stockbot.errors import FetchError, QuoteNotFound, RenderTimeout
from stockbot.quotes import QuoteSnapshot
from stockbot.sheets import PortfolioRow, StockSheetRecord

PORTFOLIO_SECRET = "correct-horse"

PNG = b"\x89PNG" + b"x" * 500


@pytest.fixture
def services(settings):
    quotes = MagicMock()
    quotes.lookup = AsyncMock(
        return_value=QuoteSnapshot("AAPL", 100.0, "USD", "Apple Inc.")
    )
    sheets = MagicMock()
    sheets.lookup = AsyncMock(
        return_value=StockSheetRecord.model_validate(
            {
                "ticker": "NVDA",
                "longName": "NVIDIA Corporation",
                "regularMarketPrice": "121.40",
                "currency": "USD",
                "supportLevels": ["118", "110"],
                "smaDay": ["115.2", "108.9", "96.1"],
                "smaWeek": ["101.0", "88.7"],
                "note": ["Earnings 28 Aug"],
            }
        )
    )
    sheets.portfolio = AsyncMock(
        return_value=[PortfolioRow(ticker="AAPL", regularMarketPrice=190.0, support1="180")]
    )
    charts = MagicMock()
    charts.render = AsyncMock(return_value=ChartImage(PNG, attempts=1))
    return Services(settings=settings, quotes=quotes, sheets=sheets, charts=charts)


def _embed(response):
    assert response["type"] == RESPONSE_TYPE_CHANNEL_MESSAGE
    return response["data"]["embeds"][0]


def _is_ephemeral(response):
    return response["data"].get("flags") == FLAG_EPHEMERAL


def _field(embed, prefix):
    for field in embed["fields"]:
        if field["name"].startswith(prefix):
            return field["value"]
    raise AssertionError(f"no field starting with {prefix!r}")


class TestStock:
    @pytest.mark.asyncio
    async def test_notes_without_chart(self, services):
        response = await handle_stock_command(services, "nvda")

        embed = _embed(response)
        assert embed["author"]["name"] == "NVDA | NVIDIA Corporation"
        assert "121.40 USD" in embed["title"]
        assert "Level 2: 110" in _field(embed, "▶ *Support Levels*")
        assert "200D" in _field(embed, "▶ *SMA (TFD)*")
        assert "Earnings 28 Aug" in _field(embed, "▶ *Notes*")
        assert FILES_KEY not in response["data"]
        services.sheets.lookup.assert_awaited_once_with("NVDA")
        services.charts.render.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_with_chart(self, services):
        response = await handle_stock_command(services, "NVDA", "w")

        services.charts.render.assert_awaited_once_with(ChartRequest("NVDA", "W"))
        assert response["data"][FILES_KEY] == [("NVDA-W-chart.png", PNG)]
        assert _embed(response)["image"]["url"] == "attachment://NVDA-W-chart.png"

    @pytest.mark.asyncio
    async def test_chart_failure_still_sends_notes(self, services):
        services.charts.render.side_effect = RenderTimeout("slow widget")

        response = await handle_stock_command(services, "NVDA", "D")

        assert "image" not in _embed(response)
        assert FILES_KEY not in response["data"]

    @pytest.mark.asyncio
    async def test_sheet_failure(self, services):
        services.sheets.lookup.side_effect = FetchError("data_shape", "empty")

        response = await handle_stock_command(services, "ZZZZ")

        embed = _embed(response)
        assert "Unable to Fetch Stock Data" in embed["title"]
        assert "ZZZZ" in embed["description"]

    @pytest.mark.asyncio
    async def test_invalid_ticker(self, services):
        response = await handle_stock_command(services, "'; DROP TABLE")
        assert _is_ephemeral(response)
        services.sheets.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_interval(self, services):
        response = await handle_stock_command(services, "NVDA", "H")
        assert _is_ephemeral(response)
        assert "`interval`" in response["data"]["content"]


class TestChart:
    @pytest.mark.asyncio
    async def test_default_interval(self, services):
        response = await handle_chart_command(services, "aapl")

        services.charts.render.assert_awaited_once_with(ChartRequest("AAPL", "D"))
        embed = _embed(response)
        assert embed["title"] == "AAPL Chart (Daily)"
        assert response["data"][FILES_KEY] == [("AAPL-D-chart.png", PNG)]

    @pytest.mark.asyncio
    async def test_render_failure_apologises(self, services):
        services.charts.render.side_effect = RenderTimeout("slow widget")

        response = await handle_chart_command(services, "AAPL", "M")

        assert _is_ephemeral(response)
        assert APOLOGY_MESSAGE in response["data"]["content"]


class TestDcf:
    @pytest.mark.asyncio
    async def test_reference_case(self, services):
        response = await handle_dcf_command(services, "AAPL", "5", "10%", "20", "8")

        embed = _embed(response)
        assert _field(embed, "▶ Return From Current Price") == ">>> **10.00 %**"
        assert _field(embed, "▶ Entry Price") == ">>> **$ 109.61**"
        table = _field(embed, "▶ Projected Fair Value")
        assert "$ 101.85" in table
        assert "$ 109.61" in table
        assert "$ 100.00" in _field(embed, "▶ Input Parameter")
        services.quotes.lookup.assert_awaited_once_with("AAPL")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "args,parameter",
        [
            (("abc", "10", "20", "8"), "eps"),
            (("5", "", "20", "8"), "eps-growth-rate"),
            (("5", "10", "0", "8"), "pe"),
            (("5", "10", "-3", "8"), "pe"),
            (("5", "10", "20", "lots"), "return"),
        ],
    )
    async def test_bad_parameters(self, services, args, parameter):
        response = await handle_dcf_command(services, "AAPL", *args)

        assert _is_ephemeral(response)
        assert f"`{parameter}`" in response["data"]["content"]
        services.quotes.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_symbol_apologises(self, services):
        services.quotes.lookup.side_effect = QuoteNotFound("NOPE")

        response = await handle_dcf_command(services, "NOPE", "5", "10", "20", "8")

        assert APOLOGY_MESSAGE in response["data"]["content"]

    @pytest.mark.asyncio
    async def test_zero_price_apologises(self, services):
        services.quotes.lookup.return_value = QuoteSnapshot("AAPL", 0.0)

        response = await handle_dcf_command(services, "AAPL", "5", "10", "20", "8")

        assert APOLOGY_MESSAGE in response["data"]["content"]


class TestDcfFcf:
    @pytest.mark.asyncio
    async def test_reference_case(self, services):
        response = await handle_dcf_fcf_command(services, "AAPL", "5", "10", "5%", "8")

        embed = _embed(response)
        assert embed["title"] == "💵 ***Free Cash Flow Valuation*** 💵"
        assert _field(embed, "▶ Return From Current Price") == ">>> **10.00 %**"
        assert _field(embed, "▶ Entry Price") == ">>> **$ 109.61**"

    @pytest.mark.asyncio
    async def test_zero_yield_rejected(self, services):
        response = await handle_dcf_fcf_command(services, "AAPL", "5", "10", "0", "8")

        assert _is_ephemeral(response)
        assert "`fcf-yield`" in response["data"]["content"]

    @pytest.mark.asyncio
    async def test_fetch_failure_apologises(self, services):
        services.quotes.lookup.side_effect = FetchError("timeout", "slow", attempts=4)

        response = await handle_dcf_fcf_command(services, "AAPL", "5", "10", "5", "8")

        assert APOLOGY_MESSAGE in response["data"]["content"]


class TestGraham:
    @pytest.mark.asyncio
    async def test_reference_case(self, services):
        response = await handle_graham_command(services, "AAPL", "10", "7.61", "5.25")

        embed = _embed(response)
        assert embed["title"] == ">>> 🟨 **198.80**"
        assert embed["author"]["name"] == "AAPL | Apple Inc."

    @pytest.mark.asyncio
    async def test_zero_bond_yield(self, services):
        response = await handle_graham_command(services, "AAPL", "10", "7.61", "0")

        assert _is_ephemeral(response)
        assert "`bond-yield`" in response["data"]["content"]
        services.quotes.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_quote_failure_apologises(self, services):
        services.quotes.lookup.side_effect = QuoteNotFound("AAPL")

        response = await handle_graham_command(services, "AAPL", "10", "7.61", "5.25")

        assert APOLOGY_MESSAGE in response["data"]["content"]


class TestPortfolio:
    def test_key_check(self, settings, replace):
        assert check_portfolio_key(settings, PORTFOLIO_SECRET)
        assert check_portfolio_key(settings, f"  {PORTFOLIO_SECRET} ")
        assert not check_portfolio_key(settings, "wrong")
        assert not check_portfolio_key(settings, None)
        assert not check_portfolio_key(replace(settings, portfolio_secret=""), "")

    @pytest.mark.asyncio
    async def test_correct_key(self, services):
        response = await handle_portfolio_command(services, PORTFOLIO_SECRET)

        embed = _embed(response)
        assert "PORTFOLIO" in embed["title"]
        assert "AAPL" in embed["description"]
        assert "190.00" in embed["description"]
        services.sheets.portfolio.assert_awaited_once_with(PORTFOLIO_SECRET)

    @pytest.mark.asyncio
    async def test_wrong_key(self, services):
        response = await handle_portfolio_command(services, "guess")

        assert _is_ephemeral(response)
        assert "permission" in response["data"]["content"]
        services.sheets.portfolio.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_key(self, services):
        response = await handle_portfolio_command(services, "")
        assert "`key`" in response["data"]["content"]

    @pytest.mark.asyncio
    async def test_fetch_failure(self, services):
        services.sheets.portfolio.side_effect = FetchError("transport", "down")

        response = await handle_portfolio_command(services, PORTFOLIO_SECRET)

        assert APOLOGY_MESSAGE in response["data"]["content"]


def test_help_lists_every_command():
    response = handle_help_command()

    assert _is_ephemeral(response)
    description = response["data"]["embeds"][0]["description"]
    for name in ("stock", "chart", "dcf", "dcf-fcf", "graham", "portfolio", "help"):
        assert f"**/{name}**" in description


class TestCheckCommandOptions:
    def test_usable_options(self):
        options = {"ticker": "aapl", "eps": "5", "eps-growth": "7.61%", "bond-yield": "5.25"}
        assert check_command_options("graham", options) is None
        assert check_command_options("stock", {"ticker": "NVDA"}) is None
        assert check_command_options("chart", {"ticker": "NVDA", "interval": "w"}) is None

    def test_bad_ticker(self):
        response = check_command_options("chart", {"ticker": "a b"})
        assert _is_ephemeral(response)
        assert "not a valid symbol" in response["data"]["content"]

    def test_missing_number(self):
        response = check_command_options("dcf", {"ticker": "AAPL", "eps": "5"})
        assert "`eps-growth-rate`" in response["data"]["content"]

    def test_non_positive_yield(self):
        options = {
            "ticker": "AAPL",
            "fcf": "5",
            "fcf-growth-rate": "10",
            "fcf-yield": "-1",
            "return": "8",
        }
        response = check_command_options("dcf-fcf", options)
        assert "`fcf-yield`" in response["data"]["content"]
