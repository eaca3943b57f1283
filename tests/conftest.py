import dataclasses

import pytest

from stockbot.config import Settings

PORTFOLIO_SECRET = "correct-horse"


@pytest.fixture
def settings(tmp_path):
    """Settings with fast retry and chart timings and no dependency on the environment."""
    return Settings(
        discord_bot_token="bot-token",
        discord_application_id="1234567890",
        discord_public_key="",
        discord_guild_ids=[],
        discord_api_base="https://discord.test/api/v10",
        sheet_url="https://sheet.test/exec",
        portfolio_url="https://portfolio.test/exec",
        portfolio_secret=PORTFOLIO_SECRET,
        quote_url_template="https://quotes.test/chart/{symbol}",
        fetch_timeout_ms=2000,
        fetch_max_retries=0,
        fetch_backoff_ms=0,
        http_user_agent="stockbot-tests",
        chart_widget_url="https://widget.test/embed/",
        chart_theme="dark",
        chart_width=1280,
        chart_height=720,
        chart_wait_timeout_ms=500,
        chart_min_canvas_width=800,
        chart_capture_attempts=3,
        chart_min_bytes=100,
        chart_settle_ms=0,
        command_timeout_s=5,
        port=3000,
        log_level="INFO",
        log_plain=True,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def replace():
    """Return a copy of a frozen Settings with some fields changed."""
    return dataclasses.replace
