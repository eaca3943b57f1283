import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _b(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {
        "1",
        "true",
        "yes",
        "y",
        "on",
    }


def _i(name: str, default: int) -> int:
    """
    Read an int from env. Falls back to ``default`` if unset, blank, or non-numeric.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _list(name: str) -> List[str]:
    raw = os.getenv(name) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment when instantiated.

    A ``Settings`` value is built once by the entry point and handed to each
    component; nothing reads ``os.environ`` after that.
    """

    # --- Discord application ---
    discord_bot_token: str = field(default_factory=lambda: _env("DISCORD_BOT_TOKEN"))
    discord_application_id: str = field(
        default_factory=lambda: _env("DISCORD_APPLICATION_ID")
    )
    # Ed25519 public key used to verify interaction requests. When blank,
    # signature verification is skipped (local development only).
    discord_public_key: str = field(default_factory=lambda: _env("DISCORD_PUBLIC_KEY"))
    # Comma separated guild IDs for instant command registration. Empty means
    # global registration.
    discord_guild_ids: List[str] = field(
        default_factory=lambda: _list("DISCORD_GUILD_ID")
    )
    discord_api_base: str = field(
        default_factory=lambda: _env("DISCORD_API_BASE", "https://discord.com/api/v10")
    )

    # --- Data sources ---
    # Apps Script endpoint backed by the stock notes spreadsheet.
    sheet_url: str = field(default_factory=lambda: _env("GOOGLE_SCRIPT_URL"))
    # Apps Script endpoint for the gated personal portfolio table.
    portfolio_url: str = field(
        default_factory=lambda: _env("GOOGLE_SCRIPT_URL_PORTFOLIO")
    )
    # Shared secret for the /portfolio modal. Blank disables the command.
    portfolio_secret: str = field(default_factory=lambda: _env("PORTFOLIO_SECRET"))
    quote_url_template: str = field(
        default_factory=lambda: _env(
            "QUOTE_URL_TEMPLATE",
            "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}",
        )
    )

    # --- Outbound HTTP ---
    fetch_timeout_ms: int = field(default_factory=lambda: _i("FETCH_TIMEOUT_MS", 10000))
    fetch_max_retries: int = field(default_factory=lambda: _i("FETCH_MAX_RETRIES", 3))
    fetch_backoff_ms: int = field(default_factory=lambda: _i("FETCH_BACKOFF_MS", 1000))
    # Yahoo rejects requests without a browser-ish user agent.
    http_user_agent: str = field(
        default_factory=lambda: _env(
            "HTTP_USER_AGENT", "Mozilla/5.0 (compatible; stockbot/1.0)"
        )
    )

    # --- Chart rendering ---
    chart_widget_url: str = field(
        default_factory=lambda: _env(
            "CHART_WIDGET_URL", "https://s.tradingview.com/widgetembed/"
        )
    )
    chart_theme: str = field(default_factory=lambda: _env("CHART_THEME", "dark"))
    chart_width: int = field(default_factory=lambda: _i("CHART_WIDTH", 1280))
    chart_height: int = field(default_factory=lambda: _i("CHART_HEIGHT", 720))
    chart_wait_timeout_ms: int = field(
        default_factory=lambda: _i("CHART_WAIT_TIMEOUT_MS", 20000)
    )
    chart_min_canvas_width: int = field(
        default_factory=lambda: _i("CHART_MIN_CANVAS_WIDTH", 800)
    )
    chart_capture_attempts: int = field(
        default_factory=lambda: _i("CHART_CAPTURE_ATTEMPTS", 3)
    )
    chart_min_bytes: int = field(default_factory=lambda: _i("CHART_MIN_BYTES", 10000))
    chart_settle_ms: int = field(default_factory=lambda: _i("CHART_SETTLE_MS", 1000))

    # --- Interaction handling ---
    # Interaction tokens expire after 15 minutes; keep the limit well inside.
    command_timeout_s: int = field(default_factory=lambda: _i("COMMAND_TIMEOUT_S", 120))
    port: int = field(default_factory=lambda: _i("PORT", 3000))

    # --- Logging ---
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    log_plain: bool = field(default_factory=lambda: _b("LOG_PLAIN", False))
    log_dir: Path = field(
        default_factory=lambda: Path(_env("LOG_DIR", "data/logs"))
    )

    @property
    def portfolio_enabled(self) -> bool:
        return bool(self.portfolio_secret and self.portfolio_url)
