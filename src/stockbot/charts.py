"""
Chart Renderer
==============

Screenshots a TradingView widget chart with a headless Chromium driven by
Playwright.

Flow: launch -> load widget page -> wait for the canvas -> capture (retrying).

- The browser is launched per call in low-resource mode and always closed.
- Images, media and fonts are blocked; the chart canvas does not need them.
- The canvas must exist and be wider than ``chart_min_canvas_width`` within
  ``chart_wait_timeout_ms``, else :class:`RenderTimeout`.
- Up to ``chart_capture_attempts`` screenshots, each after a settle delay. The
  first one of at least ``chart_min_bytes`` wins. If none gets there the last
  capture is returned anyway: a small image is still a usable answer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import Settings
from .errors import ChartError, RenderFailure, RenderTimeout
from .logging_utils import get_logger

log = get_logger("charts")

VALID_INTERVALS = ("D", "W", "M")
INTERVAL_NAMES = {"D": "Daily", "W": "Weekly", "M": "Monthly"}

# Low-RAM Chromium flags for small containers.
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--single-process",
    "--no-zygote",
]

BLOCKED_RESOURCE_TYPES = {"image", "media", "font"}

WIDGET_FRAME_ID = "tv-widget"

# Evaluated inside the widget frame; ``minWidth`` is passed as the argument.
CANVAS_READY_JS = """
(minWidth) => {
    const c = document.querySelector('canvas');
    return !!c && c.width > minWidth;
}
"""

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
  <body style="margin:0; padding:0; overflow:hidden;">
    <iframe
      id="{frame_id}"
      src="{src}"
      width="{width}"
      height="{height}"
      frameborder="0"
    ></iframe>
  </body>
</html>
"""


@dataclass(frozen=True)
class ChartRequest:
    ticker: str
    interval: str = "D"

    def __post_init__(self) -> None:
        ticker = (self.ticker or "").strip().upper()
        interval = (self.interval or "D").strip().upper()
        if not ticker:
            raise ValueError("ticker is required")
        if interval not in VALID_INTERVALS:
            raise ValueError(
                f"interval must be one of {', '.join(VALID_INTERVALS)}, got {interval!r}"
            )
        object.__setattr__(self, "ticker", ticker)
        object.__setattr__(self, "interval", interval)

    @property
    def filename(self) -> str:
        return f"{self.ticker}-{self.interval}-chart.png"


@dataclass(frozen=True)
class ChartImage:
    data: bytes
    attempts: int = 1

    @property
    def size(self) -> int:
        return len(self.data)


def widget_url(settings: Settings, request: ChartRequest) -> str:
    query = urlencode(
        {
            "symbol": request.ticker,
            "interval": request.interval,
            "theme": settings.chart_theme,
            "style": "8",
            "locale": "en",
            "hide_volume": "true",
            "hide_top_toolbar": "true",
        }
    )
    return f"{settings.chart_widget_url}?{query}"


def widget_page(settings: Settings, request: ChartRequest) -> str:
    return PAGE_TEMPLATE.format(
        frame_id=WIDGET_FRAME_ID,
        src=widget_url(settings, request).replace("&", "&amp;"),
        width=settings.chart_width,
        height=settings.chart_height,
    )


async def _block_heavy_resources(route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class ChartRenderer:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def render(self, request: ChartRequest) -> ChartImage:
        """
        Render ``request`` to PNG bytes.

        Raises
        ------
        RenderTimeout
            The chart canvas never became ready
        RenderFailure
            Browser launch, navigation or every capture attempt failed
        """
        log.info("chart_render_start ticker=%s interval=%s", request.ticker, request.interval)
        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(headless=True, args=LAUNCH_ARGS)
                try:
                    image = await self._render_in(browser, request)
                finally:
                    try:
                        await browser.close()
                    except PlaywrightError as e:
                        log.warning("chart_browser_close_failed err=%s", e)
        except ChartError:
            raise
        except PlaywrightError as e:
            log.warning(
                "chart_render_failed ticker=%s interval=%s err=%s",
                request.ticker,
                request.interval,
                e,
            )
            raise RenderFailure(f"Chart render failed for {request.ticker}: {e}") from e

        log.info(
            "chart_render_done ticker=%s interval=%s bytes=%d attempts=%d",
            request.ticker,
            request.interval,
            image.size,
            image.attempts,
        )
        return image

    async def _render_in(self, browser, request: ChartRequest) -> ChartImage:
        s = self.settings
        page = await browser.new_page()
        try:
            await page.set_viewport_size({"width": s.chart_width, "height": s.chart_height})
            await page.route("**/*", _block_heavy_resources)
            await page.set_content(widget_page(s, request), wait_until="networkidle")

            frame_handle = await page.query_selector(f"#{WIDGET_FRAME_ID}")
            frame = await frame_handle.content_frame() if frame_handle else None
            if frame is None:
                raise RenderFailure(f"Chart widget frame missing for {request.ticker}")

            try:
                await frame.wait_for_selector("canvas", timeout=s.chart_wait_timeout_ms)
                await frame.wait_for_function(
                    CANVAS_READY_JS,
                    arg=s.chart_min_canvas_width,
                    timeout=s.chart_wait_timeout_ms,
                )
            except PlaywrightTimeoutError as e:
                raise RenderTimeout(
                    f"Chart canvas for {request.ticker} not ready within "
                    f"{s.chart_wait_timeout_ms} ms"
                ) from e

            return await self._capture(page, frame_handle, request)
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                log.debug("chart_page_close_failed err=%s", e)

    async def _capture(self, page, frame_handle, request: ChartRequest) -> ChartImage:
        s = self.settings
        data: Optional[bytes] = None
        attempts = 0
        for attempt in range(1, s.chart_capture_attempts + 1):
            attempts = attempt
            # Give the widget time to finish drawing before each capture.
            await page.wait_for_timeout(s.chart_settle_ms)
            try:
                data = await frame_handle.screenshot(type="png")
            except PlaywrightError as e:
                log.warning(
                    "chart_capture_failed ticker=%s attempt=%d err=%s",
                    request.ticker,
                    attempt,
                    e,
                )
                continue
            if len(data) >= s.chart_min_bytes:
                break
            log.info(
                "chart_capture_small ticker=%s attempt=%d bytes=%d min=%d",
                request.ticker,
                attempt,
                len(data),
                s.chart_min_bytes,
            )

        if data is None:
            raise RenderFailure(f"No chart capture for {request.ticker}")
        return ChartImage(data=data, attempts=attempts)
