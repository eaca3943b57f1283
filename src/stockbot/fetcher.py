"""
Bounded-Retry Fetcher
=====================

Outbound HTTP with a hard per-attempt timeout and a bounded, fixed-backoff
retry loop. Every failure kind (transport, timeout, non-2xx, degenerate JSON)
consumes one retry; once retries run out the last failure is raised as a
terminal :class:`~stockbot.errors.FetchError`.

Each attempt carries its own ``aiohttp.ClientTimeout``, so cancelling one
attempt never affects a later one. Total wall time is bounded by
``timeout * (retries + 1) + backoff * retries``.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import aiohttp

from .errors import (
    REASON_DATA_SHAPE,
    REASON_HTTP_STATUS,
    REASON_TIMEOUT,
    REASON_TRANSPORT,
    FetchError,
)
from .logging_utils import get_logger

log = get_logger("fetcher")

DEFAULT_TIMEOUT_MS = 10000
DEFAULT_BACKOFF_MS = 1000

Body = Union[Mapping[str, str], str, bytes, None]


@dataclass(frozen=True)
class FetchRequest:
    url: str
    method: str = "GET"
    # Mappings are sent form-encoded.
    body: Body = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = 0
    backoff_ms: int = DEFAULT_BACKOFF_MS

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("url is required")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_ms < 0:
            raise ValueError(f"backoff_ms must be >= 0, got {self.backoff_ms}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class FetchResponse:
    status: int
    headers: Dict[str, str]
    # Parsed JSON for JSON responses, text otherwise.
    body: Any
    attempts: int = 1

    @property
    def is_json(self) -> bool:
        return "application/json" in self.headers.get("Content-Type", "")


def is_degenerate_payload(payload: Any) -> bool:
    """Return True for JSON that parsed but carries no data.

    ``null``, ``{}``, ``[]``, ``[{}]`` and ``{"data": [{}]}`` all count; the
    spreadsheet endpoint answers unknown tickers with the latter.
    """
    if payload is None:
        return True
    if isinstance(payload, (dict, list)) and len(payload) == 0:
        return True
    if isinstance(payload, list) and len(payload) == 1 and payload[0] == {}:
        return True
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list) and len(data) == 1 and data[0] == {}:
            return True
    return False


async def _attempt(
    request: FetchRequest, session: aiohttp.ClientSession, attempt: int
) -> FetchResponse:
    timeout = aiohttp.ClientTimeout(total=request.timeout_ms / 1000.0)
    try:
        async with session.request(
            request.method,
            request.url,
            data=request.body,
            headers=dict(request.headers),
            timeout=timeout,
        ) as resp:
            text = await resp.text()
            headers = {k: v for k, v in resp.headers.items()}
            if not 200 <= resp.status < 300:
                raise FetchError(
                    REASON_HTTP_STATUS,
                    f"HTTP {resp.status}: {resp.reason}",
                    attempts=attempt,
                    status=resp.status,
                )

            body: Any = text
            if "application/json" in resp.headers.get("Content-Type", ""):
                try:
                    body = json.loads(text)
                except ValueError:
                    raise FetchError(
                        REASON_DATA_SHAPE,
                        "Malformed JSON body",
                        attempts=attempt,
                        status=resp.status,
                    )
                if is_degenerate_payload(body):
                    raise FetchError(
                        REASON_DATA_SHAPE,
                        "Empty or malformed JSON data",
                        attempts=attempt,
                        status=resp.status,
                    )
            return FetchResponse(
                status=resp.status, headers=headers, body=body, attempts=attempt
            )
    except asyncio.TimeoutError:
        raise FetchError(
            REASON_TIMEOUT,
            f"No response within {request.timeout_ms} ms",
            attempts=attempt,
        )
    except UnicodeDecodeError as e:
        raise FetchError(REASON_DATA_SHAPE, f"Undecodable body: {e}", attempts=attempt)
    except (aiohttp.ClientError, OSError) as e:
        raise FetchError(
            REASON_TRANSPORT, f"{e.__class__.__name__}: {e}", attempts=attempt
        )


async def _fetch_with_retries(
    request: FetchRequest, session: aiohttp.ClientSession
) -> FetchResponse:
    last_error: Optional[FetchError] = None
    for attempt in range(1, request.max_attempts + 1):
        try:
            return await _attempt(request, session, attempt)
        except FetchError as e:
            last_error = e
            log.warning(
                "fetch_attempt_failed method=%s attempt=%d/%d reason=%s err=%s",
                request.method,
                attempt,
                request.max_attempts,
                e.reason,
                e.message,
            )
            if attempt < request.max_attempts:
                await asyncio.sleep(request.backoff_ms / 1000.0)

    assert last_error is not None
    raise FetchError(
        last_error.reason,
        f"Failed after {request.max_attempts} attempts: {last_error.message}",
        attempts=request.max_attempts,
        status=last_error.status,
    )


async def fetch(
    request: FetchRequest, session: Optional[aiohttp.ClientSession] = None
) -> FetchResponse:
    """
    Perform ``request`` with timeout and bounded retries.

    Parameters
    ----------
    request : FetchRequest
        What to fetch and the retry/timeout policy to apply
    session : Optional[aiohttp.ClientSession]
        Session to reuse. When omitted a session is opened for this call and
        closed before returning.

    Returns
    -------
    FetchResponse
        The first successful response

    Raises
    ------
    FetchError
        After every attempt failed; carries the last failure's reason
    """
    if session is not None:
        return await _fetch_with_retries(request, session)
    async with aiohttp.ClientSession() as own_session:
        return await _fetch_with_retries(request, own_session)
