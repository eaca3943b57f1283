"""Deliver the second half of a deferred interaction response.

After the interaction endpoint acknowledges a command with a deferred
response (type 5), the real message is written by editing the original
response through the interaction webhook:

    PATCH {api}/webhooks/{application_id}/{token}/messages/@original

Messages carrying chart images are sent as multipart with ``payload_json``
plus one ``files[n]`` part per attachment.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from .commands.embeds import FILES_KEY
from .config import Settings
from .logging_utils import get_logger

log = get_logger("followup")

FOLLOWUP_TIMEOUT_S = 15

# Flags are fixed by the deferred response and cannot change on edit.
_IMMUTABLE_KEYS = {"flags"}


def original_response_url(settings: Settings, token: str) -> str:
    return (
        f"{settings.discord_api_base}/webhooks/"
        f"{settings.discord_application_id}/{token}/messages/@original"
    )


def split_files(data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[Tuple[str, bytes]]]:
    """Separate attachment bytes from the JSON part of a message."""
    files = list(data.get(FILES_KEY) or [])
    payload = {
        k: v for k, v in data.items() if k != FILES_KEY and k not in _IMMUTABLE_KEYS
    }
    if files:
        payload["attachments"] = [
            {"id": i, "filename": name} for i, (name, _) in enumerate(files)
        ]
    return payload, files


def build_form(payload: Dict[str, Any], files: List[Tuple[str, bytes]]) -> aiohttp.FormData:
    form = aiohttp.FormData()
    form.add_field("payload_json", json.dumps(payload), content_type="application/json")
    for i, (name, content) in enumerate(files):
        form.add_field(f"files[{i}]", content, filename=name, content_type="image/png")
    return form


async def deliver_followup(
    settings: Settings,
    token: str,
    data: Dict[str, Any],
    session: Optional[aiohttp.ClientSession] = None,
) -> bool:
    """
    Replace the deferred "thinking..." placeholder with ``data``.

    Parameters
    ----------
    settings : Settings
        Supplies the API base and application ID
    token : str
        Interaction token from the original request
    data : Dict[str, Any]
        Message data (content/embeds, optional attachment files)
    session : Optional[aiohttp.ClientSession]
        Session to reuse; one is opened for this call otherwise

    Returns
    -------
    bool
        True if Discord accepted the edit
    """
    url = original_response_url(settings, token)
    payload, files = split_files(data)
    timeout = aiohttp.ClientTimeout(total=FOLLOWUP_TIMEOUT_S)

    async def _send(s: aiohttp.ClientSession) -> bool:
        if files:
            request = s.patch(url, data=build_form(payload, files), timeout=timeout)
        else:
            request = s.patch(url, json=payload, timeout=timeout)
        async with request as resp:
            if resp.status == 200:
                log.info("followup_delivered files=%d", len(files))
                return True
            body = await resp.text()
            log.error(
                "followup_rejected status=%d body=%s", resp.status, body[:200]
            )
            return False

    try:
        if session is not None:
            return await _send(session)
        async with aiohttp.ClientSession() as own_session:
            return await _send(own_session)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        log.error("followup_failed err=%s", e)
        return False
