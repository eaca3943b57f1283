"""Tests for deferred follow-up delivery against a local webhook server."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from stockbot.commands.embeds import FILES_KEY
from stockbot.followup import deliver_followup, original_response_url, split_files

PNG = b"\x89PNG" + b"x" * 64


class Webhook:
    def __init__(self, status=200):
        self.status = status
        self.requests = []

    async def handler(self, request):
        entry = {
            "path": request.path,
            "method": request.method,
            "content_type": request.content_type,
        }
        if request.content_type == "multipart/form-data":
            form = await request.post()
            entry["payload"] = json.loads(form["payload_json"])
            upload = form["files[0]"]
            entry["file"] = (upload.filename, upload.file.read())
        else:
            entry["payload"] = await request.json()
        self.requests.append(entry)
        return web.json_response({"id": "msg"}, status=self.status)


def _app(webhook):
    app = web.Application()
    app.router.add_route(
        "PATCH",
        "/api/webhooks/{app_id}/{token}/messages/@original",
        webhook.handler,
    )
    return app


def test_original_response_url(settings):
    assert original_response_url(settings, "abc") == (
        "https://discord.test/api/v10/webhooks/1234567890/abc/messages/@original"
    )


def test_split_files_strips_flags_and_files():
    payload, files = split_files(
        {"embeds": [{"title": "x"}], "flags": 64, FILES_KEY: [("a.png", PNG)]}
    )
    assert payload == {
        "embeds": [{"title": "x"}],
        "attachments": [{"id": 0, "filename": "a.png"}],
    }
    assert files == [("a.png", PNG)]


def test_split_files_without_attachments():
    payload, files = split_files({"content": "hi"})
    assert payload == {"content": "hi"}
    assert files == []


@pytest.mark.asyncio
async def test_json_followup(settings, replace):
    webhook = Webhook()
    async with TestServer(_app(webhook)) as server:
        cfg = replace(settings, discord_api_base=str(server.make_url("/api")))
        ok = await deliver_followup(cfg, "tok-1", {"content": "done", "flags": 64})

    assert ok is True
    [req] = webhook.requests
    assert req["method"] == "PATCH"
    assert req["path"] == "/api/webhooks/1234567890/tok-1/messages/@original"
    assert req["payload"] == {"content": "done"}


@pytest.mark.asyncio
async def test_multipart_followup(settings, replace):
    webhook = Webhook()
    data = {
        "embeds": [{"image": {"url": "attachment://AAPL-D-chart.png"}}],
        FILES_KEY: [("AAPL-D-chart.png", PNG)],
    }
    async with TestServer(_app(webhook)) as server:
        cfg = replace(settings, discord_api_base=str(server.make_url("/api")))
        ok = await deliver_followup(cfg, "tok-2", data)

    assert ok is True
    [req] = webhook.requests
    assert req["content_type"] == "multipart/form-data"
    assert req["payload"]["attachments"] == [{"id": 0, "filename": "AAPL-D-chart.png"}]
    assert req["file"] == ("AAPL-D-chart.png", PNG)


@pytest.mark.asyncio
async def test_rejected_followup(settings, replace):
    webhook = Webhook(status=404)
    async with TestServer(_app(webhook)) as server:
        cfg = replace(settings, discord_api_base=str(server.make_url("/api")))
        ok = await deliver_followup(cfg, "expired", {"content": "late"})

    assert ok is False


@pytest.mark.asyncio
async def test_unreachable_webhook(settings, replace):
    cfg = replace(settings, discord_api_base="http://127.0.0.1:9/api")
    assert await deliver_followup(cfg, "tok", {"content": "x"}) is False


@pytest.mark.asyncio
async def test_request_timeout_reported_as_failure(settings):
    session = MagicMock()
    session.patch.side_effect = asyncio.TimeoutError()

    ok = await deliver_followup(settings, "tok", {"content": "x"}, session=session)

    assert ok is False
    session.patch.assert_called_once()
