"""
Discord Interaction Routing
===========================

Turns a verified interaction payload into the immediate HTTP response and,
for commands that do I/O, schedules the real work on the background loop.

Discord gives the endpoint three seconds to answer. Anything that touches
the network is therefore acknowledged with a deferred response (type 5) and
finished later by editing ``@original`` (see :mod:`stockbot.followup`).
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Coroutine, Dict, Optional

from .commands.embeds import (
    RESPONSE_TYPE_DEFERRED_CHANNEL_MESSAGE,
    RESPONSE_TYPE_MODAL,
    RESPONSE_TYPE_PONG,
)
from .commands.errors import (
    FLAG_EPHEMERAL,
    apology_error,
    feature_disabled_error,
    missing_parameter_error,
    permission_denied_error,
    unknown_command_error,
)
from .commands.handlers import (
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
from .followup import deliver_followup
from .logging_utils import get_logger

log = get_logger("interactions")

# Interaction types
INTERACTION_PING = 1
INTERACTION_APPLICATION_COMMAND = 2
INTERACTION_MESSAGE_COMPONENT = 3
INTERACTION_MODAL_SUBMIT = 5

# Component types
COMPONENT_ACTION_ROW = 1
COMPONENT_TEXT_INPUT = 4

PORTFOLIO_MODAL_ID = "portfolio_auth"
PORTFOLIO_KEY_INPUT_ID = "password"

# Commands answered by editing @original once their I/O finishes.
DEFERRED_COMMANDS = frozenset({"stock", "chart", "dcf", "dcf-fcf", "graham"})

Response = Dict[str, Any]
Submit = Callable[[Coroutine[Any, Any, Any]], Any]
Deliver = Callable[..., Awaitable[bool]]


def get_options(interaction: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten slash command options into ``{name: value}``."""
    options = (interaction.get("data") or {}).get("options") or []
    return {opt.get("name"): opt.get("value") for opt in options if opt.get("name")}


def get_modal_values(interaction: Dict[str, Any]) -> Dict[str, str]:
    """Flatten the text inputs of a modal submission into ``{custom_id: value}``."""
    values: Dict[str, str] = {}
    for row in (interaction.get("data") or {}).get("components") or []:
        for component in row.get("components") or []:
            if component.get("custom_id"):
                values[component["custom_id"]] = component.get("value") or ""
    return values


def portfolio_modal() -> Response:
    """Modal asking for the portfolio key."""
    return {
        "type": RESPONSE_TYPE_MODAL,
        "data": {
            "custom_id": PORTFOLIO_MODAL_ID,
            "title": "Portfolio Access",
            "components": [
                {
                    "type": COMPONENT_ACTION_ROW,
                    "components": [
                        {
                            "type": COMPONENT_TEXT_INPUT,
                            "custom_id": PORTFOLIO_KEY_INPUT_ID,
                            "label": "Enter your portfolio key",
                            "style": 1,  # short
                            "required": True,
                            "max_length": 100,
                        }
                    ],
                }
            ],
        },
    }


def deferred_response(ephemeral: bool = False) -> Response:
    response: Response = {"type": RESPONSE_TYPE_DEFERRED_CHANNEL_MESSAGE}
    if ephemeral:
        response["data"] = {"flags": FLAG_EPHEMERAL}
    return response


class InteractionRouter:
    """
    Route interactions to command handlers.

    Parameters
    ----------
    services : Services
        Data clients handed to every handler
    submit : Callable
        Schedules a coroutine on the background loop without waiting,
        normally :meth:`EventLoopManager.submit`
    deliver : Callable
        Coroutine function ``(settings, token, data) -> bool`` that writes
        the finished message to Discord
    """

    def __init__(
        self,
        services: Services,
        submit: Submit,
        deliver: Deliver = deliver_followup,
    ):
        self.services = services
        self.submit = submit
        self.deliver = deliver

    def handle(self, interaction: Dict[str, Any]) -> Response:
        """Return the immediate response for ``interaction``."""
        interaction_type = interaction.get("type")

        if interaction_type == INTERACTION_PING:
            log.info("responding_to_ping")
            return {"type": RESPONSE_TYPE_PONG}

        if interaction_type == INTERACTION_APPLICATION_COMMAND:
            return self._handle_command(interaction)

        if interaction_type == INTERACTION_MODAL_SUBMIT:
            return self._handle_modal(interaction)

        log.warning("unknown_interaction_type type=%s", interaction_type)
        return unknown_command_error(str(interaction_type))

    def _handle_command(self, interaction: Dict[str, Any]) -> Response:
        name = (interaction.get("data") or {}).get("name", "")
        opts = get_options(interaction)
        log.info("slash_command command=%s options=%s", name, sorted(opts))

        if name == "help":
            return handle_help_command()

        if name == "portfolio":
            if not self.services.settings.portfolio_enabled:
                return feature_disabled_error("portfolio")
            return portfolio_modal()

        if name in DEFERRED_COMMANDS:
            error = check_command_options(name, opts)
            if error is not None:
                log.info("slash_command_rejected command=%s", name)
                return error

        s = self.services
        if name == "stock":
            coro = handle_stock_command(s, opts.get("ticker"), opts.get("interval"))
        elif name == "chart":
            coro = handle_chart_command(s, opts.get("ticker"), opts.get("interval"))
        elif name == "dcf":
            coro = handle_dcf_command(
                s,
                opts.get("ticker"),
                opts.get("eps"),
                opts.get("eps-growth-rate"),
                opts.get("pe"),
                opts.get("return"),
            )
        elif name == "dcf-fcf":
            coro = handle_dcf_fcf_command(
                s,
                opts.get("ticker"),
                opts.get("fcf"),
                opts.get("fcf-growth-rate"),
                opts.get("fcf-yield"),
                opts.get("return"),
            )
        elif name == "graham":
            coro = handle_graham_command(
                s,
                opts.get("ticker"),
                opts.get("eps"),
                opts.get("eps-growth"),
                opts.get("bond-yield"),
            )
        else:
            log.warning("unknown_command command=%s", name)
            return unknown_command_error(name)

        self._schedule(interaction, name, coro)
        return deferred_response()

    def _handle_modal(self, interaction: Dict[str, Any]) -> Response:
        custom_id = (interaction.get("data") or {}).get("custom_id", "")
        if custom_id != PORTFOLIO_MODAL_ID:
            log.warning("unknown_modal custom_id=%s", custom_id)
            return unknown_command_error(custom_id)

        if not self.services.settings.portfolio_enabled:
            return feature_disabled_error("portfolio")

        key = get_modal_values(interaction).get(PORTFOLIO_KEY_INPUT_ID, "")
        # Rejections are answered inline so they stay ephemeral.
        if not key.strip():
            return missing_parameter_error("key")
        if not check_portfolio_key(self.services.settings, key):
            log.warning("portfolio_access_denied")
            return permission_denied_error("The key you entered is not valid.")

        self._schedule(
            interaction, "portfolio", handle_portfolio_command(self.services, key)
        )
        return deferred_response(ephemeral=True)

    def _schedule(
        self, interaction: Dict[str, Any], name: str, coro: Coroutine[Any, Any, Response]
    ) -> None:
        token = interaction.get("token", "")
        self.submit(self.run_deferred(token, name, coro))

    async def run_deferred(
        self, token: str, name: str, coro: Coroutine[Any, Any, Response]
    ) -> bool:
        """
        Run a handler under the command timeout and deliver its result.

        Any failure, including the timeout expiring, is logged and the
        user receives the apology message instead. If Discord rejects the
        finished message (an oversized attachment, say) the apology is sent
        in its place.

        Returns
        -------
        bool
            Whether a follow-up was accepted
        """
        settings = self.services.settings
        timeout = settings.command_timeout_s
        response: Optional[Response] = None
        try:
            response = await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            log.error("command_timeout command=%s timeout_s=%s", name, timeout)
        except Exception:
            log.exception("command_failed command=%s", name)

        apology = apology_error(name)
        if response is None:
            response = apology
        if await self.deliver(settings, token, response.get("data") or {}):
            return True
        if response is apology:
            return False

        log.warning("followup_fallback command=%s", name)
        return await self.deliver(settings, token, apology["data"])
