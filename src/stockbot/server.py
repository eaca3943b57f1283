"""
Discord Interaction Server
===========================

Flask app that receives Discord interactions over HTTP, verifies their
signature and hands them to :class:`~stockbot.interactions.InteractionRouter`.

Routes:
- ``POST /interactions``: interaction endpoint configured in the developer portal
- ``GET /health``: health check for monitoring
- ``GET /``: liveness text
"""

from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify, request
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from .commands.handlers import Services
from .config import Settings
from .interactions import InteractionRouter
from .logging_utils import get_logger
from .utils.event_loop_manager import EventLoopManager

log = get_logger("interaction_server")


def verify_discord_signature(
    signature: str,
    timestamp: str,
    body: bytes,
    public_key: str
) -> bool:
    """Verify that a Discord interaction request is authentic.

    Parameters
    ----------
    signature : str
        X-Signature-Ed25519 header from Discord
    timestamp : str
        X-Signature-Timestamp header from Discord
    body : bytes
        Raw request body
    public_key : str
        Discord application public key (hex)

    Returns
    -------
    bool
        True if signature is valid, False otherwise
    """
    try:
        verify_key = VerifyKey(bytes.fromhex(public_key))
        verify_key.verify(timestamp.encode() + body, bytes.fromhex(signature))
        return True
    except BadSignatureError:
        log.warning("invalid_discord_signature")
        return False
    except ValueError as e:
        # Malformed hex in the header or the configured key.
        log.warning("signature_verification_failed err=%s", str(e))
        return False


def create_app(
    settings: Settings,
    router: Optional[InteractionRouter] = None,
    loop_manager: Optional[EventLoopManager] = None,
) -> Flask:
    """
    Build the interaction server.

    Parameters
    ----------
    settings : Settings
        Runtime configuration
    router : Optional[InteractionRouter]
        Router to use; built from ``settings`` when omitted
    loop_manager : Optional[EventLoopManager]
        Background loop for deferred work; a new one is started lazily
        when omitted

    Returns
    -------
    Flask
        The configured application
    """
    app = Flask("stockbot")

    if router is None:
        loop_manager = loop_manager or EventLoopManager()
        router = InteractionRouter(Services.from_settings(settings), loop_manager.submit)
    app.extensions["stockbot.router"] = router
    app.extensions["stockbot.loop_manager"] = loop_manager

    if not settings.discord_public_key:
        log.warning("signature_verification_disabled reason=no_public_key")

    @app.route("/interactions", methods=["POST"])
    def discord_interactions():
        if settings.discord_public_key:
            signature = request.headers.get("X-Signature-Ed25519", "")
            timestamp = request.headers.get("X-Signature-Timestamp", "")
            if not verify_discord_signature(
                signature, timestamp, request.get_data(), settings.discord_public_key
            ):
                return jsonify({"error": "Invalid signature"}), 401

        interaction = request.get_json(silent=True)
        if not isinstance(interaction, dict):
            log.warning("interaction_malformed")
            return jsonify({"error": "Invalid payload"}), 400

        log.info(
            "interaction_received type=%s id=%s",
            interaction.get("type"),
            interaction.get("id"),
        )
        return jsonify(router.handle(interaction)), 200

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint for monitoring."""
        body = {"status": "healthy"}
        if loop_manager is not None:
            body["event_loop_running"] = loop_manager.is_running()
            body["commands_in_flight"] = loop_manager.in_flight
        return jsonify(body), 200

    @app.route("/", methods=["GET"])
    def index():
        return "Bot is running!"

    return app
