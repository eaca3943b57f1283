"""
User-facing error replies.

Every reply here is an ephemeral channel message. Fetch, lookup, render and
computation failures all collapse into :func:`apology_error` so users never
see internals; the cause is logged where it happened.
"""

from typing import Any, Dict

RESPONSE_TYPE_CHANNEL_MESSAGE = 4
FLAG_EPHEMERAL = 64

APOLOGY_MESSAGE = (
    "Sorry, I couldn't complete that request right now. Please try again later."
)


def _ephemeral(content: str) -> Dict[str, Any]:
    return {
        "type": RESPONSE_TYPE_CHANNEL_MESSAGE,
        "data": {"content": content, "flags": FLAG_EPHEMERAL},
    }


def apology_error(subject: str = "") -> Dict[str, Any]:
    """
    Generic failure reply.

    Parameters
    ----------
    subject : str
        Ticker or command name to prefix the apology with; omitted when blank
    """
    if not subject:
        return _ephemeral(APOLOGY_MESSAGE)
    return _ephemeral(f"❌ **{subject}**: {APOLOGY_MESSAGE}")


def ticker_invalid_error(ticker: str) -> Dict[str, Any]:
    """Reply for a symbol that fails validation. Echoes at most 20 characters."""
    shown = (ticker or "").strip()[:20]
    return _ephemeral(
        f"Ticker `{shown}` is not a valid symbol. Please check it and try again."
    )


def missing_parameter_error(parameter: str) -> Dict[str, Any]:
    return _ephemeral(f"Missing required parameter: `{parameter}`")


def invalid_parameter_error(parameter: str, reason: str) -> Dict[str, Any]:
    """Reply for an option that parsed but is out of range or not numeric."""
    return _ephemeral(f"Invalid value for `{parameter}`: {reason}")


def permission_denied_error(reason: str = "") -> Dict[str, Any]:
    text = "You don't have permission to use this command."
    return _ephemeral(f"{text} {reason}" if reason else text)


def feature_disabled_error(feature: str) -> Dict[str, Any]:
    """Reply for a command whose backing configuration is missing."""
    return _ephemeral(f"The {feature} feature is currently disabled.")


def unknown_command_error(name: str) -> Dict[str, Any]:
    return _ephemeral(f"Unknown command: {name}")
