"""
Discord Slash Command Registry
===============================

Defines all slash commands the bot exposes. These are registered with
Discord's API by ``stockbot-register`` (see ``stockbot.register``).

Option Types:
- 3: STRING
- 4: INTEGER
- 10: NUMBER

Numeric inputs are STRING options on purpose: users paste values like
``7.61%`` or ``1,250`` and the handlers parse them.
"""

from typing import Any, Dict, List

_INTERVAL_CHOICES = [
    {"name": "Daily", "value": "D"},
    {"name": "Weekly", "value": "W"},
    {"name": "Monthly", "value": "M"},
]


def _string_option(name: str, description: str, required: bool = True) -> Dict[str, Any]:
    return {
        "name": name,
        "type": 3,  # STRING
        "description": description,
        "required": required,
    }


COMMANDS: List[Dict[str, Any]] = [
    {
        "name": "stock",
        "description": "Get stock info from the notes sheet",
        "options": [
            _string_option("ticker", "Stock ticker, e.g., NVDA"),
            {
                **_string_option(
                    "interval", "Attach a chart: D (Daily), W (Weekly), M (Monthly)", False
                ),
                "choices": _INTERVAL_CHOICES,
            },
        ],
    },
    {
        "name": "chart",
        "description": "Get stock chart",
        "options": [
            _string_option("ticker", "Stock ticker, e.g., NVDA"),
            {
                **_string_option(
                    "interval", "Chart interval: D (Daily), W (Weekly), M (Monthly)", False
                ),
                "choices": _INTERVAL_CHOICES,
            },
        ],
    },
    {
        "name": "dcf",
        "description": "Calculate intrinsic value by earnings (EPS x P/E)",
        "options": [
            _string_option("ticker", "Stock symbol"),
            _string_option("eps", "EPS (12 months trailing)"),
            _string_option("eps-growth-rate", "EPS growth rate, as a percentage"),
            _string_option("pe", "Fair P/E ratio"),
            _string_option("return", "Desired annual return, as a percentage"),
        ],
    },
    {
        "name": "dcf-fcf",
        "description": "Calculate intrinsic value by free cash flow",
        "options": [
            _string_option("ticker", "Stock symbol"),
            _string_option("fcf", "Free cash flow per share"),
            _string_option("fcf-growth-rate", "FCF growth rate, as a percentage"),
            _string_option("fcf-yield", "Target FCF yield, as a percentage"),
            _string_option("return", "Desired annual return, as a percentage"),
        ],
    },
    {
        "name": "graham",
        "description": "Benjamin Graham Intrinsic Value Formula",
        "options": [
            _string_option("ticker", "Stock symbol"),
            _string_option("eps", "Earnings Per Share (12 months trailing)"),
            _string_option(
                "eps-growth",
                "Long-term earnings growth rate, as a percentage (e.g., 7.61)",
            ),
            _string_option(
                "bond-yield",
                "Current AAA corporate bond yield, as a percentage (e.g., 5.25)",
            ),
        ],
    },
    {
        "name": "portfolio",
        "description": "Personal portfolio table (key required)",
    },
    {
        "name": "help",
        "description": "Show all available commands and usage examples",
    },
]


def get_command_names() -> List[str]:
    """
    Get list of all registered command names.

    Returns
    -------
    List[str]
        List of command names
    """
    return [cmd["name"] for cmd in COMMANDS]


def get_command_by_name(name: str) -> Dict[str, Any]:
    """
    Get command definition by name.

    Returns
    -------
    Dict[str, Any]
        Command definition, or empty dict if not found
    """
    for cmd in COMMANDS:
        if cmd["name"] == name:
            return cmd
    return {}


def format_command_help() -> str:
    """
    Format all commands as a help string.

    Returns
    -------
    str
        Formatted help text
    """
    lines = ["**Available Commands:**\n"]

    for cmd in COMMANDS:
        lines.append(f"**/{cmd['name']}** - {cmd['description']}")

        for opt in cmd.get("options", []):
            req_str = "(required)" if opt.get("required", False) else "(optional)"
            lines.append(f"  - `{opt['name']}` {req_str}: {opt['description']}")

        lines.append("")

    return "\n".join(lines)
