"""
Stock Bot Discord Commands
==========================

User-facing slash commands and their responses.
"""

from .command_registry import COMMANDS, get_command_names
from .embeds import (
    create_chart_embed,
    create_graham_embed,
    create_help_embed,
    create_portfolio_embed,
    create_stock_embed,
    create_valuation_embed,
    stock_unavailable_embed,
)
from .errors import (
    apology_error,
    feature_disabled_error,
    invalid_parameter_error,
    missing_parameter_error,
    permission_denied_error,
    ticker_invalid_error,
)
from .handlers import (
    Services,
    handle_chart_command,
    handle_dcf_command,
    handle_dcf_fcf_command,
    handle_graham_command,
    handle_help_command,
    handle_portfolio_command,
    handle_stock_command,
)

__all__ = [
    "COMMANDS",
    "get_command_names",
    "create_chart_embed",
    "create_graham_embed",
    "create_help_embed",
    "create_portfolio_embed",
    "create_stock_embed",
    "create_valuation_embed",
    "stock_unavailable_embed",
    "apology_error",
    "feature_disabled_error",
    "invalid_parameter_error",
    "missing_parameter_error",
    "permission_denied_error",
    "ticker_invalid_error",
    "Services",
    "handle_chart_command",
    "handle_dcf_command",
    "handle_dcf_fcf_command",
    "handle_graham_command",
    "handle_help_command",
    "handle_portfolio_command",
    "handle_stock_command",
]
