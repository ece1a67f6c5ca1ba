"""Utility functions package."""
from app.utils.helpers import (
    to_base_units,
    from_base_units,
    lamports_to_sol,
    sol_to_lamports,
    format_sol,
    short_address,
)
from app.utils.validators import (
    validate_wallet_address,
    validate_trade_action,
    validate_amount,
)

__all__ = [
    "to_base_units",
    "from_base_units",
    "lamports_to_sol",
    "sol_to_lamports",
    "format_sol",
    "short_address",
    "validate_wallet_address",
    "validate_trade_action",
    "validate_amount",
]
