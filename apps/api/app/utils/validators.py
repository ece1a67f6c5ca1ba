"""Input validation utilities."""
import re
from typing import Optional

from app.exceptions import ValidationError


TASK_TYPES = [
    "defi_swap",
    "yield_farming",
    "auto_dca",
    "hedging",
    "payment",
    "arbitrage",
    "monitoring",
    "token_sniper",
]
AGENT_STATUSES = ["idle", "running", "paused", "error", "completed"]
TRADE_ACTIONS = ["buy", "sell"]
AGENT_ACTIONS = ["swap", "stake", "wait", "monitor", "alert", "buy", "sell"]
LOG_LEVELS = ["info", "success", "warning", "error"]

# Base58 alphabet, 32-44 chars covers every ed25519 pubkey encoding
ADDRESS_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]{32,44}$')


def validate_wallet_address(address: str) -> str:
    """
    Validate a Solana address (wallet or mint).

    Args:
        address: Base58 encoded public key

    Returns:
        The stripped address

    Raises:
        ValidationError: If the address is not plausible base58
    """
    if not address:
        raise ValidationError("Wallet address is required")

    normalized = address.strip()

    if not ADDRESS_PATTERN.match(normalized):
        raise ValidationError(f"Invalid Solana address '{address}'")

    return normalized


def validate_trade_action(action: str) -> str:
    """Normalize a trade action to ``buy`` or ``sell``."""
    normalized = (action or "").lower().strip()
    if normalized not in TRADE_ACTIONS:
        raise ValidationError(f"Invalid trade action '{action}'. Must be one of: {TRADE_ACTIONS}")
    return normalized


def validate_amount(amount: Optional[float], field: str = "amount") -> float:
    """Require a strictly positive amount."""
    if amount is None or amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return float(amount)


def validate_slippage_bps(slippage_bps: int, max_bps: int = 5000) -> int:
    if slippage_bps < 1 or slippage_bps > max_bps:
        raise ValidationError(f"Slippage must be between 1 and {max_bps} bps")
    return slippage_bps
