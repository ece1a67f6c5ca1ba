"""Helper utility functions."""
from decimal import Decimal, ROUND_DOWN
from typing import Optional, Union

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

Number = Union[int, float, str, Decimal]


def to_base_units(amount: Number, decimals: int = SOL_DECIMALS) -> int:
    """
    Convert a UI amount to the token's smallest unit.

    Rounds down so a conversion never spends more than requested.

    Args:
        amount: Human readable amount (e.g. 0.5 SOL)
        decimals: Token decimal count

    Returns:
        Integer amount in base units
    """
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_DOWN))


def from_base_units(amount: Number, decimals: int = SOL_DECIMALS) -> float:
    """Convert base units back to a UI amount."""
    return float(Decimal(str(amount)) / (Decimal(10) ** decimals))


def lamports_to_sol(lamports: int) -> float:
    return from_base_units(lamports, SOL_DECIMALS)


def sol_to_lamports(sol: Number) -> int:
    return to_base_units(sol, SOL_DECIMALS)


def format_sol(amount: Optional[float]) -> str:
    """
    Format a SOL amount for logs and activity entries.

    Args:
        amount: Amount in SOL

    Returns:
        Formatted string like "0.1000 SOL"
    """
    if amount is None:
        return "N/A"
    return f"{amount:.4f} SOL"


def short_address(address: Optional[str], chars: int = 8) -> str:
    """Truncate an address or signature for display ("abcdefgh...")."""
    if not address:
        return ""
    if len(address) <= chars:
        return address
    return f"{address[:chars]}..."
