"""Token and market-data schemas."""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class PulseToken(BaseModel):
    """A token as reported by the pulse market-data feed (camelCase on the wire)."""

    mint: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = None
    price_change_24h: Optional[float] = Field(default=None, alias="priceChange24h")
    volume_24h: Optional[float] = Field(default=None, alias="volume24h")
    market_cap: Optional[float] = Field(default=None, alias="marketCap")
    liquidity: Optional[float] = None
    holders: Optional[int] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    class Config:
        populate_by_name = True


class TokenBalance(BaseModel):
    """SPL token balance held by a wallet for one mint."""

    amount: int = Field(..., ge=0, description="Raw amount in base units")
    decimals: int = Field(..., ge=0)

    @property
    def ui_amount(self) -> float:
        return self.amount / (10 ** self.decimals)


class DiscoveredTokenList(BaseModel):
    tokens: List[Dict[str, Any]]
    count: int


class SupportedToken(BaseModel):
    symbol: str
    mint: str
    decimals: int
