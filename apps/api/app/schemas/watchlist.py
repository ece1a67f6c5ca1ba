"""Watchlist schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from app.utils.validators import ADDRESS_PATTERN


class WatchlistCreate(BaseModel):
    token_mint: str
    symbol: str = Field(..., min_length=1, max_length=32)
    name: Optional[str] = None
    target_buy_price: Optional[float] = Field(default=None, gt=0)
    target_sell_price: Optional[float] = Field(default=None, gt=0)
    max_buy_amount: float = Field(default=0.1, gt=0)
    auto_trade_enabled: bool = False
    alerts_enabled: bool = True
    notes: Optional[str] = None

    @field_validator("token_mint")
    @classmethod
    def validate_mint(cls, v: str) -> str:
        v = v.strip()
        if not ADDRESS_PATTERN.match(v):
            raise ValueError("token_mint must be a base58 Solana address")
        return v

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        return v.upper()


class WatchlistUpdate(BaseModel):
    target_buy_price: Optional[float] = Field(default=None, gt=0)
    target_sell_price: Optional[float] = Field(default=None, gt=0)
    max_buy_amount: Optional[float] = Field(default=None, gt=0)
    auto_trade_enabled: Optional[bool] = None
    alerts_enabled: Optional[bool] = None
    notes: Optional[str] = None


class WatchlistResponse(BaseModel):
    id: int
    token_mint: str
    symbol: str
    name: Optional[str] = None
    target_buy_price: Optional[float] = None
    target_sell_price: Optional[float] = None
    max_buy_amount: float
    auto_trade_enabled: bool
    alerts_enabled: bool
    notes: Optional[str] = None
    added_at: datetime

    class Config:
        from_attributes = True
