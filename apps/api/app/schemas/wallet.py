"""Managed wallet schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ManagedWalletResponse(BaseModel):
    """Client-safe wallet view (no key material)."""

    id: int
    public_key: str
    balance: float
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletTransactionResponse(BaseModel):
    id: int
    tx_hash: Optional[str] = None
    tx_type: str
    direction: str
    amount: float
    token_mint: Optional[str] = None
    token_symbol: str
    destination_address: Optional[str] = None
    status: str
    created_at: datetime
    confirmed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DepositRequest(BaseModel):
    amount: float = Field(..., gt=0, description="Expected deposit in SOL")
    tx_hash: Optional[str] = Field(default=None, description="Signature of a deposit already sent")


class DepositConfirmRequest(BaseModel):
    transaction_id: int = Field(..., gt=0)
    tx_hash: Optional[str] = None


class WithdrawRequest(BaseModel):
    amount: float = Field(..., gt=0, description="Amount in SOL")
    destination_address: Optional[str] = Field(
        default=None, min_length=32, max_length=44, description="Defaults to the signed-in wallet"
    )


class WalletBalanceResponse(BaseModel):
    address: str
    balance: float
    lamports: int
