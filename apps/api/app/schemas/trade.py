"""Swap quote and trade execution schemas."""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class SwapQuote(BaseModel):
    """A priced route from the swap aggregator."""

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: float = 0.0
    slippage_bps: int
    route: List[str] = Field(default_factory=list, description="AMM labels along the route")
    raw: Dict[str, Any] = Field(default_factory=dict, description="Untouched aggregator quote, echoed back on /swap")


class SwapQuoteRequest(BaseModel):
    input_mint: str
    output_mint: str
    amount: int = Field(..., gt=0, description="Input amount in base units")
    slippage_bps: int = Field(default=50, ge=1, le=5000)


class SwapTransactionRequest(BaseModel):
    quote: Dict[str, Any] = Field(..., description="Raw quote returned by /swap/quote")
    user_public_key: str


class TradeResult(BaseModel):
    """Outcome of one executor run. ``error`` is the failure's class name."""

    status: str  # executed | manual_approval_required | failed
    action: str
    token_mint: str
    token_symbol: Optional[str] = None
    amount: float
    price: Optional[float] = None
    out_amount: Optional[int] = None
    tx_id: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "executed"


class TriggerDecision(BaseModel):
    action: str  # buy | sell | skip
    reason: str
    amount: Optional[float] = None
    price: Optional[float] = None


class AutoTradeSummary(BaseModel):
    processed: int
    executed: int
    results: List[Dict[str, Any]] = Field(default_factory=list)
