"""Agent transaction and activity-log schemas."""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class TransactionCreate(BaseModel):
    agent_id: int = Field(..., gt=0)
    tx_type: str = Field(..., min_length=1, max_length=30)
    amount: float = Field(..., ge=0)
    token_symbol: str = "SOL"
    tx_hash: Optional[str] = None
    status: str = "pending"
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
