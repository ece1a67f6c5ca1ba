"""Agent schemas for request/response validation."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from app.utils.validators import TASK_TYPES, AGENT_STATUSES, AGENT_ACTIONS


class AgentBase(BaseModel):
    """Base agent schema with common fields."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    task_type: str = Field(..., description=" | ".join(TASK_TYPES))
    budget_limit: float = Field(default=1.0, ge=0, description="Max SOL the agent may deploy")
    config: Optional[Dict[str, Any]] = None
    target_tokens: Optional[List[str]] = Field(default=[])
    auto_trade_enabled: bool = False
    max_trade_amount: float = Field(default=0.1, gt=0)
    stop_loss_percent: float = Field(default=10.0, ge=0, le=100)
    take_profit_percent: float = Field(default=20.0, ge=0)

    @field_validator("task_type")
    @classmethod
    def validate_task_type(cls, v: str) -> str:
        if v not in TASK_TYPES:
            raise ValueError(f"Task type must be one of: {TASK_TYPES}")
        return v


class AgentCreate(AgentBase):
    """Schema for creating a new agent."""


class AgentUpdate(BaseModel):
    """Schema for updating an existing agent."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[str] = None
    budget_limit: Optional[float] = Field(default=None, ge=0)
    config: Optional[Dict[str, Any]] = None
    target_tokens: Optional[List[str]] = None
    auto_trade_enabled: Optional[bool] = None
    max_trade_amount: Optional[float] = Field(default=None, gt=0)
    stop_loss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    take_profit_percent: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if v not in AGENT_STATUSES:
            raise ValueError(f"Status must be one of: {AGENT_STATUSES}")
        return v


class AgentResponse(BaseModel):
    """Schema for agent response."""

    id: int
    user_id: int
    managed_wallet_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    task_type: str
    status: str
    budget_limit: float
    current_balance: float
    total_transactions: int
    success_rate: float
    config: Optional[Dict[str, Any]] = None
    target_tokens: Optional[List[str]] = []
    auto_trade_enabled: bool
    max_trade_amount: float
    stop_loss_percent: float
    take_profit_percent: float
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AgentExecuteRequest(BaseModel):
    """Execute a single action on behalf of an agent."""

    action: str = Field(..., description="buy | sell | monitor | wait")
    token_mint: Optional[str] = None
    amount: Optional[float] = Field(default=None, gt=0)
    reasoning: Optional[str] = None

    @field_validator("action")
    @classmethod
    def validate_action(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in AGENT_ACTIONS:
            raise ValueError(f"Action must be one of: {AGENT_ACTIONS}")
        return v_lower


class AgentDecision(BaseModel):
    """Output of the decision oracle."""

    action: str = "wait"
    confidence: int = Field(default=50, ge=0, le=100)
    reasoning: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)


class MarketAnalysis(BaseModel):
    symbol: str
    price: float
    change_24h: float
    volume_24h: float
    trend: str = "neutral"
    signals: List[str] = Field(default_factory=list)
    recommendation: str = ""
