"""Agent model: a named automation unit owned by a user."""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    Integer,
    String,
    Float,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User


class Agent(Base):
    """An AI agent. Trades draw from the owner's managed wallet, never from the agent."""

    __tablename__ = "agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    managed_wallet_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("managed_wallets.id", ondelete="SET NULL"),
        nullable=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    task_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="idle", index=True)

    # Budget and rolling counters
    budget_limit: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    current_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Strategy configuration
    config: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    target_tokens: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True, default=list)
    auto_trade_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    max_trade_amount: Mapped[float] = mapped_column(Float, default=0.1)
    stop_loss_percent: Mapped[float] = mapped_column(Float, default=10.0)
    take_profit_percent: Mapped[float] = mapped_column(Float, default=20.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        onupdate=datetime.utcnow,
    )

    user: Mapped["User"] = relationship("User", back_populates="agents")

    __table_args__ = (
        Index("idx_agent_user_status", "user_id", "status"),
        Index("idx_agent_task_type", "task_type"),
    )

    @validates("total_transactions")
    def _validate_total_transactions(self, key, value):
        if self.total_transactions is not None and value < self.total_transactions:
            raise ValueError("total_transactions can only increase")
        return value

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, name={self.name}, task={self.task_type}, status={self.status})>"

    def to_dict(self) -> dict:
        """Convert agent to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "managed_wallet_id": self.managed_wallet_id,
            "name": self.name,
            "description": self.description,
            "task_type": self.task_type,
            "status": self.status,
            "budget_limit": self.budget_limit,
            "current_balance": self.current_balance,
            "total_transactions": self.total_transactions,
            "success_rate": self.success_rate,
            "config": self.config or {},
            "target_tokens": self.target_tokens or [],
            "auto_trade_enabled": self.auto_trade_enabled,
            "max_trade_amount": self.max_trade_amount,
            "stop_loss_percent": self.stop_loss_percent,
            "take_profit_percent": self.take_profit_percent,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
