"""Per-agent on-chain transaction record."""
from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, Float, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    tx_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tx_type: Mapped[str] = mapped_column(String(30), nullable=False)  # swap_buy | swap_sell | stake | ...
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    token_symbol: Mapped[str] = mapped_column(String(32), nullable=False, default="SOL")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    from_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    to_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    extra_data: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_transaction_agent_created", "agent_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, agent={self.agent_id}, type={self.tx_type}, status={self.status})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "tx_hash": self.tx_hash,
            "tx_type": self.tx_type,
            "amount": self.amount,
            "token_symbol": self.token_symbol,
            "status": self.status,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "metadata": self.extra_data or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
