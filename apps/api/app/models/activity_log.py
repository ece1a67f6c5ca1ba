"""Append-only per-agent audit trail."""
from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ActivityLog(Base):
    """User-facing narrative of what an agent did and why."""

    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    action: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    level: Mapped[str] = mapped_column(String(10), nullable=False, default="info")  # info | success | warning | error

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_activity_agent_created", "agent_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(id={self.id}, agent={self.agent_id}, level={self.level}, action={self.action})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "action": self.action,
            "details": self.details,
            "level": self.level,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
