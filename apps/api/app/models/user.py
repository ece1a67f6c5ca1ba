"""User model for wallet-based authentication."""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.wallet import ManagedWallet
    from app.models.agent import Agent
    from app.models.watchlist import WatchlistItem


class User(Base):
    """A user identified by the public key of their own (non-custodial) wallet."""

    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    wallet_address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Single-use login challenge
    nonce: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    nonce_issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    managed_wallet: Mapped[Optional["ManagedWallet"]] = relationship(
        "ManagedWallet",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    agents: Mapped[List["Agent"]] = relationship(
        "Agent",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    watchlist_items: Mapped[List["WatchlistItem"]] = relationship(
        "WatchlistItem",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_user_wallet_address", "wallet_address"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, wallet={self.wallet_address})>"

    def to_dict(self) -> dict:
        """Public profile. Never includes the nonce."""
        return {
            "id": self.id,
            "wallet_address": self.wallet_address,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
        }
