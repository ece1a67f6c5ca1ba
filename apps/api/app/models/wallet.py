"""Custodial wallet and its deposit/withdrawal ledger."""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import Integer, String, Float, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User


WALLET_STATUSES = ("active", "suspended")
OPEN_TX_STATUSES = ("awaiting_deposit", "pending")
TERMINAL_TX_STATUSES = ("confirmed", "failed")


class ManagedWallet(Base):
    """Server-held keypair owned by exactly one user."""

    __tablename__ = "managed_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    public_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    # Null only for wallets that were never provisioned with a key
    encrypted_secret_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        onupdate=datetime.utcnow,
    )

    user: Mapped["User"] = relationship("User", back_populates="managed_wallet")
    transactions: Mapped[List["WalletTransaction"]] = relationship(
        "WalletTransaction",
        back_populates="wallet",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def can_sign(self) -> bool:
        return bool(self.encrypted_secret_key)

    def __repr__(self) -> str:
        return f"<ManagedWallet(id={self.id}, public_key={self.public_key}, balance={self.balance})>"

    def to_dict(self) -> dict:
        """Client-safe view. The encrypted key is never part of it."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "public_key": self.public_key,
            "balance": self.balance,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class WalletTransaction(Base):
    """Append-only deposit/withdrawal record. Only status and hash ever move."""

    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("managed_wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    tx_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tx_type: Mapped[str] = mapped_column(String(20), nullable=False)      # deposit | withdraw
    direction: Mapped[str] = mapped_column(String(5), nullable=False)     # in | out
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    token_mint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    token_symbol: Mapped[str] = mapped_column(String(20), nullable=False, default="SOL")
    destination_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    wallet: Mapped["ManagedWallet"] = relationship("ManagedWallet", back_populates="transactions")

    __table_args__ = (
        Index("idx_wallet_tx_wallet_created", "wallet_id", "created_at"),
    )

    @validates("amount")
    def _validate_amount(self, key, value):
        if self.amount is not None and value != self.amount:
            raise ValueError("WalletTransaction amount is immutable")
        return value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TX_STATUSES

    def mark(self, status: str, tx_hash: Optional[str] = None) -> None:
        """Move an open record to a terminal status."""
        if status not in TERMINAL_TX_STATUSES:
            raise ValueError(f"Unknown terminal status '{status}'")
        if self.is_terminal:
            raise ValueError(f"Transaction {self.id} is already {self.status}")
        self.status = status
        if tx_hash:
            self.tx_hash = tx_hash
        if status == "confirmed":
            self.confirmed_at = datetime.utcnow()

    def __repr__(self) -> str:
        return f"<WalletTransaction(id={self.id}, type={self.tx_type}, amount={self.amount}, status={self.status})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "wallet_id": self.wallet_id,
            "tx_hash": self.tx_hash,
            "tx_type": self.tx_type,
            "direction": self.direction,
            "amount": self.amount,
            "token_mint": self.token_mint,
            "token_symbol": self.token_symbol,
            "destination_address": self.destination_address,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
        }
