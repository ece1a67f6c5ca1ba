from datetime import datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Integer, Float, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User


class WatchlistItem(Base):
    __tablename__ = "token_watchlist"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)

    token_mint: Mapped[str] = mapped_column(String(64), index=True)
    symbol: Mapped[str] = mapped_column(String(32))
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Price triggers
    target_buy_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    target_sell_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_buy_amount: Mapped[float] = mapped_column(Float, default=0.1)  # SOL spent per buy trigger

    auto_trade_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    alerts_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="watchlist_items")

    __table_args__ = (
        UniqueConstraint("user_id", "token_mint", name="uq_watchlist_user_mint"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "token_mint": self.token_mint,
            "symbol": self.symbol,
            "name": self.name,
            "target_buy_price": self.target_buy_price,
            "target_sell_price": self.target_sell_price,
            "max_buy_amount": self.max_buy_amount,
            "auto_trade_enabled": self.auto_trade_enabled,
            "alerts_enabled": self.alerts_enabled,
            "notes": self.notes,
            "added_at": self.added_at.isoformat() if self.added_at else None,
        }
