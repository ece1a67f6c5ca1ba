"""Discovered token model for ingested market snapshots."""
from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, Float, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class DiscoveredToken(Base):
    """Latest market snapshot for a mint. Upserted each ingestion cycle, never deleted."""

    __tablename__ = "discovered_tokens"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Token identification
    mint_address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    decimals: Mapped[int] = mapped_column(Integer, default=9)

    # Market data
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_change_24h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volume_24h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    market_cap: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    holders: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    risk_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    source: Mapped[str] = mapped_column(String(30), default="axiom")
    extra_data: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    # Timestamps
    discovered_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        onupdate=datetime.utcnow,
    )

    # Indexes
    __table_args__ = (
        Index("idx_discovered_token_volume", "volume_24h"),
        Index("idx_discovered_token_discovered", "discovered_at"),
    )

    def __repr__(self) -> str:
        return f"<DiscoveredToken(symbol={self.symbol}, mint={self.mint_address}, price={self.price})>"

    def to_dict(self) -> dict:
        """Convert token to dictionary."""
        return {
            "id": self.id,
            "mint_address": self.mint_address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "price": self.price,
            "price_change_24h": self.price_change_24h,
            "volume_24h": self.volume_24h,
            "market_cap": self.market_cap,
            "holders": self.holders,
            "risk_score": self.risk_score,
            "source": self.source,
            "metadata": self.extra_data or {},
            "discovered_at": self.discovered_at.isoformat() if self.discovered_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
