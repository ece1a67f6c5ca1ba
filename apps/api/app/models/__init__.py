"""Database models package."""
from app.models.user import User
from app.models.wallet import ManagedWallet, WalletTransaction
from app.models.token import DiscoveredToken
from app.models.agent import Agent
from app.models.transaction import Transaction
from app.models.activity_log import ActivityLog
from app.models.watchlist import WatchlistItem

__all__ = [
    "User",
    "ManagedWallet",
    "WalletTransaction",
    "DiscoveredToken",
    "Agent",
    "Transaction",
    "ActivityLog",
    "WatchlistItem",
]
