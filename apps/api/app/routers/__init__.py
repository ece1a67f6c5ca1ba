"""Routers package."""
from app.routers.auth import router as auth_router
from app.routers.wallet import router as wallet_router
from app.routers.agents import router as agents_router
from app.routers.transactions import router as transactions_router
from app.routers.activity import router as activity_router
from app.routers.watchlist import router as watchlist_router
from app.routers.tokens import router as tokens_router
from app.routers.market import router as market_router
from app.routers.swap import router as swap_router
from app.routers.trades import router as trades_router
from app.routers.live import router as live_router

__all__ = [
    "auth_router",
    "wallet_router",
    "agents_router",
    "transactions_router",
    "activity_router",
    "watchlist_router",
    "tokens_router",
    "market_router",
    "swap_router",
    "trades_router",
    "live_router",
]
