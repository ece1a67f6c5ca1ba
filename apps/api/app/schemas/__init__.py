"""Pydantic schemas package."""
from app.schemas.agent import (
    AgentCreate,
    AgentUpdate,
    AgentResponse,
    AgentExecuteRequest,
    AgentDecision,
    MarketAnalysis,
)
from app.schemas.wallet import (
    ManagedWalletResponse,
    WalletTransactionResponse,
    DepositRequest,
    DepositConfirmRequest,
    WithdrawRequest,
    WalletBalanceResponse,
)
from app.schemas.watchlist import (
    WatchlistCreate,
    WatchlistUpdate,
    WatchlistResponse,
)
from app.schemas.token import (
    PulseToken,
    TokenBalance,
    SupportedToken,
)
from app.schemas.trade import (
    SwapQuote,
    SwapQuoteRequest,
    SwapTransactionRequest,
    TradeResult,
    TriggerDecision,
    AutoTradeSummary,
)
from app.schemas.activity import TransactionCreate
from app.schemas.common import (
    ErrorResponse,
)

__all__ = [
    # Agent
    "AgentCreate",
    "AgentUpdate",
    "AgentResponse",
    "AgentExecuteRequest",
    "AgentDecision",
    "MarketAnalysis",
    # Wallet
    "ManagedWalletResponse",
    "WalletTransactionResponse",
    "DepositRequest",
    "DepositConfirmRequest",
    "WithdrawRequest",
    "WalletBalanceResponse",
    # Watchlist
    "WatchlistCreate",
    "WatchlistUpdate",
    "WatchlistResponse",
    # Token
    "PulseToken",
    "TokenBalance",
    "SupportedToken",
    # Trade
    "SwapQuote",
    "SwapQuoteRequest",
    "SwapTransactionRequest",
    "TradeResult",
    "TriggerDecision",
    "AutoTradeSummary",
    # Activity
    "TransactionCreate",
    # Common
    "ErrorResponse",
]
