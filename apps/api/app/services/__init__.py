"""Services package."""
from app.services.solana_rpc import SolanaRpcService, solana_rpc
from app.services.jupiter_service import JupiterService, jupiter_service
from app.services.wallet_manager import WalletManager, wallet_manager
from app.services.trade_executor import TradeExecutor
from app.services.decision_service import DecisionService, decision_service
from app.services.pulse_ingestion import PulseIngestionService, pulse_ingestion

__all__ = [
    "SolanaRpcService",
    "solana_rpc",
    "JupiterService",
    "jupiter_service",
    "WalletManager",
    "wallet_manager",
    "TradeExecutor",
    "DecisionService",
    "decision_service",
    "PulseIngestionService",
    "pulse_ingestion",
]
