"""Application configuration settings."""
import os
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings

# .env may sit at the workspace root or in apps/api
_here = os.path.dirname(os.path.abspath(__file__))           # .../apps/api/app
_api_env = os.path.join(_here, "..", ".env")                  # .../apps/api/.env
_root_env = os.path.join(_here, "..", "..", "..", ".env")      # .../.env
_env_file = _api_env if os.path.exists(_api_env) else (_root_env if os.path.exists(_root_env) else ".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./sentinel_os.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Application
    secret_key: str = "change-me-in-production"
    debug: bool = False
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5000", "http://localhost:8000"]

    # Cache
    cache_enabled: bool = True

    # API Settings
    api_v1_prefix: str = "/api/v1"
    project_name: str = "SentinelOS"

    # Wallet sessions
    session_token_hours: int = 24
    nonce_ttl_seconds: int = 300

    # Custodial key encryption (scrypt-derived AES-256-GCM key)
    wallet_encryption_key: str = "sentinel-default-key"
    wallet_encryption_salt: str = "salt"

    # Solana RPC (tried in order)
    solana_rpc_urls: List[str] = [
        "https://api.mainnet-beta.solana.com",
        "https://rpc.ankr.com/solana",
        "https://solana-api.projectserum.com",
    ]
    rpc_timeout_seconds: float = 10.0
    confirm_timeout_seconds: float = 60.0
    send_max_retries: int = 3

    # Jupiter aggregator
    jupiter_api_base: str = "https://lite-api.jup.ag/swap/v1"
    jupiter_price_url: str = "https://price.jup.ag/v6/price"
    jupiter_timeout_seconds: float = 15.0
    default_slippage_bps: int = 50
    priority_fee_lamports: int = 5_000_000

    # Axiom pulse market data
    pulse_api_url: str = "https://axiom.trade/api/pulse?chain=sol"
    pulse_enabled: bool = True
    pulse_interval_seconds: int = 120
    pulse_timeout_seconds: float = 15.0

    # Decision oracle (OpenAI-compatible chat completions)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o"
    llm_timeout_seconds: float = 30.0

    class Config:
        env_file = _env_file
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
