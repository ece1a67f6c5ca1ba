"""
SentinelOS API

Custodial Solana wallets for AI trading agents: wallet sign-in, managed
wallets, agent decisions, Jupiter swap execution, watchlist auto-trades and
a live event stream.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import create_tables
from app.cache import init_cache, close_cache
from app.exceptions import SentinelError
from app.schemas.common import ErrorResponse
from app.routers import (
    auth_router,
    wallet_router,
    agents_router,
    transactions_router,
    activity_router,
    watchlist_router,
    tokens_router,
    market_router,
    swap_router,
    trades_router,
    live_router,
)
from app.services.pulse_ingestion import pulse_ingestion

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("🚀 Starting SentinelOS API...")

    await create_tables()
    logger.info("✅ Database tables created")

    await init_cache()

    if settings.pulse_enabled:
        await pulse_ingestion.start()
    else:
        logger.info("⏸️ Pulse ingestion disabled")

    logger.info("✅ Application started successfully")
    logger.info("📊 API docs available at: http://localhost:8000/docs")

    yield

    # Shutdown
    logger.info("🛑 Shutting down...")
    await pulse_ingestion.stop()
    await close_cache()
    logger.info("✅ Cleanup complete")


# Create FastAPI application
app = FastAPI(
    title=f"{settings.project_name} API",
    description="""
## Custodial Solana wallets for AI trading agents

### Features:
- 🔐 **Wallet sign-in** - sign a one-time challenge, get a session token
- 👛 **Managed wallets** - one server-held wallet per user, key encrypted at rest
- 🤖 **Agents** - LLM-assisted decisions, Jupiter swap execution
- 🎯 **Watchlist auto-trades** - buy/sell on price targets
- 📡 **Token pulse** - market-data ingestion with risk scoring
- 🔴 **Real-time** - WebSocket event stream

### Authentication:
`POST /api/v1/auth/nonce`, sign the returned message, then
`POST /api/v1/auth/verify`. Send the token as `Authorization: Bearer <token>`.
    """,
    version="1.0.0",
    contact={
        "name": "SentinelOS",
    },
    license_info={
        "name": "MIT",
    },
    lifespan=lifespan,
)

logger.info(f"🔒 CORS Allowed Origins: {settings.cors_origins}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SentinelError)
async def sentinel_error_handler(request: Request, exc: SentinelError):
    """Render domain errors as ``{"detail", "code"}`` with their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.message, code=exc.code).model_dump(),
    )


# Include API routers
app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(wallet_router, prefix=settings.api_v1_prefix)
app.include_router(agents_router, prefix=settings.api_v1_prefix)
app.include_router(transactions_router, prefix=settings.api_v1_prefix)
app.include_router(activity_router, prefix=settings.api_v1_prefix)
app.include_router(watchlist_router, prefix=settings.api_v1_prefix)
app.include_router(tokens_router, prefix=settings.api_v1_prefix)
app.include_router(market_router, prefix=settings.api_v1_prefix)
app.include_router(swap_router, prefix=settings.api_v1_prefix)
app.include_router(trades_router, prefix=settings.api_v1_prefix)
app.include_router(live_router, prefix=settings.api_v1_prefix)


# ============== Health Check ==============

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "sentinel-os-api",
        "version": "1.0.0",
    }


@app.get("/api/v1", tags=["API Info"])
async def api_info():
    """API version and information."""
    return {
        "name": f"{settings.project_name} API",
        "version": "1.0.0",
        "endpoints": {
            "auth": f"{settings.api_v1_prefix}/auth",
            "wallet": f"{settings.api_v1_prefix}/managed-wallet",
            "agents": f"{settings.api_v1_prefix}/agents",
            "watchlist": f"{settings.api_v1_prefix}/watchlist",
            "tokens": f"{settings.api_v1_prefix}/tokens/discovered",
            "swap": f"{settings.api_v1_prefix}/swap",
        },
        "documentation": "/docs",
        "websocket": f"{settings.api_v1_prefix}/live/stream",
    }
