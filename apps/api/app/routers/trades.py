"""Auto-trade API router."""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_session
from app.models import User
from app.schemas.trade import AutoTradeSummary
from app.services.trigger_evaluator import process_auto_trades
from app.services.websocket_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trades", tags=["Trades"])


@router.post("/auto-execute", response_model=AutoTradeSummary)
async def auto_execute(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Run the watchlist auto-trade sweep for the signed-in user.

    Needs a running ``token_sniper`` agent; each triggered item is executed
    independently through the managed wallet.
    """
    user_id = current_user.id
    summary = await process_auto_trades(session, current_user)
    await manager.publish("auto_trades_processed", {"user_id": user_id, **summary.model_dump()})
    return summary
