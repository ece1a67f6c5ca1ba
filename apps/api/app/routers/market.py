"""Market analysis API router."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.schemas.agent import MarketAnalysis
from app.services.decision_service import analyze_market

router = APIRouter(prefix="/market", tags=["Market"])


@router.get("/analyze", response_model=MarketAnalysis)
async def analyze(
    symbol: str = Query(default="SOL", min_length=1, max_length=32),
    session: AsyncSession = Depends(get_session),
):
    """Trend, signals and a recommendation for ``symbol`` from the latest market snapshot."""
    return await analyze_market(session, symbol)
