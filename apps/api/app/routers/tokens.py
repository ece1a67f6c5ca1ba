"""Discovered tokens API router with caching."""
import logging
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi_cache.decorator import cache
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.cache import custom_key_builder, clear_cache
from app.database import get_session
from app.models import DiscoveredToken, User
from app.schemas.token import DiscoveredTokenList
from app.services.pulse_ingestion import pulse_ingestion

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tokens", tags=["Tokens"])


@router.get("/discovered", response_model=DiscoveredTokenList)
@cache(expire=30, key_builder=custom_key_builder)  # 30 second cache
async def list_discovered_tokens(
    request: Request,
    response: Response,
    limit: int = Query(default=50, ge=1, le=200),
    max_risk: int = Query(default=10, ge=1, le=10, description="Hide tokens riskier than this"),
    session: AsyncSession = Depends(get_session),
):
    """
    Tokens seen on the market-data pulse feed, newest first.

    **CACHED ENDPOINT** - refreshed by the background poller.

    - **limit**: Maximum number of tokens to return (1-200)
    - **max_risk**: Only tokens with a risk score at or below this value
    """
    query = select(DiscoveredToken)
    if max_risk < 10:
        query = query.where(DiscoveredToken.risk_score <= max_risk)
    result = await session.execute(
        query.order_by(desc(DiscoveredToken.discovered_at), desc(DiscoveredToken.id)).limit(limit)
    )
    tokens = [t.to_dict() for t in result.scalars().all()]
    return {"tokens": tokens, "count": len(tokens)}


@router.post("/refresh")
async def refresh_tokens(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Run one ingestion cycle now instead of waiting for the poller."""
    count = await pulse_ingestion.ingest(session)
    await clear_cache("*list_discovered_tokens*")
    return {"success": True, "ingested_count": count}
