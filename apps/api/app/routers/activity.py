"""Activity log API router."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_session
from app.models import ActivityLog, Agent, User

router = APIRouter(prefix="/activity-logs", tags=["Activity"])

RECENT_LIMIT = 20


async def _user_logs(session: AsyncSession, user: User, agent_id: Optional[int], limit: int):
    query = (
        select(ActivityLog)
        .join(Agent, Agent.id == ActivityLog.agent_id)
        .where(Agent.user_id == user.id)
    )
    if agent_id is not None:
        query = query.where(ActivityLog.agent_id == agent_id)
    result = await session.execute(
        query.order_by(desc(ActivityLog.created_at), desc(ActivityLog.id)).limit(limit)
    )
    return [log.to_dict() for log in result.scalars().all()]


@router.get("")
async def list_activity_logs(
    agent_id: Optional[int] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Activity of the signed-in user's agents, newest first.

    - **agent_id**: restrict to one agent
    - **limit**: maximum number of entries (1-500)
    """
    return await _user_logs(session, current_user, agent_id, limit)


@router.get("/recent")
async def recent_activity(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The latest activity entries across all of the user's agents."""
    return await _user_logs(session, current_user, None, RECENT_LIMIT)
