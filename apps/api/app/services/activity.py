"""Helpers for the per-agent activity log."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_log import ActivityLog
from app.utils.validators import LOG_LEVELS


def record_activity(
    session: AsyncSession,
    agent_id: int,
    action: str,
    details: Optional[str] = None,
    level: str = "info",
) -> ActivityLog:
    """Stage an ActivityLog row on ``session``. The caller commits."""
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown activity level '{level}'")
    entry = ActivityLog(agent_id=agent_id, action=action, details=details, level=level)
    session.add(entry)
    return entry
