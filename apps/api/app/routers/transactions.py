"""Agent transactions API router."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_session
from app.models import Agent, Transaction, User
from app.routers.agents import get_owned_agent
from app.schemas.activity import TransactionCreate
from app.services.activity import record_activity
from app.services.websocket_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("")
async def list_transactions(
    agent_id: Optional[int] = Query(default=None, description="Only this agent's transactions"),
    limit: int = Query(default=100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List transactions of the signed-in user's agents, newest first."""
    query = (
        select(Transaction)
        .join(Agent, Agent.id == Transaction.agent_id)
        .where(Agent.user_id == current_user.id)
    )
    if agent_id is not None:
        query = query.where(Transaction.agent_id == agent_id)

    result = await session.execute(
        query.order_by(desc(Transaction.created_at), desc(Transaction.id)).limit(limit)
    )
    return [t.to_dict() for t in result.scalars().all()]


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    result = await session.execute(
        select(Transaction)
        .join(Agent, Agent.id == Transaction.agent_id)
        .where(Transaction.id == transaction_id, Agent.user_id == current_user.id)
    )
    transaction = result.scalar_one_or_none()
    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction with ID {transaction_id} not found",
        )
    return transaction.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: TransactionCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Record a transaction made outside the trade executor.

    Bumps the agent's transaction counter and writes an activity entry.
    """
    agent = await get_owned_agent(session, request.agent_id, current_user)

    transaction = Transaction(
        agent_id=agent.id,
        tx_hash=request.tx_hash,
        tx_type=request.tx_type,
        amount=request.amount,
        token_symbol=request.token_symbol,
        status=request.status,
        from_address=request.from_address,
        to_address=request.to_address,
        extra_data=request.metadata,
    )
    session.add(transaction)
    agent.total_transactions = agent.total_transactions + 1
    record_activity(
        session,
        agent.id,
        f"Transaction {transaction.tx_type}",
        f"{transaction.amount} {transaction.token_symbol}",
        level="info",
    )
    await session.commit()
    await session.refresh(transaction)

    payload = transaction.to_dict()
    await manager.publish("transaction_created", payload)
    return payload
