"""Agents API router: CRUD, decisions and action execution."""
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user, get_user_wallet
from app.database import get_session
from app.exceptions import ValidationError
from app.models import Agent, User
from app.schemas.agent import (
    AgentCreate,
    AgentUpdate,
    AgentResponse,
    AgentExecuteRequest,
    AgentDecision,
)
from app.services.activity import record_activity
from app.services.decision_service import decision_service
from app.services.jupiter_service import SOL_MINT, USDC_MINT, jupiter_service, symbol_for_mint
from app.services.trade_executor import TradeExecutor
from app.services.websocket_manager import manager
from app.utils.helpers import SOL_DECIMALS, to_base_units

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["Agents"])


async def get_owned_agent(session: AsyncSession, agent_id: int, user: User) -> Agent:
    """Load an agent belonging to ``user`` or 404."""
    result = await session.execute(
        select(Agent).where(Agent.id == agent_id, Agent.user_id == user.id)
    )
    agent = result.scalar_one_or_none()
    if not agent:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Agent with ID {agent_id} not found",
        )
    return agent


@router.get("", response_model=List[AgentResponse])
async def list_agents(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List the signed-in user's agents, newest first."""
    query = select(Agent).where(Agent.user_id == current_user.id)
    if status_filter:
        query = query.where(Agent.status == status_filter)
    result = await session.execute(query.order_by(desc(Agent.created_at), desc(Agent.id)))
    return [AgentResponse.model_validate(a) for a in result.scalars().all()]


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(
    agent_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    agent = await get_owned_agent(session, agent_id, current_user)
    return AgentResponse.model_validate(agent)


@router.post("", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
async def create_agent(
    request: AgentCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Deploy a new agent.

    The agent trades through the owner's managed wallet.
    """
    wallet = await get_user_wallet(session, current_user)
    agent = Agent(
        user_id=current_user.id,
        managed_wallet_id=wallet.id if wallet else None,
        status="idle",
        **request.model_dump(),
    )
    session.add(agent)
    await session.flush()

    record_activity(
        session,
        agent.id,
        "Agent deployed",
        f"{agent.name} has been created with task type: {agent.task_type}",
        level="success",
    )
    await session.commit()
    await session.refresh(agent)

    logger.info(f"🤖 Agent #{agent.id} '{agent.name}' deployed for user #{current_user.id}")
    await manager.publish("agent_created", agent.to_dict())
    return AgentResponse.model_validate(agent)


@router.patch("/{agent_id}", response_model=AgentResponse)
async def update_agent(
    agent_id: int,
    request: AgentUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Update an agent. A status change is written to the activity log."""
    agent = await get_owned_agent(session, agent_id, current_user)

    update_data = request.model_dump(exclude_unset=True)
    new_status = update_data.get("status")
    status_changed = new_status is not None and new_status != agent.status

    for field, value in update_data.items():
        setattr(agent, field, value)

    if status_changed:
        record_activity(
            session,
            agent.id,
            f"Agent status changed to {new_status}",
            f"{agent.name} is now {new_status}",
            level="info",
        )

    await session.commit()
    await session.refresh(agent)

    if status_changed:
        await manager.publish("agent_status_changed", {"agent": agent.to_dict(), "new_status": new_status})
    await manager.publish("agent_updated", agent.to_dict())
    return AgentResponse.model_validate(agent)


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(
    agent_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Delete an agent together with its transactions and activity log."""
    agent = await get_owned_agent(session, agent_id, current_user)
    name = agent.name

    await session.delete(agent)
    await session.commit()

    logger.info(f"🗑️ Agent #{agent_id} '{name}' deleted")
    await manager.publish("agent_deleted", {"id": agent_id, "name": name})


# ============== Decisions & Actions ==============

@router.post("/{agent_id}/decide", response_model=AgentDecision)
async def decide(
    agent_id: int,
    market_data: Optional[Dict[str, Any]] = Body(default=None, embed=True),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Ask the decision oracle what this agent should do next.

    Falls back to ``wait`` (confidence 50) when the oracle is unavailable.
    """
    agent = await get_owned_agent(session, agent_id, current_user)
    decision = await decision_service.decide(session, agent, market_data)
    await session.commit()
    return decision


@router.post("/{agent_id}/execute")
async def execute_action(
    agent_id: int,
    request: AgentExecuteRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Execute one action for a running agent.

    - **buy / sell**: real swap through the managed wallet (sell liquidates
      the whole position)
    - **swap**: quote only, nothing is signed
    - **stake**: prepared, not executed
    - **monitor / wait / alert**: recorded in the activity log
    """
    agent = await get_owned_agent(session, agent_id, current_user)
    if agent.status != "running":
        raise ValidationError("Agent must be running to execute actions")

    action = request.action

    if action in ("buy", "sell"):
        if not request.token_mint:
            raise ValidationError("token_mint is required for buy and sell")
        amount = request.amount or agent.max_trade_amount
        if action == "buy" and amount > agent.budget_limit:
            raise ValidationError(
                f"Amount {amount} SOL exceeds the agent's budget limit of {agent.budget_limit} SOL"
            )
        result = await TradeExecutor(session).execute(agent, request.token_mint, action, amount)
        return result.model_dump()

    if action == "swap":
        output_mint = request.token_mint or USDC_MINT
        amount = request.amount or 0.01
        quote = await jupiter_service.get_quote(SOL_MINT, output_mint, to_base_units(amount, SOL_DECIMALS))
        symbol = symbol_for_mint(output_mint) or output_mint[:8]
        record_activity(
            session,
            agent.id,
            "Swap quote",
            f"Quote: {amount} SOL -> {quote.out_amount} base units of {symbol}",
            level="info",
        )
        await session.commit()
        return {
            "action": "swap",
            "input_mint": SOL_MINT,
            "output_mint": output_mint,
            "input_amount": amount,
            "quote": quote.model_dump(),
            "status": "quote_ready",
            "message": "Swap quote ready - awaiting wallet signature for execution",
        }

    if action == "stake":
        amount = request.amount or 0.01
        record_activity(session, agent.id, "Stake prepared", f"Ready to stake {amount} SOL", level="info")
        await session.commit()
        return {
            "action": "stake",
            "amount": amount,
            "status": "pending",
            "message": "Staking action prepared - awaiting execution",
        }

    if action == "alert":
        record_activity(
            session,
            agent.id,
            "Agent alert",
            request.reasoning or f"{agent.name} raised an alert",
            level="warning",
        )
        await session.commit()
        return {"action": "alert", "status": "acknowledged", "message": "Alert recorded"}

    # monitor | wait
    verb = "monitoring" if action == "monitor" else "waiting for"
    record_activity(
        session,
        agent.id,
        f"Agent {'monitoring' if action == 'monitor' else 'waiting'}",
        request.reasoning or f"{agent.name} is {verb} optimal conditions",
        level="info",
    )
    await session.commit()
    return {"action": action, "status": "acknowledged", "message": "Agent is monitoring market conditions"}
