"""
Watchlist trigger evaluation and the auto-trade sweep.

Rules, first match wins:
  1. auto-trade off                   → skip
  2. no live price                    → skip
  3. price <= target buy              → buy  max_buy_amount
  4. price >= target sell             → sell (executor liquidates the full position)
  5. otherwise                        → skip

Buy is checked before sell, so a misconfigured item with buy >= sell buys.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.agent import Agent
from app.models.token import DiscoveredToken
from app.models.user import User
from app.models.watchlist import WatchlistItem
from app.schemas.trade import AutoTradeSummary, TriggerDecision
from app.services.trade_executor import TradeExecutor

logger = logging.getLogger(__name__)


def evaluate(item: WatchlistItem, latest: Optional[DiscoveredToken]) -> TriggerDecision:
    """Decide buy / sell / skip for one watchlist item against its latest snapshot."""
    if not item.auto_trade_enabled:
        return TriggerDecision(action="skip", reason="auto-trade disabled")

    price = latest.price if latest is not None else None
    if price is None or price <= 0:
        return TriggerDecision(action="skip", reason="no price")

    if item.target_buy_price is not None and price <= item.target_buy_price:
        return TriggerDecision(
            action="buy",
            reason=f"Price {price} <= target buy {item.target_buy_price}",
            amount=item.max_buy_amount or 0.1,
            price=price,
        )

    if item.target_sell_price is not None and price >= item.target_sell_price:
        return TriggerDecision(
            action="sell",
            reason=f"Price {price} >= target sell {item.target_sell_price}",
            price=price,
        )

    return TriggerDecision(action="skip", reason="conditions not met", price=price)


async def find_sniper_agent(session: AsyncSession, user_id: int) -> Optional[Agent]:
    """The user's running token_sniper agent that executes watchlist triggers."""
    result = await session.execute(
        select(Agent)
        .where(
            Agent.user_id == user_id,
            Agent.task_type == "token_sniper",
            Agent.status == "running",
            Agent.is_active == True,
        )
        .order_by(Agent.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def process_auto_trades(
    session: AsyncSession,
    user: User,
    executor: Optional[TradeExecutor] = None,
) -> AutoTradeSummary:
    """
    Evaluate every auto-trade watchlist item of ``user`` and execute triggers.

    Items are handled independently; one failed trade does not stop the sweep.
    """
    executor = executor or TradeExecutor(session)
    user_id = user.id

    items: List[WatchlistItem] = list((await session.execute(
        select(WatchlistItem).where(
            WatchlistItem.user_id == user_id,
            WatchlistItem.auto_trade_enabled == True,
        )
    )).scalars().all())

    if not items:
        return AutoTradeSummary(processed=0, executed=0)

    agent = await find_sniper_agent(session, user_id)
    if agent is None:
        logger.info(f"No running token_sniper agent for user #{user_id}; skipping auto-trades")
        return AutoTradeSummary(
            processed=0,
            executed=0,
            results=[{"reason": "No active token sniper agent found"}],
        )

    mints = [item.token_mint for item in items]
    tokens = {
        t.mint_address: t
        for t in (await session.execute(
            select(DiscoveredToken).where(DiscoveredToken.mint_address.in_(mints))
        )).scalars().all()
    }

    # Snapshot plain values; executor commits and rollbacks must not touch these rows
    snapshots = [(item.token_mint, item.symbol, evaluate(item, tokens.get(item.token_mint))) for item in items]

    results = []
    executed = 0
    for token_mint, symbol, decision in snapshots:
        if decision.action == "skip":
            results.append({"token_mint": token_mint, "symbol": symbol, "action": "skip", "reason": decision.reason})
            continue

        logger.info(f"🎯 Trigger {decision.action.upper()} {symbol}: {decision.reason}")
        outcome = await executor.execute(
            agent,
            token_mint,
            decision.action,
            decision.amount or 0.0,
            price=decision.price,
        )
        if outcome.success:
            executed += 1
        results.append({
            "token_mint": token_mint,
            "symbol": symbol,
            "action": decision.action,
            "reason": decision.reason,
            "status": outcome.status,
            "tx_id": outcome.tx_id,
            "error": outcome.error,
        })

    return AutoTradeSummary(processed=len(snapshots), executed=executed, results=results)
