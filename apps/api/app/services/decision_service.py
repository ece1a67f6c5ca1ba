"""
Decision oracle for agents.

Calls an OpenAI-compatible ``/chat/completions`` endpoint and asks for a JSON
decision. Any failure (no key, transport error, bad JSON, unknown action)
degrades to "wait" with confidence 50; the oracle never raises.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.agent import Agent
from app.models.token import DiscoveredToken
from app.schemas.agent import AgentDecision, MarketAnalysis
from app.services.activity import record_activity

logger = logging.getLogger(__name__)

DECISION_ACTIONS = ("swap", "stake", "wait", "monitor", "alert")
FALLBACK_REASONING = "Unable to make decision due to an error. Waiting for next cycle."

SYSTEM_PROMPT = """You are an AI agent for the SentinelOS DeFi platform on Solana. You are managing an autonomous trading agent.

Agent Configuration:
- Name: {name}
- Task Type: {task_type}
- Budget Limit: {budget_limit} SOL
- Current Balance: {current_balance} SOL
- Total Transactions: {total_transactions}
- Success Rate: {success_rate}%

Your task is to analyze the current situation and make a decision for this agent.
Available actions:
- swap: Execute a token swap
- stake: Stake tokens for yield
- wait: Wait for better conditions
- monitor: Continue monitoring without action
- alert: Alert the user about important conditions

Respond with a JSON object containing:
{{
  "action": "one of the available actions",
  "confidence": 0-100 (how confident you are in this decision),
  "reasoning": "brief explanation of your decision",
  "parameters": {{}} (optional parameters for the action)
}}"""


class DecisionService:
    """LLM-backed agent decisions with a safe default."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.base_url = (base_url or settings.llm_base_url).rstrip("/")
        self.model = model or settings.llm_model

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def decide(
        self,
        session: AsyncSession,
        agent: Agent,
        market_data: Optional[Dict[str, Any]] = None,
    ) -> AgentDecision:
        """
        Ask the oracle what ``agent`` should do next.

        A successful decision stages an ``info`` ActivityLog row on
        ``session``; the caller commits.
        """
        if not self.is_available:
            logger.debug("Decision oracle not configured; defaulting to wait")
            return self.fallback()

        try:
            content = await self._complete(agent, market_data)
            decision = self._parse(content)
        except Exception as e:
            logger.error(f"Error getting agent decision: {type(e).__name__}: {e}")
            return self.fallback()

        record_activity(
            session,
            agent.id,
            f"AI Decision: {decision.action}",
            decision.reasoning,
            level="info",
        )
        logger.info(f"🧠 Agent #{agent.id} decision: {decision.action} ({decision.confidence}%)")
        return decision

    @staticmethod
    def fallback() -> AgentDecision:
        return AgentDecision(action="wait", confidence=50, reasoning=FALLBACK_REASONING)

    async def _complete(self, agent: Agent, market_data: Optional[Dict[str, Any]]) -> str:
        system_prompt = SYSTEM_PROMPT.format(
            name=agent.name,
            task_type=agent.task_type,
            budget_limit=agent.budget_limit,
            current_balance=agent.current_balance,
            total_transactions=agent.total_transactions,
            success_rate=agent.success_rate,
        )
        if market_data:
            user_prompt = f"Current market conditions: {json.dumps(market_data, default=str)}\n\nWhat action should the agent take?"
        else:
            user_prompt = "What action should the agent take based on its current configuration?"

        async with httpx.AsyncClient(timeout=settings.llm_timeout_seconds) as client:
            resp = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    "response_format": {"type": "json_object"},
                    "max_tokens": 500,
                },
            )
        resp.raise_for_status()
        content = resp.json()["choices"][0]["message"]["content"]
        if not content:
            raise ValueError("No response from AI")
        return content

    @staticmethod
    def _parse(content: str) -> AgentDecision:
        data = json.loads(content)
        action = str(data.get("action", "")).lower()
        if action not in DECISION_ACTIONS:
            raise ValueError(f"Unknown action '{action}'")
        confidence = int(round(float(data.get("confidence", 50))))
        return AgentDecision(
            action=action,
            confidence=max(0, min(100, confidence)),
            reasoning=str(data.get("reasoning", "")),
            parameters=data.get("parameters") or {},
        )


async def analyze_market(session: AsyncSession, symbol: str = "SOL") -> MarketAnalysis:
    """
    Summarize market conditions for ``symbol`` from the latest pulse snapshot.

    Unknown symbols get a neutral placeholder.
    """
    symbol = symbol.upper()
    token = (await session.execute(
        select(DiscoveredToken)
        .where(DiscoveredToken.symbol == symbol)
        .order_by(DiscoveredToken.volume_24h.desc())
        .limit(1)
    )).scalar_one_or_none()

    if token is None or token.price is None:
        return MarketAnalysis(
            symbol=symbol,
            price=100,
            change_24h=0,
            volume_24h=1000,
            trend="neutral",
            signals=[],
            recommendation="Unable to analyze market conditions. Please try again later.",
        )

    change = token.price_change_24h or 0.0
    signals = []
    if change >= 5:
        trend = "bullish"
        signals.append(f"Strong 24h momentum (+{change:.1f}%)")
    elif change <= -5:
        trend = "bearish"
        signals.append(f"Heavy 24h selling ({change:.1f}%)")
    else:
        trend = "neutral"
    if token.risk_score is not None and token.risk_score >= 7:
        signals.append(f"High risk score ({token.risk_score}/10)")
    if (token.volume_24h or 0) > 10_000_000:
        signals.append("High trading volume")

    recommendation = {
        "bullish": "Momentum is positive; consider scaling in within budget limits.",
        "bearish": "Downtrend in progress; wait for stabilization before buying.",
        "neutral": "No clear direction; keep monitoring.",
    }[trend]

    return MarketAnalysis(
        symbol=symbol,
        price=token.price,
        change_24h=change,
        volume_24h=token.volume_24h or 0.0,
        trend=trend,
        signals=signals,
        recommendation=recommendation,
    )


# Singleton
decision_service = DecisionService()
