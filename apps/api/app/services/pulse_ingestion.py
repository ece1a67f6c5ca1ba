"""
Axiom Pulse market-data ingestion.

- Source:     Axiom pulse feed (Solana), polled every ``pulse_interval_seconds``
- Storage:    upsert into ``discovered_tokens`` by mint, never delete
- Delivery:   ``tokens_refreshed`` WebSocket event after each cycle

Falls back to a static list of well-known tokens whenever the feed is down.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import async_session_maker
from app.models.token import DiscoveredToken
from app.schemas.token import PulseToken
from app.services.websocket_manager import manager

logger = logging.getLogger(__name__)

FALLBACK_TOKENS: List[PulseToken] = [
    PulseToken(
        mint="DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", symbol="BONK", name="Bonk",
        price=0.000018, price_change_24h=5.2, volume_24h=12_000_000, market_cap=950_000_000,
        liquidity=8_500_000, holders=850_000,
    ),
    PulseToken(
        mint="JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN", symbol="JUP", name="Jupiter",
        price=0.85, price_change_24h=-2.1, volume_24h=45_000_000, market_cap=1_200_000_000,
        liquidity=25_000_000, holders=450_000,
    ),
    PulseToken(
        mint="EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm", symbol="WIF", name="dogwifhat",
        price=2.15, price_change_24h=8.5, volume_24h=180_000_000, market_cap=2_150_000_000,
        liquidity=35_000_000, holders=320_000,
    ),
    PulseToken(
        mint="7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr", symbol="POPCAT", name="Popcat",
        price=0.42, price_change_24h=12.3, volume_24h=25_000_000, market_cap=420_000_000,
        liquidity=12_000_000, holders=180_000,
    ),
    PulseToken(
        mint="rndrizKT3MK1iimdxRdWabcF7Zg7AR5T4nud4EkHBof", symbol="RENDER", name="Render",
        price=4.25, price_change_24h=-1.8, volume_24h=35_000_000, market_cap=1_650_000_000,
        liquidity=28_000_000, holders=125_000,
    ),
]


def calculate_risk_score(token: PulseToken, now: Optional[datetime] = None) -> int:
    """Heuristic 1-10 risk score (higher is riskier). Unknown age counts as brand new."""
    score = 5

    if token.holders is not None:
        if token.holders < 50:
            score += 3
        elif token.holders < 200:
            score += 1
        elif token.holders > 1000:
            score -= 2

    if token.liquidity is not None:
        if token.liquidity < 1000:
            score += 3
        elif token.liquidity < 10000:
            score += 1
        elif token.liquidity > 100000:
            score -= 2

    if token.volume_24h is not None:
        if token.volume_24h < 100:
            score += 2
        elif token.volume_24h > 10000:
            score -= 1

    age_hours = _age_hours(token.created_at, now)
    if age_hours < 1:
        score += 2
    elif age_hours < 24:
        score += 1
    elif age_hours > 168:
        score -= 1

    return max(1, min(10, score))


def _age_hours(created_at: Optional[str], now: Optional[datetime] = None) -> float:
    if not created_at:
        return 0.0
    try:
        created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return (now - created).total_seconds() / 3600


class PulseIngestionService:
    """Background poller that keeps ``discovered_tokens`` fresh."""

    def __init__(self, api_url: Optional[str] = None):
        self.api_url = api_url or settings.pulse_api_url
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.last_run_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, interval: Optional[int] = None):
        """Start (or restart) the polling loop. The first cycle runs immediately."""
        if self._running:
            await self.stop()
        self._running = True
        interval = interval or settings.pulse_interval_seconds
        self._task = asyncio.create_task(self._run_loop(interval))
        logger.info(f"🔄 Pulse ingestion started (every {interval}s)")

    async def stop(self):
        """Stop the background loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("⏹️ Pulse ingestion stopped")

    async def _run_loop(self, interval: int):
        while self._running:
            try:
                async with async_session_maker() as session:
                    await self.ingest(session)
            except Exception as e:
                logger.error(f"Pulse ingestion error: {e}", exc_info=True)
            await asyncio.sleep(interval)

    # ------------------------------------------------------------------
    # Fetch + upsert
    # ------------------------------------------------------------------

    async def fetch_tokens(self) -> List[PulseToken]:
        """Pull the feed; any failure yields the static fallback list."""
        try:
            async with httpx.AsyncClient(timeout=settings.pulse_timeout_seconds) as client:
                resp = await client.get(
                    self.api_url,
                    headers={"Accept": "application/json", "User-Agent": "SentinelOS/1.0"},
                )
            if resp.status_code != 200:
                logger.warning(f"Axiom API error: {resp.status_code} - using fallback token data")
                return list(FALLBACK_TOKENS)

            body = resp.json()
            rows = body if isinstance(body, list) else body.get("tokens") or body.get("data") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Error fetching Axiom Pulse tokens - using fallback: {e}")
            return list(FALLBACK_TOKENS)

        tokens = []
        for row in rows:
            try:
                tokens.append(PulseToken.model_validate(row))
            except PydanticValidationError:
                logger.debug(f"Skipping malformed pulse row: {row!r:.120}")
        return tokens

    async def ingest(self, session: AsyncSession) -> int:
        """Upsert the current feed. Returns how many mints were new."""
        tokens = await self.fetch_tokens()
        mints = [t.mint for t in tokens if t.mint]
        existing = {
            t.mint_address: t
            for t in (await session.execute(
                select(DiscoveredToken).where(DiscoveredToken.mint_address.in_(mints))
            )).scalars().all()
        }

        created = 0
        for token in tokens:
            if not token.mint:
                continue
            values = dict(
                symbol=token.symbol or "UNKNOWN",
                name=token.name,
                price=token.price,
                price_change_24h=token.price_change_24h,
                volume_24h=token.volume_24h,
                market_cap=token.market_cap,
                holders=token.holders,
                risk_score=calculate_risk_score(token),
                source="axiom",
                extra_data={"liquidity": token.liquidity, "createdAt": token.created_at},
            )
            row = existing.get(token.mint)
            if row is None:
                row = DiscoveredToken(mint_address=token.mint, **values)
                session.add(row)
                existing[token.mint] = row
                created += 1
            else:
                for key, value in values.items():
                    setattr(row, key, value)

        await session.commit()
        self.last_run_at = datetime.utcnow()
        logger.info(f"📡 Axiom Pulse: ingested {created} new tokens, updated {len(tokens) - created} existing")

        await manager.publish("tokens_refreshed", {"new": created, "total": len(tokens)})
        return created


# Singleton instance
pulse_ingestion = PulseIngestionService()
