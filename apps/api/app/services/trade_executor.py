"""
Trade executor: turns a buy/sell intent into a signed, confirmed Jupiter swap.

Flow per call:
  1. resolve the owner's managed wallet
  2. take the per-wallet lock, re-read balances
  3. buy  → check SOL balance, convert to lamports
     sell → read the SPL balance and liquidate all of it
  4. quote → (no key: stop, manual approval) → build → sign → send → confirm
  5. on success persist balance, agent counters, Transaction row, log, in one commit

Every terminal branch writes exactly one ActivityLog row. Nothing else is
mutated on failure. Trades are not idempotent, so nothing here retries.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from solders.transaction import VersionedTransaction

from app.exceptions import (
    InsufficientBalanceError,
    NoTokenAccountError,
    NoWalletError,
    SentinelError,
    SubmissionFailed,
    TransactionBuildFailed,
    UpstreamUnavailable,
    ValidationError,
    ZeroBalanceError,
)
from app.models.agent import Agent
from app.models.transaction import Transaction
from app.models.wallet import ManagedWallet
from app.schemas.trade import SwapQuote, TradeResult
from app.services.activity import record_activity
from app.services.jupiter_service import SOL_MINT, JupiterService, jupiter_service, symbol_for_mint
from app.services.solana_rpc import SolanaRpcService, solana_rpc
from app.services.wallet_locks import WalletLockRegistry, wallet_locks
from app.services.wallet_manager import custodial_keypair
from app.services.websocket_manager import manager
from app.utils.helpers import SOL_DECIMALS, format_sol, lamports_to_sol, short_address, to_base_units
from app.utils.validators import validate_amount, validate_trade_action

logger = logging.getLogger(__name__)


@dataclass
class _Intent:
    """Resolved parameters of one trade, filled in as the flow progresses."""
    agent_id: int
    action: str
    token_mint: str
    token_symbol: str
    amount: float
    price: Optional[float] = None
    tx_id: Optional[str] = None


class TradeExecutor:
    """
    Execute trades for agents against their owner's custodial wallet.

    ``agent`` must be loaded through the same ``session`` the executor uses.
    """

    def __init__(
        self,
        session: AsyncSession,
        rpc: Optional[SolanaRpcService] = None,
        swap_gateway: Optional[JupiterService] = None,
        locks: Optional[WalletLockRegistry] = None,
    ):
        self.session = session
        self.rpc = rpc or solana_rpc
        self.swap = swap_gateway or jupiter_service
        self.locks = locks or wallet_locks

    async def execute(
        self,
        agent: Agent,
        token_mint: str,
        action: str,
        amount: float,
        price: Optional[float] = None,
    ) -> TradeResult:
        # A rollback from an earlier call on this session expires the agent
        await self.session.refresh(agent)
        intent = _Intent(
            agent_id=agent.id,
            action=(action or "").lower(),
            token_mint=token_mint,
            token_symbol=symbol_for_mint(token_mint) or short_address(token_mint, 6),
            amount=amount,
            price=price,
        )

        try:
            intent.action = validate_trade_action(intent.action)
            wallet = await self._resolve_wallet(agent)
        except SentinelError as e:
            return await self._fail(intent, e)

        async with self.locks.lock_for(wallet.id):
            try:
                return await self._execute_locked(agent, wallet, intent)
            except SentinelError as e:
                return await self._fail(intent, e)
            except Exception as e:
                logger.exception(f"Unexpected error executing trade for agent #{intent.agent_id}")
                return await self._fail(intent, e)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _resolve_wallet(self, agent: Agent) -> ManagedWallet:
        result = await self.session.execute(
            select(ManagedWallet).where(ManagedWallet.user_id == agent.user_id)
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise NoWalletError("No managed wallet found. Please log in to create one.")
        if not wallet.is_active:
            raise ValidationError(f"Managed wallet {short_address(wallet.public_key)} is {wallet.status}")
        return wallet

    async def _execute_locked(self, agent: Agent, wallet: ManagedWallet, intent: _Intent) -> TradeResult:
        # Another trade on this wallet may have committed while we waited for the lock
        await self.session.refresh(wallet)
        await self.session.refresh(agent)

        if intent.action == "buy":
            validate_amount(intent.amount)
            if wallet.balance < intent.amount:
                raise InsufficientBalanceError(
                    f"Insufficient balance: {format_sol(wallet.balance)} available, "
                    f"{format_sol(intent.amount)} requested"
                )
            input_mint, output_mint = SOL_MINT, intent.token_mint
            in_units = to_base_units(intent.amount, SOL_DECIMALS)
        else:
            holding = await self.rpc.get_token_balance(wallet.public_key, intent.token_mint)
            if holding is None:
                raise NoTokenAccountError(
                    f"No token account found for {intent.token_symbol}. You don't own this token."
                )
            if holding.amount == 0:
                raise ZeroBalanceError(f"Token balance is zero for {intent.token_symbol}. Nothing to sell.")
            input_mint, output_mint = intent.token_mint, SOL_MINT
            in_units = holding.amount
            intent.amount = holding.ui_amount
            logger.info(
                f"📉 Selling entire {intent.token_symbol} balance: {holding.ui_amount} "
                f"({holding.amount} base units)"
            )

        quote = await self.swap.get_quote(input_mint, output_mint, in_units)

        if not wallet.can_sign:
            return await self._manual_approval(intent, quote)

        unsigned = await self.swap.build_swap_transaction(quote, wallet.public_key)
        raw_tx = self._sign(wallet, unsigned)

        intent.tx_id = await self.rpc.send_transaction(raw_tx)
        logger.info(f"📨 Submitted {intent.action} {intent.token_symbol}: {intent.tx_id}")
        await self.rpc.confirm_transaction(intent.tx_id)

        return await self._record_success(agent, wallet, intent, quote)

    def _sign(self, wallet: ManagedWallet, unsigned: bytes) -> bytes:
        try:
            tx = VersionedTransaction.from_bytes(unsigned)
        except Exception as e:
            raise TransactionBuildFailed(f"Could not deserialize swap transaction: {e}") from e
        with custodial_keypair(wallet) as keypair:
            try:
                signed = VersionedTransaction(tx.message, [keypair])
            except Exception as e:
                raise TransactionBuildFailed(f"Could not sign swap transaction: {e}") from e
        return bytes(signed)

    async def _post_trade_balance(self, wallet: ManagedWallet, intent: _Intent, quote: SwapQuote) -> float:
        try:
            return lamports_to_sol(await self.rpc.get_balance(wallet.public_key))
        except UpstreamUnavailable:
            logger.warning("⚠️ Balance refresh failed after trade; estimating from quote")
            if intent.action == "buy":
                return max(wallet.balance - intent.amount, 0.0)
            return wallet.balance + lamports_to_sol(quote.out_amount)

    # ------------------------------------------------------------------
    # Terminal branches
    # ------------------------------------------------------------------

    async def _record_success(
        self,
        agent: Agent,
        wallet: ManagedWallet,
        intent: _Intent,
        quote: SwapQuote,
    ) -> TradeResult:
        new_balance = await self._post_trade_balance(wallet, intent, quote)

        wallet.balance = new_balance
        agent.current_balance = new_balance
        agent.total_transactions = agent.total_transactions + 1
        self.session.add(Transaction(
            agent_id=intent.agent_id,
            tx_hash=intent.tx_id,
            tx_type=f"swap_{intent.action}",
            amount=intent.amount,
            token_symbol=intent.token_symbol,
            status="confirmed",
            from_address=wallet.public_key,
            extra_data={
                "token_mint": intent.token_mint,
                "in_amount": quote.in_amount,
                "out_amount": quote.out_amount,
                "price_impact_pct": quote.price_impact_pct,
                "route": quote.route,
            },
        ))
        record_activity(
            self.session,
            intent.agent_id,
            f"Trade Executed: {intent.action.upper()} {intent.token_symbol}",
            f"Amount: {intent.amount}. Tx: {intent.tx_id}. New balance: {format_sol(new_balance)}",
            level="success",
        )
        try:
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.exception(f"Trade {intent.tx_id} landed but bookkeeping failed")
            return await self._fail(intent, e)

        logger.info(f"✅ Trade executed: {intent.action.upper()} {intent.token_symbol} ({short_address(intent.tx_id)})")
        result = self._result(intent, "executed", out_amount=quote.out_amount)
        await manager.publish("trade_executed", result.model_dump())
        return result

    async def _manual_approval(self, intent: _Intent, quote: SwapQuote) -> TradeResult:
        reason = "Quote obtained but no private key available for execution. Manual execution required."
        record_activity(
            self.session,
            intent.agent_id,
            "Manual Approval Required",
            f"{intent.action.upper()} {intent.amount} {intent.token_symbol}: expected out "
            f"{quote.out_amount}, impact {quote.price_impact_pct:.4f}%. {reason}",
            level="warning",
        )
        await self._commit_log()
        logger.warning(f"✋ {reason} (agent #{intent.agent_id})")
        return self._result(intent, "manual_approval_required", reason=reason, out_amount=quote.out_amount)

    async def _fail(self, intent: _Intent, error: Exception) -> TradeResult:
        # Discard half-applied bookkeeping so only the log row is written
        if self.session.new or self.session.dirty or self.session.deleted:
            await self.session.rollback()
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        details = f"{intent.action.upper()} {intent.token_symbol}: {message}"
        if intent.tx_id:
            details = f"{details} (tx {intent.tx_id})"
        record_activity(self.session, intent.agent_id, "Trade Failed", details, level="error")
        await self._commit_log()
        logger.error(f"❌ Trade failed for agent #{intent.agent_id}: {type(error).__name__}: {message}")
        return self._result(intent, "failed", reason=message, error=type(error).__name__)

    async def _commit_log(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.exception("Could not persist activity log entry")

    @staticmethod
    def _result(intent: _Intent, status: str, **extra) -> TradeResult:
        return TradeResult(
            status=status,
            action=intent.action,
            token_mint=intent.token_mint,
            token_symbol=intent.token_symbol,
            amount=intent.amount,
            price=intent.price,
            tx_id=intent.tx_id,
            **extra,
        )
