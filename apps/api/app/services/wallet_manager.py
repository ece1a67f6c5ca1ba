"""
Custodial wallet manager.

Creates per-user Solana keypairs (secret encrypted at rest), reads balances
through the redundant RPC service, and runs the deposit/withdraw ledger.
Exactly-once creation per user is enforced by the unique ``user_id`` column,
callers must not create a second wallet for the same user.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from app.exceptions import (
    InsufficientBalanceError,
    NoWalletError,
    NotFoundError,
    SentinelError,
    SubmissionFailed,
    ValidationError,
)
from app.models.user import User
from app.models.wallet import ManagedWallet, WalletTransaction
from app.services.solana_rpc import SolanaRpcService, solana_rpc
from app.services.wallet_locks import WalletLockRegistry, wallet_locks
from app.utils.encryption import decrypt_secret, encrypt_secret
from app.utils.helpers import lamports_to_sol, sol_to_lamports, short_address
from app.utils.validators import validate_wallet_address

logger = logging.getLogger(__name__)

# Base signature fee reserved on every outgoing transfer
TRANSFER_FEE_SOL = 0.000005


@contextmanager
def custodial_keypair(wallet: ManagedWallet) -> Iterator[Keypair]:
    """
    Decrypt the wallet's key for the duration of the block.

    The plaintext copy we own is zeroed on exit, whatever happens inside.
    """
    secret = bytearray(decrypt_secret(wallet.encrypted_secret_key))
    try:
        yield Keypair.from_bytes(bytes(secret))
    finally:
        for i in range(len(secret)):
            secret[i] = 0


class WalletManager:
    """Custodial keypairs, balances and the deposit/withdraw ledger."""

    def __init__(
        self,
        rpc: Optional[SolanaRpcService] = None,
        locks: Optional[WalletLockRegistry] = None,
    ):
        self.rpc = rpc or solana_rpc
        self.locks = locks or wallet_locks

    # ------------------------------------------------------------------
    # Wallet lifecycle
    # ------------------------------------------------------------------

    async def create_wallet(self, session: AsyncSession, user: User) -> ManagedWallet:
        """Generate, encrypt and stage a fresh wallet for ``user`` (flush only)."""
        keypair = Keypair()
        wallet = ManagedWallet(
            user=user,
            public_key=str(keypair.pubkey()),
            encrypted_secret_key=encrypt_secret(bytes(keypair)),
            balance=0.0,
            status="active",
        )
        session.add(wallet)
        await session.flush()
        logger.info(f"🔑 Created managed wallet {short_address(wallet.public_key)} for user #{user.id}")
        return wallet

    async def get_wallet_for_user(self, session: AsyncSession, user_id: int) -> ManagedWallet:
        result = await session.execute(
            select(ManagedWallet).where(ManagedWallet.user_id == user_id)
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise NoWalletError(f"No managed wallet for user #{user_id}")
        return wallet

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def get_balance(self, wallet: ManagedWallet) -> float:
        """On-chain SOL balance. Raises UpstreamUnavailable if every RPC fails."""
        lamports = await self.rpc.get_balance(wallet.public_key)
        return lamports_to_sol(lamports)

    def update_balance(self, wallet: ManagedWallet, amount: float) -> None:
        if amount < 0:
            raise ValidationError("Balance cannot be negative")
        wallet.balance = amount

    async def refresh_balance(self, session: AsyncSession, wallet: ManagedWallet) -> float:
        """Re-read the chain balance into the cached column (flush only)."""
        balance = await self.get_balance(wallet)
        self.update_balance(wallet, balance)
        await session.flush()
        return balance

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    async def create_deposit(
        self,
        session: AsyncSession,
        wallet: ManagedWallet,
        amount: float,
        tx_hash: Optional[str] = None,
    ) -> WalletTransaction:
        """Record an expected deposit. With a hash it is pending, otherwise awaiting funds."""
        record = WalletTransaction(
            wallet_id=wallet.id,
            tx_type="deposit",
            direction="in",
            amount=amount,
            token_symbol="SOL",
            tx_hash=tx_hash,
            status="pending" if tx_hash else "awaiting_deposit",
        )
        session.add(record)
        await session.flush()
        return record

    async def confirm_deposit(
        self,
        session: AsyncSession,
        wallet: ManagedWallet,
        transaction_id: int,
        tx_hash: Optional[str] = None,
    ) -> WalletTransaction:
        """
        Settle a deposit record.

        With a signature the on-chain status decides confirmed/failed; a
        signature the cluster has not seen yet leaves the record open.
        """
        record = await session.get(WalletTransaction, transaction_id)
        if record is None or record.wallet_id != wallet.id or record.tx_type != "deposit":
            raise NotFoundError(f"Deposit #{transaction_id} not found")
        if record.is_terminal:
            raise ValidationError(f"Deposit #{transaction_id} is already {record.status}")

        signature = tx_hash or record.tx_hash
        if signature:
            status = await self.rpc.get_signature_status(signature)
            if status is None:
                record.tx_hash = signature
                record.status = "pending"
                await session.flush()
                raise ValidationError("Deposit transaction not yet visible on-chain")
            if status.err is not None:
                record.mark("failed", signature)
                await session.flush()
                return record

        await self.refresh_balance(session, wallet)
        record.mark("confirmed", signature)
        await session.flush()
        logger.info(f"📥 Deposit #{record.id} of {record.amount} SOL confirmed for {short_address(wallet.public_key)}")
        return record

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    async def withdraw(
        self,
        session: AsyncSession,
        wallet: ManagedWallet,
        amount: float,
        destination: str,
    ) -> WalletTransaction:
        """
        Send SOL from the custodial wallet and commit the outcome.

        The ledger row always ends confirmed or failed. Errors are re-raised
        after the failed row is committed.
        """
        destination = validate_wallet_address(destination)
        try:
            to_pubkey = Pubkey.from_string(destination)
        except ValueError as e:
            raise ValidationError(f"Invalid destination address '{destination}'") from e
        if not wallet.is_active:
            raise ValidationError("Wallet is suspended")
        if not wallet.can_sign:
            raise ValidationError("Wallet has no signing key; withdrawals need manual handling")

        async with self.locks.lock_for(wallet.id):
            await session.refresh(wallet)
            if wallet.balance < amount + TRANSFER_FEE_SOL:
                raise InsufficientBalanceError(
                    f"Insufficient balance: {wallet.balance} SOL available, {amount} SOL requested"
                )

            record = WalletTransaction(
                wallet_id=wallet.id,
                tx_type="withdraw",
                direction="out",
                amount=amount,
                token_symbol="SOL",
                destination_address=destination,
                status="pending",
            )
            session.add(record)
            await session.commit()

            try:
                signature = await self._send_transfer(wallet, to_pubkey, amount)
                record.tx_hash = signature
                await self.rpc.confirm_transaction(signature)
            except Exception as e:
                record.mark("failed")
                await session.commit()
                logger.error(f"❌ Withdraw #{record.id} failed: {type(e).__name__}: {e}")
                raise

            record.mark("confirmed")
            try:
                await self.refresh_balance(session, wallet)
            except SentinelError:
                # Chain is authoritative; fall back to our own arithmetic until next refresh
                self.update_balance(wallet, max(wallet.balance - amount - TRANSFER_FEE_SOL, 0.0))
            await session.commit()

        logger.info(f"📤 Withdrew {amount} SOL to {short_address(destination)} ({short_address(signature)})")
        return record

    async def _send_transfer(self, wallet: ManagedWallet, to_pubkey: Pubkey, amount: float) -> str:
        blockhash = await self.rpc.get_latest_blockhash()
        try:
            with custodial_keypair(wallet) as keypair:
                ix = transfer(TransferParams(
                    from_pubkey=keypair.pubkey(),
                    to_pubkey=to_pubkey,
                    lamports=sol_to_lamports(amount),
                ))
                message = MessageV0.try_compile(keypair.pubkey(), [ix], [], blockhash)
                raw_tx = bytes(VersionedTransaction(message, [keypair]))
        except SentinelError:
            raise
        except Exception as e:
            raise SubmissionFailed(f"Could not sign transfer: {e}") from e
        return await self.rpc.send_transaction(raw_tx)


# Singleton instance
wallet_manager = WalletManager()
