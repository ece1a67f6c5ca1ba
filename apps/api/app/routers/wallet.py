"""Managed wallet API router: balance, ledger, deposits and withdrawals."""
import logging
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_session
from app.exceptions import UpstreamUnavailable, ValidationError
from app.models import User, WalletTransaction
from app.schemas.wallet import (
    ManagedWalletResponse,
    WalletTransactionResponse,
    DepositRequest,
    DepositConfirmRequest,
    WithdrawRequest,
    WalletBalanceResponse,
)
from app.services.solana_rpc import solana_rpc
from app.services.wallet_manager import wallet_manager
from app.services.websocket_manager import manager
from app.utils.helpers import lamports_to_sol
from app.utils.signatures import parse_public_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Wallet"])


@router.get("/managed-wallet", response_model=ManagedWalletResponse)
async def get_managed_wallet(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Get the signed-in user's custodial wallet.

    The balance is refreshed from chain when an RPC endpoint answers,
    otherwise the last known balance is returned.
    """
    wallet = await wallet_manager.get_wallet_for_user(session, current_user.id)
    try:
        await wallet_manager.refresh_balance(session, wallet)
        await session.commit()
    except UpstreamUnavailable as e:
        logger.warning(f"Serving cached balance for wallet #{wallet.id}: {e.message}")

    return ManagedWalletResponse.model_validate(wallet)


@router.get("/managed-wallet/transactions", response_model=List[WalletTransactionResponse])
async def list_wallet_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Deposit and withdrawal ledger, newest first."""
    wallet = await wallet_manager.get_wallet_for_user(session, current_user.id)
    result = await session.execute(
        select(WalletTransaction)
        .where(WalletTransaction.wallet_id == wallet.id)
        .order_by(desc(WalletTransaction.created_at), desc(WalletTransaction.id))
        .limit(limit)
    )
    return [WalletTransactionResponse.model_validate(t) for t in result.scalars().all()]


@router.post("/wallet/deposit")
async def initiate_deposit(
    request: DepositRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Announce a deposit into the managed wallet.

    Send the SOL to ``deposit_address``, then call ``/wallet/deposit/confirm``.
    """
    wallet = await wallet_manager.get_wallet_for_user(session, current_user.id)
    record = await wallet_manager.create_deposit(session, wallet, request.amount, request.tx_hash)
    await session.commit()

    await manager.publish("deposit_initiated", {
        "user_id": current_user.id,
        "amount": request.amount,
        "managed_wallet_address": wallet.public_key,
        "transaction_id": record.id,
    })

    return {
        "transaction_id": record.id,
        "deposit_address": wallet.public_key,
        "amount": request.amount,
        "status": record.status,
        "message": f"Send {request.amount} SOL to {wallet.public_key} to complete deposit",
    }


@router.post("/wallet/deposit/confirm")
async def confirm_deposit(
    request: DepositConfirmRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Settle a pending deposit against the chain."""
    wallet = await wallet_manager.get_wallet_for_user(session, current_user.id)
    try:
        record = await wallet_manager.confirm_deposit(
            session, wallet, request.transaction_id, request.tx_hash
        )
    except ValidationError:
        # Keep the pending signature we just learned about
        await session.commit()
        raise
    await session.commit()

    if record.status == "confirmed":
        await manager.publish("deposit_confirmed", {"user_id": current_user.id, "balance": wallet.balance})

    return {
        "success": record.status == "confirmed",
        "status": record.status,
        "balance": wallet.balance,
        "transaction": WalletTransactionResponse.model_validate(record),
        "message": "Deposit confirmed" if record.status == "confirmed" else "Deposit transaction failed on-chain",
    }


@router.post("/wallet/withdraw")
async def withdraw(
    request: WithdrawRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Send SOL out of the managed wallet.

    Defaults to the signed-in wallet address when no destination is given.
    The transfer is signed server-side and awaited to confirmation.
    """
    wallet = await wallet_manager.get_wallet_for_user(session, current_user.id)
    destination = request.destination_address or current_user.wallet_address
    record = await wallet_manager.withdraw(session, wallet, request.amount, destination)

    await manager.publish("withdraw_completed", {
        "user_id": current_user.id,
        "amount": record.amount,
        "destination": destination,
        "transaction_id": record.id,
        "tx_hash": record.tx_hash,
    })

    return {
        "transaction_id": record.id,
        "amount": record.amount,
        "destination": destination,
        "status": record.status,
        "tx_hash": record.tx_hash,
        "balance": wallet.balance,
    }


@router.get("/wallet/balance/{address}", response_model=WalletBalanceResponse)
async def get_wallet_balance(address: str):
    """
    On-chain SOL balance of any address.

    Tries each configured RPC endpoint in order; 503 when all of them fail.
    """
    try:
        parse_public_key(address)
    except ValueError:
        raise ValidationError(f"Invalid Solana address '{address}'")

    lamports = await solana_rpc.get_balance(address)
    return WalletBalanceResponse(address=address, balance=lamports_to_sol(lamports), lamports=lamports)
