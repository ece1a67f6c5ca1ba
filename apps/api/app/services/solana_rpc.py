"""
Solana JSON-RPC access with ordered endpoint fallback.

Every read walks ``settings.solana_rpc_urls`` in order and returns the first
answer. ``UpstreamUnavailable`` is raised only when all endpoints failed.
A node rejecting a transaction is not a connectivity problem and is never
retried on another node.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from app.config import settings
from app.exceptions import SentinelError, SubmissionFailed, UpstreamUnavailable
from app.schemas.token import TokenBalance

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIRMED_STATUSES = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)
CONFIRM_POLL_INTERVAL = 1.0


class SolanaRpcService:
    """Thin async wrapper over solana-py with redundant endpoints."""

    def __init__(self, endpoints: Optional[List[str]] = None, timeout: Optional[float] = None) -> None:
        self.endpoints = list(endpoints or settings.solana_rpc_urls)
        self.timeout = timeout or settings.rpc_timeout_seconds

    async def _with_fallback(self, op: str, fn: Callable[[AsyncClient], Awaitable[T]]) -> T:
        errors = []
        for url in self.endpoints:
            try:
                async with AsyncClient(url, commitment=Confirmed, timeout=self.timeout) as client:
                    return await asyncio.wait_for(fn(client), timeout=self.timeout)
            except SentinelError:
                raise
            except Exception as e:
                logger.warning(f"⚠️ RPC {op} failed on {url}: {type(e).__name__}: {e}")
                errors.append(f"{url}: {type(e).__name__}")
        raise UpstreamUnavailable(f"All RPC endpoints failed for {op} ({'; '.join(errors)})")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        """Native balance in lamports."""
        pubkey = Pubkey.from_string(address)

        async def _call(client: AsyncClient) -> int:
            resp = await client.get_balance(pubkey)
            return resp.value

        return await self._with_fallback("getBalance", _call)

    async def get_token_balance(self, owner: str, mint: str) -> Optional[TokenBalance]:
        """
        Sum of the owner's token accounts for ``mint``.

        Returns None when the owner has no account for the mint at all.
        """
        owner_key = Pubkey.from_string(owner)
        mint_key = Pubkey.from_string(mint)

        async def _call(client: AsyncClient) -> Optional[TokenBalance]:
            resp = await client.get_token_accounts_by_owner_json_parsed(
                owner_key, TokenAccountOpts(mint=mint_key)
            )
            if not resp.value:
                return None
            total = 0
            decimals = 0
            for keyed in resp.value:
                token_amount = keyed.account.data.parsed["info"]["tokenAmount"]
                total += int(token_amount["amount"])
                decimals = int(token_amount["decimals"])
            return TokenBalance(amount=total, decimals=decimals)

        return await self._with_fallback("getTokenAccountsByOwner", _call)

    async def get_latest_blockhash(self) -> Hash:
        async def _call(client: AsyncClient) -> Hash:
            resp = await client.get_latest_blockhash()
            return resp.value.blockhash

        return await self._with_fallback("getLatestBlockhash", _call)

    async def get_signature_status(self, signature: str):
        """TransactionStatus for a signature, or None if the cluster has not seen it."""
        sig = Signature.from_string(signature)

        async def _call(client: AsyncClient):
            resp = await client.get_signature_statuses([sig], search_transaction_history=True)
            return resp.value[0] if resp.value else None

        return await self._with_fallback("getSignatureStatuses", _call)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def send_transaction(self, raw_tx: bytes) -> str:
        """
        Submit a signed, serialized transaction and return its signature.

        The node itself rebroadcasts up to ``send_max_retries`` times.
        """
        opts = TxOpts(
            skip_preflight=False,
            preflight_commitment=Confirmed,
            max_retries=settings.send_max_retries,
        )

        async def _call(client: AsyncClient) -> str:
            try:
                resp = await client.send_raw_transaction(raw_tx, opts=opts)
            except RPCException as e:
                raise SubmissionFailed(f"Transaction rejected: {e}") from e
            return str(resp.value)

        return await self._with_fallback("sendTransaction", _call)

    async def confirm_transaction(self, signature: str, timeout: Optional[float] = None) -> None:
        """
        Wait until ``signature`` reaches confirmed commitment.

        Raises:
            SubmissionFailed: the transaction failed on-chain, or was still not
                confirmed after one last status check at the deadline.
        """
        timeout = timeout or settings.confirm_timeout_seconds
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while loop.time() < deadline:
            if await self._check_confirmed(signature):
                return
            await asyncio.sleep(CONFIRM_POLL_INTERVAL)

        if await self._check_confirmed(signature):
            return
        logger.warning(f"⏱️ Transaction {signature} not confirmed after {timeout:.0f}s")
        raise SubmissionFailed(f"Transaction {signature} was not confirmed within {timeout:.0f}s")

    async def _check_confirmed(self, signature: str) -> bool:
        try:
            status = await self.get_signature_status(signature)
        except UpstreamUnavailable:
            return False
        if status is None:
            return False
        if status.err is not None:
            raise SubmissionFailed(f"Transaction {signature} failed on-chain: {status.err}")
        return status.confirmation_status in CONFIRMED_STATUSES


# Singleton instance
solana_rpc = SolanaRpcService()
