"""
Jupiter swap aggregator client.

Provides:
  - Quotes          (GET  /quote)
  - Unsigned swaps  (POST /swap → base64 VersionedTransaction)
  - Spot prices     (price API, best effort)

No retries here: a quote goes stale, so retrying belongs to the caller.
"""
import base64
import binascii
import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.exceptions import QuoteUnavailable, TransactionBuildFailed
from app.schemas.trade import SwapQuote

logger = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

POPULAR_TOKENS: Dict[str, Dict[str, Any]] = {
    "SOL": {"mint": SOL_MINT, "decimals": 9},
    "USDC": {"mint": USDC_MINT, "decimals": 6},
    "USDT": {"mint": "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB", "decimals": 6},
    "BONK": {"mint": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", "decimals": 5},
    "JUP": {"mint": "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN", "decimals": 6},
    "RAY": {"mint": "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R", "decimals": 6},
    "ORCA": {"mint": "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE", "decimals": 6},
}


def symbol_for_mint(mint: str) -> Optional[str]:
    for symbol, info in POPULAR_TOKENS.items():
        if info["mint"] == mint:
            return symbol
    return None


class JupiterService:
    """Async Jupiter lite-API client."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.base_url = (base_url or settings.jupiter_api_base).rstrip("/")
        self.timeout = timeout or settings.jupiter_timeout_seconds

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: Optional[int] = None,
    ) -> SwapQuote:
        """
        Fetch the best route for ``amount`` base units of ``input_mint``.

        Raises:
            QuoteUnavailable: non-2xx, timeout, transport error or an
                unparseable body.
        """
        slippage = slippage_bps or settings.default_slippage_bps
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount)),
            "slippageBps": str(slippage),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(f"{self.base_url}/quote", params=params)
        except httpx.HTTPError as e:
            logger.warning(f"Jupiter quote request failed: {type(e).__name__}: {e}")
            raise QuoteUnavailable(f"Quote request failed: {type(e).__name__}") from e

        if not resp.is_success:
            logger.warning(f"Jupiter quote {resp.status_code}: {resp.text[:200]}")
            raise QuoteUnavailable(f"Quote API returned {resp.status_code}")

        try:
            data = resp.json()
            route = [
                step.get("swapInfo", {}).get("label", "unknown")
                for step in data.get("routePlan", [])
            ]
            quote = SwapQuote(
                input_mint=data.get("inputMint", input_mint),
                output_mint=data.get("outputMint", output_mint),
                in_amount=int(data["inAmount"]),
                out_amount=int(data["outAmount"]),
                price_impact_pct=float(data.get("priceImpactPct") or 0),
                slippage_bps=int(data.get("slippageBps", slippage)),
                route=route,
                raw=data,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Jupiter quote body unusable: {e}")
            raise QuoteUnavailable("Quote API returned an unusable body") from e

        logger.info(
            f"💱 Quote {quote.in_amount} {input_mint[:6]}… → {quote.out_amount} {output_mint[:6]}… "
            f"via {' → '.join(route) or 'direct'} (impact {quote.price_impact_pct:.4f}%)"
        )
        return quote

    # ------------------------------------------------------------------
    # Swap transactions
    # ------------------------------------------------------------------

    async def build_swap_transaction(self, quote: SwapQuote, payer_public_key: str) -> bytes:
        """Ask Jupiter to build the unsigned swap transaction for ``payer_public_key``."""
        return await self.build_swap_from_raw(quote.raw, payer_public_key)

    async def build_swap_from_raw(self, quote_response: Dict[str, Any], payer_public_key: str) -> bytes:
        payload = {
            "quoteResponse": quote_response,
            "userPublicKey": payer_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": settings.priority_fee_lamports,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{self.base_url}/swap", json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Jupiter swap request failed: {type(e).__name__}: {e}")
            raise TransactionBuildFailed(f"Swap request failed: {type(e).__name__}") from e

        if not resp.is_success:
            logger.warning(f"Jupiter swap {resp.status_code}: {resp.text[:200]}")
            raise TransactionBuildFailed(f"Swap API returned {resp.status_code}")

        try:
            encoded = resp.json()["swapTransaction"]
            return base64.b64decode(encoded)
        except (ValueError, KeyError, TypeError, binascii.Error) as e:
            raise TransactionBuildFailed("Swap API returned no usable transaction") from e

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    async def get_token_price(self, mint: str) -> Optional[float]:
        """USD price for a mint, or None when the price API has nothing."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(settings.jupiter_price_url, params={"ids": mint})
            if resp.status_code != 200:
                logger.warning(f"Jupiter price {resp.status_code} for {mint}")
                return None
            entry = (resp.json().get("data") or {}).get(mint)
            return float(entry["price"]) if entry else None
        except Exception as e:
            logger.error(f"Jupiter price lookup error: {e}")
            return None


# Singleton
jupiter_service = JupiterService()
