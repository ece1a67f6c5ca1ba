"""Swap API router: supported tokens, prices, quotes and unsigned swaps."""
import base64
import logging
from typing import List
from fastapi import APIRouter, Depends, Request, Response
from fastapi_cache.decorator import cache

from app.auth import get_current_user
from app.cache import custom_key_builder
from app.models import User
from app.schemas.token import SupportedToken
from app.schemas.trade import SwapQuote, SwapQuoteRequest, SwapTransactionRequest
from app.services.jupiter_service import POPULAR_TOKENS, jupiter_service
from app.utils.validators import validate_slippage_bps, validate_wallet_address

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/swap", tags=["Swap"])


@router.get("/tokens", response_model=List[SupportedToken])
@cache(expire=3600, key_builder=custom_key_builder)  # 1 hour cache
async def list_supported_tokens(request: Request, response: Response):
    """Well-known tokens offered in the swap form."""
    return [
        SupportedToken(symbol=symbol, mint=info["mint"], decimals=info["decimals"])
        for symbol, info in POPULAR_TOKENS.items()
    ]


@router.get("/price/{mint}")
async def get_price(mint: str):
    """USD price of a mint; ``price`` is null when unknown."""
    price = await jupiter_service.get_token_price(mint)
    return {"mint": mint, "price": price}


@router.post("/quote", response_model=SwapQuote)
async def get_quote(
    request: SwapQuoteRequest,
    current_user: User = Depends(get_current_user),
):
    """Best route for ``amount`` base units of ``input_mint``. 502 when no quote is available."""
    validate_slippage_bps(request.slippage_bps)
    return await jupiter_service.get_quote(
        request.input_mint,
        request.output_mint,
        request.amount,
        request.slippage_bps,
    )


@router.post("/transaction")
async def build_swap_transaction(
    request: SwapTransactionRequest,
    current_user: User = Depends(get_current_user),
):
    """
    Build an unsigned swap for a wallet the user signs themselves.

    Pass the ``raw`` field of a quote from ``/swap/quote``. The transaction is
    returned base64-encoded and is never signed server-side.
    """
    payer = validate_wallet_address(request.user_public_key)
    raw_tx = await jupiter_service.build_swap_from_raw(request.quote, payer)
    return {"swap_transaction": base64.b64encode(raw_tx).decode("ascii")}
