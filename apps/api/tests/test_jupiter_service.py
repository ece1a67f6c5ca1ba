"""
Jupiter Gateway Tests
Quote parsing, swap transaction decoding and upstream failure mapping
"""
import base64
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from solders.pubkey import Pubkey

from app.exceptions import QuoteUnavailable, TransactionBuildFailed
from app.schemas.trade import SwapQuote
from app.services.jupiter_service import SOL_MINT, USDC_MINT, JupiterService


QUOTE_BODY = {
    "inputMint": SOL_MINT,
    "outputMint": USDC_MINT,
    "inAmount": "100000000",
    "outAmount": "7",
    "priceImpactPct": "0.0123",
    "slippageBps": 50,
    "routePlan": [
        {"swapInfo": {"label": "Raydium", "ammKey": "a"}, "percent": 100},
        {"swapInfo": {"label": "Orca", "ammKey": "b"}, "percent": 100},
    ],
}
UNSIGNED_TX = b"\x01" + b"\x00" * 64 + b"swap-message"


def respond(status_code: int = 200, body=None) -> AsyncMock:
    return AsyncMock(return_value=httpx.Response(status_code, json=body))


@pytest.fixture
def gateway():
    return JupiterService(base_url="http://jupiter.test/swap/v1/", timeout=2)


@pytest.fixture
def quote():
    return SwapQuote(
        input_mint=SOL_MINT,
        output_mint=USDC_MINT,
        in_amount=100_000_000,
        out_amount=7,
        slippage_bps=50,
        raw=QUOTE_BODY,
    )


# ============== Quote Tests ==============

class TestGetQuote:
    """Tests for GET /quote"""

    async def test_parses_route(self, gateway):
        with patch("httpx.AsyncClient.get", new=respond(body=QUOTE_BODY)) as get:
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 100_000_000, 75)

        assert quote.out_amount == 7
        assert quote.in_amount == 100_000_000
        assert quote.route == ["Raydium", "Orca"]
        assert quote.price_impact_pct == pytest.approx(0.0123)
        assert quote.raw == QUOTE_BODY

        url = get.call_args.args[0]
        params = get.call_args.kwargs["params"]
        assert url == "http://jupiter.test/swap/v1/quote"
        assert params == {
            "inputMint": SOL_MINT,
            "outputMint": USDC_MINT,
            "amount": "100000000",
            "slippageBps": "75",
        }

    async def test_default_slippage(self, gateway):
        with patch("httpx.AsyncClient.get", new=respond(body=QUOTE_BODY)) as get:
            await gateway.get_quote(SOL_MINT, USDC_MINT, 1)
        assert get.call_args.kwargs["params"]["slippageBps"] == "50"

    async def test_direct_route(self, gateway):
        body = dict(QUOTE_BODY, routePlan=[])
        with patch("httpx.AsyncClient.get", new=respond(body=body)):
            quote = await gateway.get_quote(SOL_MINT, USDC_MINT, 1)
        assert quote.route == []

    @pytest.mark.parametrize("status_code", [400, 429, 500, 503])
    async def test_error_status(self, gateway, status_code):
        """Test a non-2xx answer is a QuoteUnavailable and is not retried"""
        with patch("httpx.AsyncClient.get", new=respond(status_code, {"error": "no route"})) as get:
            with pytest.raises(QuoteUnavailable):
                await gateway.get_quote(SOL_MINT, USDC_MINT, 1)
        assert get.await_count == 1

    @pytest.mark.parametrize("error", [httpx.ReadTimeout("slow"), httpx.ConnectError("refused")])
    async def test_transport_failure(self, gateway, error):
        with patch("httpx.AsyncClient.get", new=AsyncMock(side_effect=error)):
            with pytest.raises(QuoteUnavailable):
                await gateway.get_quote(SOL_MINT, USDC_MINT, 1)

    async def test_unusable_body(self, gateway):
        body = {k: v for k, v in QUOTE_BODY.items() if k != "outAmount"}
        with patch("httpx.AsyncClient.get", new=respond(body=body)):
            with pytest.raises(QuoteUnavailable):
                await gateway.get_quote(SOL_MINT, USDC_MINT, 1)


# ============== Swap Build Tests ==============

class TestBuildSwapTransaction:
    """Tests for POST /swap"""

    async def test_decodes_transaction(self, gateway, quote):
        payer = str(Pubkey.new_unique())
        body = {"swapTransaction": base64.b64encode(UNSIGNED_TX).decode(), "lastValidBlockHeight": 1}
        with patch("httpx.AsyncClient.post", new=respond(body=body)) as post:
            raw = await gateway.build_swap_transaction(quote, payer)

        assert raw == UNSIGNED_TX
        assert post.call_args.args[0] == "http://jupiter.test/swap/v1/swap"
        payload = post.call_args.kwargs["json"]
        assert payload["quoteResponse"] == QUOTE_BODY
        assert payload["userPublicKey"] == payer
        assert payload["wrapAndUnwrapSol"] is True

    async def test_error_status(self, gateway, quote):
        with patch("httpx.AsyncClient.post", new=respond(500, {"error": "boom"})):
            with pytest.raises(TransactionBuildFailed):
                await gateway.build_swap_transaction(quote, str(Pubkey.new_unique()))

    async def test_timeout(self, gateway, quote):
        with patch("httpx.AsyncClient.post", new=AsyncMock(side_effect=httpx.ReadTimeout("slow"))):
            with pytest.raises(TransactionBuildFailed):
                await gateway.build_swap_transaction(quote, str(Pubkey.new_unique()))

    @pytest.mark.parametrize("body", [{}, {"swapTransaction": None}, {"swapTransaction": "abc"}])
    async def test_no_usable_transaction(self, gateway, quote, body):
        """Test missing or undecodable transactions are build failures"""
        with patch("httpx.AsyncClient.post", new=respond(body=body)):
            with pytest.raises(TransactionBuildFailed):
                await gateway.build_swap_transaction(quote, str(Pubkey.new_unique()))


# ============== Price Tests ==============

class TestTokenPrice:
    """Tests for the best-effort price lookup"""

    async def test_price(self, gateway):
        body = {"data": {USDC_MINT: {"id": USDC_MINT, "price": "1.0002"}}}
        with patch("httpx.AsyncClient.get", new=respond(body=body)):
            assert await gateway.get_token_price(USDC_MINT) == pytest.approx(1.0002)

    async def test_unknown_mint(self, gateway):
        with patch("httpx.AsyncClient.get", new=respond(body={"data": {}})):
            assert await gateway.get_token_price(USDC_MINT) is None

    async def test_price_api_down(self, gateway):
        with patch("httpx.AsyncClient.get", new=AsyncMock(side_effect=httpx.ConnectError("refused"))):
            assert await gateway.get_token_price(USDC_MINT) is None
