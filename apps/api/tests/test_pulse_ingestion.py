"""
Pulse Ingestion Tests
Market-data fetch, fallback and upsert into discovered_tokens
"""
import importlib
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import select

from app.models import DiscoveredToken
from app.services.pulse_ingestion import FALLBACK_TOKENS, PulseIngestionService
from app.services.websocket_manager import manager

pulse_module = importlib.import_module("app.services.pulse_ingestion")


FEED = {
    "tokens": [
        {
            "mint": "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm",
            "symbol": "WIF",
            "name": "dogwifhat",
            "price": 2.15,
            "priceChange24h": 8.5,
            "volume24h": 180000000,
            "marketCap": 2150000000,
            "liquidity": 35000000,
            "holders": 320000,
            "createdAt": "2023-11-20T00:00:00Z",
        },
        {
            "mint": "NewMint1111111111111111111111111111111111111",
            "price": 0.0001,
            "holders": 12,
            "liquidity": 400,
        },
        {"symbol": "NOMINT"},
    ]
}


def feed_response(status_code: int = 200, body=None) -> AsyncMock:
    return AsyncMock(return_value=httpx.Response(status_code, json=body if body is not None else FEED))


@pytest.fixture
def service():
    return PulseIngestionService(api_url="http://pulse.test/api")


# ============== Fetch Tests ==============

class TestFetchTokens:
    """Tests for reading the pulse feed"""

    async def test_parses_feed(self, service):
        with patch("httpx.AsyncClient.get", new=feed_response()):
            tokens = await service.fetch_tokens()

        assert [t.symbol for t in tokens] == ["WIF", None]
        assert tokens[0].price_change_24h == 8.5
        assert tokens[0].created_at == "2023-11-20T00:00:00Z"

    async def test_data_key_accepted(self, service):
        with patch("httpx.AsyncClient.get", new=feed_response(body={"data": FEED["tokens"][:1]})):
            tokens = await service.fetch_tokens()
        assert len(tokens) == 1

    async def test_bare_array_accepted(self, service):
        """Test a feed answering with a plain JSON list is parsed, not replaced by the fallback"""
        with patch("httpx.AsyncClient.get", new=feed_response(body=FEED["tokens"])):
            tokens = await service.fetch_tokens()
        assert [t.symbol for t in tokens] == ["WIF", None]

    async def test_timeout_from_settings(self, service):
        with patch.object(pulse_module.settings, "pulse_timeout_seconds", 3.5), \
                patch.object(pulse_module.httpx, "AsyncClient") as client_cls:
            client = client_cls.return_value.__aenter__.return_value
            client.get = feed_response()
            tokens = await service.fetch_tokens()

        client_cls.assert_called_once_with(timeout=3.5)
        assert len(tokens) == 2

    async def test_error_status_falls_back(self, service):
        with patch("httpx.AsyncClient.get", new=feed_response(status_code=503)):
            tokens = await service.fetch_tokens()
        assert tokens == FALLBACK_TOKENS

    async def test_transport_error_falls_back(self, service):
        failing = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.get", new=failing):
            tokens = await service.fetch_tokens()
        assert [t.symbol for t in tokens] == [t.symbol for t in FALLBACK_TOKENS]


# ============== Ingest Tests ==============

class TestIngest:
    """Tests for the discovered_tokens upsert"""

    async def test_inserts_new_tokens(self, service, db_session):
        with patch("httpx.AsyncClient.get", new=feed_response()):
            created = await service.ingest(db_session)

        assert created == 2
        rows = (await db_session.execute(select(DiscoveredToken).order_by(DiscoveredToken.id))).scalars().all()
        assert [r.symbol for r in rows] == ["WIF", "UNKNOWN"]
        assert rows[0].source == "axiom"
        assert rows[0].extra_data["liquidity"] == 35000000
        assert 1 <= rows[0].risk_score <= 3
        assert rows[1].risk_score == 10
        assert service.last_run_at is not None

    async def test_updates_existing_tokens(self, service, db_session):
        """Test a second cycle updates rows in place and never duplicates"""
        with patch("httpx.AsyncClient.get", new=feed_response()):
            await service.ingest(db_session)

        updated = {"tokens": [dict(FEED["tokens"][0], price=3.0)]}
        with patch("httpx.AsyncClient.get", new=feed_response(body=updated)):
            created = await service.ingest(db_session)

        assert created == 0
        rows = (await db_session.execute(select(DiscoveredToken))).scalars().all()
        assert len(rows) == 2
        wif = next(r for r in rows if r.symbol == "WIF")
        assert wif.price == 3.0

    async def test_ingest_fallback_when_feed_down(self, service, db_session):
        with patch("httpx.AsyncClient.get", new=feed_response(status_code=500)):
            created = await service.ingest(db_session)
        assert created == len(FALLBACK_TOKENS)

    async def test_publishes_refresh_event(self, service, db_session):
        with patch("httpx.AsyncClient.get", new=feed_response()), \
                patch.object(manager, "publish", new=AsyncMock()) as publish:
            await service.ingest(db_session)

        publish.assert_awaited_once_with("tokens_refreshed", {"new": 2, "total": 2})


# ============== Lifecycle Tests ==============

class TestLifecycle:
    """Tests for the background poller"""

    async def test_start_and_stop(self, service):
        with patch.object(service, "ingest", new=AsyncMock(return_value=0)):
            await service.start(interval=3600)
            assert service.is_running
            await service.stop()

        assert not service.is_running
        assert service._task is None

    async def test_stop_when_not_started(self, service):
        await service.stop()
        assert not service.is_running
