"""Live event stream over WebSocket."""
import json
import logging
from datetime import datetime
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.database import async_session_maker
from app.auth import verify_websocket_token
from app.services.pulse_ingestion import pulse_ingestion
from app.services.websocket_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live", tags=["Live"])


@router.get("/status")
async def live_status():
    """Connection count and background poller state."""
    return {
        "websocket_connections": manager.connection_count,
        "pulse_running": pulse_ingestion.is_running,
        "pulse_last_run_at": pulse_ingestion.last_run_at.isoformat() if pulse_ingestion.last_run_at else None,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.websocket("/stream")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time platform events.

    Every message is an envelope ``{"type", "data", "timestamp"}``, e.g.
    ``agent_created``, ``trade_executed``, ``deposit_confirmed``,
    ``tokens_refreshed``. Delivery is best effort; clients re-fetch state
    after reconnecting.

    Optional authentication via query param: ?token=<session token>

    Send ``{"action": "ping"}`` to receive a ``pong``.
    """
    token = websocket.query_params.get("token")
    user = None
    if token:
        async with async_session_maker() as session:
            user = await verify_websocket_token(token, session)

    await manager.connect(websocket)
    logger.info(f"🔌 WebSocket connected (user={user.id if user else 'anon'}). Total connections: {manager.connection_count}")

    try:
        await websocket.send_json({
            "type": "connected",
            "message": "Welcome to the SentinelOS live stream",
            "timestamp": datetime.utcnow().isoformat(),
        })

        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON message"})
                continue

            if isinstance(message, dict) and message.get("action") == "ping":
                await websocket.send_json({"type": "pong", "timestamp": datetime.utcnow().isoformat()})

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        manager.disconnect(websocket)
