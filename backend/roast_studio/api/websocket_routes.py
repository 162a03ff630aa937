"""
WebSocket API routes
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from sqlalchemy.orm import Session
from roast_studio.core.database import get_db
from roast_studio.services.playback_service import PlaybackService
from roast_studio.services.round_store import RoundStore
from roast_studio.services.websocket_service import get_websocket_manager
from roast_studio.schemas.round_schemas import GlobalRoundStateResponse

logger = logging.getLogger(__name__)

router = APIRouter()

async def _listen(websocket: WebSocket, manager):
    """Answer heartbeats until the client goes away"""
    while True:
        data = await websocket.receive_text()
        try:
            message_data = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Ignoring invalid JSON: %s", data[:100])
            continue
        if message_data.get("type") == "ping":
            await manager.send_personal_message({
                "type": "pong",
                "timestamp": message_data.get("timestamp")
            }, websocket)

@router.websocket("/sessions/{session_id}")
async def websocket_session_endpoint(
    websocket: WebSocket,
    session_id: str,
    db: Session = Depends(get_db)
):
    """Playback snapshot and dialogue channel for one session"""
    manager = get_websocket_manager()
    await manager.connect(websocket, session_id)

    try:
        await manager.send_personal_message({
            "type": "connected",
            "session_id": session_id
        }, websocket)

        # Late joiners start from the latest snapshot
        snapshot = await PlaybackService(db).get_snapshot(session_id)
        if snapshot:
            await manager.send_personal_message({
                "type": "snapshot",
                "snapshot": snapshot.model_dump(mode="json")
            }, websocket)

        await _listen(websocket, manager)
    except WebSocketDisconnect:
        manager.disconnect(websocket, session_id)
    except Exception as e:
        logger.warning("WebSocket error on session %s: %s", session_id, e)
        manager.disconnect(websocket, session_id)

@router.websocket("/round")
async def websocket_round_endpoint(
    websocket: WebSocket,
    db: Session = Depends(get_db)
):
    """Global round state channel"""
    manager = get_websocket_manager()
    await manager.connect_round(websocket)

    try:
        state = RoundStore(db).get_global_state()
        if state:
            await manager.send_personal_message({
                "type": "round_state",
                "state": GlobalRoundStateResponse.model_validate(state).model_dump(mode="json")
            }, websocket)

        await _listen(websocket, manager)
    except WebSocketDisconnect:
        manager.disconnect_round(websocket)
    except Exception as e:
        logger.warning("Round WebSocket error: %s", e)
        manager.disconnect_round(websocket)
