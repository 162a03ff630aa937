"""
WebSocket connection management

Best-effort notification side-channel: a dropped message is recovered by the
client re-reading the store, so send failures only prune the connection.
"""

import json
import logging
from typing import Dict, List, Optional

from fastapi import WebSocket
from sqlalchemy.orm import Session

from roast_studio.schemas.round_schemas import GlobalRoundStateResponse
from roast_studio.services.round_store import RoundStore

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Per-session playback channels plus one global round channel"""

    def __init__(self):
        # Playback/dialogue subscribers per session
        self.session_connections: Dict[str, List[WebSocket]] = {}
        # Global round state subscribers
        self.round_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket, session_id: str):
        """Accept a session channel subscriber"""
        await websocket.accept()
        connections = self.session_connections.setdefault(session_id, [])
        if websocket not in connections:
            connections.append(websocket)
            logger.info("Viewer joined session %s (%d connected)", session_id, len(connections))

    async def connect_round(self, websocket: WebSocket):
        """Accept a round channel subscriber"""
        await websocket.accept()
        if websocket not in self.round_connections:
            self.round_connections.append(websocket)

    def disconnect(self, websocket: WebSocket, session_id: str):
        connections = self.session_connections.get(session_id, [])
        if websocket in connections:
            connections.remove(websocket)
            logger.info("Viewer left session %s (%d connected)", session_id, len(connections))
        if not connections:
            self.session_connections.pop(session_id, None)

    def disconnect_round(self, websocket: WebSocket):
        if websocket in self.round_connections:
            self.round_connections.remove(websocket)

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send to one connection"""
        try:
            await websocket.send_text(json.dumps(message, ensure_ascii=False))
        except Exception as e:
            logger.warning("Failed to send message: %s", e)

    async def _broadcast(self, message: dict, connections: List[WebSocket]) -> List[WebSocket]:
        """Send to every connection; returns the ones that failed"""
        message_text = json.dumps(message, ensure_ascii=False)
        failed = []
        for connection in list(connections):
            try:
                await connection.send_text(message_text)
            except Exception as e:
                logger.debug("Broadcast failed: %s", e)
                failed.append(connection)
        return failed

    async def broadcast_to_session(self, message: dict, session_id: str):
        """Broadcast on a session's playback channel"""
        connections = self.session_connections.get(session_id)
        if not connections:
            return
        failed = await self._broadcast(message, connections)
        for connection in failed:
            self.disconnect(connection, session_id)
        if failed:
            logger.info("Dropped %d dead connection(s) from session %s", len(failed), session_id)

    async def broadcast_round(self, message: dict):
        """Broadcast on the global round channel"""
        if not self.round_connections:
            return
        failed = await self._broadcast(message, self.round_connections)
        for connection in failed:
            self.disconnect_round(connection)


_manager: Optional[WebSocketManager] = None


def get_websocket_manager() -> WebSocketManager:
    """Process-wide manager instance"""
    global _manager
    if _manager is None:
        _manager = WebSocketManager()
    return _manager


async def publish_round_state(db: Session) -> None:
    """Push the current global row to round channel subscribers"""
    state = RoundStore(db).get_global_state()
    if state is None:
        return
    await get_websocket_manager().broadcast_round({
        "type": "round_state",
        "state": GlobalRoundStateResponse.model_validate(state).model_dump(mode="json"),
    })
