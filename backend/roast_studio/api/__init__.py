"""
API routes
"""

from fastapi import APIRouter
from .round_routes import router as round_router
from .session_routes import router as session_router
from .message_routes import router as message_router
from .playback_routes import router as playback_router
from .studio_routes import router as studio_router
from .persona_routes import router as persona_router
from .websocket_routes import router as ws_router

# Main router
api_router = APIRouter()

# Register each feature's routes
api_router.include_router(round_router, prefix="/rounds", tags=["Rounds"])
api_router.include_router(session_router, prefix="/sessions", tags=["Sessions"])
api_router.include_router(message_router, prefix="/messages", tags=["Messages"])
api_router.include_router(playback_router, prefix="/playback", tags=["Playback"])
api_router.include_router(studio_router, prefix="/studio", tags=["Studio"])
api_router.include_router(persona_router, prefix="/personas", tags=["Personas"])
api_router.include_router(ws_router, prefix="/ws", tags=["WebSocket"])
