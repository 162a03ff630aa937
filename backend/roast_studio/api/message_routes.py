"""
Message API routes
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from roast_studio.core.database import get_db
from roast_studio.services.round_store import RoundStore
from roast_studio.services.websocket_service import publish_round_state
from roast_studio.schemas.round_schemas import LatestMessageResponse, MarkUsedResponse

router = APIRouter()

@router.get("/latest", response_model=List[LatestMessageResponse])
async def latest_messages(
    limit: int = 20,
    db: Session = Depends(get_db)
):
    """Newest roasts across all sessions"""
    rows = RoundStore(db).latest_messages(limit=min(limit, 100))
    return [
        LatestMessageResponse(
            id=message.id,
            session_id=message.session_id,
            audio_url=message.audio_url,
            transcript=message.transcript,
            used=message.used,
            created_at=message.created_at,
            persona_name=persona_name,
        )
        for message, persona_name in rows
    ]

@router.post("/{message_id}/used", response_model=MarkUsedResponse)
async def mark_message_used(
    message_id: str,
    db: Session = Depends(get_db)
):
    """Consume a message; only allowed once and only while its session is LIVE"""
    flipped = RoundStore(db).mark_message_used(message_id)
    if flipped is None:
        raise HTTPException(status_code=404, detail="Message not found")
    if not flipped:
        raise HTTPException(status_code=409, detail="Message is already used or its session is not live")
    await publish_round_state(db)
    return MarkUsedResponse(message_id=message_id, used=True)
