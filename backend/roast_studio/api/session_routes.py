"""
Session, submission and exchange API routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from roast_studio.api.dependencies import get_speech_transcriber
from roast_studio.core.config import settings
from roast_studio.core.database import get_db
from roast_studio.models.roast_session import OPEN
from roast_studio.schemas.round_schemas import (
    ExchangeCreate,
    ExchangeResponse,
    MessageResponse,
    SessionResponse,
)
from roast_studio.services import audio_storage
from roast_studio.services.round_store import RoundStore
from roast_studio.services.speech_service import SpeechTranscriber

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("", response_model=List[SessionResponse])
async def list_sessions(
    status: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """List sessions, newest first"""
    sessions = RoundStore(db).list_sessions(status=status, limit=limit)
    return [SessionResponse.model_validate(s) for s in sessions]

@router.get("/active", response_model=Optional[SessionResponse])
async def get_active_session(db: Session = Depends(get_db)):
    """Get the session currently in OPEN, LOCKED or LIVE (null when waiting)"""
    active = RoundStore(db).active_sessions()
    return SessionResponse.model_validate(active[0]) if active else None

@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    db: Session = Depends(get_db)
):
    """Get one session"""
    session = RoundStore(db).get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionResponse.model_validate(session)

@router.get("/{session_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    session_id: str,
    unused_only: bool = False,
    db: Session = Depends(get_db)
):
    """The session's roast queue in creation order"""
    store = RoundStore(db)
    if not store.get_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    messages = store.list_queue(session_id)
    if unused_only:
        messages = [m for m in messages if not m.used]
    return [MessageResponse.model_validate(m) for m in messages]

@router.post("/{session_id}/messages", response_model=MessageResponse, status_code=201)
async def submit_message(
    session_id: str,
    transcript: Optional[str] = Form(default=None),
    audio: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_db),
    transcriber: SpeechTranscriber = Depends(get_speech_transcriber)
):
    """Submit a roast while the session is OPEN"""
    store = RoundStore(db)
    session = store.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    if session.status != OPEN:
        raise HTTPException(status_code=409, detail="Submissions are closed for this session")

    text = (transcript or "").strip() or None
    if text and len(text) > settings.MAX_MESSAGE_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Roast is longer than {settings.MAX_MESSAGE_LENGTH} characters"
        )

    audio_url = None
    if audio is not None:
        data = await audio.read()
        if data:
            ext = audio_storage.extension_for(audio.content_type, audio.filename)
            audio_url = audio_storage.save_audio(data, f"roast_{session_id}", ext)
            if not text:
                text = await transcriber.transcribe(
                    data,
                    filename=audio.filename or f"roast.{ext}",
                    content_type=audio.content_type or "application/octet-stream",
                )

    if not text and not audio_url:
        raise HTTPException(status_code=400, detail="A transcript or an audio clip is required")

    message = store.submit_message(session_id, transcript=text, audio_url=audio_url)
    if message is None:
        # Window closed between the check and the insert
        raise HTTPException(status_code=409, detail="Submissions are closed for this session")
    logger.info("New roast for session %s (audio=%s)", session_id, bool(audio_url))
    return MessageResponse.model_validate(message)

@router.get("/{session_id}/exchanges", response_model=List[ExchangeResponse])
async def list_exchanges(
    session_id: str,
    db: Session = Depends(get_db)
):
    """Archived exchanges in sequence order"""
    store = RoundStore(db)
    if not store.get_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return [ExchangeResponse.model_validate(e) for e in store.list_exchanges(session_id)]

@router.post("/{session_id}/exchanges", response_model=ExchangeResponse)
async def record_exchange(
    session_id: str,
    exchange_data: ExchangeCreate,
    db: Session = Depends(get_db)
):
    """Record a finalized exchange (idempotent per message)"""
    exchange = RoundStore(db).record_exchange(session_id, **exchange_data.model_dump())
    if not exchange:
        raise HTTPException(status_code=404, detail="Session not found")
    return ExchangeResponse.model_validate(exchange)
