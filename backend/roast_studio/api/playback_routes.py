"""
Live playback API routes
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from roast_studio.core.database import get_db
from roast_studio.services.playback_service import PlaybackService
from roast_studio.services.websocket_service import get_websocket_manager
from roast_studio.schemas.playback_schemas import (
    DialogueLine,
    HostClaim,
    HostClaimResponse,
    PlaybackSnapshotResponse,
    PlaybackUpdate,
)

router = APIRouter()

@router.get("/{session_id}", response_model=PlaybackSnapshotResponse)
async def get_snapshot(
    session_id: str,
    db: Session = Depends(get_db)
):
    """Get the latest playback snapshot"""
    snapshot = await PlaybackService(db).get_snapshot(session_id)
    if not snapshot:
        raise HTTPException(status_code=404, detail="No playback for this session")
    return snapshot

@router.post("/{session_id}/claim", response_model=HostClaimResponse)
async def claim_host(
    session_id: str,
    claim: HostClaim,
    db: Session = Depends(get_db)
):
    """Claim or renew the host lease"""
    result = await PlaybackService(db).claim(session_id, claim.host_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Session not found")
    is_host, snapshot = result
    return HostClaimResponse(
        is_host=is_host,
        host_id=snapshot.host_id,
        lease_expires_at=snapshot.lease_expires_at,
    )

@router.post("/{session_id}/release")
async def release_host(
    session_id: str,
    claim: HostClaim,
    db: Session = Depends(get_db)
):
    """Give up the host lease"""
    released = await PlaybackService(db).release(session_id, claim.host_id)
    return {"released": released, "session_id": session_id}

@router.put("/{session_id}", response_model=PlaybackSnapshotResponse)
async def update_snapshot(
    session_id: str,
    update: PlaybackUpdate,
    db: Session = Depends(get_db)
):
    """Write the snapshot (lease holder only) and broadcast it"""
    snapshot = await PlaybackService(db).update(session_id, update)
    if not snapshot:
        raise HTTPException(status_code=409, detail="Caller does not hold the host lease")

    await get_websocket_manager().broadcast_to_session({
        "type": "snapshot",
        "snapshot": snapshot.model_dump(mode="json"),
    }, session_id)
    return snapshot

@router.post("/{session_id}/dialogue")
async def broadcast_dialogue(
    session_id: str,
    line: DialogueLine
):
    """Relay a waiting-room chatter line to the session's viewers"""
    await get_websocket_manager().broadcast_to_session({
        "type": "dialogue",
        "speaker": line.speaker,
        "text": line.text,
        "audio_url": line.audio_url,
    }, session_id)
    return {"status": "sent", "session_id": session_id}
