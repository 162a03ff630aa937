"""
Round state API routes
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from roast_studio.core.database import get_db
from roast_studio.services.lifecycle_service import LifecycleService
from roast_studio.services.completion_service import RoundCompletionService
from roast_studio.services.websocket_service import publish_round_state
from roast_studio.schemas.round_schemas import (
    CompletionRequest,
    CompletionResponse,
    ControllerTickResponse,
    GlobalRoundStateResponse,
)

router = APIRouter()

@router.get("/state", response_model=GlobalRoundStateResponse)
async def get_round_state(db: Session = Depends(get_db)):
    """Get the global round state"""
    state = await LifecycleService(db).get_state()
    if not state:
        raise HTTPException(status_code=404, detail="Round state not initialised")
    return state

@router.post("/tick", response_model=ControllerTickResponse)
async def run_controller_tick(db: Session = Depends(get_db)):
    """Run one lifecycle controller tick (idempotent)"""
    result = await LifecycleService(db).tick()
    if result.changed:
        await publish_round_state(db)
    return result.to_response()

@router.post("/complete", response_model=CompletionResponse)
async def complete_round(
    request: CompletionRequest,
    db: Session = Depends(get_db)
):
    """Archive a finished live round and make sure the next one exists"""
    if not request.session_id:
        raise HTTPException(status_code=400, detail="sessionId is required")

    result = await RoundCompletionService(db).complete(request.session_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Session not found")

    await publish_round_state(db)
    return CompletionResponse(
        success=result.success,
        archived_session_id=result.archived_session_id,
        created_session_id=result.created_session_id,
    )
