"""
Round, session and message schemas
"""

from pydantic import BaseModel, Field, field_serializer
from typing import Optional, List
from datetime import datetime

class GlobalRoundStateResponse(BaseModel):
    """Global round state"""
    session_id: Optional[str] = None
    round_state: str
    current_roast_index: int
    total_roasts: int
    live_start_time: Optional[datetime] = None
    submit_end_time: Optional[datetime] = None
    version: int
    updated_at: datetime

    @field_serializer('live_start_time', 'submit_end_time', 'updated_at')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        return dt.isoformat() + 'Z'

    class Config:
        from_attributes = True

class SessionResponse(BaseModel):
    """Roast session"""
    id: str
    persona_id: Optional[str] = None
    persona_name: str
    persona_avatar: Optional[str] = None
    status: str
    start_time: datetime
    lock_time: Optional[datetime] = None
    created_at: datetime

    @field_serializer('start_time', 'lock_time', 'created_at')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        return dt.isoformat() + 'Z'

    class Config:
        from_attributes = True

class MessageResponse(BaseModel):
    """Audience submission"""
    id: str
    session_id: str
    audio_url: Optional[str] = None
    transcript: Optional[str] = None
    used: bool
    created_at: datetime

    @field_serializer('created_at')
    def serialize_dt(self, dt: datetime) -> str:
        return dt.isoformat() + 'Z'

    class Config:
        from_attributes = True

class LatestMessageResponse(MessageResponse):
    """Submission with the subject it roasts"""
    persona_name: Optional[str] = None

class ExchangeCreate(BaseModel):
    """Finalized (roast, response) pair to archive"""
    message_id: Optional[str] = None
    user_transcript: Optional[str] = None
    user_audio_url: Optional[str] = None
    host_type: str = Field(..., pattern="^[AB]$")
    host_response: str = Field(..., min_length=1)
    host_audio_url: Optional[str] = None

class ExchangeResponse(BaseModel):
    """Archived exchange"""
    id: str
    session_id: str
    message_id: Optional[str] = None
    user_transcript: Optional[str] = None
    user_audio_url: Optional[str] = None
    host_type: str
    host_response: str
    host_audio_url: Optional[str] = None
    sequence_number: int
    created_at: datetime

    @field_serializer('created_at')
    def serialize_dt(self, dt: datetime) -> str:
        return dt.isoformat() + 'Z'

    class Config:
        from_attributes = True

class MarkUsedResponse(BaseModel):
    """Result of consuming a message"""
    message_id: str
    used: bool

class CompletionRequest(BaseModel):
    """Round completion request"""
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    class Config:
        populate_by_name = True

class CompletionResponse(BaseModel):
    """Round completion result"""
    success: bool
    archived_session_id: str = Field(..., alias="archivedSessionId")
    created_session_id: Optional[str] = Field(default=None, alias="createdSessionId")

    class Config:
        populate_by_name = True

class ControllerTickResponse(BaseModel):
    """Transitions performed by one controller tick"""
    open_to_locked: int = 0
    locked_to_live: int = 0
    archived_stale: int = 0
    sessions_created: int = 0
    state_synced: int = 0
    errors: List[str] = []
