"""
Live playback schemas
"""

from pydantic import BaseModel, Field, field_serializer
from typing import Optional
from datetime import datetime

class PlaybackSnapshotResponse(BaseModel):
    """What the host is playing right now"""
    session_id: str
    host_id: str
    lease_expires_at: datetime
    current_index: int
    phase: str
    current_speaker: Optional[str] = None
    current_text: Optional[str] = None
    current_audio_url: Optional[str] = None
    audio_started_at: Optional[datetime] = None
    host_turn: str
    roast_number: int
    is_playing: bool
    version: int
    updated_at: datetime

    @field_serializer('lease_expires_at', 'audio_started_at', 'updated_at')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        return dt.isoformat() + 'Z'

    class Config:
        from_attributes = True

class HostClaim(BaseModel):
    """Lease claim or release request"""
    host_id: str = Field(..., min_length=1, max_length=64)

class HostClaimResponse(BaseModel):
    """Lease claim outcome"""
    is_host: bool
    host_id: str
    lease_expires_at: datetime

    @field_serializer('lease_expires_at')
    def serialize_dt(self, dt: datetime) -> str:
        return dt.isoformat() + 'Z'

class PlaybackUpdate(BaseModel):
    """Snapshot write from the lease holder; only the fields sent are changed"""
    host_id: str = Field(..., min_length=1, max_length=64)
    current_index: Optional[int] = None
    phase: Optional[str] = Field(default=None, pattern="^(idle|intro|roast|response|transition)$")
    current_speaker: Optional[str] = Field(default=None, pattern="^(user|hostA|hostB)$")
    current_text: Optional[str] = None
    current_audio_url: Optional[str] = None
    audio_started_at: Optional[datetime] = None
    host_turn: Optional[str] = Field(default=None, pattern="^[AB]$")
    roast_number: Optional[int] = None
    is_playing: Optional[bool] = None

class DialogueLine(BaseModel):
    """One chatter line broadcast to followers"""
    speaker: str = Field(..., pattern="^(hostA|hostB)$")
    text: str
    audio_url: Optional[str] = None
