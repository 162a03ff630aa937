"""
Persona schemas
"""

from pydantic import BaseModel, Field, field_serializer
from typing import Optional
from datetime import datetime

class PersonaCreate(BaseModel):
    """New roast subject"""
    username: str = Field(..., min_length=1, max_length=100)
    twitter_handle: Optional[str] = Field(default=None, max_length=100)
    profile_pic_url: Optional[str] = Field(default=None, max_length=500)

class PersonaResponse(BaseModel):
    """Roast subject"""
    id: str
    username: str
    twitter_handle: Optional[str] = None
    profile_pic_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_serializer('created_at')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        return dt.isoformat() + 'Z'

    class Config:
        from_attributes = True
