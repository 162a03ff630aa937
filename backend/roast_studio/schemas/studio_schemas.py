"""
Collaborator (generation and speech) schemas
"""

from pydantic import BaseModel, Field
from typing import Optional

class GenerateRoastRequest(BaseModel):
    """Host response request"""
    persona_name: str = Field(..., min_length=1)
    user_roast: str = Field(default="")
    host_type: str = Field(..., pattern="^[AB]$")

class GenerateRoastResponse(BaseModel):
    """Host response"""
    response: str
    host_type: str

class TextToSpeechRequest(BaseModel):
    """Speech synthesis request"""
    text: str = Field(..., min_length=1)
    voice: str = Field(default="announcer", pattern="^(A|B|announcer)$")

class TextToSpeechResponse(BaseModel):
    """Synthesized audio, base64 encoded"""
    audio_content: str
    content_type: str = "audio/mpeg"

class AudioUploadResponse(BaseModel):
    """Stored audio clip"""
    audio_url: str
    content_type: Optional[str] = None
