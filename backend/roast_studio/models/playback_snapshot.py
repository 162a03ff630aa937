"""
Live playback snapshot data model
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean
from roast_studio.core.database import Base
from roast_studio.core.utils import utcnow

class PlaybackSnapshot(Base):
    """Latest 'what is on screen right now' for a session, owned by the lease holder"""
    __tablename__ = "session_playback_state"

    session_id = Column(String(36), ForeignKey("roast_sessions.id", ondelete="CASCADE"), primary_key=True)
    host_id = Column(String(64), nullable=False)  # client id of the lease holder
    lease_expires_at = Column(DateTime, nullable=False)
    current_index = Column(Integer, nullable=False, default=0)
    phase = Column(String(20), nullable=False, default="idle")  # idle, intro, roast, response, transition
    current_speaker = Column(String(10), nullable=True)  # user, hostA, hostB
    current_text = Column(Text, nullable=True)
    current_audio_url = Column(Text, nullable=True)
    audio_started_at = Column(DateTime, nullable=True)
    host_turn = Column(String(1), nullable=False, default="A")  # who responds next
    roast_number = Column(Integer, nullable=False, default=0)
    is_playing = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
