"""
Audience submission data model
"""

import uuid

from sqlalchemy import Column, String, ForeignKey, DateTime, Text, Boolean
from sqlalchemy.orm import relationship
from roast_studio.core.database import Base
from roast_studio.core.utils import utcnow

class RoastMessage(Base):
    """One audience roast"""
    __tablename__ = "roast_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(36), ForeignKey("roast_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    audio_url = Column(Text, nullable=True)
    transcript = Column(Text, nullable=True)
    used = Column(Boolean, nullable=False, default=False)  # false -> true only, while LIVE
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    session = relationship("RoastSession", back_populates="messages")
