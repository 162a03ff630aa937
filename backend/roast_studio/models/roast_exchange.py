"""
Archived (roast, host response) pair data model
"""

import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint
from roast_studio.core.database import Base
from roast_studio.core.utils import utcnow

class RoastExchange(Base):
    """Finalized exchange used for archive replay"""
    __tablename__ = "roast_exchanges"
    __table_args__ = (
        UniqueConstraint("session_id", "sequence_number", name="uq_exchange_sequence"),
        UniqueConstraint("message_id", name="uq_exchange_message"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(36), ForeignKey("roast_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    message_id = Column(String(36), ForeignKey("roast_messages.id", ondelete="SET NULL"), nullable=True)
    user_transcript = Column(Text, nullable=True)
    user_audio_url = Column(Text, nullable=True)
    host_type = Column(String(1), nullable=False)  # A, B
    host_response = Column(Text, nullable=False)
    host_audio_url = Column(Text, nullable=True)
    sequence_number = Column(Integer, nullable=False)  # 1, 2, 3... per session
    created_at = Column(DateTime, nullable=False, default=utcnow)
