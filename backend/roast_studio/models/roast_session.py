"""
Roast session (round) data model
"""

import uuid

from sqlalchemy import Column, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from roast_studio.core.database import Base
from roast_studio.core.utils import utcnow

OPEN = "OPEN"
LOCKED = "LOCKED"
LIVE = "LIVE"
ARCHIVED = "ARCHIVED"

ACTIVE_STATUSES = (OPEN, LOCKED, LIVE)

class RoastSession(Base):
    """One roast round"""
    __tablename__ = "roast_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    persona_id = Column(String(36), ForeignKey("personas.id"), nullable=True)
    persona_name = Column(String(100), nullable=False)
    persona_avatar = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default=OPEN, index=True)  # OPEN, LOCKED, LIVE, ARCHIVED
    start_time = Column(DateTime, nullable=False, default=utcnow)
    lock_time = Column(DateTime, nullable=True)  # submission deadline
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    persona = relationship("Persona")
    messages = relationship(
        "RoastMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
