"""
Persona (roast subject) data model
"""

import uuid

from sqlalchemy import Column, String, DateTime
from roast_studio.core.database import Base
from roast_studio.core.utils import utcnow

class Persona(Base):
    """Pool of personalities a round can target"""
    __tablename__ = "personas"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(100), nullable=False)
    twitter_handle = Column(String(100), nullable=True)
    profile_pic_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
