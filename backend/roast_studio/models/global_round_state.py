"""
Global round state data model
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from roast_studio.core.database import Base
from roast_studio.core.utils import utcnow

SUBMITTING = "SUBMITTING"
LIVE = "LIVE"
WAITING = "WAITING"

class GlobalRoundState(Base):
    """What phase the whole show is in; every client polls this row"""
    __tablename__ = "global_round_state"

    id = Column(Integer, primary_key=True)
    session_id = Column(String(36), ForeignKey("roast_sessions.id", ondelete="SET NULL"), nullable=True)
    round_state = Column(String(20), nullable=False, default=WAITING)  # SUBMITTING, LIVE, WAITING
    current_roast_index = Column(Integer, nullable=False, default=0)
    total_roasts = Column(Integer, nullable=False, default=0)
    live_start_time = Column(DateTime, nullable=True)
    submit_end_time = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=0)  # bumped on every write
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)
