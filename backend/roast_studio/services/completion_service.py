"""
Round completion service
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from roast_studio.core.utils import utcnow
from roast_studio.models import global_round_state as round_states
from roast_studio.models.roast_session import LIVE, LOCKED, OPEN, ARCHIVED
from roast_studio.services.lifecycle_service import LifecycleService
from roast_studio.services.round_store import RoundStore

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    success: bool
    archived_session_id: str
    created_session_id: Optional[str] = None


class RoundCompletionService:
    """Finalizes a live round and makes sure a successor exists

    Safe to call repeatedly and concurrently for the same session: the
    archive step is a conditional LIVE -> ARCHIVED update and the successor is
    created under the global row's version guard.
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = RoundStore(db)
        self.lifecycle = LifecycleService(db)

    async def complete(self, session_id: str, now: Optional[datetime] = None) -> Optional[CompletionResult]:
        """Archive session_id and move the show on; None when the session does not exist"""
        now = now or utcnow()
        session = self.store.get_session(session_id)
        if session is None:
            return None

        if self.store.transition(session_id, LIVE, ARCHIVED):
            logger.info("Round %s (%s) archived", session_id, session.persona_name)
        self.store.mark_remaining_used(session_id)

        created = self.lifecycle.ensure_active_session(now, current_subject=session.persona_name)
        if created is not None:
            return CompletionResult(True, session_id, created.id)

        active = self.store.active_sessions()
        if active:
            self._reconcile(active[0], now)
        else:
            state = self.store.get_global_state()
            if state is None or state.round_state != round_states.WAITING or state.session_id is not None:
                logger.warning("No personas to rotate to; show is waiting")
                self.store.write_global_state(round_states.WAITING, None)
        return CompletionResult(True, session_id, None)

    def _reconcile(self, session, now: datetime) -> None:
        """Point the global row at the session that is actually active"""
        state = self.store.get_global_state()
        if session.status in (OPEN, LOCKED):
            if state and state.session_id == session.id and state.round_state == round_states.SUBMITTING:
                return
            self.store.write_global_state(
                round_states.SUBMITTING,
                session.id,
                submit_end_time=session.lock_time,
                live_start_time=None,
            )
        elif session.status == LIVE:
            if state and state.session_id == session.id and state.round_state == round_states.LIVE:
                return
            live_start = now
            if state and state.session_id == session.id and state.live_start_time:
                live_start = state.live_start_time
            self.store.write_global_state(
                round_states.LIVE,
                session.id,
                submit_end_time=session.lock_time,
                live_start_time=live_start,
            )
        logger.info("Reconciled global state to session %s (%s)", session.id, session.status)
