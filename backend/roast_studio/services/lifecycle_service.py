"""
Session lifecycle controller

Moves sessions OPEN -> LOCKED -> LIVE and archives LIVE sessions the host
abandoned. Every step is a conditional write, so running the tick from the
background job and from any number of clients at once is safe.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from roast_studio.core.config import settings
from roast_studio.core.utils import utcnow
from roast_studio.models import global_round_state as round_states
from roast_studio.models.roast_session import ARCHIVED, LIVE, LOCKED, OPEN
from roast_studio.schemas.round_schemas import ControllerTickResponse, GlobalRoundStateResponse
from roast_studio.services.persona_service import PersonaService
from roast_studio.services.round_store import RoundStore

logger = logging.getLogger(__name__)

CREATE_ATTEMPTS = 3


@dataclass
class ControllerTickResult:
    """Transitions performed by one tick"""
    open_to_locked: int = 0
    locked_to_live: int = 0
    archived_stale: int = 0
    sessions_created: int = 0
    state_synced: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any((
            self.open_to_locked,
            self.locked_to_live,
            self.archived_stale,
            self.sessions_created,
            self.state_synced,
        ))

    def to_response(self) -> ControllerTickResponse:
        return ControllerTickResponse(
            open_to_locked=self.open_to_locked,
            locked_to_live=self.locked_to_live,
            archived_stale=self.archived_stale,
            sessions_created=self.sessions_created,
            state_synced=self.state_synced,
            errors=list(self.errors),
        )


class LifecycleService:
    """Idempotent phase controller"""

    def __init__(self, db: Session):
        self.db = db
        self.store = RoundStore(db)
        self.personas = PersonaService(db)

    async def tick(self, now: Optional[datetime] = None) -> ControllerTickResult:
        """Run every controller step once; a failing step does not stop the others"""
        now = now or utcnow()
        result = ControllerTickResult()

        steps = (
            ("ensure_active_session", self._ensure_active_session),
            ("lock_expired_open", self._lock_expired_open),
            ("start_locked", self._start_locked),
            ("sync_submitting", self._sync_submitting),
            ("archive_stale_live", self._archive_stale_live),
        )
        for name, step in steps:
            try:
                step(now, result)
            except Exception as e:
                self.db.rollback()
                logger.exception("Controller step %s failed", name)
                result.errors.append(f"{name}: {e}")

        if result.changed:
            logger.info(
                "Controller tick: locked=%d live=%d archived=%d created=%d synced=%d",
                result.open_to_locked,
                result.locked_to_live,
                result.archived_stale,
                result.sessions_created,
                result.state_synced,
            )
        return result

    def _ensure_active_session(self, now: datetime, result: ControllerTickResult) -> None:
        if not settings.AUTO_CREATE_SESSIONS:
            return
        if self.ensure_active_session(now, current_subject=None) is not None:
            result.sessions_created += 1

    def ensure_active_session(self, now: datetime, current_subject: Optional[str]):
        """Create an OPEN session when nothing is active; returns the new session or None

        Uses the global row's version as the guard, so of several racing
        callers exactly one creates a session.
        """
        window = timedelta(seconds=settings.SUBMISSION_WINDOW_SECONDS)
        for _ in range(CREATE_ATTEMPTS):
            state = self.store.get_global_state()
            expected_version = state.version if state else 0
            if self.store.active_sessions():
                return None

            if current_subject is None:
                latest = self.store.list_sessions(status=ARCHIVED, limit=1)
                current_subject = latest[0].persona_name if latest else None
            persona = self.personas.pick_next(current_subject)
            if persona is None:
                return None

            session = self.store.create_session_with_state(persona, now, window, expected_version)
            if session is not None:
                return session
        return None

    def _lock_expired_open(self, now: datetime, result: ControllerTickResult) -> None:
        for session in self.store.sessions_due(OPEN, now):
            if self.store.transition(session.id, OPEN, LOCKED):
                result.open_to_locked += 1

    def _start_locked(self, now: datetime, result: ControllerTickResult) -> None:
        cutoff = now - timedelta(seconds=settings.LOCK_GRACE_SECONDS)
        for session in self.store.sessions_due(LOCKED, cutoff):
            if self.store.transition(session.id, LOCKED, LIVE):
                self.store.write_global_state(
                    round_states.LIVE,
                    session.id,
                    submit_end_time=session.lock_time,
                    live_start_time=now,
                )
                result.locked_to_live += 1

    def _sync_submitting(self, now: datetime, result: ControllerTickResult) -> None:
        open_sessions = self.store.list_sessions(status=OPEN, limit=1)
        if not open_sessions:
            return
        session = open_sessions[0]
        state = self.store.get_global_state()
        if state and state.session_id == session.id and state.round_state == round_states.SUBMITTING:
            return
        self.store.write_global_state(
            round_states.SUBMITTING,
            session.id,
            submit_end_time=session.lock_time,
            live_start_time=None,
        )
        result.state_synced += 1

    def _archive_stale_live(self, now: datetime, result: ControllerTickResult) -> None:
        cutoff = now - timedelta(seconds=settings.STALE_LIVE_SECONDS)
        for session in self.store.sessions_due(LIVE, cutoff):
            if session.lock_time == cutoff:
                continue
            if self.store.count_unused(session.id) > 0:
                continue
            if self.store.transition(session.id, LIVE, ARCHIVED):
                logger.warning("Archived stalled live session %s", session.id)
                self.store.write_global_state(round_states.WAITING, None)
                result.archived_stale += 1

    async def get_state(self) -> Optional[GlobalRoundStateResponse]:
        """Current global row"""
        state = self.store.get_global_state()
        return GlobalRoundStateResponse.model_validate(state) if state else None


async def run_controller_loop(session_factory, on_change=None, interval: Optional[float] = None) -> None:
    """Background job: tick every interval seconds until cancelled"""
    interval = interval or settings.CONTROLLER_INTERVAL_SECONDS
    logger.info("Lifecycle controller running every %.1fs", interval)
    while True:
        db = session_factory()
        try:
            result = await LifecycleService(db).tick()
            if result.changed and on_change is not None:
                await on_change(db)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Lifecycle controller tick failed")
        finally:
            db.close()
        await asyncio.sleep(interval)
