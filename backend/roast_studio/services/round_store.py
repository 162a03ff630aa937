"""
Persistent round store

Every status change, submission and "used" flip is a conditional write keyed on
the row's current state, so racing writers converge: the loser's write simply
matches zero rows.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import Boolean, DateTime, Text, case, exists, func, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from roast_studio.core.database import GLOBAL_STATE_ID
from roast_studio.core.utils import utcnow
from roast_studio.models import (
    GlobalRoundState,
    Persona,
    RoastExchange,
    RoastMessage,
    RoastSession,
)
from roast_studio.models import global_round_state as round_states
from roast_studio.models.roast_session import ACTIVE_STATUSES, ARCHIVED, LIVE, OPEN

logger = logging.getLogger(__name__)

EXCHANGE_WRITE_ATTEMPTS = 3


class RoundStore:
    """Reads and conditional writes over sessions, messages, exchanges and the global row"""

    def __init__(self, db: Session):
        self.db = db

    # ---- global round state ----

    def get_global_state(self) -> Optional[GlobalRoundState]:
        """Most recently updated global row"""
        return (
            self.db.query(GlobalRoundState)
            .populate_existing()
            .order_by(GlobalRoundState.updated_at.desc(), GlobalRoundState.id.asc())
            .first()
        )

    def _ensure_global_state(self) -> GlobalRoundState:
        state = self.get_global_state()
        if state is None:
            state = GlobalRoundState(id=GLOBAL_STATE_ID, round_state=round_states.WAITING)
            self.db.add(state)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
            state = self.get_global_state()
        return state

    def write_global_state(
        self,
        round_state: str,
        session_id: Optional[str],
        submit_end_time: Optional[datetime] = None,
        live_start_time: Optional[datetime] = None,
        expected_version: Optional[int] = None,
    ) -> bool:
        """Point the global row at a session/phase; False when expected_version no longer matches"""
        state = self._ensure_global_state()
        total = self.count_unused(session_id) if session_id else 0
        query = self.db.query(GlobalRoundState).filter(GlobalRoundState.id == state.id)
        if expected_version is not None:
            query = query.filter(GlobalRoundState.version == expected_version)
        rows = query.update(
            {
                GlobalRoundState.session_id: session_id,
                GlobalRoundState.round_state: round_state,
                GlobalRoundState.current_roast_index: 0,
                GlobalRoundState.total_roasts: total,
                GlobalRoundState.submit_end_time: submit_end_time,
                GlobalRoundState.live_start_time: live_start_time,
                GlobalRoundState.version: GlobalRoundState.version + 1,
                GlobalRoundState.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
        self.db.commit()
        if rows:
            logger.info("Global state -> %s (session=%s, roasts=%d)", round_state, session_id, total)
        return rows == 1

    # ---- sessions ----

    def get_session(self, session_id: str) -> Optional[RoastSession]:
        """Session by id"""
        return (
            self.db.query(RoastSession)
            .populate_existing()
            .filter(RoastSession.id == session_id)
            .first()
        )

    def list_sessions(self, status: Optional[str] = None, limit: int = 50) -> List[RoastSession]:
        """Newest sessions first"""
        query = self.db.query(RoastSession).populate_existing()
        if status:
            query = query.filter(RoastSession.status == status)
        return query.order_by(RoastSession.created_at.desc()).limit(limit).all()

    def active_sessions(self) -> List[RoastSession]:
        """Sessions in OPEN, LOCKED or LIVE, newest first"""
        return (
            self.db.query(RoastSession)
            .populate_existing()
            .filter(RoastSession.status.in_(ACTIVE_STATUSES))
            .order_by(RoastSession.created_at.desc())
            .all()
        )

    def sessions_due(self, status: str, cutoff: datetime) -> List[RoastSession]:
        """Sessions in a status whose lock time is at or before cutoff"""
        return (
            self.db.query(RoastSession)
            .populate_existing()
            .filter(RoastSession.status == status, RoastSession.lock_time <= cutoff)
            .order_by(RoastSession.lock_time.asc())
            .all()
        )

    def transition(self, session_id: str, from_status: str, to_status: str) -> bool:
        """Conditional status update; True only for the caller that moved the row"""
        rows = (
            self.db.query(RoastSession)
            .filter(RoastSession.id == session_id, RoastSession.status == from_status)
            .update({RoastSession.status: to_status}, synchronize_session=False)
        )
        self.db.commit()
        if rows:
            logger.info("Session %s: %s -> %s", session_id, from_status, to_status)
        return rows == 1

    def create_session_with_state(
        self,
        persona: Persona,
        now: datetime,
        window: timedelta,
        expected_version: int,
    ) -> Optional[RoastSession]:
        """Insert an OPEN session and point the global row at it, atomically

        Returns None (nothing written) when the global row's version moved on
        since the caller read it.
        """
        state = self._ensure_global_state()
        session = RoastSession(
            id=str(uuid.uuid4()),
            persona_id=persona.id,
            persona_name=persona.username,
            persona_avatar=persona.profile_pic_url,
            status=OPEN,
            start_time=now,
            lock_time=now + window,
            created_at=now,
        )
        self.db.add(session)
        self.db.flush()

        rows = (
            self.db.query(GlobalRoundState)
            .filter(
                GlobalRoundState.id == state.id,
                GlobalRoundState.version == expected_version,
            )
            .update(
                {
                    GlobalRoundState.session_id: session.id,
                    GlobalRoundState.round_state: round_states.SUBMITTING,
                    GlobalRoundState.current_roast_index: 0,
                    GlobalRoundState.total_roasts: 0,
                    GlobalRoundState.submit_end_time: session.lock_time,
                    GlobalRoundState.live_start_time: None,
                    GlobalRoundState.version: GlobalRoundState.version + 1,
                    GlobalRoundState.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        if rows != 1:
            self.db.rollback()
            logger.info("Session creation lost a race (expected version %d)", expected_version)
            return None

        self.db.commit()
        self.db.refresh(session)
        logger.info("Created session %s for %s, locks at %s", session.id, session.persona_name, session.lock_time)
        return session

    def recent_archived_subjects(self, limit: int) -> List[str]:
        """Subject names of the most recently archived sessions"""
        rows = (
            self.db.query(RoastSession.persona_name)
            .filter(RoastSession.status == ARCHIVED)
            .order_by(RoastSession.created_at.desc())
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

    # ---- messages ----

    def submit_message(
        self,
        session_id: str,
        transcript: Optional[str] = None,
        audio_url: Optional[str] = None,
    ) -> Optional[RoastMessage]:
        """Insert a submission only if the session is OPEN at write time"""
        message_id = str(uuid.uuid4())
        session_open = exists().where(
            RoastSession.id == session_id,
            RoastSession.status == OPEN,
        )
        stmt = insert(RoastMessage).from_select(
            ["id", "session_id", "audio_url", "transcript", "used", "created_at"],
            select(
                literal(message_id),
                literal(session_id),
                literal(audio_url, Text()),
                literal(transcript, Text()),
                literal(False, Boolean()),
                literal(utcnow(), DateTime()),
            ).where(session_open),
        )
        self.db.execute(stmt)
        self.db.commit()

        message = self.db.query(RoastMessage).filter(RoastMessage.id == message_id).first()
        if message is None:
            logger.info("Rejected submission for session %s: not open", session_id)
        return message

    def get_message(self, message_id: str) -> Optional[RoastMessage]:
        """Message by id"""
        return (
            self.db.query(RoastMessage)
            .populate_existing()
            .filter(RoastMessage.id == message_id)
            .first()
        )

    def list_queue(self, session_id: str) -> List[RoastMessage]:
        """All of a session's messages in creation order; an item's index is its position here"""
        return (
            self.db.query(RoastMessage)
            .populate_existing()
            .filter(RoastMessage.session_id == session_id)
            .order_by(RoastMessage.created_at.asc(), RoastMessage.id.asc())
            .all()
        )

    def count_unused(self, session_id: str) -> int:
        """Number of messages not yet consumed"""
        return (
            self.db.query(func.count(RoastMessage.id))
            .filter(RoastMessage.session_id == session_id, RoastMessage.used.is_(False))
            .scalar()
        ) or 0

    def latest_messages(self, limit: int = 20) -> List[Tuple[RoastMessage, str]]:
        """Newest submissions across sessions, with the subject name"""
        return (
            self.db.query(RoastMessage, RoastSession.persona_name)
            .join(RoastSession, RoastSession.id == RoastMessage.session_id)
            .order_by(RoastMessage.created_at.desc())
            .limit(limit)
            .all()
        )

    def mark_message_used(self, message_id: str) -> Optional[bool]:
        """Flip used false->true while the session is LIVE and advance the roast index

        Returns None for an unknown message, otherwise whether this call did
        the flip. The index moves in the same transaction and never past
        total_roasts.
        """
        message = self.get_message(message_id)
        if message is None:
            return None
        session_id = message.session_id

        session_live = exists().where(
            RoastSession.id == session_id,
            RoastSession.status == LIVE,
        )
        rows = (
            self.db.query(RoastMessage)
            .filter(
                RoastMessage.id == message_id,
                RoastMessage.used.is_(False),
                session_live,
            )
            .update({RoastMessage.used: True}, synchronize_session=False)
        )
        if rows != 1:
            self.db.rollback()
            return False

        next_index = GlobalRoundState.current_roast_index + 1
        self.db.query(GlobalRoundState).filter(
            GlobalRoundState.session_id == session_id,
            GlobalRoundState.round_state == round_states.LIVE,
        ).update(
            {
                GlobalRoundState.current_roast_index: case(
                    (next_index > GlobalRoundState.total_roasts, GlobalRoundState.total_roasts),
                    else_=next_index,
                ),
                GlobalRoundState.version: GlobalRoundState.version + 1,
                GlobalRoundState.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
        self.db.commit()
        return True

    def mark_remaining_used(self, session_id: str) -> int:
        """Completion cleanup: consume whatever the host left behind, once the session is ARCHIVED"""
        session_archived = exists().where(
            RoastSession.id == session_id,
            RoastSession.status == ARCHIVED,
        )
        rows = (
            self.db.query(RoastMessage)
            .filter(
                RoastMessage.session_id == session_id,
                RoastMessage.used.is_(False),
                session_archived,
            )
            .update({RoastMessage.used: True}, synchronize_session=False)
        )
        self.db.commit()
        if rows:
            logger.info("Marked %d leftover message(s) used in session %s", rows, session_id)
        return rows

    # ---- exchanges ----

    def record_exchange(
        self,
        session_id: str,
        host_type: str,
        host_response: str,
        message_id: Optional[str] = None,
        user_transcript: Optional[str] = None,
        user_audio_url: Optional[str] = None,
        host_audio_url: Optional[str] = None,
    ) -> Optional[RoastExchange]:
        """Append an exchange with the next sequence number

        Recording the same message twice returns the first record.
        """
        if self.get_session(session_id) is None:
            return None

        for _ in range(EXCHANGE_WRITE_ATTEMPTS):
            if message_id:
                existing = (
                    self.db.query(RoastExchange)
                    .filter(RoastExchange.message_id == message_id)
                    .first()
                )
                if existing:
                    return existing

            last = (
                self.db.query(func.max(RoastExchange.sequence_number))
                .filter(RoastExchange.session_id == session_id)
                .scalar()
            )
            exchange = RoastExchange(
                id=str(uuid.uuid4()),
                session_id=session_id,
                message_id=message_id,
                user_transcript=user_transcript,
                user_audio_url=user_audio_url,
                host_type=host_type,
                host_response=host_response,
                host_audio_url=host_audio_url,
                sequence_number=(last or 0) + 1,
                created_at=utcnow(),
            )
            self.db.add(exchange)
            try:
                self.db.commit()
            except IntegrityError:
                # Another writer took this sequence number or this message
                self.db.rollback()
                continue
            self.db.refresh(exchange)
            return exchange

        raise RuntimeError(f"Could not record exchange for session {session_id}")

    def list_exchanges(self, session_id: str) -> List[RoastExchange]:
        """Exchanges in sequence order"""
        return (
            self.db.query(RoastExchange)
            .filter(RoastExchange.session_id == session_id)
            .order_by(RoastExchange.sequence_number.asc())
            .all()
        )
