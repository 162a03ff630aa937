"""
Playback host lease and snapshots

One client per session holds the host lease and is the only writer of the
session's snapshot row. The lease is renewed by every snapshot write and can
be taken over once it expires, so a crashed host is replaced within
HOST_LEASE_SECONDS.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from roast_studio.core.config import settings
from roast_studio.core.utils import to_naive_utc, utcnow
from roast_studio.models import PlaybackSnapshot, RoastSession
from roast_studio.schemas.playback_schemas import PlaybackSnapshotResponse, PlaybackUpdate

logger = logging.getLogger(__name__)


class PlaybackService:
    """Lease-based host election and snapshot writes"""

    def __init__(self, db: Session):
        self.db = db
        self.lease = timedelta(seconds=settings.HOST_LEASE_SECONDS)

    def _get(self, session_id: str) -> Optional[PlaybackSnapshot]:
        return (
            self.db.query(PlaybackSnapshot)
            .populate_existing()
            .filter(PlaybackSnapshot.session_id == session_id)
            .first()
        )

    async def get_snapshot(self, session_id: str) -> Optional[PlaybackSnapshotResponse]:
        """Latest snapshot for a session"""
        snapshot = self._get(session_id)
        if snapshot:
            return PlaybackSnapshotResponse.model_validate(snapshot)
        return None

    async def claim(
        self, session_id: str, host_id: str, now: Optional[datetime] = None
    ) -> Optional[Tuple[bool, PlaybackSnapshotResponse]]:
        """Try to become (or stay) host; None when the session does not exist"""
        now = now or utcnow()
        exists = self.db.query(RoastSession.id).filter(RoastSession.id == session_id).first()
        if exists is None:
            return None

        if self._get(session_id) is None:
            self.db.add(PlaybackSnapshot(
                session_id=session_id,
                host_id=host_id,
                lease_expires_at=now + self.lease,
                updated_at=now,
            ))
            try:
                self.db.commit()
                logger.info("Client %s is host for session %s", host_id, session_id)
                return True, PlaybackSnapshotResponse.model_validate(self._get(session_id))
            except IntegrityError:
                # Someone inserted first; fall through to the conditional claim
                self.db.rollback()

        rows = (
            self.db.query(PlaybackSnapshot)
            .filter(
                PlaybackSnapshot.session_id == session_id,
                or_(
                    PlaybackSnapshot.host_id == host_id,
                    PlaybackSnapshot.lease_expires_at <= now,
                ),
            )
            .update(
                {
                    PlaybackSnapshot.host_id: host_id,
                    PlaybackSnapshot.lease_expires_at: now + self.lease,
                    PlaybackSnapshot.version: PlaybackSnapshot.version + 1,
                    PlaybackSnapshot.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        snapshot = self._get(session_id)
        if rows == 1 and snapshot.host_id == host_id:
            logger.debug("Client %s holds the lease for session %s", host_id, session_id)
            return True, PlaybackSnapshotResponse.model_validate(snapshot)
        return False, PlaybackSnapshotResponse.model_validate(snapshot)

    async def update(
        self, session_id: str, update: PlaybackUpdate, now: Optional[datetime] = None
    ) -> Optional[PlaybackSnapshotResponse]:
        """Apply a snapshot write from the lease holder; None when the caller is not the holder"""
        now = now or utcnow()
        fields = update.model_dump(exclude_unset=True, exclude={"host_id"})
        if fields.get("audio_started_at") is not None:
            fields["audio_started_at"] = to_naive_utc(fields["audio_started_at"])
        values = {getattr(PlaybackSnapshot, name): value for name, value in fields.items()}
        values.update({
            PlaybackSnapshot.lease_expires_at: now + self.lease,
            PlaybackSnapshot.version: PlaybackSnapshot.version + 1,
            PlaybackSnapshot.updated_at: now,
        })

        rows = (
            self.db.query(PlaybackSnapshot)
            .filter(
                PlaybackSnapshot.session_id == session_id,
                PlaybackSnapshot.host_id == update.host_id,
            )
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        if rows != 1:
            logger.info("Rejected snapshot write from %s for session %s", update.host_id, session_id)
            return None
        return PlaybackSnapshotResponse.model_validate(self._get(session_id))

    async def release(self, session_id: str, host_id: str, now: Optional[datetime] = None) -> bool:
        """Expire the caller's lease so another client can take over at once"""
        now = now or utcnow()
        rows = (
            self.db.query(PlaybackSnapshot)
            .filter(
                PlaybackSnapshot.session_id == session_id,
                PlaybackSnapshot.host_id == host_id,
            )
            .update(
                {
                    PlaybackSnapshot.lease_expires_at: now,
                    PlaybackSnapshot.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if rows:
            logger.info("Client %s released host lease for session %s", host_id, session_id)
        return rows == 1
