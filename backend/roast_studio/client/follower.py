"""
Playback follower (viewer role)

Reconstructs what the host is showing purely from snapshots. Audio is joined
mid-clip: a viewer that sees a clip which started k seconds ago starts it at
offset k.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from roast_studio.client.api_client import StudioAPIError, StudioClient
from roast_studio.client.audio import AudioPlayer, Clip
from roast_studio.core.config import settings
from roast_studio.core.utils import parse_timestamp, utcnow

logger = logging.getLogger(__name__)


def playback_offset(
    audio_started_at: datetime,
    now: datetime,
    duration: Optional[float] = None,
    stale_after: float = settings.STALE_AUDIO_SECONDS,
) -> Optional[float]:
    """Seconds into the clip to start at, or None when the clip should be skipped"""
    elapsed = (now - audio_started_at).total_seconds()
    if elapsed > stale_after:
        return None
    # Host clock slightly ahead of ours
    elapsed = max(0.0, elapsed)
    if duration is not None and elapsed >= duration:
        return None
    return elapsed


class PlaybackFollower:
    """Applies host snapshots and keeps local audio in step"""

    def __init__(
        self,
        client: StudioClient,
        session_id: str,
        player: AudioPlayer,
        clock: Callable[[], datetime] = utcnow,
        stale_after: float = settings.STALE_AUDIO_SECONDS,
        poll_interval: float = settings.FOLLOWER_POLL_SECONDS,
    ):
        self.client = client
        self.session_id = session_id
        self.player = player
        self.clock = clock
        self.stale_after = stale_after
        self.poll_interval = poll_interval

        self.last_version = -1
        self.phase = "idle"
        self.speaker: Optional[str] = None
        self.caption: Optional[str] = None
        self.roast_number = 0
        self.current_index = 0
        self.is_playing = False
        self.dialogue: Optional[Tuple[str, str]] = None
        self.last_offset: Optional[float] = None

        self._audio_key: Optional[Tuple[str, str]] = None
        self._audio_task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()

    async def apply(self, snapshot: dict) -> bool:
        """Apply a snapshot unless it is older than (or the same as) the last one"""
        version = snapshot.get("version", 0)
        if version <= self.last_version:
            return False
        self.last_version = version

        self.phase = snapshot.get("phase", self.phase)
        self.speaker = snapshot.get("current_speaker")
        self.caption = snapshot.get("current_text")
        self.roast_number = snapshot.get("roast_number", self.roast_number)
        self.current_index = snapshot.get("current_index", self.current_index)
        self.is_playing = bool(snapshot.get("is_playing"))

        await self._sync_audio(snapshot.get("current_audio_url"), snapshot.get("audio_started_at"))
        return True

    async def handle_message(self, message: dict):
        """Entry point for WebSocket payloads"""
        if message.get("type") == "snapshot":
            await self.apply(message["snapshot"])
        elif message.get("type") == "dialogue":
            self.dialogue = (message.get("speaker"), message.get("text"))

    async def _sync_audio(self, audio_url: Optional[str], started_at: Optional[str]):
        if not audio_url or not started_at:
            # Host moved on to a silent step
            self._audio_key = None
            self._stop_audio()
            return
        key = (audio_url, started_at)
        if key == self._audio_key:
            return
        self._audio_key = key
        self._stop_audio()

        try:
            data = await self.client.fetch_audio(audio_url)
        except StudioAPIError as e:
            logger.debug("Could not fetch %s: %s", audio_url, e)
            return
        clip = Clip(audio_url, data)
        offset = playback_offset(
            parse_timestamp(started_at),
            self.clock(),
            duration=self.player.duration(clip),
            stale_after=self.stale_after,
        )
        self.last_offset = offset
        if offset is None:
            logger.debug("Skipping stale or finished clip %s", audio_url)
            return
        self._audio_task = asyncio.create_task(self.player.play(clip, offset))

    def _stop_audio(self):
        if self._audio_task is not None and not self._audio_task.done():
            self.player.stop()
            self._audio_task.cancel()
        self._audio_task = None

    async def run(self):
        """Poll the snapshot until stopped; recovers anything the socket missed"""
        while not self._stopped.is_set():
            try:
                snapshot = await self.client.get_snapshot(self.session_id)
                if snapshot:
                    await self.apply(snapshot)
            except StudioAPIError as e:
                logger.warning("Snapshot poll failed: %s", e)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    def stop(self):
        self._stopped.set()
        self._stop_audio()
