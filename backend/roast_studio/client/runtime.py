"""
Viewer runtime

Each viewer process polls the global round state. During a live round it
tries to claim the session's host lease: the winner drives playback, everyone
else follows. A follower keeps re-trying the claim, so when the host's lease
expires the next poll takes over.
"""

import asyncio
import logging
import uuid
from typing import Optional

from roast_studio.client.api_client import StudioAPIError, StudioClient
from roast_studio.client.audio import AudioPlayer, Clip
from roast_studio.client.chatter import HostChatter
from roast_studio.client.follower import PlaybackFollower
from roast_studio.client.scheduler import PlaybackScheduler, PlaybackTiming, speaker_for_host
from roast_studio.core.config import settings
from roast_studio.core.utils import parse_timestamp, utcnow

logger = logging.getLogger(__name__)


class ViewerRuntime:
    """Switches between host, follower and waiting-room roles"""

    def __init__(
        self,
        client: StudioClient,
        player: AudioPlayer,
        host_id: Optional[str] = None,
        poll_interval: float = settings.FOLLOWER_POLL_SECONDS,
        timing: Optional[PlaybackTiming] = None,
        run_chatter: bool = True,
    ):
        self.client = client
        self.player = player
        self.host_id = host_id or uuid.uuid4().hex
        self.poll_interval = poll_interval
        self.timing = timing
        self.run_chatter = run_chatter

        self.role = "waiting"
        self.session_id: Optional[str] = None
        self.scheduler: Optional[PlaybackScheduler] = None
        self.follower: Optional[PlaybackFollower] = None
        self._host_task: Optional[asyncio.Task] = None
        self._follower_task: Optional[asyncio.Task] = None
        self._chatter_task: Optional[asyncio.Task] = None
        self._chatter_stop: Optional[asyncio.Event] = None
        self._stopped = asyncio.Event()

    async def poll_once(self):
        """One reconciliation step against the global state"""
        state = await self.client.get_round_state()
        round_state = state.get("round_state")
        session_id = state.get("session_id")

        if session_id != self.session_id:
            await self._detach()
            self.session_id = session_id

        if round_state == "LIVE" and session_id:
            await self._stop_chatter()
            await self._live(session_id)
        elif round_state == "SUBMITTING" and session_id:
            self.role = "waiting"
            await self._waiting_room(session_id, state.get("submit_end_time"))
        else:
            self.role = "waiting"
            await self._stop_chatter()

    async def _live(self, session_id: str):
        if self._host_task is not None and not self._host_task.done():
            return
        claim = await self.client.claim_host(session_id, self.host_id)
        if claim["is_host"]:
            await self._stop_follower()
            self.role = "host"
            self.scheduler = PlaybackScheduler(
                self.client, session_id, self.host_id, self.player, timing=self.timing
            )
            self._host_task = asyncio.create_task(self.scheduler.run())
            logger.info("Viewer %s is hosting session %s", self.host_id, session_id)
            return

        self.role = "follower"
        if self.follower is None or self.follower.session_id != session_id:
            await self._stop_follower()
            self.follower = PlaybackFollower(self.client, session_id, self.player)
            self._follower_task = asyncio.create_task(self.follower.run())

    async def _waiting_room(self, session_id: str, submit_end_time: Optional[str]):
        """While submissions are open, the lease holder runs the chatter"""
        if not self.run_chatter or not submit_end_time:
            return
        # Claiming every poll also renews the lease while the chatter runs
        claim = await self.client.claim_host(session_id, self.host_id)
        if not claim["is_host"]:
            await self._stop_chatter()
            return
        if self._chatter_task is not None:
            return

        deadline = parse_timestamp(submit_end_time)
        self._chatter_stop = asyncio.Event()
        chatter = HostChatter(lambda host, text: self._speak(session_id, host, text))

        def remaining() -> float:
            return (deadline - utcnow()).total_seconds()

        self._chatter_task = asyncio.create_task(chatter.run(remaining, self._chatter_stop))

    async def _speak(self, session_id: str, host: str, text: str):
        speaker = speaker_for_host(host)
        audio, url = None, None
        try:
            audio = await self.client.synthesize(text, host)
            url = await self.client.upload_audio(audio, f"chatter{host}.mp3")
        except StudioAPIError as e:
            logger.debug("Chatter audio unavailable: %s", e)
        try:
            await self.client.send_dialogue(session_id, speaker, text, url)
        except StudioAPIError as e:
            logger.debug("Chatter broadcast failed: %s", e)
        if audio:
            await self.player.play(Clip(url, audio))

    async def _stop_chatter(self):
        if self._chatter_task is None:
            return
        self._chatter_stop.set()
        try:
            await self._chatter_task
        except Exception:
            logger.exception("Chatter stopped with an error")
        self._chatter_task = None
        self._chatter_stop = None

    async def _stop_follower(self):
        if self.follower is not None:
            self.follower.stop()
        if self._follower_task is not None:
            self._follower_task.cancel()
            try:
                await self._follower_task
            except asyncio.CancelledError:
                pass
        self.follower = None
        self._follower_task = None

    async def _detach(self):
        await self._stop_chatter()
        await self._stop_follower()
        if self.scheduler is not None and self._host_task is not None and not self._host_task.done():
            await self.scheduler.stop()
        self.scheduler = None
        self._host_task = None

    async def run(self):
        """Poll until stop() is called"""
        while not self._stopped.is_set():
            try:
                await self.poll_once()
            except StudioAPIError as e:
                # Service unreachable or erroring: keep showing the waiting state
                logger.warning("Round state poll failed: %s", e)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        await self._detach()

    def stop(self):
        self._stopped.set()
