"""
Playback scheduler (host role)

The lease holder walks the session's roast queue on a wall-clock cadence:
item i becomes due once `now - live_start >= i * seconds_per_item`. For each
item it plays the audience roast, then the responding host's reaction, and
writes a snapshot at every phase change so followers can reproduce the same
moment. The response for item i+1 is generated while item i plays.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set

from roast_studio.client.api_client import HostLeaseLost, StudioAPIError, StudioClient
from roast_studio.client.audio import AudioPlayer, Clip
from roast_studio.core.config import settings
from roast_studio.core.utils import format_timestamp_with_timezone, parse_timestamp, utcnow
from roast_studio.services.roast_generator import CANNED_RESPONSES

logger = logging.getLogger(__name__)

VOICE_CAPTION = "[Voice clip]"

NO_ROASTS_DIALOGUE = (
    ("A", "Wait... NOBODY roasted {name}?! Are you KIDDING me?!"),
    ("B", "Apparently {name} is too boring to roast. Or everyone fell asleep."),
)


def host_for_index(index: int) -> str:
    """Even items are answered by host A, odd ones by host B"""
    return "A" if index % 2 == 0 else "B"


def speaker_for_host(host_type: str) -> str:
    return "hostA" if host_type == "A" else "hostB"


@dataclass
class PlaybackTiming:
    seconds_per_item: float = settings.SECONDS_PER_ITEM
    tick_interval: float = settings.SCHEDULER_TICK_SECONDS
    roast_char_delay: float = 0.025
    response_char_delay: float = 0.020
    transition_pause: float = 0.5
    item_gap: float = 0.4
    silent_delay: float = 3.0
    dialogue_gap: float = 0.6
    lease_renew_interval: float = settings.HOST_LEASE_SECONDS / 3


@dataclass
class PreparedResponse:
    host_type: str
    text: str
    audio: Optional[bytes]


class PlaybackScheduler:
    """Drives live playback for one session while holding the host lease"""

    def __init__(
        self,
        client: StudioClient,
        session_id: str,
        host_id: str,
        player: AudioPlayer,
        timing: Optional[PlaybackTiming] = None,
        clock: Callable[[], datetime] = utcnow,
        on_caption: Optional[Callable[[str, str], Awaitable[None]]] = None,
    ):
        self.client = client
        self.session_id = session_id
        self.host_id = host_id
        self.player = player
        self.timing = timing or PlaybackTiming()
        self.clock = clock
        self.on_caption = on_caption

        self.persona_name = ""
        self.live_start: Optional[datetime] = None
        self.queue: List[dict] = []
        self.processed: Set[int] = set()
        self.currently_processing = False
        self.roast_number = 0
        self.lease_lost = False
        self.completion: Optional[dict] = None

        self._pregen: Dict[int, asyncio.Task] = {}
        self._ticker: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Task] = None
        self._finishing = False
        self._last_write: Optional[datetime] = None
        self.finished = asyncio.Event()

    # ---- lifecycle ----

    async def start(self):
        """Load the queue and start the ticker (or the empty-round commentary)"""
        claim = await self.client.claim_host(self.session_id, self.host_id)
        if not claim["is_host"]:
            self._lose_lease()
            return

        session = await self.client.get_session(self.session_id)
        self.persona_name = session["persona_name"]

        state = await self.client.get_round_state()
        if state.get("session_id") == self.session_id and state.get("live_start_time"):
            self.live_start = parse_timestamp(state["live_start_time"])
        else:
            self.live_start = self.clock()

        self.queue = await self.client.list_messages(self.session_id)
        # Taking over mid-round: consumed items keep their slots
        self.processed = {i for i, message in enumerate(self.queue) if message.get("used")}
        self.roast_number = len(self.processed)
        logger.info(
            "Host %s starting session %s: %d roast(s), %d already played",
            self.host_id, self.session_id, len(self.queue), len(self.processed),
        )

        await self._write(is_playing=True, phase="intro", roast_number=self.roast_number)
        if not self.queue:
            self._ticker = asyncio.create_task(self._no_roasts())
        else:
            self._ticker = asyncio.create_task(self._run_ticker())

    async def run(self) -> Optional[dict]:
        """Start and wait until playback completes or the lease is lost"""
        await self.start()
        await self.finished.wait()
        return self.completion

    async def stop(self):
        """Detach: cancel everything in flight and hand the lease back"""
        self._finishing = True
        tasks = [t for t in (self._ticker, self._current) if t is not None]
        tasks.extend(self._pregen.values())
        self._pregen.clear()
        for task in tasks:
            if task is not asyncio.current_task():
                task.cancel()
        self.player.stop()
        for task in tasks:
            if task is not asyncio.current_task():
                try:
                    await task
                except (asyncio.CancelledError, Exception):
                    pass
        self.finished.set()
        try:
            await self.client.release_host(self.session_id, self.host_id)
        except StudioAPIError as e:
            logger.warning("Could not release host lease: %s", e)

    # ---- ticker ----

    async def _run_ticker(self):
        while not self._finishing:
            await self.on_tick()
            await asyncio.sleep(self.timing.tick_interval)

    def next_index(self) -> Optional[int]:
        """Lowest index not yet processed"""
        for index in range(len(self.queue)):
            if index not in self.processed:
                return index
        return None

    async def on_tick(self):
        """Start the next item if it is due and nothing is in flight"""
        if self._finishing:
            return
        await self._renew_lease()
        if self._finishing or self.currently_processing:
            return
        index = self.next_index()
        if index is None:
            await self._finish()
            return

        elapsed = (self.clock() - self.live_start).total_seconds()
        if elapsed < index * self.timing.seconds_per_item:
            return

        self.currently_processing = True
        self._current = asyncio.create_task(self._process(index))

    async def _renew_lease(self):
        """Keep the lease alive through long clips and gaps between slots"""
        if self._last_write is None:
            return
        idle = (self.clock() - self._last_write).total_seconds()
        if idle < self.timing.lease_renew_interval:
            return
        try:
            claim = await self.client.claim_host(self.session_id, self.host_id)
        except StudioAPIError as e:
            logger.warning("Lease renewal failed: %s", e)
            return
        self._last_write = self.clock()
        if not claim["is_host"]:
            self._lose_lease()

    # ---- per item ----

    async def _process(self, index: int):
        try:
            await self.process_item(index)
        except HostLeaseLost:
            self._lose_lease()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Roast %d failed; skipping it", index + 1)
        finally:
            self.processed.add(index)
            self.currently_processing = False

    async def process_item(self, index: int):
        """Roast segment, transition, host response, then archive and consume"""
        message = self.queue[index]
        host_type = host_for_index(index)
        caption = message.get("transcript") or VOICE_CAPTION

        if index + 1 < len(self.queue) and (index + 1) not in self.processed:
            self._start_pregen(index + 1)

        # Audience roast
        clip = await self._roast_clip(message)
        await self._write(
            current_index=index,
            phase="roast",
            current_speaker="user",
            current_text=caption,
            current_audio_url=clip.url if clip else None,
            audio_started_at=self._now_iso(),
            host_turn=host_type,
            roast_number=index + 1,
        )
        await asyncio.gather(
            self._reveal("user", caption, self.timing.roast_char_delay),
            self._play_or_wait(clip),
        )

        await self._write(phase="transition")
        await asyncio.sleep(self.timing.transition_pause)

        # Host response
        prepared = await self._take_prepared(index, host_type, caption)
        response_url = None
        if prepared.audio:
            try:
                response_url = await self.client.upload_audio(prepared.audio, f"host{host_type}.mp3")
            except StudioAPIError as e:
                logger.warning("Response audio upload failed: %s", e)
        next_host = "B" if host_type == "A" else "A"
        await self._write(
            phase="response",
            current_speaker=speaker_for_host(host_type),
            current_text=prepared.text,
            current_audio_url=response_url,
            audio_started_at=self._now_iso(),
            host_turn=next_host,
        )
        response_clip = Clip(response_url, prepared.audio) if prepared.audio else None
        await asyncio.gather(
            self._reveal(speaker_for_host(host_type), prepared.text, self.timing.response_char_delay),
            self._play_or_wait(response_clip),
        )

        await self.client.record_exchange(
            self.session_id,
            message_id=message["id"],
            user_transcript=caption,
            user_audio_url=message.get("audio_url"),
            host_type=host_type,
            host_response=prepared.text,
            host_audio_url=response_url,
        )
        if not await self.client.mark_used(message["id"]):
            logger.info("Roast %d was already consumed", index + 1)

        self.roast_number = index + 1
        await self._write(phase="transition")
        await asyncio.sleep(self.timing.item_gap)

    async def _roast_clip(self, message: dict) -> Optional[Clip]:
        """The submitted audio, else a narrated reading of the text"""
        if message.get("audio_url"):
            try:
                return Clip(message["audio_url"], await self.client.fetch_audio(message["audio_url"]))
            except StudioAPIError as e:
                logger.warning("Could not fetch roast audio: %s", e)
                return None
        if message.get("transcript"):
            try:
                audio = await self.client.synthesize(message["transcript"], "announcer")
            except StudioAPIError as e:
                logger.warning("Narration failed: %s", e)
                return None
            url = None
            try:
                url = await self.client.upload_audio(audio, "narration.mp3")
            except StudioAPIError as e:
                logger.warning("Narration upload failed: %s", e)
            return Clip(url, audio)
        return None

    # ---- pre-generation ----

    def _start_pregen(self, index: int):
        if index in self._pregen:
            return
        message = self.queue[index]
        caption = message.get("transcript") or VOICE_CAPTION
        self._pregen[index] = asyncio.create_task(self.prepare_response(caption, host_for_index(index)))

    async def _take_prepared(self, index: int, host_type: str, caption: str) -> PreparedResponse:
        """Use the cached response for this index, else generate it now"""
        task = self._pregen.pop(index, None)
        if task is not None:
            if not task.done():
                # Still in flight: wait for it rather than asking for the same line twice
                try:
                    await asyncio.wait({task})
                except asyncio.CancelledError:
                    task.cancel()
                    raise
            if not task.cancelled() and task.exception() is None:
                prepared = task.result()
                if prepared.host_type == host_type:
                    logger.debug("Using pre-generated response for roast %d", index + 1)
                    return prepared
        return await self.prepare_response(caption, host_type)

    async def prepare_response(self, caption: str, host_type: str) -> PreparedResponse:
        """Response text plus audio, with canned fallbacks"""
        try:
            text = await self.client.generate_response(self.persona_name, caption, host_type)
        except StudioAPIError as e:
            logger.warning("Response generation failed, using canned line: %s", e)
            text = CANNED_RESPONSES[host_type]
        try:
            audio = await self.client.synthesize(text, host_type)
        except StudioAPIError as e:
            logger.warning("Response synthesis failed: %s", e)
            audio = None
        return PreparedResponse(host_type, text, audio)

    # ---- empty round and termination ----

    async def _no_roasts(self):
        try:
            for host_type, line in NO_ROASTS_DIALOGUE:
                text = line.format(name=self.persona_name)
                speaker = speaker_for_host(host_type)
                audio, url = None, None
                try:
                    audio = await self.client.synthesize(text, host_type)
                    url = await self.client.upload_audio(audio, f"host{host_type}.mp3")
                except StudioAPIError as e:
                    logger.warning("No-roasts line synthesis failed: %s", e)
                await self._write(
                    phase="response",
                    current_speaker=speaker,
                    current_text=text,
                    current_audio_url=url,
                    audio_started_at=self._now_iso(),
                )
                try:
                    await self.client.send_dialogue(self.session_id, speaker, text, url)
                except StudioAPIError as e:
                    logger.debug("Dialogue broadcast failed: %s", e)
                await self._play_or_wait(Clip(url, audio) if audio else None)
                await asyncio.sleep(self.timing.dialogue_gap)
            await self._finish()
        except HostLeaseLost:
            self._lose_lease()

    async def _finish(self):
        """Idle snapshot, round completion, stop"""
        if self._finishing:
            return
        self._finishing = True
        try:
            await self._write(
                is_playing=False,
                phase="idle",
                current_speaker=None,
                current_text=None,
                current_audio_url=None,
                audio_started_at=None,
            )
        except HostLeaseLost:
            self._lose_lease()
            return
        try:
            self.completion = await self.client.complete_round(self.session_id)
            logger.info("Round %s complete: %s", self.session_id, self.completion)
        except StudioAPIError as e:
            logger.warning("Round completion failed; the controller will archive it: %s", e)
        finally:
            self.finished.set()

    def _lose_lease(self):
        logger.warning("Host %s lost the lease for session %s; stopping", self.host_id, self.session_id)
        self.lease_lost = True
        self._finishing = True
        for task in self._pregen.values():
            task.cancel()
        self._pregen.clear()
        if self._current is not None and self._current is not asyncio.current_task():
            self._current.cancel()
        self.player.stop()
        self.finished.set()

    # ---- helpers ----

    async def _write(self, **fields):
        """Snapshot write; HostLeaseLost propagates, other failures are logged"""
        try:
            await self.client.update_snapshot(self.session_id, self.host_id, **fields)
        except HostLeaseLost:
            raise
        except StudioAPIError as e:
            logger.warning("Snapshot write failed: %s", e)
            return
        self._last_write = self.clock()

    def _now_iso(self) -> str:
        return format_timestamp_with_timezone(self.clock())

    async def _reveal(self, speaker: str, text: str, char_delay: float):
        """Typewriter caption"""
        if self.on_caption is None:
            await asyncio.sleep(len(text) * char_delay)
            return
        for i in range(1, len(text) + 1):
            await self.on_caption(speaker, text[:i])
            await asyncio.sleep(char_delay)

    async def _play_or_wait(self, clip: Optional[Clip]):
        if clip is None or not clip.data:
            await asyncio.sleep(self.timing.silent_delay)
            return
        await self.player.play(clip)
