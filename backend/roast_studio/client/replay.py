"""
Archive replayer

Re-walks a finished session's exchanges. No generation calls: stored audio
plays when present, otherwise each segment gets a fixed duration.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from roast_studio.client.audio import AudioPlayer, Clip

logger = logging.getLogger(__name__)

USER_FALLBACK_SECONDS = 2.5
HOST_FALLBACK_SECONDS = 3.0
TRANSITION_SECONDS = 0.5
GAP_SECONDS = 0.4


@dataclass
class TimelineStep:
    kind: str  # segment, pause
    speaker: Optional[str] = None
    text: Optional[str] = None
    audio_url: Optional[str] = None
    duration: Optional[float] = None  # used when there is no audio
    sequence_number: Optional[int] = None


def build_timeline(exchanges: List[dict]) -> List[TimelineStep]:
    """Deterministic replay steps, in sequence order"""
    steps: List[TimelineStep] = []
    for exchange in sorted(exchanges, key=lambda e: e["sequence_number"]):
        seq = exchange["sequence_number"]
        host_speaker = "hostA" if exchange["host_type"] == "A" else "hostB"
        steps.append(TimelineStep(
            kind="segment",
            speaker="user",
            text=exchange.get("user_transcript") or "[Voice clip]",
            audio_url=exchange.get("user_audio_url"),
            duration=USER_FALLBACK_SECONDS,
            sequence_number=seq,
        ))
        steps.append(TimelineStep(kind="pause", duration=TRANSITION_SECONDS, sequence_number=seq))
        steps.append(TimelineStep(
            kind="segment",
            speaker=host_speaker,
            text=exchange["host_response"],
            audio_url=exchange.get("host_audio_url"),
            duration=HOST_FALLBACK_SECONDS,
            sequence_number=seq,
        ))
        steps.append(TimelineStep(kind="pause", duration=GAP_SECONDS, sequence_number=seq))
    return steps


class ArchiveReplayer:
    """Plays a timeline with pause, resume and restart"""

    def __init__(
        self,
        exchanges: List[dict],
        player: AudioPlayer,
        fetch_audio: Optional[Callable[[str], Awaitable[bytes]]] = None,
        on_step: Optional[Callable[[TimelineStep], None]] = None,
        time_scale: float = 1.0,
    ):
        self.timeline = build_timeline(exchanges)
        self.player = player
        self.fetch_audio = fetch_audio
        self.on_step = on_step
        self.time_scale = time_scale
        self.position = 0
        self._resume = asyncio.Event()
        self._resume.set()
        self._step_task: Optional[asyncio.Task] = None
        self._restart = False
        self._stopped = False

    @classmethod
    async def for_session(cls, client, session_id: str, player: AudioPlayer, **kwargs) -> "ArchiveReplayer":
        exchanges = await client.list_exchanges(session_id)
        return cls(exchanges, player, fetch_audio=client.fetch_audio, **kwargs)

    async def play(self):
        """Walk the timeline; returns at the end or after stop()"""
        while not self._stopped and self.position < len(self.timeline):
            await self._resume.wait()
            if self._stopped:
                break
            if self._restart:
                self._restart = False
                self.position = 0

            step = self.timeline[self.position]
            if self.on_step is not None:
                self.on_step(step)
            step_task = asyncio.create_task(self._run_step(step))
            self._step_task = step_task
            try:
                await asyncio.wait({step_task})
            except asyncio.CancelledError:
                step_task.cancel()
                raise
            finally:
                self._step_task = None
            if step_task.cancelled():
                # Interrupted by pause/restart/stop: replay this step later
                continue
            step_task.result()
            self.position += 1

    async def _run_step(self, step: TimelineStep):
        if step.kind == "segment" and step.audio_url and self.fetch_audio is not None:
            try:
                data = await self.fetch_audio(step.audio_url)
            except Exception as e:
                logger.debug("Archived audio unavailable (%s), using fixed duration", e)
                data = b""
            if data:
                await self.player.play(Clip(step.audio_url, data))
                return
        await asyncio.sleep((step.duration or 0.0) * self.time_scale)

    def _interrupt(self):
        self.player.stop()
        if self._step_task is not None:
            self._step_task.cancel()

    def pause(self):
        self._resume.clear()
        self._interrupt()

    def resume(self):
        self._resume.set()

    def restart(self):
        self._restart = True
        self._interrupt()
        self._resume.set()

    def stop(self):
        self._stopped = True
        self._interrupt()
        self._resume.set()
