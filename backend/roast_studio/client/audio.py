"""
Audio output

Playback code only needs "play this clip from offset and tell me when it
ends". ClockAudioPlayer is a headless sink that honours clip timing without a
sound device; a desktop or browser bridge can implement the same interface.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

# mp3_44100_128
BITRATE_BPS = 128_000


@dataclass
class Clip:
    url: Optional[str]
    data: bytes


class AudioPlayer:
    """Interface for clip playback"""

    def duration(self, clip: Clip) -> Optional[float]:
        """Clip length in seconds, when known"""
        raise NotImplementedError

    async def play(self, clip: Clip, offset: float = 0.0) -> None:
        """Play from offset seconds; returns when the clip ends or is stopped"""
        raise NotImplementedError

    def stop(self) -> None:
        """Stop whatever is playing"""
        raise NotImplementedError


class ClockAudioPlayer(AudioPlayer):
    """Plays clips by waiting out their duration; records what was played"""

    def __init__(self, bitrate_bps: int = BITRATE_BPS, time_scale: float = 1.0):
        self.bitrate_bps = bitrate_bps
        self.time_scale = time_scale
        self.played: List[Tuple[Optional[str], float]] = []
        self._stopped = asyncio.Event()

    def duration(self, clip: Clip) -> Optional[float]:
        if not clip.data:
            return None
        return len(clip.data) * 8 / self.bitrate_bps

    async def play(self, clip: Clip, offset: float = 0.0) -> None:
        self._stopped = asyncio.Event()
        self.played.append((clip.url, offset))
        remaining = max(0.0, (self.duration(clip) or 0.0) - offset) * self.time_scale
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            pass

    def stop(self) -> None:
        self._stopped.set()
