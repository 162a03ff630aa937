"""
Waiting-room chatter

While submissions are open the hosts fill the silence: countdown
announcements at fixed remaining-time thresholds and idle banter otherwise.
Only one line plays at a time. This never affects round state.
"""

import asyncio
import logging
import math
import random
import time
from typing import Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

COUNTDOWN_ANNOUNCEMENTS = (
    (30, "A", "Thirty seconds! Get ready to roast!"),
    (10, "B", "Ten seconds remaining."),
    (5, "A", "Five! Four! Three! Two! One!"),
    (0, "B", "Submissions are now closed. Let the roasting begin."),
)

IDLE_LINES = {
    "A": (
        "Man, I could roast people all day!",
        "Who's gonna step up next? Come on!",
        "The flames are hungry!",
        "This silence is killing me!",
        "Hey, you still there? Don't leave us hanging!",
        "I'm getting bored over here!",
        "Where's all the action at?",
    ),
    "B": (
        "Patience. The best roasts take time to marinate.",
        "I'm analyzing the room... it's mostly empty.",
        "Statistical probability of entertainment: increasing.",
        "The calm before the storm, as they say.",
        "I've calculated we have time for exactly one awkward silence.",
        "Still waiting. My algorithms are ready.",
        "Any moment now... or not.",
    ),
}

ANNOUNCE_WINDOW = 2
IDLE_INTERVAL = 12.0
IDLE_QUIET_BELOW = 35
COOLDOWN = 0.5

Line = Tuple[str, str]  # (host, text)


class HostChatter:
    """Picks and speaks filler lines; speak(host, text) returns when the line has played"""

    def __init__(
        self,
        speak: Callable[[str, str], Awaitable[None]],
        rng: Optional[random.Random] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.speak = speak
        self.rng = rng or random.Random()
        self.monotonic = monotonic
        self.announced = set()
        self.is_speaking = False
        self.started = False
        self.last_idle_at: Optional[float] = None
        self.cooldown_until = 0.0

    def reset(self):
        """Forget announcements when a new submission window starts"""
        self.announced.clear()
        self.started = False
        self.last_idle_at = None

    def next_line(self, remaining: float) -> Optional[Line]:
        """Decide what (if anything) to say with `remaining` seconds left"""
        now = self.monotonic()
        if self.is_speaking or now < self.cooldown_until:
            return None

        seconds = math.floor(remaining)
        for threshold, host, text in COUNTDOWN_ANNOUNCEMENTS:
            if threshold in self.announced:
                continue
            if threshold - ANNOUNCE_WINDOW < seconds <= threshold:
                self.announced.add(threshold)
                return host, text

        if remaining <= 0 or seconds <= IDLE_QUIET_BELOW:
            return None
        if self.started and self.last_idle_at is not None and now - self.last_idle_at < IDLE_INTERVAL:
            return None

        self.started = True
        self.last_idle_at = now
        host = self.rng.choice(("A", "B"))
        return host, self.rng.choice(IDLE_LINES[host])

    async def on_tick(self, remaining: float) -> Optional[Line]:
        """Speak the next line, if any; returns what was said"""
        line = self.next_line(remaining)
        if line is None:
            return None
        host, text = line
        self.is_speaking = True
        try:
            await self.speak(host, text)
        except Exception:
            logger.exception("Chatter line failed")
        finally:
            self.is_speaking = False
            self.cooldown_until = self.monotonic() + COOLDOWN
        return line

    async def run(self, remaining: Callable[[], float], stop: asyncio.Event, tick: float = 0.5):
        """Tick until stop is set; lines are spoken in the background of the countdown"""
        speaking: Optional[asyncio.Task] = None
        while not stop.is_set():
            if speaking is None or speaking.done():
                speaking = asyncio.create_task(self.on_tick(remaining()))
            try:
                await asyncio.wait_for(stop.wait(), timeout=tick)
            except asyncio.TimeoutError:
                pass
        if speaking is not None and not speaking.done():
            speaking.cancel()
