"""
Viewer-side playback: host scheduler, follower, archive replay and chatter
"""

from .api_client import StudioClient, StudioAPIError, HostLeaseLost
from .audio import AudioPlayer, ClockAudioPlayer, Clip
from .scheduler import PlaybackScheduler, PlaybackTiming, host_for_index
from .follower import PlaybackFollower, playback_offset
from .replay import ArchiveReplayer, build_timeline
from .chatter import HostChatter
from .runtime import ViewerRuntime

__all__ = [
    "StudioClient",
    "StudioAPIError",
    "HostLeaseLost",
    "AudioPlayer",
    "ClockAudioPlayer",
    "Clip",
    "PlaybackScheduler",
    "PlaybackTiming",
    "host_for_index",
    "PlaybackFollower",
    "playback_offset",
    "ArchiveReplayer",
    "build_timeline",
    "HostChatter",
    "ViewerRuntime",
]
