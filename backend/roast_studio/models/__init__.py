from .persona import Persona
from .roast_session import RoastSession
from .roast_message import RoastMessage
from .roast_exchange import RoastExchange
from .global_round_state import GlobalRoundState
from .playback_snapshot import PlaybackSnapshot

__all__ = [
    "Persona",
    "RoastSession",
    "RoastMessage",
    "RoastExchange",
    "GlobalRoundState",
    "PlaybackSnapshot",
]
