# Business services
from .round_store import RoundStore
from .lifecycle_service import LifecycleService, ControllerTickResult, run_controller_loop
from .completion_service import RoundCompletionService, CompletionResult
from .persona_service import PersonaService, choose_next_persona
from .playback_service import PlaybackService
from .roast_generator import RoastGenerator
from .speech_service import SpeechSynthesizer, SpeechTranscriber
from .websocket_service import WebSocketManager, get_websocket_manager

__all__ = [
    "RoundStore",
    "LifecycleService",
    "ControllerTickResult",
    "run_controller_loop",
    "RoundCompletionService",
    "CompletionResult",
    "PersonaService",
    "choose_next_persona",
    "PlaybackService",
    "RoastGenerator",
    "SpeechSynthesizer",
    "SpeechTranscriber",
    "WebSocketManager",
    "get_websocket_manager",
]
