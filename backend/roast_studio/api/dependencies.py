"""
Collaborator providers, overridable through app.dependency_overrides
"""

from roast_studio.services.roast_generator import RoastGenerator
from roast_studio.services.speech_service import SpeechSynthesizer, SpeechTranscriber


def get_roast_generator() -> RoastGenerator:
    return RoastGenerator()


def get_speech_synthesizer() -> SpeechSynthesizer:
    return SpeechSynthesizer()


def get_speech_transcriber() -> SpeechTranscriber:
    return SpeechTranscriber()
