"""
Speech synthesis (ElevenLabs) and transcription (OpenAI-compatible) clients
"""

import logging
from typing import Optional

import httpx

from roast_studio.core.config import settings
from roast_studio.core.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = "mp3_44100_128"
PLACEHOLDER_TRANSCRIPT = "[Voice submission]"

VOICE_IDS = {
    "A": "IKne3meq5aSn9XLyUdCD",  # energetic, chaotic
    "B": "onwK4e9ZLuTAKqWW03F9",  # calm, sarcastic
    "announcer": "JBFqnCBsd6RMkjVDRZzb",  # narrator for text-only roasts
}

VOICE_SETTINGS = {
    "A": {"stability": 0.3, "style": 0.7, "speed": 1.1},
    "B": {"stability": 0.7, "style": 0.3, "speed": 0.95},
    "announcer": {"stability": 0.8, "style": 0.2, "speed": 1.0},
}


class SpeechSynthesizer:
    """Text to mp3 through ElevenLabs"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.TTS_BASE_URL.rstrip('/')
        self.api_key = settings.ELEVENLABS_API_KEY
        self.model = settings.TTS_MODEL
        self.timeout = settings.TTS_TIMEOUT
        self._client = client

    def _build_request_body(self, text: str, voice: str) -> dict:
        tuning = VOICE_SETTINGS[voice]
        return {
            "text": text,
            "model_id": self.model,
            "voice_settings": {
                "stability": tuning["stability"],
                "similarity_boost": 0.75,
                "style": tuning["style"],
                "use_speaker_boost": True,
                "speed": tuning["speed"],
            },
        }

    async def synthesize(self, text: str, voice: str) -> bytes:
        """Return mp3 bytes for text in the given voice (A, B or announcer)"""
        if voice not in VOICE_IDS:
            raise ValueError(f"Unknown voice: {voice}")
        if not text.strip():
            raise ValueError("Text is required")
        if not self.api_key:
            raise CollaboratorError("ELEVENLABS_API_KEY is not configured")

        url = f"{self.base_url}/text-to-speech/{VOICE_IDS[voice]}"
        headers = {"xi-api-key": self.api_key, "Content-Type": "application/json"}
        params = {"output_format": OUTPUT_FORMAT}
        body = self._build_request_body(text, voice)

        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, headers=headers, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=body, headers=headers, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Speech synthesis failed: %s %s", e.response.status_code, e.response.text[:200])
            raise CollaboratorError(f"speech synthesis returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("Speech synthesis unreachable: %s", e)
            raise CollaboratorError("speech synthesis unreachable") from e

        audio = response.content
        if not audio:
            raise CollaboratorError("speech synthesis returned no audio")
        logger.info("Synthesized %d bytes for voice %s", len(audio), voice)
        return audio


class SpeechTranscriber:
    """Audio to text through an OpenAI-compatible transcription endpoint"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.STT_BASE_URL.rstrip('/')
        self.api_key = settings.STT_API_KEY
        self.model = settings.STT_MODEL
        self.timeout = settings.STT_TIMEOUT
        self._client = client

    async def transcribe(self, audio: bytes, filename: str = "roast.webm", content_type: str = "audio/webm") -> str:
        """Best-effort transcript; the placeholder is returned on any failure"""
        if not audio:
            return PLACEHOLDER_TRANSCRIPT
        if not self.api_key:
            logger.warning("STT_API_KEY is not configured, using placeholder transcript")
            return PLACEHOLDER_TRANSCRIPT

        url = f"{self.base_url}/audio/transcriptions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        files = {"file": (filename, audio, content_type)}
        data = {"model": self.model}

        try:
            if self._client is not None:
                response = await self._client.post(url, headers=headers, files=files, data=data)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, headers=headers, files=files, data=data)
            response.raise_for_status()
            text = (response.json().get("text") or "").strip()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Transcription failed, using placeholder: %s", e)
            return PLACEHOLDER_TRANSCRIPT

        return text or PLACEHOLDER_TRANSCRIPT
