"""
Application configuration
"""

from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Basics
    APP_NAME: str = "Roast Studio"
    VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Database
    DATABASE_URL: str = "sqlite:///./roast_studio.db"

    # Round timing (seconds)
    SUBMISSION_WINDOW_SECONDS: int = 120
    LOCK_GRACE_SECONDS: int = 10
    STALE_LIVE_SECONDS: int = 300
    CONTROLLER_INTERVAL_SECONDS: float = 5.0
    RECENT_SUBJECT_WINDOW: int = 10
    AUTO_CREATE_SESSIONS: bool = True

    # Playback
    HOST_LEASE_SECONDS: int = 10
    SECONDS_PER_ITEM: float = 15.0
    SCHEDULER_TICK_SECONDS: float = 0.25
    STALE_AUDIO_SECONDS: float = 30.0
    FOLLOWER_POLL_SECONDS: float = 1.0

    # Submissions
    MAX_MESSAGE_LENGTH: int = 280
    AUDIO_STORAGE_DIR: str = "./storage/audio"
    MEDIA_URL_PREFIX: str = "/media"

    # Response generator (OpenAI compatible chat completions)
    LLM_BASE_URL: str = "https://api.openai.com/v1"
    LLM_API_KEY: str = ""
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_TIMEOUT: int = 30

    # Speech synthesis (ElevenLabs)
    TTS_BASE_URL: str = "https://api.elevenlabs.io/v1"
    ELEVENLABS_API_KEY: str = ""
    TTS_MODEL: str = "eleven_turbo_v2_5"
    TTS_TIMEOUT: int = 30

    # Speech-to-text (OpenAI compatible transcriptions)
    STT_BASE_URL: str = "https://api.openai.com/v1"
    STT_API_KEY: str = ""
    STT_MODEL: str = "whisper-1"
    STT_TIMEOUT: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True

# Global settings instance
settings = Settings()
