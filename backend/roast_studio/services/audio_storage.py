"""
Local storage for submitted and synthesized audio clips
"""

import logging
from pathlib import Path
from typing import Optional
from uuid import uuid4

from roast_studio.core.config import settings

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mp4": "m4a",
}


def audio_dir() -> Path:
    path = Path(settings.AUDIO_STORAGE_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def new_audio_path(prefix: str, ext: str = "mp3") -> Path:
    fname = f"{prefix}_{uuid4().hex}.{ext}"
    return audio_dir() / fname


def extension_for(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """File extension from the upload's content type, then its name"""
    if content_type:
        ext = EXTENSIONS.get(content_type.split(";")[0].strip().lower())
        if ext:
            return ext
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    return "bin"


def save_audio(data: bytes, prefix: str, ext: str = "mp3") -> str:
    """Write a clip and return its public url"""
    path = new_audio_path(prefix, ext)
    path.write_bytes(data)
    logger.info("Stored %d bytes of audio at %s", len(data), path)
    return f"{settings.MEDIA_URL_PREFIX}/{path.name}"
