"""
Generation and speech API routes

Failures answer 502; clients fall back to canned lines or silent delays.
"""

import base64

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from roast_studio.api.dependencies import get_roast_generator, get_speech_synthesizer
from roast_studio.core.exceptions import CollaboratorError
from roast_studio.services import audio_storage
from roast_studio.services.roast_generator import RoastGenerator
from roast_studio.services.speech_service import SpeechSynthesizer
from roast_studio.schemas.studio_schemas import (
    AudioUploadResponse,
    GenerateRoastRequest,
    GenerateRoastResponse,
    TextToSpeechRequest,
    TextToSpeechResponse,
)

router = APIRouter()

@router.post("/generate-roast", response_model=GenerateRoastResponse)
async def generate_roast(
    request: GenerateRoastRequest,
    generator: RoastGenerator = Depends(get_roast_generator)
):
    """Generate a host's reaction to an audience roast"""
    try:
        text = await generator.generate(request.persona_name, request.user_roast, request.host_type)
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return GenerateRoastResponse(response=text, host_type=request.host_type)

@router.post("/text-to-speech", response_model=TextToSpeechResponse)
async def text_to_speech(
    request: TextToSpeechRequest,
    synthesizer: SpeechSynthesizer = Depends(get_speech_synthesizer)
):
    """Synthesize speech; audio is returned base64 encoded"""
    try:
        audio = await synthesizer.synthesize(request.text, request.voice)
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return TextToSpeechResponse(audio_content=base64.b64encode(audio).decode("ascii"))

@router.post("/audio", response_model=AudioUploadResponse, status_code=201)
async def upload_audio(audio: UploadFile = File(...)):
    """Store a clip (e.g. a synthesized host response) and return its url"""
    data = await audio.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty audio upload")
    ext = audio_storage.extension_for(audio.content_type, audio.filename)
    url = audio_storage.save_audio(data, "clip", ext)
    return AudioUploadResponse(audio_url=url, content_type=audio.content_type)
