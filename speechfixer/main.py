"""
FastAPI application for the speechfixer backend.

Handles transcription, voice cloning, synthesis and word replacement edits.
"""

from fastapi import FastAPI, UploadFile, File, Form, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import List, Optional
import argparse
import base64
import binascii
import tempfile
import uvicorn
from pathlib import Path

from . import models, splicer, transcribe, tts, voices, config, __version__
from .backends import get_backend
from .exceptions import ServiceError, SpeechFixerError, SpliceFailed
from .session import EditSession, edited_filename, replace_selection
from .utils.audio import check_ffmpeg
from .utils.logging import get_logger, setup_logging
from .utils.validation import AUDIO_EXTENSIONS, validate_audio_upload, validate_text

logger = get_logger(__name__)

app = FastAPI(
    title="speechfixer API",
    description="Replace spoken words in recordings with a cloned voice",
    version=__version__,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _to_http_exception(e: Exception) -> HTTPException:
    """Map a domain error onto an HTTP status."""
    if isinstance(e, ServiceError):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, SpliceFailed):
        return HTTPException(status_code=500, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


async def _save_upload(file: UploadFile, directory: Path, stem: str) -> Path:
    """
    Validate an uploaded audio file and write it into ``directory``.

    The extension is preserved so decoders can detect the format.
    """
    content = await file.read()
    is_valid, error_msg = validate_audio_upload(file.filename, file.content_type, len(content))
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_msg)

    suffix = Path(file.filename or "").suffix.lower()
    path = directory / f"{stem}{suffix if suffix in AUDIO_EXTENSIONS else '.mp3'}"
    path.write_bytes(content)
    return path


def _encode_audio(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ============================================
# ROOT & HEALTH ENDPOINTS
# ============================================

@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "speechfixer API", "version": __version__}


@app.get("/health", response_model=models.HealthResponse)
async def health():
    """Health check endpoint."""
    ffmpeg_available = check_ffmpeg()
    return models.HealthResponse(
        status="healthy" if ffmpeg_available else "degraded",
        version=__version__,
        ffmpeg_available=ffmpeg_available,
        api_key_configured=config.get_api_key() is not None,
    )


# ============================================
# TRANSCRIPTION ENDPOINTS
# ============================================

@app.post("/transcribe", response_model=models.TranscriptionResponse)
async def transcribe_audio(audio: UploadFile = File(...)):
    """Transcribe an audio file into word-level tokens."""
    with tempfile.TemporaryDirectory(prefix="transcribe-") as tmp:
        audio_path = await _save_upload(audio, Path(tmp), "audio")
        try:
            transcript = await transcribe.transcribe_audio(audio_path, backend=get_backend())
        except (ValueError, SpeechFixerError) as e:
            raise _to_http_exception(e) from e

    return models.transcript_to_response(transcript)


# ============================================
# VOICE ENDPOINTS
# ============================================

@app.post("/clone-voice", response_model=models.CloneVoiceResponse)
async def clone_voice(
    audio: UploadFile = File(...),
    audio_1: Optional[UploadFile] = File(None),
    audio_2: Optional[UploadFile] = File(None),
    audio_3: Optional[UploadFile] = File(None),
    audio_4: Optional[UploadFile] = File(None),
    audio_5: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
):
    """Clone a voice from the main sample plus up to five extra samples."""
    uploads = [audio] + [f for f in (audio_1, audio_2, audio_3, audio_4, audio_5) if f is not None]
    voice_name = name or voices.default_voice_name()

    with tempfile.TemporaryDirectory(prefix="clone-") as tmp:
        paths = [
            await _save_upload(upload, Path(tmp), f"sample_{i}")
            for i, upload in enumerate(uploads)
        ]
        try:
            voice_id = await voices.clone_voice(paths, name=voice_name, backend=get_backend())
        except (ValueError, SpeechFixerError) as e:
            raise _to_http_exception(e) from e

    return models.CloneVoiceResponse(voice_id=voice_id, name=voice_name)


@app.delete("/clone-voice", response_model=models.DeleteVoiceResponse)
async def delete_voice(data: models.DeleteVoiceRequest):
    """Delete a cloned voice."""
    try:
        await voices.delete_voice(data.voice_id, backend=get_backend())
    except (ValueError, SpeechFixerError) as e:
        raise _to_http_exception(e) from e
    return models.DeleteVoiceResponse(success=True)


# ============================================
# SYNTHESIS ENDPOINTS
# ============================================

@app.post("/synthesize", response_model=models.AudioResponse)
async def synthesize(data: models.SynthesizeRequest):
    """Synthesize text with a cloned voice, optionally with surrounding context."""
    is_valid, error_msg = validate_text(data.text)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_msg)

    try:
        audio = await get_backend().synthesize(
            data.text,
            data.voice_id,
            previous_text=data.previous_text or None,
            next_text=data.next_text or None,
        )
    except (ValueError, SpeechFixerError) as e:
        raise _to_http_exception(e) from e

    return models.AudioResponse(audio=_encode_audio(audio), mime_type=config.AUDIO_MIME_TYPE)


@app.post("/generate", response_model=models.AudioResponse)
async def generate(
    text: str = Form(...),
    audio: UploadFile = File(...),
    audio_1: Optional[UploadFile] = File(None),
    audio_2: Optional[UploadFile] = File(None),
    audio_3: Optional[UploadFile] = File(None),
    audio_4: Optional[UploadFile] = File(None),
    audio_5: Optional[UploadFile] = File(None),
):
    """Speak arbitrary text in the voice of the uploaded samples."""
    is_valid, error_msg = validate_text(text)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_msg)

    uploads = [audio] + [f for f in (audio_1, audio_2, audio_3, audio_4, audio_5) if f is not None]

    with tempfile.TemporaryDirectory(prefix="generate-") as tmp:
        paths = [
            await _save_upload(upload, Path(tmp), f"sample_{i}")
            for i, upload in enumerate(uploads)
        ]
        try:
            result = await tts.generate_speech(paths, text, backend=get_backend())
        except (ValueError, SpeechFixerError) as e:
            raise _to_http_exception(e) from e

    return models.AudioResponse(audio=_encode_audio(result), mime_type=config.AUDIO_MIME_TYPE)


# ============================================
# EDITING ENDPOINTS
# ============================================

@app.post("/splice", response_model=models.AudioResponse)
async def splice_audio(
    original_audio: UploadFile = File(...),
    replacement_audio: str = Form(...),
    start_time: float = Form(...),
    end_time: float = Form(...),
):
    """Replace [start_time, end_time) of a recording with base64-encoded audio."""
    try:
        replacement = base64.b64decode(replacement_audio, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="replacement_audio is not valid base64")
    if not replacement:
        raise HTTPException(status_code=400, detail="replacement_audio is empty")

    with tempfile.TemporaryDirectory(prefix="splice-request-") as tmp:
        tmp_dir = Path(tmp)
        original_path = await _save_upload(original_audio, tmp_dir, "original")
        replacement_path = tmp_dir / "replacement.mp3"
        replacement_path.write_bytes(replacement)

        try:
            result = await splicer.splice(original_path, replacement_path, start_time, end_time)
        except (ValueError, SpeechFixerError) as e:
            raise _to_http_exception(e) from e

    return models.AudioResponse(audio=_encode_audio(result), mime_type=config.AUDIO_MIME_TYPE)


@app.post("/edit", response_model=models.EditResponse)
async def edit(
    audio: UploadFile = File(...),
    transcript: str = Form(...),
    start_index: int = Form(...),
    end_index: int = Form(...),
    text: str = Form(...),
    voice_id: str = Form(...),
):
    """
    Replace a range of transcript tokens with newly synthesized speech.

    Runs synthesis, splicing and transcript reconciliation in one request
    and returns both the edited audio and the updated transcript.
    """
    try:
        current = models.transcript_from_response(
            models.TranscriptionResponse.model_validate_json(transcript)
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid transcript: {e}")

    with tempfile.TemporaryDirectory(prefix="edit-") as tmp:
        tmp_dir = Path(tmp)
        audio_path = await _save_upload(audio, tmp_dir, "original")
        session = EditSession(voice_id=voice_id, audio_path=audio_path, transcript=current)

        try:
            edited = await replace_selection(
                session,
                start_index,
                end_index,
                text,
                backend=get_backend(),
                output_path=tmp_dir / "edited.mp3",
                work_dir=tmp_dir,
            )
        except (ValueError, SpeechFixerError) as e:
            raise _to_http_exception(e) from e

        result = edited.audio_path.read_bytes()

    return models.EditResponse(
        audio=_encode_audio(result),
        mime_type=config.AUDIO_MIME_TYPE,
        filename=edited_filename(audio.filename or "audio.mp3"),
        transcript=models.transcript_to_response(edited.transcript),
    )


# ============================================
# STARTUP
# ============================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("speechfixer API starting up...")
    if not check_ffmpeg():
        logger.warning(f"{config.get_ffmpeg_binary()} not found; splicing will fail")
    if config.get_api_key() is None:
        logger.warning("ELEVENLABS_API_KEY is not set; service calls will fail")


# ============================================
# MAIN
# ============================================

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="speechfixer backend server")
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (use 0.0.0.0 for remote access)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Data directory for edited audio",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )
    args = parser.parse_args(argv)

    setup_logging(args.log_level, verbose=args.log_level == "DEBUG")

    # Set data directory if provided
    if args.data_dir:
        config.set_data_dir(args.data_dir)

    uvicorn.run(
        "speechfixer.main:app",
        host=args.host,
        port=args.port,
        reload=False,  # Disable reload in production
    )


if __name__ == "__main__":
    main()
