"""
Pydantic models for request/response validation.
"""

from pydantic import BaseModel, Field
from typing import Optional, List

from .transcript import Token, TokenKind, Transcript


class TranscriptionWord(BaseModel):
    """One token of a transcript: a word, punctuation or spacing."""
    text: str
    start: float
    end: float
    type: TokenKind = TokenKind.WORD
    speaker_id: Optional[str] = None


class TranscriptionResponse(BaseModel):
    """Response model for transcription."""
    text: str
    words: List[TranscriptionWord]
    language_code: Optional[str] = None
    audio_duration: Optional[float] = None


class CloneVoiceResponse(BaseModel):
    """Response model for voice cloning."""
    voice_id: str
    name: str


class DeleteVoiceRequest(BaseModel):
    """Request model for deleting a cloned voice."""
    voice_id: str = Field(..., min_length=1)


class DeleteVoiceResponse(BaseModel):
    success: bool


class SynthesizeRequest(BaseModel):
    """Request model for speech synthesis."""
    text: str = Field(..., min_length=1, max_length=5000)
    voice_id: str = Field(..., min_length=1)
    previous_text: Optional[str] = None
    next_text: Optional[str] = None


class AudioResponse(BaseModel):
    """Response model carrying base64-encoded audio."""
    audio: str
    mime_type: str = "audio/mpeg"


class EditResponse(AudioResponse):
    """Response model for a replace-selection edit."""
    filename: str
    transcript: TranscriptionResponse


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    version: str
    ffmpeg_available: bool
    api_key_configured: bool


def transcript_to_response(transcript: Transcript) -> TranscriptionResponse:
    """Convert a transcript into its API representation."""
    return TranscriptionResponse(
        text=transcript.text,
        words=[
            TranscriptionWord(
                text=token.text,
                start=token.start,
                end=token.end,
                type=token.kind,
                speaker_id=token.speaker_id,
            )
            for token in transcript.tokens
        ],
        language_code=transcript.language_code,
        audio_duration=transcript.audio_duration,
    )


def transcript_from_response(data: TranscriptionResponse) -> Transcript:
    """
    Rebuild a transcript sent back by a client.

    The token texts are authoritative; ``text`` is recomputed from them.
    """
    return Transcript.from_tokens(
        (
            Token(
                text=word.text,
                start=word.start,
                end=word.end,
                kind=word.type,
                speaker_id=word.speaker_id,
            )
            for word in data.words
        ),
        language_code=data.language_code,
        audio_duration=data.audio_duration,
    )
