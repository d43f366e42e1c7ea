"""
ElevenLabs backend for transcription, synthesis and voice cloning.

Talks to the REST API with ``requests``; blocking calls run in a worker
thread so the event loop stays free.
"""

import asyncio
import mimetypes
from pathlib import Path
from typing import List, Optional, Type

import requests

from .. import config
from ..exceptions import (
    ServiceError,
    SynthesisFailed,
    TranscriptionFailed,
    VoiceCloneFailed,
)
from ..transcript import Token, TokenKind, Transcript
from ..utils.logging import get_logger
from ..utils.retry import retry_with_backoff

logger = get_logger(__name__)

# Rate limiting and server-side errors are worth another attempt
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class TransientHTTPError(Exception):
    """Response with a status code that may succeed on retry."""

    def __init__(self, response: requests.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code} from {response.url}")


def _error_detail(response: requests.Response) -> str:
    """Pull a readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"

    detail = data.get("detail", data) if isinstance(data, dict) else data
    if isinstance(detail, dict):
        return str(detail.get("message") or detail.get("status") or detail)
    return str(detail)


def _token_kind(raw: Optional[str]) -> TokenKind:
    if not raw:
        return TokenKind.WORD
    try:
        return TokenKind(raw)
    except ValueError:
        # Non-speech markers keep their position but are never selectable
        return TokenKind.PUNCTUATION


def parse_transcription(data: dict) -> Transcript:
    """
    Convert a speech-to-text response body into a transcript.

    The text is rebuilt from the tokens so that selections and edits
    always agree with it; the response's own ``text`` field is ignored.

    Args:
        data: Decoded JSON response

    Returns:
        Transcript
    """
    tokens = (
        Token(
            text=word.get("text", ""),
            start=float(word.get("start") or 0.0),
            end=float(word.get("end") or 0.0),
            kind=_token_kind(word.get("type")),
            speaker_id=word.get("speaker_id"),
        )
        for word in data.get("words") or []
    )
    return Transcript.from_tokens(tokens, language_code=data.get("language_code"))


class ElevenLabsBackend:
    """Voice AI backend using the ElevenLabs REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._session = session or requests.Session()

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or config.get_api_key()

    @property
    def base_url(self) -> str:
        return (self._base_url or config.get_base_url()).rstrip("/")

    @retry_with_backoff(
        exceptions=(requests.ConnectionError, requests.Timeout, TransientHTTPError),
    )
    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        response = self._session.request(
            method,
            f"{self.base_url}{path}",
            headers={"xi-api-key": self.api_key},
            timeout=config.get_request_timeout(),
            **kwargs,
        )
        if response.status_code in RETRYABLE_STATUS:
            raise TransientHTTPError(response)
        return response

    def _request(
        self,
        error_cls: Type[ServiceError],
        action: str,
        method: str,
        path: str,
        **kwargs,
    ) -> requests.Response:
        """
        Send a request and translate every failure into ``error_cls``.

        Args:
            error_cls: Exception type raised on failure
            action: Human readable description for messages
            method: HTTP method
            path: API path starting with ``/``
            **kwargs: Passed through to ``requests``

        Returns:
            Successful response
        """
        if not self.api_key:
            raise error_cls(f"{action} failed: ELEVENLABS_API_KEY is not set")

        try:
            response = self._send(method, path, **kwargs)
        except TransientHTTPError as e:
            raise error_cls(f"{action} failed: {_error_detail(e.response)}") from e
        except requests.RequestException as e:
            raise error_cls(f"{action} failed: {e}") from e

        if not response.ok:
            detail = _error_detail(response)
            logger.error(f"{action} failed (HTTP {response.status_code}): {detail}")
            raise error_cls(f"{action} failed: {detail}")

        return response

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    def _transcribe_sync(self, audio_path: Path) -> Transcript:
        audio_path = Path(audio_path)
        mime = mimetypes.guess_type(audio_path.name)[0] or "audio/mpeg"
        response = self._request(
            TranscriptionFailed,
            "Transcription",
            "POST",
            "/v1/speech-to-text",
            data={
                "model_id": config.get_stt_model(),
                "timestamps_granularity": "word",
                "tag_audio_events": "false",
            },
            files={"file": (audio_path.name, audio_path.read_bytes(), mime)},
        )
        try:
            return parse_transcription(response.json())
        except (ValueError, TypeError, AttributeError) as e:
            raise TranscriptionFailed(f"Transcription failed: unexpected response ({e})") from e

    async def transcribe(self, audio_path: str | Path) -> Transcript:
        """
        Transcribe an audio file.

        Args:
            audio_path: Path to audio file

        Returns:
            Transcript with word, punctuation and spacing tokens
        """
        logger.info(f"Transcribing {Path(audio_path).name}")
        return await asyncio.to_thread(self._transcribe_sync, Path(audio_path))

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    def _synthesize_sync(
        self,
        text: str,
        voice_id: str,
        previous_text: Optional[str],
        next_text: Optional[str],
    ) -> bytes:
        payload = {
            "text": text,
            "model_id": config.get_tts_model(),
            "voice_settings": dict(config.VOICE_SETTINGS),
        }
        # Surrounding text keeps intonation and pacing natural
        if previous_text:
            payload["previous_text"] = previous_text
        if next_text:
            payload["next_text"] = next_text

        response = self._request(
            SynthesisFailed,
            "Synthesis",
            "POST",
            f"/v1/text-to-speech/{voice_id}",
            params={"output_format": config.TTS_OUTPUT_FORMAT},
            json=payload,
        )
        if not response.content:
            raise SynthesisFailed("Synthesis failed: empty audio response")
        return response.content

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        previous_text: Optional[str] = None,
        next_text: Optional[str] = None,
    ) -> bytes:
        """
        Synthesize speech with a cloned voice.

        Args:
            text: Text to speak
            voice_id: Cloned voice ID
            previous_text: Transcript text right before the replacement
            next_text: Transcript text right after the replacement

        Returns:
            MP3 audio bytes (44.1 kHz, 128 kbps)
        """
        logger.info(f"Synthesizing {len(text)} characters with voice {voice_id}")
        return await asyncio.to_thread(
            self._synthesize_sync, text, voice_id, previous_text, next_text
        )

    # ------------------------------------------------------------------
    # Voice cloning
    # ------------------------------------------------------------------

    def _clone_voice_sync(
        self,
        sample_paths: List[Path],
        name: str,
        description: Optional[str],
    ) -> str:
        files = []
        for path in sample_paths:
            mime = mimetypes.guess_type(path.name)[0] or "audio/mpeg"
            files.append(("files", (path.name, path.read_bytes(), mime)))

        response = self._request(
            VoiceCloneFailed,
            "Voice cloning",
            "POST",
            "/v1/voices/add",
            data={"name": name, "description": description or config.VOICE_DESCRIPTION},
            files=files,
        )
        try:
            voice_id = response.json().get("voice_id")
        except (ValueError, AttributeError) as e:
            raise VoiceCloneFailed(f"Voice cloning failed: unexpected response ({e})") from e
        if not voice_id:
            raise VoiceCloneFailed("Voice cloning failed: no voice ID in response")
        return voice_id

    async def clone_voice(
        self,
        sample_paths: List[str | Path],
        name: str,
        description: Optional[str] = None,
    ) -> str:
        """
        Create an instant voice clone.

        Args:
            sample_paths: One or more audio samples of the speaker
            name: Voice name
            description: Voice description

        Returns:
            Voice ID
        """
        if not sample_paths:
            raise VoiceCloneFailed("Voice cloning failed: no audio samples")
        paths = [Path(p) for p in sample_paths]
        logger.info(f"Cloning voice '{name}' from {len(paths)} sample(s)")
        return await asyncio.to_thread(self._clone_voice_sync, paths, name, description)

    def _delete_voice_sync(self, voice_id: str) -> None:
        self._request(
            VoiceCloneFailed,
            "Voice deletion",
            "DELETE",
            f"/v1/voices/{voice_id}",
        )

    async def delete_voice(self, voice_id: str) -> None:
        """
        Delete a cloned voice.

        Args:
            voice_id: Voice ID to delete
        """
        logger.info(f"Deleting voice {voice_id}")
        await asyncio.to_thread(self._delete_voice_sync, voice_id)
