"""Speech-to-text and text-to-speech via the OpenAI audio API."""

from pathlib import Path
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from src.utils.clients import get_openai_client
from src.utils.logging import get_logger

from .config import KnowledgeBaseConfig
from .errors import ExternalServiceError, InputValidationError, TranscriptionFailedError

logger = get_logger(__name__)


class SpeechService:
    """Wraps OpenAI transcription and speech synthesis.

    The client is built on first use so the service can be constructed
    without an API key; calls without one raise `InputValidationError`.
    """

    def __init__(self, config: KnowledgeBaseConfig, client: AsyncOpenAI | None = None):
        self.config = config
        self._client = client

    def ensure_configured(self) -> None:
        """Fail fast before a long audio download when no key is set.

        Raises:
            InputValidationError: If no client was injected and no API key is configured.
        """
        if self._client is None and not self.config.openai_api_key:
            raise InputValidationError("OpenAI API key is required for Whisper transcription")

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self.ensure_configured()
            self._client = get_openai_client(self.config)
        return self._client

    async def transcribe_audio(self, audio_path: Path, label: str | None = None) -> str:
        """Transcribe an audio file to plain text.

        Args:
            audio_path: Path to the audio file.
            label: Identifier for logs and errors (video id or filename).

        Returns:
            Transcribed text, stripped.

        Raises:
            TranscriptionFailedError: If the transcription comes back empty.
            ExternalServiceError: If the API call fails.
        """
        label = label or audio_path.name
        with open(audio_path, "rb") as audio_file:
            return await self._transcribe(audio_file, label)

    async def transcribe_bytes(self, content: bytes, filename: str) -> str:
        """Transcribe an uploaded recording held in memory.

        Raises:
            InputValidationError: If the upload is empty.
            TranscriptionFailedError: If the transcription comes back empty.
            ExternalServiceError: If the API call fails.
        """
        if not content:
            raise InputValidationError("Audio file is required")
        return await self._transcribe((filename, content), filename)

    async def _transcribe(self, file: Any, label: str) -> str:
        logger.info("transcription_started", label=label, model=self.config.transcription_model)

        try:
            response = await self.client.audio.transcriptions.create(
                model=self.config.transcription_model,
                file=file,
                language=self.config.transcription_language,
            )
        except OpenAIError as e:
            logger.exception(
                "transcription_failed",
                label=label,
                error_type=type(e).__name__,
            )
            raise ExternalServiceError(
                "openai", str(e), getattr(e, "status_code", None)
            ) from e

        text = (response.text or "").strip()
        if not text:
            logger.warning("transcription_empty", label=label)
            raise TranscriptionFailedError(label)

        logger.info("transcription_completed", label=label, text_length=len(text))
        return text

    async def synthesize_speech(self, text: str) -> bytes:
        """Synthesize speech audio (MP3) for text.

        Raises:
            InputValidationError: If text is empty.
            ExternalServiceError: If the API call fails.
        """
        if not text or not text.strip():
            raise InputValidationError("Text is required for speech synthesis")

        try:
            response = await self.client.audio.speech.create(
                model=self.config.speech_model,
                voice=self.config.speech_voice,
                input=text,
            )
        except OpenAIError as e:
            logger.exception(
                "speech_synthesis_failed",
                text_length=len(text),
                error_type=type(e).__name__,
            )
            raise ExternalServiceError(
                "openai", str(e), getattr(e, "status_code", None)
            ) from e

        audio = response.content
        logger.info("speech_synthesized", text_length=len(text), audio_bytes=len(audio))
        return audio
