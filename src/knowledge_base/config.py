"""Configuration module for the knowledge base."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class KnowledgeBaseConfig(BaseModel):
    """Configuration for ingestion, embedding, and retrieval.

    Every setting can be overridden via environment variables or by passing
    explicit values to the constructor.
    """

    # Supadata API settings (captions, video metadata, channel listing)
    supadata_api_key: str = Field(
        default_factory=lambda: os.getenv("SUPADATA_API_KEY", "")
    )

    # OpenAI audio settings (transcription and speech)
    openai_api_key: str = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY", "")
    )
    transcription_model: str = Field(
        default_factory=lambda: os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
    )
    transcription_language: str = Field(
        default_factory=lambda: os.getenv("TRANSCRIPTION_LANGUAGE", "en")
    )
    speech_model: str = Field(
        default_factory=lambda: os.getenv("SPEECH_MODEL", "tts-1")
    )
    speech_voice: str = Field(
        default_factory=lambda: os.getenv("SPEECH_VOICE", "alloy")
    )

    # Embedding settings
    embedding_provider: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_PROVIDER", "openai")
    )
    embedding_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_BASE_URL", "https://api.openai.com/v1"
        )
    )
    embedding_api_key: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_API_KEY", "")
    )
    embedding_model: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_MODEL_CHOICE", "text-embedding-3-small"
        )
    )
    embedding_batch_size: int = Field(
        default_factory=lambda: int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
    )

    # Chunking settings (character-based)
    max_chunk_size: int = Field(
        default_factory=lambda: int(os.getenv("MAX_CHUNK_SIZE", "1000"))
    )
    chunk_overlap: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_OVERLAP", "200"))
    )
    min_chunk_length: int = Field(
        default_factory=lambda: int(os.getenv("MIN_CHUNK_LENGTH", "50"))
    )

    # Retrieval settings
    top_k: int = Field(
        default_factory=lambda: int(os.getenv("RETRIEVAL_TOP_K", "3"))
    )

    # Channel and video processing settings
    max_channel_videos: int = Field(
        default_factory=lambda: int(os.getenv("MAX_CHANNEL_VIDEOS", "50"))
    )
    max_description_chars: int = Field(
        default_factory=lambda: int(os.getenv("MAX_DESCRIPTION_CHARS", "500"))
    )
    request_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60"))
    )
    audio_download_dir: str = Field(
        default_factory=lambda: os.getenv("AUDIO_DOWNLOAD_DIR", "")
    )

    @model_validator(mode="after")
    def _check_limits(self) -> "KnowledgeBaseConfig":
        if self.max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be greater than 0")
        if self.chunk_overlap < 0:
            raise ValueError("chunk_overlap must be 0 or greater")
        if self.min_chunk_length < 0:
            raise ValueError("min_chunk_length must be 0 or greater")
        if self.top_k <= 0:
            raise ValueError("top_k must be greater than 0")
        if self.embedding_batch_size <= 0:
            raise ValueError("embedding_batch_size must be greater than 0")
        return self


def get_config() -> KnowledgeBaseConfig:
    """Get validated configuration instance.

    Returns:
        KnowledgeBaseConfig: Validated configuration object with all settings.

    Raises:
        ValidationError: If environment variables hold invalid values.
    """
    return KnowledgeBaseConfig()
