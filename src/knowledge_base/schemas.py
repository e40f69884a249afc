"""Pydantic schemas for the knowledge base."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class DocumentMetadata(BaseModel):
    """Metadata for chunks derived from an uploaded document.

    The source is the generated file id; the URL points at the download
    location of the original upload.
    """

    type: Literal["document"] = "document"
    source: str
    title: str | None = None
    url: str | None = None
    media_type: str | None = None
    chunk_index: int | None = None
    timestamp: datetime | None = None


class YouTubeMetadata(BaseModel):
    """Metadata for chunks derived from a YouTube video transcript.

    The source is the video id. Channel and method fields are filled when the
    ingestion path knows them.
    """

    type: Literal["youtube"] = "youtube"
    source: str
    title: str | None = None
    url: str | None = None
    video_id: str | None = None
    channel_title: str | None = None
    transcription_method: str | None = None
    chunk_index: int | None = None
    timestamp: datetime | None = None


ChunkMetadata = Annotated[
    DocumentMetadata | YouTubeMetadata,
    Field(discriminator="type"),
]


class NormalizedSource(BaseModel):
    """Plain text plus metadata produced by an ingestion adapter."""

    text: str
    metadata: ChunkMetadata


class Chunk(BaseModel):
    """A bounded segment of source text stored with its embedding.

    Chunks are immutable: content and embedding are written together when
    the chunk is created and never change afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str = Field(min_length=1)
    embedding: tuple[float, ...]
    metadata: ChunkMetadata

    @property
    def source(self) -> str:
        return self.metadata.source


class ScoredChunk(BaseModel):
    """A chunk paired with its cosine similarity to a query vector."""

    chunk: Chunk
    similarity: float


class Citation(BaseModel):
    """Reference to a retrieved chunk, rendered as a clickable source."""

    type: Literal["document", "youtube"]
    source: str
    title: str | None = None
    url: str | None = None
    chunk_index: int | None = None


class RetrievalResult(BaseModel):
    """Ranked chunks for a query, plus the rendered context block."""

    query: str
    chunks: list[Chunk] = Field(default_factory=list)
    context: str = ""
    citations: list[Citation] = Field(default_factory=list)

    @property
    def has_context(self) -> bool:
        return bool(self.chunks)


class CaptionSegment(BaseModel):
    """Single caption segment from a video's subtitle track."""

    text: str
    start: float  # Seconds from video start
    duration: float  # Seconds


class VideoDetails(BaseModel):
    """YouTube video metadata used to enrich transcripts."""

    video_id: str
    title: str = "Unknown Title"
    description: str = ""
    channel_title: str = "Unknown Channel"
    published_at: str | None = None
    duration_seconds: int | None = None
    view_count: int | None = None
    like_count: int | None = None


class ChannelInfo(BaseModel):
    """Resolved YouTube channel identity."""

    id: str
    title: str = "Unknown Channel"


class IngestionStrategy(str, Enum):
    """How a single video's transcript is obtained."""

    CAPTION = "caption"
    WHISPER = "whisper"
    MANUAL = "manual"


class IngestionResult(BaseModel):
    """Outcome of ingesting one document or one video."""

    source: str
    title: str | None = None
    chunks_created: int = 0
    video_id: str | None = None
    strategy: IngestionStrategy | None = None
    already_processed: bool = False
    transcript_length: int = 0
    video_details: VideoDetails | None = None

    @property
    def enhanced_metadata(self) -> bool:
        return self.video_details is not None


class VideoOutcome(BaseModel):
    """Per-video status within a channel batch."""

    video_id: str
    title: str
    status: Literal["success", "whisper_failed", "error"]
    chunks: int = 0
    already_processed: bool = False
    error: str | None = None


class ChannelBatchResult(BaseModel):
    """Summary of a channel batch run.

    Partial success is expected: failed videos are listed alongside the
    successful ones instead of aborting the batch.
    """

    channel_id: str
    channel_title: str
    total_videos_found: int = 0
    videos_processed: int = 0
    videos_with_transcripts: int = 0
    videos_failed: int = 0
    total_chunks: int = 0
    processed_videos: list[VideoOutcome] = Field(default_factory=list)


class IndexStats(BaseModel):
    """Counts for the admin dashboard."""

    total_chunks: int
    document_chunks: int
    youtube_chunks: int
    embedding_dimension: int | None = None


class StoredFile(BaseModel):
    """An uploaded file kept in memory for download."""

    file_id: str
    filename: str
    media_type: str
    content: bytes
