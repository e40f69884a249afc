"""Knowledge base facade: ingestion, retrieval and admin operations over one index."""

import asyncio
from datetime import datetime, timezone

from src.utils.logging import get_logger

from .adapters import (
    caption_source,
    document_source,
    file_source,
    manual_source,
    require_video_id,
    transcript_source,
)
from .audio_service import AudioService
from .chunking_service import ChunkingService
from .config import KnowledgeBaseConfig, get_config
from .embedding_service import EmbeddingService
from .errors import (
    AudioDownloadError,
    InputValidationError,
    KnowledgeBaseError,
    NotFoundError,
    TranscriptionFailedError,
)
from .formatting import format_video_url
from .retrieval_service import RetrievalService
from .schemas import (
    ChannelBatchResult,
    Chunk,
    ChunkMetadata,
    IndexStats,
    IngestionResult,
    IngestionStrategy,
    NormalizedSource,
    RetrievalResult,
    StoredFile,
    VideoDetails,
    VideoOutcome,
)
from .speech_service import SpeechService
from .vector_index import VectorIndex
from .youtube_service import YouTubeService

logger = get_logger(__name__)


class KnowledgeBase:
    """Owns one VectorIndex and every path that reads or writes it.

    All ingestion funnels through `_insert_source`: chunk, embed every chunk,
    then insert the whole set. A failure before the insert leaves the index
    untouched, so a source is never partially indexed.

    Video ingestion holds a per-video lock across the skip-existing check and
    the insert, so two concurrent requests for the same video cannot both
    index it.
    """

    def __init__(
        self,
        config: KnowledgeBaseConfig | None = None,
        index: VectorIndex | None = None,
        embedding_service: EmbeddingService | None = None,
        youtube_service: YouTubeService | None = None,
        audio_service: AudioService | None = None,
        speech_service: SpeechService | None = None,
    ):
        """Initialize the knowledge base with all required services.

        Args:
            config: Configuration object. If None, loads from environment.
            index: Vector index to own. A fresh empty index when None.
            embedding_service: Embedding capability.
            youtube_service: Caption, metadata and channel capability.
            audio_service: Audio download capability.
            speech_service: Speech-to-text capability.
        """
        self.config = config or get_config()
        self.index = index if index is not None else VectorIndex()
        self.chunking_service = ChunkingService(self.config)
        self.embedding_service = embedding_service or EmbeddingService(self.config)
        self.youtube_service = youtube_service or YouTubeService(self.config)
        self.audio_service = audio_service or AudioService(self.config)
        self.speech_service = speech_service or SpeechService(self.config)
        self.retrieval_service = RetrievalService(self.index, self.embedding_service)
        self._locks: dict[str, asyncio.Lock] = {}
        self._files: dict[str, StoredFile] = {}

        logger.info(
            "knowledge_base_initialized",
            max_chunk_size=self.config.max_chunk_size,
            chunk_overlap=self.config.chunk_overlap,
            top_k=self.config.top_k,
        )

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def _insert_source(self, normalized: NormalizedSource) -> int:
        """Chunk, embed and insert one normalized source.

        Returns:
            Number of chunks inserted.
        """
        source = normalized.metadata.source
        texts = self.chunking_service.chunk(normalized.text, source=source)
        if not texts:
            logger.warning("source_produced_no_chunks", source=source)
            return 0

        embeddings = await self.embedding_service.embed_batch(texts)
        timestamp = datetime.now(timezone.utc)

        chunks = [
            Chunk(
                id=f"{source}-{i}",
                content=text,
                embedding=tuple(embedding),
                metadata=normalized.metadata.model_copy(
                    update={"chunk_index": i, "timestamp": timestamp}
                ),
            )
            for i, (text, embedding) in enumerate(zip(texts, embeddings, strict=True))
        ]
        self.index.insert_many(chunks)
        return len(chunks)

    def _source_lock(self, source: str) -> asyncio.Lock:
        return self._locks.setdefault(source, asyncio.Lock())

    async def ingest_document(self, text: str, metadata: ChunkMetadata) -> IngestionResult:
        """Ingest already-extracted text under the given metadata.

        Raises:
            InputValidationError: If text is empty.
        """
        if not text or not text.strip():
            raise InputValidationError("Document text is required")

        count = await self._insert_source(document_source(text, metadata))
        logger.info("document_ingested", source=metadata.source, chunks=count)
        return IngestionResult(
            source=metadata.source,
            title=metadata.title,
            chunks_created=count,
            transcript_length=len(text),
        )

    async def ingest_file(self, content: bytes, media_type: str, filename: str) -> IngestionResult:
        """Extract text from an uploaded file and ingest it.

        Raises:
            UnsupportedMediaTypeError: If the media type is not PDF, TXT, DOC or DOCX.
            InputValidationError: If the file is empty or corrupt.
        """
        normalized = file_source(content, media_type, filename)
        count = await self._insert_source(normalized)

        file_id = normalized.metadata.source
        self._files[file_id] = StoredFile(
            file_id=file_id,
            filename=filename,
            media_type=media_type,
            content=content,
        )

        logger.info(
            "file_ingested",
            source=normalized.metadata.source,
            filename=filename,
            media_type=media_type,
            chunks=count,
        )
        return IngestionResult(
            source=normalized.metadata.source,
            title=filename,
            chunks_created=count,
            transcript_length=len(normalized.text),
        )

    async def _fetch_metadata(self, video_id: str) -> VideoDetails | None:
        """Best-effort metadata enrichment; failures degrade to None."""
        try:
            return await self.youtube_service.fetch_video_metadata(video_id)
        except KnowledgeBaseError as e:
            logger.warning(
                "video_metadata_unavailable",
                video_id=video_id,
                error_type=type(e).__name__,
                error=e.message,
            )
            return None

    async def _caption_transcript(
        self, video_id: str
    ) -> tuple[NormalizedSource, VideoDetails | None]:
        segments = await self.youtube_service.fetch_captions(video_id)
        details = await self._fetch_metadata(video_id)
        return caption_source(
            video_id,
            segments,
            details=details,
            max_description_chars=self.config.max_description_chars,
        ), details

    async def _whisper_transcript(
        self, video_id: str
    ) -> tuple[NormalizedSource, VideoDetails | None]:
        self.speech_service.ensure_configured()
        details = await self._fetch_metadata(video_id)

        async with self.audio_service.download_audio(format_video_url(video_id)) as audio_path:
            transcript = await self.speech_service.transcribe_audio(audio_path, label=video_id)

        return transcript_source(
            video_id,
            transcript,
            IngestionStrategy.WHISPER.value,
            details=details,
            max_description_chars=self.config.max_description_chars,
        ), details

    async def ingest_video(
        self,
        url: str,
        strategy: IngestionStrategy | str = IngestionStrategy.CAPTION,
        transcript_text: str | None = None,
        title: str | None = None,
        skip_existing: bool = False,
    ) -> IngestionResult:
        """Ingest a single video using captions, AI transcription or a manual transcript.

        Args:
            url: YouTube video URL.
            strategy: "caption", "whisper" or "manual".
            transcript_text: Transcript for the manual strategy.
            title: Title for the manual strategy.
            skip_existing: Return an already-processed result, without fetching,
                when the video already has chunks.

        Returns:
            IngestionResult with the created chunk count.

        Raises:
            InputValidationError: If the URL, strategy or manual text is invalid.
            NoTranscriptAvailableError: If captions are missing (caption strategy).
            TranscriptionFailedError: If transcription returned no text (whisper strategy).
            ExternalServiceError: If an external call fails.
        """
        try:
            strategy = IngestionStrategy(strategy)
        except ValueError as e:
            raise InputValidationError(f"Unknown ingestion strategy '{strategy}'") from e

        video_id = require_video_id(url)

        async with self._source_lock(video_id):
            if skip_existing:
                existing = self.index.count_by_source(video_id)
                if existing:
                    logger.info("video_already_processed", video_id=video_id, chunks=existing)
                    return IngestionResult(
                        source=video_id,
                        video_id=video_id,
                        strategy=strategy,
                        chunks_created=existing,
                        already_processed=True,
                    )

            logger.info("video_ingestion_started", video_id=video_id, strategy=strategy.value)

            if strategy is IngestionStrategy.CAPTION:
                normalized, details = await self._caption_transcript(video_id)
            elif strategy is IngestionStrategy.WHISPER:
                normalized, details = await self._whisper_transcript(video_id)
            else:
                normalized, details = manual_source(url, transcript_text, title), None

            count = await self._insert_source(normalized)

        logger.info(
            "video_ingested",
            video_id=video_id,
            strategy=strategy.value,
            chunks=count,
        )
        return IngestionResult(
            source=video_id,
            title=normalized.metadata.title,
            video_id=video_id,
            strategy=strategy,
            chunks_created=count,
            transcript_length=len(normalized.text),
            video_details=details,
        )

    async def ingest_channel(
        self,
        channel_input: str,
        max_videos: int | None = None,
        skip_existing: bool = True,
    ) -> ChannelBatchResult:
        """Transcribe and ingest a channel's most recent videos one at a time.

        Videos are processed sequentially. A failing video is recorded in the
        result and the batch moves on.

        Args:
            channel_input: Channel URL, handle or raw channel id.
            max_videos: Maximum number of recent videos (default: config.max_channel_videos).
            skip_existing: Count videos already in the index as successes
                without reprocessing them.

        Returns:
            ChannelBatchResult with per-video outcomes and aggregates.

        Raises:
            InputValidationError: If the channel input or max_videos is invalid.
            NotFoundError: If the channel or its videos cannot be found.
            ExternalServiceError: If channel resolution or listing fails.
        """
        if not channel_input or not channel_input.strip():
            raise InputValidationError("Channel ID, URL, or handle is required")
        if max_videos is None:
            max_videos = self.config.max_channel_videos
        if max_videos <= 0:
            raise InputValidationError("max_videos must be greater than 0")
        self.speech_service.ensure_configured()

        channel = await self.youtube_service.resolve_channel(channel_input)
        video_ids = await self.youtube_service.list_channel_videos(channel.id, max_videos)
        if not video_ids:
            raise NotFoundError("videos for channel", channel.id)

        result = ChannelBatchResult(
            channel_id=channel.id,
            channel_title=channel.title,
            total_videos_found=len(video_ids),
        )

        logger.info(
            "channel_batch_started",
            channel_id=channel.id,
            channel_title=channel.title,
            videos=len(video_ids),
            skip_existing=skip_existing,
        )

        for video_id in video_ids:
            outcome = await self._process_channel_video(video_id, skip_existing)
            result.processed_videos.append(outcome)

            if outcome.status == "success":
                result.videos_processed += 1
                result.videos_with_transcripts += 1
                result.total_chunks += outcome.chunks
            else:
                result.videos_failed += 1

        logger.info(
            "channel_batch_completed",
            channel_id=channel.id,
            processed=result.videos_processed,
            failed=result.videos_failed,
            total_chunks=result.total_chunks,
        )
        return result

    async def _process_channel_video(self, video_id: str, skip_existing: bool) -> VideoOutcome:
        """Run the whisper path for one channel video and classify the outcome."""
        try:
            ingested = await self.ingest_video(
                format_video_url(video_id),
                IngestionStrategy.WHISPER,
                skip_existing=skip_existing,
            )
        except (TranscriptionFailedError, AudioDownloadError) as e:
            logger.warning(
                "channel_video_whisper_failed",
                video_id=video_id,
                error_type=type(e).__name__,
                error=e.message,
            )
            return VideoOutcome(
                video_id=video_id,
                title=await self._failed_video_title(video_id),
                status="whisper_failed",
                error=e.message,
            )
        except Exception as e:
            # One broken video must not abort the batch
            logger.exception(
                "channel_video_failed",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            return VideoOutcome(
                video_id=video_id,
                title=await self._failed_video_title(video_id),
                status="error",
                error=str(e),
            )

        return VideoOutcome(
            video_id=video_id,
            title=ingested.title or video_id,
            status="success",
            chunks=ingested.chunks_created,
            already_processed=ingested.already_processed,
        )

    async def _failed_video_title(self, video_id: str) -> str:
        details = await self._fetch_metadata(video_id)
        return details.title if details else video_id

    # ------------------------------------------------------------------
    # Read path and admin
    # ------------------------------------------------------------------

    async def retrieve(self, query: str, top_k: int | None = None) -> RetrievalResult:
        """Return ranked chunks for `query` with the rendered context and citations.

        Raises:
            InputValidationError: If the query is empty.
        """
        if not query or not query.strip():
            raise InputValidationError("Query is required")
        return await self.retrieval_service.retrieve_with_context(
            query, self.config.top_k if top_k is None else top_k
        )

    def get_file(self, file_id: str) -> StoredFile:
        """Return an uploaded file by id.

        Raises:
            NotFoundError: If no upload has that id.
        """
        stored = self._files.get(file_id)
        if stored is None:
            raise NotFoundError("file", file_id)
        return stored

    def delete_chunk(self, chunk_id: str) -> bool:
        """Delete one chunk by id. Returns whether a chunk was removed."""
        return self.index.delete(chunk_id)

    def clear_all(self) -> int:
        """Remove every chunk and stored upload. Returns the number of chunks removed."""
        # Locks held by in-flight ingestions survive so the video stays serialized
        self._locks = {source: lock for source, lock in self._locks.items() if lock.locked()}
        self._files.clear()
        return self.index.clear()

    def list_chunks(
        self,
        type: str | None = None,
        search_term: str | None = None,
    ) -> list[Chunk]:
        """List chunks in insertion order, optionally filtered.

        Args:
            type: "document" or "youtube"; None or "all" keeps both.
            search_term: Case-insensitive match against content, title and source.
        """
        chunks = self.index.list_all()

        if type and type != "all":
            chunks = [c for c in chunks if c.metadata.type == type]

        if search_term:
            term = search_term.lower()
            chunks = [
                c
                for c in chunks
                if term in c.content.lower()
                or term in (c.metadata.title or "").lower()
                or term in c.metadata.source.lower()
            ]
        return chunks

    def stats(self) -> IndexStats:
        chunks = self.index.list_all()
        youtube = sum(1 for c in chunks if c.metadata.type == "youtube")
        return IndexStats(
            total_chunks=len(chunks),
            document_chunks=len(chunks) - youtube,
            youtube_chunks=youtube,
            embedding_dimension=self.index.dimension,
        )
