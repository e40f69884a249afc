"""FastAPI application for the robot-building knowledge base assistant.

Provides chat, document upload, YouTube ingestion, speech and admin
endpoints over one in-memory knowledge base per process.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from src.agent.agent import ChatMessage, ChatOrchestrator
from src.knowledge_base.config import get_config
from src.knowledge_base.errors import (
    AudioDownloadError,
    ExternalServiceError,
    InputValidationError,
    KnowledgeBaseError,
    NoTranscriptAvailableError,
    NotFoundError,
    TranscriptionFailedError,
    UnsupportedMediaTypeError,
)
from src.knowledge_base.pipeline import KnowledgeBase
from src.knowledge_base.schemas import Chunk, IngestionStrategy
from src.knowledge_base.speech_service import SpeechService
from src.utils.logging import get_logger

logger = get_logger(__name__)

CAPTION_TROUBLESHOOTING = [
    "Make sure the video has captions enabled",
    "Check if the video is publicly available",
    "Avoid live streams or YouTube Shorts",
    "Use the manual transcript option or AI transcription instead",
]

WHISPER_TROUBLESHOOTING = [
    "Ensure the video is publicly accessible",
    "Check that yt-dlp is installed and up to date",
    "Verify your OpenAI API key has Whisper access",
    "Long videos may exceed the 25 MB transcription upload limit",
    "Try shorter videos (under 10 minutes)",
]


# ==============================================================================
# Lifespan Management
# ==============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifecycle manager for the FastAPI application.

    Builds one knowledge base, chat orchestrator and speech service per
    process. The index is empty at startup and discarded at shutdown.
    """
    logger.info("application_startup_started")

    try:
        config = get_config()
        speech_service = SpeechService(config)
        knowledge_base = KnowledgeBase(config, speech_service=speech_service)
        app.state.knowledge_base = knowledge_base
        app.state.chat = ChatOrchestrator(knowledge_base)
        app.state.speech = speech_service

        logger.info(
            "application_startup_completed",
            services=["knowledge_base", "chat", "speech"],
        )

    except Exception:
        logger.exception("application_startup_failed")
        raise

    yield  # Application runs here

    logger.info("application_shutdown_started")
    removed = app.state.knowledge_base.clear_all()
    logger.info("application_shutdown_completed", discarded_chunks=removed)


# ==============================================================================
# FastAPI Application Setup
# ==============================================================================

app = FastAPI(
    title="Robot Builder Assistant API",
    description="Retrieval-augmented chat over uploaded documents and YouTube transcripts",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_knowledge_base(request: Request) -> KnowledgeBase:
    return request.app.state.knowledge_base


def get_chat(request: Request) -> ChatOrchestrator:
    return request.app.state.chat


def get_speech(request: Request) -> SpeechService:
    return request.app.state.speech


# ==============================================================================
# Error Handling
# ==============================================================================


def error_status(exc: KnowledgeBaseError) -> int:
    """Map a knowledge base error to its HTTP status code."""
    if isinstance(exc, UnsupportedMediaTypeError):
        return 415
    if isinstance(exc, InputValidationError):
        return 400
    if isinstance(exc, NoTranscriptAvailableError | TranscriptionFailedError):
        return 422
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ExternalServiceError):
        return 502
    return 500


def troubleshooting_for(exc: KnowledgeBaseError) -> list[str] | None:
    if isinstance(exc, NoTranscriptAvailableError):
        return CAPTION_TROUBLESHOOTING
    if isinstance(exc, TranscriptionFailedError | AudioDownloadError):
        return WHISPER_TROUBLESHOOTING
    return None


@app.exception_handler(KnowledgeBaseError)
async def knowledge_base_error_handler(request: Request, exc: KnowledgeBaseError) -> JSONResponse:
    """Render knowledge base errors as {error, details?, troubleshooting?}."""
    status_code = error_status(exc)
    body: dict[str, Any] = {"error": exc.message}

    if isinstance(exc, ExternalServiceError):
        body["details"] = {"service": exc.service, "status_code": exc.status_code}
    troubleshooting = troubleshooting_for(exc)
    if troubleshooting:
        body["troubleshooting"] = troubleshooting

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "request_failed",
        path=request.url.path,
        status_code=status_code,
        error_type=type(exc).__name__,
        error=exc.message,
    )
    return JSONResponse(status_code=status_code, content=body)


# ==============================================================================
# Request/Response Models
# ==============================================================================


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""

    message: str
    message_history: list[ChatMessage] = Field(default_factory=list)


class YouTubeRequest(BaseModel):
    """Request model for single-video ingestion."""

    youtube_url: str
    skip_existing: bool = False


class ManualTranscriptRequest(BaseModel):
    """Request model for manual transcript ingestion."""

    youtube_url: str
    transcript_text: str
    video_title: str | None = None


class ChannelRequest(BaseModel):
    """Request model for channel batch ingestion."""

    channel_input: str
    max_videos: int = 50
    skip_existing: bool = True


class TextToSpeechRequest(BaseModel):
    """Request model for speech synthesis."""

    text: str


def chunk_summary(chunk: Chunk) -> dict[str, Any]:
    """Admin view of a chunk: everything except the embedding vector."""
    return {
        "id": chunk.id,
        "content": chunk.content,
        "metadata": chunk.metadata.model_dump(mode="json"),
    }


# ==============================================================================
# API Endpoints
# ==============================================================================


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint.

    Returns:
        Health status, timestamp and per-service readiness.
    """
    state = request.app.state
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": {
            "knowledge_base": getattr(state, "knowledge_base", None) is not None,
            "chat": getattr(state, "chat", None) is not None,
            "speech": getattr(state, "speech", None) is not None,
        },
    }


@app.post("/api/chat")
async def chat_endpoint(
    request: ChatRequest,
    chat: ChatOrchestrator = Depends(get_chat),
):
    """Answer a chat message using retrieved context and recent history."""
    reply = await chat.chat(request.message, request.message_history)
    return reply.model_dump(mode="json")


@app.post("/api/upload")
async def upload_endpoint(
    file: UploadFile = File(...),
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """Ingest an uploaded PDF, TXT, DOC or DOCX file."""
    content = await file.read()
    filename = file.filename or "upload"
    result = await kb.ingest_file(content, file.content_type or "", filename)

    return {
        "success": True,
        "file_id": result.source,
        "filename": filename,
        "chunks_created": result.chunks_created,
        "message": f"File uploaded and processed into {result.chunks_created} chunks",
    }


@app.get("/api/files/{file_id}")
async def download_file_endpoint(
    file_id: str,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """Download a previously uploaded file."""
    stored = kb.get_file(file_id)
    return Response(
        content=stored.content,
        media_type=stored.media_type,
        headers={"Content-Disposition": f'attachment; filename="{stored.filename}"'},
    )


@app.post("/api/youtube")
async def youtube_endpoint(
    request: YouTubeRequest,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """Ingest a video from its caption track."""
    result = await kb.ingest_video(
        request.youtube_url,
        IngestionStrategy.CAPTION,
        skip_existing=request.skip_existing,
    )
    return {
        "success": True,
        **result.model_dump(mode="json"),
        "enhanced_metadata": result.enhanced_metadata,
    }


@app.post("/api/youtube-whisper")
async def youtube_whisper_endpoint(
    request: YouTubeRequest,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """Ingest a video by transcribing its audio track."""
    result = await kb.ingest_video(
        request.youtube_url,
        IngestionStrategy.WHISPER,
        skip_existing=request.skip_existing,
    )
    return {
        "success": True,
        **result.model_dump(mode="json"),
        "enhanced_metadata": result.enhanced_metadata,
    }


@app.post("/api/youtube-manual")
async def youtube_manual_endpoint(
    request: ManualTranscriptRequest,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """Ingest a caller-supplied transcript for a video."""
    result = await kb.ingest_video(
        request.youtube_url,
        IngestionStrategy.MANUAL,
        transcript_text=request.transcript_text,
        title=request.video_title,
    )
    return {
        "success": True,
        **result.model_dump(mode="json"),
        "message": (
            f"Manual YouTube transcript processed into {result.chunks_created} chunks "
            "and added to knowledge base"
        ),
    }


@app.post("/api/youtube-channel")
async def youtube_channel_endpoint(
    request: ChannelRequest,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """Transcribe and ingest a channel's most recent videos."""
    result = await kb.ingest_channel(
        request.channel_input,
        request.max_videos,
        request.skip_existing,
    )
    return {"success": True, **result.model_dump(mode="json")}


@app.post("/api/speech-to-text")
async def speech_to_text_endpoint(
    audio: UploadFile = File(...),
    speech: SpeechService = Depends(get_speech),
):
    """Transcribe an uploaded voice recording."""
    content = await audio.read()
    text = await speech.transcribe_bytes(content, audio.filename or "recording.webm")
    return {"text": text}


@app.post("/api/text-to-speech")
async def text_to_speech_endpoint(
    request: TextToSpeechRequest,
    speech: SpeechService = Depends(get_speech),
):
    """Synthesize an MP3 for the given text."""
    audio = await speech.synthesize_speech(request.text)
    return Response(content=audio, media_type="audio/mpeg")


@app.get("/api/admin/documents")
async def list_documents_endpoint(
    type: str | None = Query(default=None),
    search: str | None = Query(default=None),
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """List stored chunks, optionally filtered by type and search term."""
    chunks = kb.list_chunks(type=type, search_term=search)
    return {
        "documents": [chunk_summary(c) for c in chunks],
        "total": len(chunks),
        "stats": kb.stats().model_dump(),
    }


@app.delete("/api/admin/documents/{chunk_id}")
async def delete_document_endpoint(
    chunk_id: str,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    """Delete one chunk by id. Succeeds whether or not the id existed."""
    deleted = kb.delete_chunk(chunk_id)
    return {"success": True, "deleted": deleted}


@app.post("/api/admin/documents/clear")
async def clear_documents_endpoint(kb: KnowledgeBase = Depends(get_knowledge_base)):
    """Remove every chunk from the knowledge base."""
    removed = kb.clear_all()
    return {"success": True, "removed": removed}
