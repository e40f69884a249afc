"""Unit tests for FastAPI application endpoints.

The lifespan handler is not run; each test installs its own services on
app.state so no external API is contacted.
"""

from collections.abc import Iterator
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.agent.agent import ChatReply
from src.api.main import CAPTION_TROUBLESHOOTING, WHISPER_TROUBLESHOOTING, app
from src.knowledge_base.config import KnowledgeBaseConfig
from src.knowledge_base.errors import (
    ExternalServiceError,
    InputValidationError,
    NoTranscriptAvailableError,
    NotFoundError,
    TranscriptionFailedError,
)
from src.knowledge_base.pipeline import KnowledgeBase
from src.knowledge_base.schemas import (
    ChannelBatchResult,
    Citation,
    IngestionResult,
    IngestionStrategy,
    VideoDetails,
)

NOTES = (
    "Stepper motors move in fixed increments. "
    "A driver board converts step pulses into coil currents. "
    "Microstepping smooths the motion at low speed."
)
VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.fixture
def real_kb() -> KnowledgeBase:
    """Knowledge base with a mocked embedder and no network services."""
    embedding_service = MagicMock()
    embedding_service.embed_batch = AsyncMock(
        side_effect=lambda texts, batch_size=None: [[1.0, float(i)] for i in range(len(texts))]
    )
    embedding_service.embed_text = AsyncMock(return_value=[1.0, 0.0])
    return KnowledgeBase(
        KnowledgeBaseConfig(max_chunk_size=80, chunk_overlap=10, min_chunk_length=10),
        embedding_service=embedding_service,
        youtube_service=MagicMock(),
        audio_service=MagicMock(),
        speech_service=MagicMock(),
    )


@pytest.fixture
def state() -> Iterator[MagicMock]:
    """Install mock services on app.state and remove them afterwards."""
    services = MagicMock()
    app.state.knowledge_base = services.knowledge_base
    app.state.chat = services.chat
    app.state.speech = services.speech
    yield services
    for name in ("knowledge_base", "chat", "speech"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def client(state: MagicMock) -> TestClient:
    return TestClient(app)


@pytest.mark.unit
class TestHealthEndpoint:
    """Test /health endpoint."""

    def test_health_check_returns_healthy_status(self, client: TestClient) -> None:
        """Test that health endpoint reports every service."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"] == {"knowledge_base": True, "chat": True, "speech": True}

    def test_health_check_includes_timestamp(self, client: TestClient) -> None:
        """Test that health endpoint includes valid timestamp."""
        data = client.get("/health").json()

        timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
        assert isinstance(timestamp, datetime)


@pytest.mark.unit
class TestChatEndpoint:
    """Test /api/chat endpoint."""

    def test_chat_returns_reply(self, client: TestClient, state: MagicMock) -> None:
        """Test that the reply and its sources are returned."""
        state.chat.chat = AsyncMock(
            return_value=ChatReply(
                response="Use a stepper driver.",
                has_context=True,
                context_sources=[Citation(type="document", source="file-1", title="notes.txt")],
            )
        )

        response = client.post(
            "/api/chat",
            json={
                "message": "Which driver?",
                "message_history": [{"role": "user", "content": "Hi"}],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["response"] == "Use a stepper driver."
        assert data["has_context"] is True
        assert data["context_sources"][0]["title"] == "notes.txt"
        message, history = state.chat.chat.call_args.args
        assert message == "Which driver?"
        assert history[0].content == "Hi"

    def test_chat_empty_message(self, client: TestClient, state: MagicMock) -> None:
        state.chat.chat = AsyncMock(
            side_effect=InputValidationError("Message is required and must be a string")
        )

        response = client.post("/api/chat", json={"message": ""})

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required and must be a string"}

    def test_chat_llm_failure(self, client: TestClient, state: MagicMock) -> None:
        """Test that upstream failures map to 502 with service details."""
        state.chat.chat = AsyncMock(side_effect=ExternalServiceError("llm", "overloaded", 503))

        response = client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 502
        assert response.json()["details"] == {"service": "llm", "status_code": 503}


@pytest.mark.unit
class TestUploadEndpoint:
    """Test /api/upload endpoint with a real knowledge base."""

    def test_upload_text_file(self, client: TestClient, real_kb: KnowledgeBase) -> None:
        app.state.knowledge_base = real_kb

        response = client.post(
            "/api/upload",
            files={"file": ("steppers.txt", NOTES.encode(), "text/plain")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["filename"] == "steppers.txt"
        assert data["chunks_created"] == len(real_kb.index) > 0
        assert real_kb.index.list_all()[0].source == data["file_id"]

    def test_download_uploaded_file(self, client: TestClient, real_kb: KnowledgeBase) -> None:
        """Test that an upload can be downloaded from its citation URL."""
        app.state.knowledge_base = real_kb
        file_id = client.post(
            "/api/upload",
            files={"file": ("steppers.txt", NOTES.encode(), "text/plain")},
        ).json()["file_id"]

        response = client.get(f"/api/files/{file_id}")

        assert response.status_code == 200
        assert response.content == NOTES.encode()
        assert response.headers["content-type"].startswith("text/plain")
        assert 'filename="steppers.txt"' in response.headers["content-disposition"]

    def test_download_unknown_file(self, client: TestClient, real_kb: KnowledgeBase) -> None:
        app.state.knowledge_base = real_kb

        response = client.get("/api/files/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "file 'missing' not found"}

    def test_upload_unsupported_type(self, client: TestClient, real_kb: KnowledgeBase) -> None:
        app.state.knowledge_base = real_kb

        response = client.post(
            "/api/upload",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 415
        assert "Only PDF, TXT, DOC, and DOCX" in response.json()["error"]
        assert len(real_kb.index) == 0


@pytest.mark.unit
class TestYouTubeEndpoints:
    """Test video and channel ingestion endpoints."""

    def test_youtube_captions(self, client: TestClient, state: MagicMock) -> None:
        state.knowledge_base.ingest_video = AsyncMock(
            return_value=IngestionResult(
                source="dQw4w9WgXcQ",
                title="Stepper Basics",
                video_id="dQw4w9WgXcQ",
                strategy=IngestionStrategy.CAPTION,
                chunks_created=4,
                video_details=VideoDetails(video_id="dQw4w9WgXcQ", title="Stepper Basics"),
            )
        )

        response = client.post("/api/youtube", json={"youtube_url": VIDEO_URL})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["chunks_created"] == 4
        assert data["strategy"] == "caption"
        assert data["enhanced_metadata"] is True
        state.knowledge_base.ingest_video.assert_awaited_once_with(
            VIDEO_URL, IngestionStrategy.CAPTION, skip_existing=False
        )

    def test_youtube_no_captions(self, client: TestClient, state: MagicMock) -> None:
        """Test that missing captions map to 422 with caption troubleshooting."""
        state.knowledge_base.ingest_video = AsyncMock(
            side_effect=NoTranscriptAvailableError("dQw4w9WgXcQ")
        )

        response = client.post("/api/youtube", json={"youtube_url": VIDEO_URL})

        assert response.status_code == 422
        assert response.json()["troubleshooting"] == CAPTION_TROUBLESHOOTING

    def test_youtube_invalid_url(self, client: TestClient, state: MagicMock) -> None:
        state.knowledge_base.ingest_video = AsyncMock(
            side_effect=InputValidationError("Invalid YouTube URL format")
        )

        response = client.post("/api/youtube", json={"youtube_url": "nope"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid YouTube URL format"

    def test_youtube_whisper_failure(self, client: TestClient, state: MagicMock) -> None:
        """Test that empty transcriptions map to 422 with whisper troubleshooting."""
        state.knowledge_base.ingest_video = AsyncMock(
            side_effect=TranscriptionFailedError("dQw4w9WgXcQ")
        )

        response = client.post("/api/youtube-whisper", json={"youtube_url": VIDEO_URL})

        assert response.status_code == 422
        assert response.json()["troubleshooting"] == WHISPER_TROUBLESHOOTING

    def test_youtube_manual(self, client: TestClient, real_kb: KnowledgeBase) -> None:
        app.state.knowledge_base = real_kb

        response = client.post(
            "/api/youtube-manual",
            json={
                "youtube_url": VIDEO_URL,
                "transcript_text": NOTES,
                "video_title": "Stepper Walkthrough",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Stepper Walkthrough"
        assert data["strategy"] == "manual"
        assert data["chunks_created"] == len(real_kb.index)

    def test_youtube_channel(self, client: TestClient, state: MagicMock) -> None:
        state.knowledge_base.ingest_channel = AsyncMock(
            return_value=ChannelBatchResult(
                channel_id="UC" + "x" * 22,
                channel_title="Robot Lab",
                total_videos_found=3,
                videos_processed=3,
                videos_with_transcripts=3,
                total_chunks=12,
            )
        )

        response = client.post(
            "/api/youtube-channel", json={"channel_input": "@RobotLab", "max_videos": 3}
        )

        assert response.status_code == 200
        assert response.json()["total_chunks"] == 12
        state.knowledge_base.ingest_channel.assert_awaited_once_with("@RobotLab", 3, True)

    def test_youtube_channel_not_found(self, client: TestClient, state: MagicMock) -> None:
        state.knowledge_base.ingest_channel = AsyncMock(
            side_effect=NotFoundError("channel", "@Nobody")
        )

        response = client.post("/api/youtube-channel", json={"channel_input": "@Nobody"})

        assert response.status_code == 404


@pytest.mark.unit
class TestSpeechEndpoints:
    """Test speech-to-text and text-to-speech endpoints."""

    def test_speech_to_text(self, client: TestClient, state: MagicMock) -> None:
        state.speech.transcribe_bytes = AsyncMock(return_value="Move forward.")

        response = client.post(
            "/api/speech-to-text",
            files={"audio": ("recording.webm", b"webm data", "audio/webm")},
        )

        assert response.status_code == 200
        assert response.json() == {"text": "Move forward."}
        state.speech.transcribe_bytes.assert_awaited_once_with(b"webm data", "recording.webm")

    def test_text_to_speech(self, client: TestClient, state: MagicMock) -> None:
        state.speech.synthesize_speech = AsyncMock(return_value=b"ID3 mp3 bytes")

        response = client.post("/api/text-to-speech", json={"text": "Hello"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.content == b"ID3 mp3 bytes"


@pytest.mark.unit
class TestAdminEndpoints:
    """Test admin listing, deletion and clearing."""

    @pytest.fixture
    def populated_kb(self, client: TestClient, real_kb: KnowledgeBase) -> KnowledgeBase:
        app.state.knowledge_base = real_kb
        client.post("/api/upload", files={"file": ("steppers.txt", NOTES.encode(), "text/plain")})
        client.post(
            "/api/youtube-manual",
            json={"youtube_url": VIDEO_URL, "transcript_text": NOTES},
        )
        return real_kb

    def test_list_documents(self, client: TestClient, populated_kb: KnowledgeBase) -> None:
        """Test listing without embeddings, with stats."""
        data = client.get("/api/admin/documents").json()

        assert data["total"] == len(populated_kb.index)
        assert "embedding" not in data["documents"][0]
        assert data["stats"]["total_chunks"] == data["total"]
        assert data["stats"]["youtube_chunks"] > 0
        assert data["stats"]["document_chunks"] > 0

    def test_list_documents_filtered(
        self, client: TestClient, populated_kb: KnowledgeBase
    ) -> None:
        data = client.get("/api/admin/documents", params={"type": "youtube"}).json()

        assert data["total"] == populated_kb.stats().youtube_chunks
        assert {d["metadata"]["type"] for d in data["documents"]} == {"youtube"}

        searched = client.get("/api/admin/documents", params={"search": "MICROSTEPPING"}).json()
        assert searched["total"] >= 1

    def test_delete_document(self, client: TestClient, populated_kb: KnowledgeBase) -> None:
        """Test that deleting twice succeeds both times and removes once."""
        before = len(populated_kb.index)

        first = client.delete("/api/admin/documents/dQw4w9WgXcQ-0")
        second = client.delete("/api/admin/documents/dQw4w9WgXcQ-0")

        assert first.json() == {"success": True, "deleted": True}
        assert second.json() == {"success": True, "deleted": False}
        assert len(populated_kb.index) == before - 1

    def test_clear_documents(self, client: TestClient, populated_kb: KnowledgeBase) -> None:
        total = len(populated_kb.index)

        response = client.post("/api/admin/documents/clear")

        assert response.json() == {"success": True, "removed": total}
        assert len(populated_kb.index) == 0
