"""Unit tests for the knowledge base CLI."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.knowledge_base.cli import build_parser, guess_media_type, main
from src.knowledge_base.errors import NoTranscriptAvailableError
from src.knowledge_base.schemas import (
    Chunk,
    Citation,
    DocumentMetadata,
    IndexStats,
    IngestionResult,
    RetrievalResult,
)


@pytest.mark.unit
class TestCliHelpers:
    """Test argument parsing and media type guessing."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("notes.txt", "text/plain"),
            ("manual.PDF", "application/pdf"),
            ("guide.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
            ("old.doc", "application/msword"),
        ],
    )
    def test_guess_media_type(self, name: str, expected: str) -> None:
        assert guess_media_type(Path(name)) == expected

    def test_parser_defaults(self) -> None:
        args = build_parser().parse_args([])

        assert args.file == []
        assert args.video_url == []
        assert args.strategy == "caption"
        assert args.query == []

    def test_parser_rejects_manual_strategy(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--strategy", "manual"])


@pytest.mark.unit
class TestCliMain:
    """Test the CLI flow with a mocked knowledge base."""

    @pytest.fixture
    def mock_kb(self) -> MagicMock:
        chunk = Chunk(
            id="file-1-0",
            content="Stepper motors move in fixed increments.",
            embedding=(1.0,),
            metadata=DocumentMetadata(source="file-1", title="notes.txt", chunk_index=0),
        )
        kb = MagicMock()
        kb.ingest_file = AsyncMock(
            return_value=IngestionResult(source="file-1", title="notes.txt", chunks_created=1)
        )
        kb.ingest_video = AsyncMock(side_effect=NoTranscriptAvailableError("dQw4w9WgXcQ"))
        kb.stats.return_value = IndexStats(total_chunks=1, document_chunks=1, youtube_chunks=0)
        kb.retrieve = AsyncMock(
            return_value=RetrievalResult(
                query="steppers",
                chunks=[chunk],
                citations=[
                    Citation(type="document", source="file-1", title="notes.txt", chunk_index=0)
                ],
            )
        )
        return kb

    @pytest.mark.asyncio
    async def test_main_success(
        self, mock_kb: MagicMock, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test ingesting a file and answering a query."""
        notes = tmp_path / "notes.txt"
        notes.write_text("Stepper motors move in fixed increments.")

        with patch("src.knowledge_base.cli.KnowledgeBase", return_value=mock_kb):
            exit_code = await main(["--file", str(notes), "--query", "steppers"])

        assert exit_code == 0
        mock_kb.ingest_file.assert_awaited_once_with(
            notes.read_bytes(), "text/plain", "notes.txt"
        )
        output = capsys.readouterr().out
        assert "notes.txt: 1 chunks" in output
        assert "[document] notes.txt (chunk 0)" in output

    @pytest.mark.asyncio
    async def test_main_reports_failures(
        self, mock_kb: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that a failed video yields a non-zero exit code."""
        with patch("src.knowledge_base.cli.KnowledgeBase", return_value=mock_kb):
            exit_code = await main(["--video-url", "https://youtu.be/dQw4w9WgXcQ"])

        assert exit_code == 1
        assert "No transcript available" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_main_missing_file(
        self, mock_kb: MagicMock, tmp_path: Path
    ) -> None:
        with patch("src.knowledge_base.cli.KnowledgeBase", return_value=mock_kb):
            exit_code = await main(["--file", str(tmp_path / "missing.txt")])

        assert exit_code == 1
        mock_kb.ingest_file.assert_not_called()
