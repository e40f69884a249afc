"""Unit tests for the chunking service."""

import re

import pytest

from src.knowledge_base.chunking_service import (
    ChunkingService,
    chunk_text,
    overlap_suffix,
    split_sentences,
)
from src.knowledge_base.config import KnowledgeBaseConfig

ROBOT_TEXT = "Robots use sensors. Sensors detect light. Actuators move joints."

LONG_TEXT = " ".join(
    f"Sentence number {i} explains how servo motor {i} is wired to the controller board."
    for i in range(40)
)


@pytest.mark.unit
class TestSplitSentences:
    """Test sentence splitting."""

    def test_keeps_terminal_punctuation(self) -> None:
        """Test that each sentence keeps its punctuation."""
        assert split_sentences("Is it on? Yes! Good.") == ["Is it on?", "Yes!", "Good."]

    def test_text_without_punctuation_is_one_sentence(self) -> None:
        """Test that unpunctuated text stays whole."""
        assert split_sentences("no punctuation here at all") == ["no punctuation here at all"]

    def test_empty_text(self) -> None:
        """Test that empty and whitespace-only text yield nothing."""
        assert split_sentences("") == []
        assert split_sentences("   \n ") == []

    def test_collapses_internal_whitespace(self) -> None:
        """Test that newlines inside a sentence become single spaces."""
        assert split_sentences("Wire the\n  motor. Done.") == ["Wire the motor.", "Done."]


@pytest.mark.unit
class TestOverlapSuffix:
    """Test overlap seed selection."""

    def test_starts_on_word_boundary(self) -> None:
        """Test that a mid-word cut keeps the word after the last space."""
        assert overlap_suffix("Robots use sensors.", 10) == "sensors."

    def test_keeps_only_text_after_last_space(self) -> None:
        """Test that the seed is the closing word of the window."""
        chunk = "The motor driver connects to pins four and five on the board."

        assert overlap_suffix(chunk, 30) == "board."

    def test_window_without_interior_space(self) -> None:
        """Test that a window holding a single word is kept."""
        assert overlap_suffix("alpha beta", 4) == "beta"

    def test_leading_space_is_stripped(self) -> None:
        """Test that a window whose only space is its first character is trimmed."""
        assert overlap_suffix("alpha beta", 5) == "beta"

    def test_short_chunk_used_whole(self) -> None:
        """Test that a chunk shorter than the overlap is used entirely."""
        assert overlap_suffix("short", 10) == "short"

    def test_no_space_uses_raw_suffix(self) -> None:
        """Test that a window without spaces is used as-is."""
        assert overlap_suffix("abcdefghijklmnop", 5) == "lmnop"

    def test_zero_overlap(self) -> None:
        """Test that zero overlap yields no seed."""
        assert overlap_suffix("anything at all", 0) == ""


@pytest.mark.unit
class TestChunkText:
    """Test the chunking algorithm and its properties."""

    def test_robot_scenario(self) -> None:
        """Test the three-sentence document with a 40 character budget."""
        chunks = chunk_text(ROBOT_TEXT, max_chunk_size=40, overlap=10, min_length=10)

        assert chunks == [
            "Robots use sensors.",
            "sensors. Sensors detect light.",
            "light. Actuators move joints.",
        ]
        assert 2 <= len(chunks) <= 3
        for chunk in chunks:
            assert len(chunk) <= 40
            assert chunk.endswith(".")

    def test_default_min_length_filters_short_chunks(self) -> None:
        """Test that chunks under 50 characters are discarded by default."""
        assert chunk_text(ROBOT_TEXT, max_chunk_size=40, overlap=10) == []

    def test_empty_input(self) -> None:
        """Test that empty input yields no chunks."""
        assert chunk_text("", max_chunk_size=100, overlap=10) == []

    def test_no_punctuation_single_oversized_chunk(self) -> None:
        """Test that unpunctuated text becomes one chunk even past the budget."""
        text = "word " * 60
        chunks = chunk_text(text, max_chunk_size=100, overlap=20, min_length=0)

        assert len(chunks) == 1
        assert len(chunks[0]) > 100

    def test_determinism(self) -> None:
        """Test that repeated calls give identical output."""
        first = chunk_text(LONG_TEXT, max_chunk_size=300, overlap=60)
        second = chunk_text(LONG_TEXT, max_chunk_size=300, overlap=60)

        assert first == second

    def test_size_bound(self) -> None:
        """Test that chunks respect the budget unless a lone sentence exceeds it."""
        chunks = chunk_text(LONG_TEXT, max_chunk_size=300, overlap=60)

        assert len(chunks) > 1
        for chunk in chunks:
            internal_boundary = re.search(r"[.!?]\s", chunk) is not None
            assert len(chunk) <= 300 or not internal_boundary

    def test_overlap_continuity(self) -> None:
        """Test that each chunk begins with a word-aligned suffix of the previous one."""
        chunks = chunk_text(LONG_TEXT, max_chunk_size=300, overlap=60)

        for previous, current in zip(chunks, chunks[1:], strict=False):
            seed = overlap_suffix(previous, 60)
            assert seed
            assert previous.endswith(seed)
            assert current.startswith(seed + " ")

    def test_minimum_length(self) -> None:
        """Test that no chunk is shorter than the minimum length."""
        chunks = chunk_text(LONG_TEXT + " Ok.", max_chunk_size=300, overlap=60)

        assert all(len(chunk) >= 50 for chunk in chunks)

    def test_invalid_parameters(self) -> None:
        """Test that non-positive sizes and negative overlaps are rejected."""
        with pytest.raises(ValueError):
            chunk_text("text.", max_chunk_size=0, overlap=0)
        with pytest.raises(ValueError):
            chunk_text("text.", max_chunk_size=10, overlap=-1)


@pytest.mark.unit
class TestChunkingService:
    """Test suite for ChunkingService class."""

    def test_uses_configured_limits(self) -> None:
        """Test that the service applies config size, overlap and minimum."""
        config = KnowledgeBaseConfig(max_chunk_size=40, chunk_overlap=10, min_chunk_length=10)
        service = ChunkingService(config)

        chunks = service.chunk(ROBOT_TEXT, source="doc-1")

        assert chunks == chunk_text(ROBOT_TEXT, 40, 10, min_length=10)
