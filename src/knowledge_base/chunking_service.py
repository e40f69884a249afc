"""Chunking service for sentence-aware text segmentation with overlap."""

import re

from src.utils.logging import get_logger

from .config import KnowledgeBaseConfig

logger = get_logger(__name__)

# A sentence is a run of non-terminal characters plus its terminal punctuation,
# or the trailing run when the text does not end with punctuation.
SENTENCE_PATTERN = re.compile(r"[^.!?]+(?:[.!?]+|$)")


def split_sentences(text: str) -> list[str]:
    """Split text into sentence-like units on `.`, `!` and `?`.

    Terminal punctuation stays attached to its sentence. Text without any
    terminal punctuation comes back as a single sentence.

    Args:
        text: Raw text to split.

    Returns:
        Stripped, non-empty sentences in input order.

    Examples:
        >>> split_sentences("Robots use sensors. Sensors detect light.")
        ['Robots use sensors.', 'Sensors detect light.']
    """
    sentences = []
    for match in SENTENCE_PATTERN.findall(text):
        sentence = " ".join(match.split())
        if sentence:
            sentences.append(sentence)
    return sentences


def overlap_suffix(chunk: str, overlap: int) -> str:
    """Return the word-aligned tail of a chunk used to seed the next one.

    Takes the last `overlap` characters of the chunk and keeps only the text
    after the last space in that window, so the seed is the closing word of
    the chunk. A window with no interior space is used as-is.

    Args:
        chunk: The chunk that was just closed.
        overlap: Characters of trailing context to carry over.

    Returns:
        The overlap seed, possibly empty.

    Examples:
        >>> overlap_suffix("Robots use sensors.", 10)
        'sensors.'
        >>> overlap_suffix("The motor driver connects to pins four and five on the board.", 30)
        'board.'
    """
    if overlap <= 0:
        return ""
    if len(chunk) <= overlap:
        return chunk

    window = chunk[-overlap:]
    space = window.rfind(" ")
    if space > 0:
        return window[space + 1 :]
    return window.lstrip()


def chunk_text(
    text: str,
    max_chunk_size: int,
    overlap: int,
    min_length: int = 50,
) -> list[str]:
    """Split text into overlapping chunks bounded by `max_chunk_size`.

    Sentences are accumulated into a buffer. When the next sentence would push
    the buffer past the limit, the buffer is closed as a chunk and the next
    buffer is seeded with the overlap suffix of the closed chunk. A seed that
    would itself push the new buffer past the limit is dropped. A single
    sentence longer than the limit is never split and becomes an oversized
    chunk.

    Args:
        text: Text to chunk. Empty text yields no chunks.
        max_chunk_size: Chunk size budget in characters (> 0).
        overlap: Characters of trailing context carried into the next chunk.
        min_length: Chunks shorter than this are discarded as noise.

    Returns:
        Ordered list of chunk strings.

    Raises:
        ValueError: If `max_chunk_size` is not positive or `overlap` is negative.

    Examples:
        >>> chunk_text(
        ...     "Robots use sensors. Sensors detect light. Actuators move joints.",
        ...     max_chunk_size=40,
        ...     overlap=10,
        ...     min_length=10,
        ... )
        ['Robots use sensors.', 'sensors. Sensors detect light.', 'light. Actuators move joints.']
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be greater than 0")
    if overlap < 0:
        raise ValueError("overlap must be 0 or greater")

    chunks: list[str] = []
    buffer = ""

    for sentence in split_sentences(text):
        if buffer and len(buffer) + 1 + len(sentence) > max_chunk_size:
            chunks.append(buffer)
            seed = overlap_suffix(buffer, overlap)
            if seed and len(seed) + 1 + len(sentence) <= max_chunk_size:
                buffer = f"{seed} {sentence}"
            else:
                buffer = sentence
        elif buffer:
            buffer = f"{buffer} {sentence}"
        else:
            buffer = sentence

    if buffer:
        chunks.append(buffer)

    return [chunk for chunk in chunks if len(chunk) >= min_length]


class ChunkingService:
    """Service for chunking source text into retrievable segments.

    Wraps `chunk_text` with the configured size, overlap and minimum length so
    every ingestion path chunks the same way.
    """

    def __init__(self, config: KnowledgeBaseConfig):
        """Initialize chunking service with configuration.

        Args:
            config: Configuration object with chunk size limits.
        """
        self.config = config
        logger.info(
            "chunking_service_initialized",
            max_chunk_size=config.max_chunk_size,
            chunk_overlap=config.chunk_overlap,
            min_chunk_length=config.min_chunk_length,
        )

    def chunk(self, text: str, source: str | None = None) -> list[str]:
        """Chunk text using the configured limits.

        Args:
            text: Normalized source text.
            source: Source identifier, used only for logging.

        Returns:
            Ordered list of chunk strings.
        """
        chunks = chunk_text(
            text,
            max_chunk_size=self.config.max_chunk_size,
            overlap=self.config.chunk_overlap,
            min_length=self.config.min_chunk_length,
        )
        oversized = sum(1 for c in chunks if len(c) > self.config.max_chunk_size)

        logger.info(
            "chunking_completed",
            source=source,
            text_length=len(text),
            chunks_created=len(chunks),
            oversized_chunks=oversized,
        )
        return chunks
