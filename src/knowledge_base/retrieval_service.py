"""Retrieval service: query embedding, nearest-neighbor lookup and context assembly."""

from src.utils.logging import get_logger

from .embedding_service import EmbeddingService
from .schemas import Chunk, Citation, RetrievalResult
from .vector_index import VectorIndex

logger = get_logger(__name__)

CONTEXT_HEADER = "\n\nRelevant context from uploaded documents and videos:\n"


def type_label(chunk: Chunk) -> str:
    """Human-readable label for a chunk's source type."""
    return "YouTube Video" if chunk.metadata.type == "youtube" else "Document"


def render_context(chunks: list[Chunk]) -> str:
    """Render ranked chunks into a single context block for the LLM prompt.

    Each chunk is rendered with its type label, title (falling back to the
    source id), URL when present, and content, in ranked order.

    Args:
        chunks: Retrieved chunks, most similar first.

    Returns:
        The context block, or an empty string when there are no chunks.

    Examples:
        >>> render_context([])
        ''
    """
    if not chunks:
        return ""

    parts = [CONTEXT_HEADER]
    for i, chunk in enumerate(chunks, 1):
        metadata = chunk.metadata
        parts.append(f"\n--- Context {i} ({type_label(chunk)}) ---\n")
        parts.append(f"Source: {metadata.title or metadata.source}\n")
        if metadata.url:
            parts.append(f"URL: {metadata.url}\n")
        parts.append(f"Content: {chunk.content}\n")
    return "".join(parts)


def build_citations(chunks: list[Chunk]) -> list[Citation]:
    """Surface each chunk's metadata as a citation, in ranked order."""
    return [
        Citation(
            type=chunk.metadata.type,
            source=chunk.metadata.source,
            title=chunk.metadata.title,
            url=chunk.metadata.url,
            chunk_index=chunk.metadata.chunk_index,
        )
        for chunk in chunks
    ]


class RetrievalService:
    """Turns a user query into ranked chunks plus a rendered context block.

    No re-ranking or deduplication is applied: several chunks from the same
    source may be returned together.
    """

    def __init__(self, index: VectorIndex, embedding_service: EmbeddingService):
        self.index = index
        self.embedding_service = embedding_service

    async def retrieve(self, query: str, top_k: int = 3) -> list[Chunk]:
        """Embed `query` and return the top_k most similar chunks.

        An empty index returns an empty list without calling the embedder.

        Args:
            query: User query text.
            top_k: Maximum number of chunks to return.

        Returns:
            Chunks ordered by descending cosine similarity.

        Raises:
            ExternalServiceError: If the query embedding call fails.
        """
        if len(self.index) == 0:
            logger.info("retrieval_skipped_empty_index", query_length=len(query))
            return []

        query_embedding = await self.embedding_service.embed_text(query)
        scored = self.index.search(query_embedding, top_k)

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            top_k=top_k,
            results=len(scored),
            sources=[s.chunk.source for s in scored],
        )
        return [s.chunk for s in scored]

    async def retrieve_with_context(self, query: str, top_k: int = 3) -> RetrievalResult:
        """Retrieve chunks and assemble the context block and citation list."""
        chunks = await self.retrieve(query, top_k)
        return RetrievalResult(
            query=query,
            chunks=chunks,
            context=render_context(chunks),
            citations=build_citations(chunks),
        )
