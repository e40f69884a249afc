"""In-memory vector index with exact cosine-similarity search.

The index is a plain list of chunks scanned linearly on every query. It is
sized for demo-scale corpora (hundreds to low thousands of chunks) and does
not survive a process restart.
"""

from collections import Counter
from collections.abc import Sequence

import numpy as np

from src.utils.logging import get_logger

from .errors import EmbeddingDimensionError
from .schemas import Chunk, ScoredChunk

logger = get_logger(__name__)


def cosine_similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine similarity of every row of `matrix` against `query`.

    Rows or queries with zero magnitude score 0.0 instead of NaN.

    Args:
        matrix: Array of shape (N, D).
        query: Array of shape (D,).

    Returns:
        Array of shape (N,) with values in [-1, 1].
    """
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denominators = row_norms * query_norm
    dots = matrix @ query

    similarities = np.zeros(len(matrix), dtype=np.float64)
    nonzero = denominators > 0
    similarities[nonzero] = dots[nonzero] / denominators[nonzero]
    return similarities


class VectorIndex:
    """Append-only collection of chunks answering k-nearest-neighbor queries.

    The dimensionality is fixed by the first inserted chunk and reset by
    `clear()`. Duplicate ids are accepted and coexist; a warning is logged.
    """

    def __init__(self) -> None:
        self._chunks: list[Chunk] = []
        self._id_counts: Counter[str] = Counter()
        self._dimension: int | None = None

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def insert(self, chunk: Chunk) -> None:
        """Append one chunk.

        Raises:
            EmbeddingDimensionError: If the embedding length differs from the
                dimensionality of chunks already in the index.
        """
        self._check_dimension(len(chunk.embedding))
        if self._id_counts[chunk.id]:
            logger.warning("duplicate_chunk_id", chunk_id=chunk.id, source=chunk.source)

        if self._dimension is None:
            self._dimension = len(chunk.embedding)
        self._chunks.append(chunk)
        self._id_counts[chunk.id] += 1

    def insert_many(self, chunks: Sequence[Chunk]) -> None:
        """Append chunks all-or-nothing.

        Every embedding is validated before the first append, so a bad vector
        never leaves part of a source in the index.
        """
        if not chunks:
            return
        dimension = self._dimension or len(chunks[0].embedding)
        for chunk in chunks:
            if len(chunk.embedding) != dimension:
                raise EmbeddingDimensionError(dimension, len(chunk.embedding))

        for chunk in chunks:
            self.insert(chunk)

        logger.info(
            "chunks_inserted",
            source=chunks[0].source,
            count=len(chunks),
            total_chunks=len(self._chunks),
        )

    def search(self, query_vector: Sequence[float], k: int) -> list[ScoredChunk]:
        """Rank stored chunks by cosine similarity to `query_vector`.

        Ties keep insertion order (earlier-inserted first).

        Args:
            query_vector: Query embedding.
            k: Maximum number of results.

        Returns:
            Up to k scored chunks, most similar first. Empty when the index
            is empty or k <= 0.

        Raises:
            EmbeddingDimensionError: If the query length differs from the
                index dimensionality.
        """
        if not self._chunks or k <= 0:
            return []
        self._check_dimension(len(query_vector))

        matrix = np.array([chunk.embedding for chunk in self._chunks], dtype=np.float64)
        query = np.asarray(query_vector, dtype=np.float64)
        similarities = cosine_similarities(matrix, query)

        # Stable sort on negated scores gives descending order with ties by position
        order = np.argsort(-similarities, kind="stable")[:k]
        results = [
            ScoredChunk(chunk=self._chunks[i], similarity=float(similarities[i]))
            for i in order
        ]

        logger.debug(
            "vector_index_queried",
            k=k,
            candidates=len(self._chunks),
            returned=len(results),
            top_similarity=results[0].similarity if results else None,
        )
        return results

    def query(self, query_vector: Sequence[float], k: int) -> list[Chunk]:
        """Return the top k chunks for `query_vector`, most similar first."""
        return [scored.chunk for scored in self.search(query_vector, k)]

    def delete(self, chunk_id: str) -> bool:
        """Remove the first chunk whose id matches.

        Returns:
            True if a chunk was removed, False if no chunk had that id.
        """
        if self._id_counts[chunk_id]:
            index = next(i for i, chunk in enumerate(self._chunks) if chunk.id == chunk_id)
            del self._chunks[index]
            self._id_counts[chunk_id] -= 1
            if not self._id_counts[chunk_id]:
                del self._id_counts[chunk_id]
            logger.info("chunk_deleted", chunk_id=chunk_id)
            return True
        logger.info("chunk_delete_missed", chunk_id=chunk_id)
        return False

    def clear(self) -> int:
        """Remove every chunk and reset the dimensionality.

        Returns:
            Number of chunks removed.
        """
        removed = len(self._chunks)
        self._chunks = []
        self._id_counts.clear()
        self._dimension = None
        logger.info("vector_index_cleared", removed=removed)
        return removed

    def list_all(self) -> list[Chunk]:
        """Return all chunks in insertion order."""
        return list(self._chunks)

    def count_by_source(self, source: str) -> int:
        """Count chunks whose metadata source contains `source`."""
        return sum(1 for chunk in self._chunks if source in chunk.metadata.source)

    def _check_dimension(self, length: int) -> None:
        if self._dimension is not None and length != self._dimension:
            raise EmbeddingDimensionError(self._dimension, length)
