"""Embedding service for generating text embeddings via OpenAI-compatible APIs."""

from openai import AsyncOpenAI, OpenAIError

from src.utils.clients import get_embedding_client
from src.utils.logging import get_logger

from .config import KnowledgeBaseConfig
from .errors import ExternalServiceError

logger = get_logger(__name__)


class EmbeddingService:
    """Service for generating text embeddings.

    This service supports multiple embedding providers (OpenAI, Ollama, OpenRouter)
    through OpenAI-compatible APIs. Batches are sent one request at a time so a
    large document never fans out into parallel calls against the provider.
    """

    def __init__(self, config: KnowledgeBaseConfig, client: AsyncOpenAI | None = None):
        """Initialize embedding service with configuration.

        Args:
            config: Configuration object with embedding provider settings.
            client: Optional pre-built client, mainly for tests.
        """
        self.config = config
        self.client = client or get_embedding_client(config)
        logger.info(
            "embedding_service_initialized",
            provider=config.embedding_provider,
            model=config.embedding_model,
            base_url=config.embedding_base_url,
        )

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text content to embed.

        Returns:
            Embedding vector as a list of floats.

        Raises:
            ExternalServiceError: If the embedding provider call fails.
        """
        try:
            response = await self.client.embeddings.create(
                input=text,
                model=self.config.embedding_model,
            )
        except OpenAIError as e:
            logger.exception(
                "embedding_failed",
                text_length=len(text),
                error_type=type(e).__name__,
            )
            raise ExternalServiceError(
                "embedding", str(e), getattr(e, "status_code", None)
            ) from e

        embedding = response.data[0].embedding
        logger.debug(
            "embedding_generated",
            text_length=len(text),
            embedding_dim=len(embedding),
        )
        return embedding

    async def embed_batch(
        self, texts: list[str], batch_size: int | None = None
    ) -> list[list[float]]:
        """Generate embeddings for multiple texts with batching.

        Each batch is a single request with a list input; batches run
        sequentially.

        Args:
            texts: List of text strings to embed.
            batch_size: Texts per request (default: config.embedding_batch_size).

        Returns:
            List of embedding vectors in the same order as input texts.

        Raises:
            ExternalServiceError: If any batch request fails.
        """
        batch_size = batch_size or self.config.embedding_batch_size
        logger.info(
            "batch_embedding_started",
            count=len(texts),
            batch_size=batch_size,
        )

        embeddings: list[list[float]] = []

        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            batch_num = i // batch_size + 1

            try:
                response = await self.client.embeddings.create(
                    input=batch,
                    model=self.config.embedding_model,
                )
            except OpenAIError as e:
                logger.exception(
                    "batch_embedding_failed",
                    batch_num=batch_num,
                    error_type=type(e).__name__,
                )
                raise ExternalServiceError(
                    "embedding", str(e), getattr(e, "status_code", None)
                ) from e

            # The API may return items out of order; index restores input order
            ordered = sorted(response.data, key=lambda item: item.index)
            embeddings.extend(item.embedding for item in ordered)

            logger.debug(
                "batch_completed",
                batch_num=batch_num,
                count=len(batch),
            )

        logger.info(
            "batch_embedding_completed",
            total_embeddings=len(embeddings),
        )
        return embeddings
