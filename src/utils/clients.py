"""Client initialization utilities.

Provides functions for initializing the OpenAI-compatible clients used by
the embedding, transcription and speech services.
"""

from openai import AsyncOpenAI

from src.knowledge_base.config import KnowledgeBaseConfig


def get_embedding_client(config: KnowledgeBaseConfig) -> AsyncOpenAI:
    """Build the AsyncOpenAI client used for embeddings.

    Ollama exposes an OpenAI-compatible endpoint but ignores the API key, so a
    placeholder key is sent for that provider.

    Args:
        config: Knowledge base configuration with embedding provider settings.

    Returns:
        Configured AsyncOpenAI client instance.

    Examples:
        >>> client = get_embedding_client(get_config())
    """
    api_key = "ollama" if config.embedding_provider == "ollama" else config.embedding_api_key

    return AsyncOpenAI(
        base_url=config.embedding_base_url,
        api_key=api_key,
        timeout=config.request_timeout_seconds,
    )


def get_openai_client(config: KnowledgeBaseConfig) -> AsyncOpenAI:
    """Build the AsyncOpenAI client used for audio transcription and speech.

    Args:
        config: Knowledge base configuration with the OpenAI API key.

    Returns:
        Configured AsyncOpenAI client instance.
    """
    return AsyncOpenAI(
        api_key=config.openai_api_key,
        timeout=config.request_timeout_seconds,
    )
