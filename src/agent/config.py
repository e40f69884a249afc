"""Agent configuration utilities.

Provides functions for loading LLM configuration and chat settings from
environment variables.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

# Check if we're in production
is_production = os.getenv("ENVIRONMENT") == "production"

if not is_production:
    # Development: prioritize .env file
    project_root = Path(__file__).resolve().parent.parent.parent
    dotenv_path = project_root / ".env"
    load_dotenv(dotenv_path, override=True)
else:
    # Production: use cloud platform env vars only
    load_dotenv()


def get_model() -> OpenAIChatModel:
    """Get the configured LLM model for the chat assistant.

    Reads configuration from environment variables:
    - LLM_CHOICE: Model name (default: gpt-4o-mini)
    - LLM_BASE_URL: API base URL (default: https://api.openai.com/v1)
    - LLM_API_KEY: API key (falls back to OPENAI_API_KEY, then "ollama" for local testing)

    Returns:
        OpenAIChatModel configured with environment settings.

    Examples:
        >>> model = get_model()
        >>> # Uses gpt-4o-mini by default
    """
    llm = os.getenv("LLM_CHOICE") or "gpt-4o-mini"
    base_url = os.getenv("LLM_BASE_URL") or "https://api.openai.com/v1"
    api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or "ollama"

    return OpenAIChatModel(llm, provider=OpenAIProvider(base_url=base_url, api_key=api_key))


def get_max_tokens() -> int:
    """Get the completion token budget per chat reply.

    Reads LLM_MAX_TOKENS from environment (default: 1000).

    Returns:
        Maximum number of tokens the model may generate.
    """
    return int(os.getenv("LLM_MAX_TOKENS", "1000"))


def get_history_char_limit() -> int:
    """Get the per-message character limit for conversation history.

    Reads HISTORY_MESSAGE_CHARS from environment (default: 300). Longer
    history messages are truncated with "..." before entering the prompt.

    Returns:
        Maximum characters kept from each history message.

    Examples:
        >>> limit = get_history_char_limit()
        >>> # Returns 300 by default
    """
    return int(os.getenv("HISTORY_MESSAGE_CHARS", "300"))
