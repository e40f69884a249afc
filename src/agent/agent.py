"""Robot-building chat assistant.

Defines the Pydantic AI agent with its system prompt, and the ChatOrchestrator
that combines retrieved context and conversation history into one prompt.
"""

from typing import Literal

from openai import OpenAIError
from pydantic import BaseModel, Field
from pydantic_ai import Agent, RunContext
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models import Model

from src.agent.config import get_history_char_limit, get_max_tokens, get_model
from src.agent.deps import ChatDeps
from src.knowledge_base.errors import ExternalServiceError, InputValidationError
from src.knowledge_base.formatting import truncate
from src.knowledge_base.pipeline import KnowledgeBase
from src.knowledge_base.schemas import Citation
from src.utils.logging import get_logger

logger = get_logger(__name__)

# ==============================================================================
# System Prompt
# ==============================================================================

AGENT_SYSTEM_PROMPT = """You are a knowledgeable robot building assistant. You specialize in helping people with technical questions about building robots, including:

- Hardware components (sensors, actuators, microcontrollers, etc.)
- Software programming (Arduino, Raspberry Pi, ROS, etc.)
- Mechanical design and 3D printing
- Electronics and circuit design
- Assembly and troubleshooting
- Best practices and safety considerations

Provide clear, practical, and actionable advice. If you're unsure about something, suggest resources or recommend consulting with specialists. Focus on being helpful while prioritizing safety in all recommendations."""

CONTEXT_INSTRUCTIONS = """Use the provided context to enhance your answer when relevant. If the context contains information that directly relates to the user's question, incorporate it into your response. When you reference information from the context, mention the source (e.g., "According to the document [title]" or "As mentioned in the YouTube video [title]"). Always prioritize accuracy and cite when you're using information from the provided context."""

HISTORY_INSTRUCTIONS = """Consider the conversation history to provide contextually relevant responses. You can reference previous questions or build upon earlier discussions, but focus primarily on the current message."""


# ==============================================================================
# Agent Definition
# ==============================================================================


def create_agent(model: Model | None = None) -> Agent[ChatDeps, str]:
    """Build the chat agent.

    Citation and history instructions are added per request through dynamic
    system prompts driven by ChatDeps.

    Args:
        model: LLM model; defaults to get_model().

    Returns:
        Configured Agent.
    """
    agent = Agent(
        model or get_model(),
        system_prompt=AGENT_SYSTEM_PROMPT,
        deps_type=ChatDeps,
        retries=2,
    )

    @agent.system_prompt
    def context_instructions(ctx: RunContext[ChatDeps]) -> str:
        return CONTEXT_INSTRUCTIONS if ctx.deps.has_context else ""

    @agent.system_prompt
    def history_instructions(ctx: RunContext[ChatDeps]) -> str:
        return HISTORY_INSTRUCTIONS if ctx.deps.has_history else ""

    return agent


# ==============================================================================
# Chat Orchestration
# ==============================================================================


class ChatMessage(BaseModel):
    """One earlier turn of the conversation."""

    role: Literal["user", "assistant"]
    content: str


class ChatReply(BaseModel):
    """Assistant reply plus the sources that informed it."""

    response: str
    has_context: bool
    context_sources: list[Citation] = Field(default_factory=list)


def render_history(history: list[ChatMessage], char_limit: int) -> str:
    """Render recent turns as "User:/Assistant:" lines, each truncated.

    Examples:
        >>> render_history([ChatMessage(role="user", content="Hi")], 300)
        '\\n\\nRecent conversation history:\\nUser: Hi\\n\\nCurrent message:\\n'
    """
    if not history:
        return ""

    lines = ["\n\nRecent conversation history:\n"]
    for msg in history:
        speaker = "User" if msg.role == "user" else "Assistant"
        lines.append(f"{speaker}: {truncate(msg.content, char_limit)}\n")
    lines.append("\nCurrent message:\n")
    return "".join(lines)


class ChatOrchestrator:
    """Answers chat messages using retrieved context and recent history.

    Retrieval always runs before the LLM call; an empty index simply yields
    an answer without context.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        agent: Agent[ChatDeps, str] | None = None,
        max_tokens: int | None = None,
        history_char_limit: int | None = None,
    ):
        self.knowledge_base = knowledge_base
        self.agent = agent or create_agent()
        self.max_tokens = max_tokens or get_max_tokens()
        self.history_char_limit = history_char_limit or get_history_char_limit()

    def build_prompt(self, message: str, history: list[ChatMessage], context: str) -> str:
        """Assemble the user prompt: history block, current message, context block."""
        return render_history(history, self.history_char_limit) + message + context

    async def complete(self, prompt: str, deps: ChatDeps) -> str:
        """Run the LLM completion.

        Raises:
            ExternalServiceError: If the model call fails.
        """
        try:
            result = await self.agent.run(
                prompt,
                deps=deps,
                model_settings={"max_tokens": self.max_tokens},
            )
        except (ModelHTTPError, UnexpectedModelBehavior, OpenAIError) as e:
            logger.exception("llm_completion_failed", error_type=type(e).__name__)
            raise ExternalServiceError(
                "llm", str(e), getattr(e, "status_code", None)
            ) from e
        return result.output

    async def chat(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
    ) -> ChatReply:
        """Answer one chat message.

        Args:
            message: The user's current message.
            history: Recent turns, oldest first.

        Returns:
            ChatReply with the response text and citation list.

        Raises:
            InputValidationError: If the message is empty.
            ExternalServiceError: If retrieval embedding or the LLM call fails.
        """
        if not message or not message.strip():
            raise InputValidationError("Message is required and must be a string")
        history = history or []

        retrieval = await self.knowledge_base.retrieve(message)
        prompt = self.build_prompt(message, history, retrieval.context)
        deps = ChatDeps(has_context=retrieval.has_context, has_history=bool(history))

        logger.info(
            "chat_started",
            message_length=len(message),
            history_messages=len(history),
            context_chunks=len(retrieval.chunks),
        )
        response = await self.complete(prompt, deps)

        logger.info("chat_completed", response_length=len(response))
        return ChatReply(
            response=response,
            has_context=retrieval.has_context,
            context_sources=retrieval.citations,
        )
