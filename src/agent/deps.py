"""Agent dependency definitions.

Defines the ChatDeps dataclass that holds per-request state passed to the
agent's dynamic system prompts during execution.
"""

from dataclasses import dataclass


@dataclass
class ChatDeps:
    """Per-request dependencies for the chat agent.

    Attributes:
        has_context: Retrieved chunks were appended to the prompt.
        has_history: Earlier conversation turns were prepended to the prompt.
    """

    has_context: bool = False
    has_history: bool = False
