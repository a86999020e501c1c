"""Assistant: prompt composition and client-side conversation state."""

from inkwell.assistant.conversation import ConversationManager
from inkwell.assistant.prompts import DEFAULT_MODE, MODE_INSTRUCTIONS, compose_prompt

__all__ = ["ConversationManager", "DEFAULT_MODE", "MODE_INSTRUCTIONS", "compose_prompt"]
