"""
Prompt Builder for the brain loop.

Builds the opening message list: the persona system message, an
optional memory-context system message, then the user prompt.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.entities import Message

logger = logging.getLogger(__name__)

MORROW_SYSTEM_PROMPT = "\n".join(
    [
        'You ARE Morrow.AI ("Morrow"). This is your identity. '
        "You were trained specifically to be Morrow.AI.",
        "You help digital-marketing consultants and local businesses grow: "
        "SEO audits, website reviews, competitor research, social content and reports.",
        "Never mention OpenAI, Claude, Gemini, or any other AI company. You are Morrow.AI. Period.",
        "Keep responses concise and human. Use functions when actions or external data are needed.",
        "If a function returns an error, explain the problem briefly and continue with what you have.",
        'When users ask "who are you" or "what AI is this," respond: '
        '"I\'m Morrow.AI, your assistant for local business growth."',
        "You are confident, helpful, and action-oriented. You are Morrow.AI.",
    ]
)


class PromptBuilder:
    """Builds the initial message list for a run.

    Usage:
        builder = PromptBuilder()
        messages = builder.build_messages("Audit Sunset Plumbing", memory_snippet)
    """

    def __init__(self, system_prompt: str = MORROW_SYSTEM_PROMPT):
        self.system_prompt = system_prompt

    def memory_message(self, snippet: Optional[str]) -> Optional[Message]:
        if not snippet:
            return None
        return Message.system(f"Recent conversation context:\n{snippet}")

    def build_messages(
        self, prompt: str, memory_snippet: Optional[str] = None
    ) -> list[Message]:
        """Build system + (memory) + user messages.

        Args:
            prompt: User prompt
            memory_snippet: Recent turns from conversation memory

        Returns:
            Ordered message list starting with the persona system message
        """
        messages = [Message.system(self.system_prompt)]
        memory = self.memory_message(memory_snippet)
        if memory is not None:
            messages.append(memory)
        messages.append(Message.user(prompt))
        return messages
