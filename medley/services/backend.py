# medley/services/backend.py
"""
Capability contract the consultation engine requires from a generative backend.

The engine never talks to a model SDK directly. Anything implementing
`ConversationBackend` can drive a consultation: the OpenAI service, a local
model, or a scripted fake in tests.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional


class ConversationBackend(ABC):
    """Opaque text generation capability"""

    @abstractmethod
    async def generate(self, prompt: str, *, system_prompt: Optional[str] = None) -> str:
        """
        Single-shot completion.

        Raises:
            ServiceError: If generation fails
        """

    @abstractmethod
    def generate_stream(self, prompt: str, *, system_prompt: Optional[str] = None) -> AsyncIterator[str]:
        """
        Incremental completion.

        Each yielded value is the full text generated so far (a snapshot),
        not a delta.
        """

    @abstractmethod
    async def categorize(self, prompt: str) -> str:
        """
        Return the option id(s) chosen for a categorization prompt.

        The reply is free text from the model; callers validate it.
        """

    async def prewarm(self) -> None:
        """Best-effort warmup hint. Default is a no-op."""
        return None
