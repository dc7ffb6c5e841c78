"""Assistant session — the API the UI layer talks to."""

from __future__ import annotations

import logging

from devnotes.history import HistoryStore
from devnotes.inference.engine import (
    BackendAvailability,
    ChatMessage,
    InferenceRequest,
    InferenceResponse,
)
from devnotes.resolver import ProviderResolver

logger = logging.getLogger(__name__)


class AssistantSession:
    """Conversation state on top of a ProviderResolver.

    ``ask()`` keeps a visible history where only the newest request's answer
    is ever appended: when the user sends a new question before the previous
    one resolves, the older question and its answer are both dropped.
    """

    def __init__(self, resolver: ProviderResolver, history: HistoryStore | None = None) -> None:
        self.resolver = resolver
        self.history = history
        self._messages: list[ChatMessage] = []
        self._seq = 0

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    async def chat(self, messages: list[ChatMessage]) -> InferenceResponse:
        return await self.resolver.resolve(InferenceRequest.chat(messages))

    async def code_review(self, code: str, context: str = "") -> InferenceResponse:
        return await self.resolver.resolve(InferenceRequest.code_review(code, context))

    def get_status(self) -> BackendAvailability:
        return self.resolver.status()

    async def refresh(self) -> BackendAvailability:
        await self.resolver.refresh()
        return self.get_status()

    async def ask(self, text: str) -> InferenceResponse | None:
        """Send a user turn. Returns ``None`` if a newer ask superseded this one."""
        self._seq += 1
        seq = self._seq
        question = ChatMessage.user(text)
        self._messages.append(question)
        response = await self.chat(list(self._messages))

        if seq != self._seq:
            logger.debug("Dropping stale response for request %d (latest is %d)", seq, self._seq)
            # An unanswered turn would leave two user messages in a row
            self._messages = [msg for msg in self._messages if msg is not question]
            return None

        self._messages.append(ChatMessage.assistant(response.text))
        if self.history is not None:
            try:
                self.history.record(text, response)
            except OSError as exc:
                logger.warning("Could not save question history: %s", exc)
        return response

    def clear(self) -> None:
        self._messages.clear()
        self._seq += 1
