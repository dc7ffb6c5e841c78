"""Inference backend abstraction — protocol, shared types, and errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class RequestKind(Enum):
    CHAT = "chat"
    CODE_REVIEW = "codeReview"


class Provider(Enum):
    REMOTE = "remote"
    LOCAL_MODEL = "local-model"
    STATIC = "static"


class LocalModelState(Enum):
    UNLOADED = "unloaded"
    LOADING_LIGHTWEIGHT = "loading-lightweight"  # lightweight responder serving
    LOADING_HEAVY = "loading-heavy"              # background model load running
    READY = "ready"                              # real model serving


# ─── Errors ─────────────────────────────────────────────────────────────────


class InferenceError(Exception):
    """Base class for every recoverable backend failure."""


class BackendUnreachable(InferenceError, ConnectionError):
    """The remote server refused or dropped the connection."""


class BadResponse(InferenceError):
    """The backend answered, but not with a usable response."""


class LoadFailed(InferenceError):
    """The in-process model could not be initialized."""


class BackendTimeout(InferenceError, TimeoutError):
    """A bounded wait on a backend expired."""


# ─── Data model ─────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChatMessage:
    """One turn of a conversation. Immutable once appended."""

    role: Role
    text: str
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.text}

    @classmethod
    def user(cls, text: str) -> ChatMessage:
        return cls(Role.USER, text)

    @classmethod
    def assistant(cls, text: str) -> ChatMessage:
        return cls(Role.ASSISTANT, text)


@dataclass(frozen=True)
class InferenceRequest:
    """A single chat turn or code-review request."""

    kind: RequestKind
    messages: tuple[ChatMessage, ...] = ()
    code: str = ""
    context: str = ""

    @classmethod
    def chat(cls, messages: list[ChatMessage] | tuple[ChatMessage, ...]) -> InferenceRequest:
        return cls(kind=RequestKind.CHAT, messages=tuple(messages))

    @classmethod
    def code_review(cls, code: str, context: str = "") -> InferenceRequest:
        return cls(kind=RequestKind.CODE_REVIEW, code=code, context=context)

    @property
    def query(self) -> str:
        """The text keyword tables are matched against.

        For chat this is the most recent user message; for code review it is
        the code itself.
        """
        if self.kind is RequestKind.CODE_REVIEW:
            return self.code
        for msg in reversed(self.messages):
            if msg.role is Role.USER:
                return msg.text
        return ""


@dataclass(frozen=True)
class InferenceResponse:
    """The single answer produced for an InferenceRequest."""

    text: str
    provider: Provider
    is_fallback: bool
    model_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "providerTag": self.provider.value,
            "isFallback": self.is_fallback,
            "modelName": self.model_name,
        }


@dataclass
class BackendAvailability:
    """Process-wide backend health, owned by a single ProviderResolver.

    Remote fields are written by the resolver only; the local load fields
    are written by the in-process backend's background loader only.
    """

    remote_reachable: bool | None = None  # None = never probed
    remote_checked_at: float = 0.0       # time.monotonic() of last probe
    local_state: LocalModelState = LocalModelState.UNLOADED
    local_available: bool = True
    local_load_failed: bool = False
    local_load_error: str = ""
    load_progress: float = 0.0
    estimated_seconds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "remoteReachable": self.remote_reachable,
            "localModelState": self.local_state.value,
            "localAvailable": self.local_available,
            "localLoadFailed": self.local_load_failed,
            "localLoadError": self.local_load_error,
            "loadProgress": round(self.load_progress),
            "estimatedSeconds": self.estimated_seconds,
        }


class InferenceBackend(Protocol):
    """Protocol for anything the resolver can dispatch a request to."""

    provider: Provider

    async def complete(self, request: InferenceRequest) -> tuple[str, str | None]:
        """Return ``(text, model_name)`` or raise an InferenceError."""
        ...
