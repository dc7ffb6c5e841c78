"""Build the prompts sent to the generative backends."""

from __future__ import annotations

from collections.abc import Sequence

from devnotes.inference.engine import ChatMessage, Role

DEVOPS_PREAMBLE = (
    "You are a DevOps expert assistant. Provide detailed, practical advice for DevOps "
    "questions. Keep responses concise but informative."
)

_SHORT_PREAMBLE = (
    "You are a helpful DevOps assistant. Answer questions about Docker, Kubernetes, "
    "CI/CD, monitoring, security, and other DevOps topics. Keep responses concise and "
    "practical."
)

_SPEAKERS = {
    Role.SYSTEM: "System",
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
}

_QUESTION_MARKER = "Question: "
_ANSWER_MARKER = "\n\nAnswer:"


def format_conversation(messages: Sequence[ChatMessage]) -> str:
    """Serialize a conversation as ``Speaker: text`` lines."""
    return "\n".join(f"{_SPEAKERS[msg.role]}: {msg.text}" for msg in messages)


def build_chat_prompt(messages: Sequence[ChatMessage]) -> str:
    """Full-conversation prompt for completion-style remote servers."""
    return f"{DEVOPS_PREAMBLE}\n\n{format_conversation(messages)}\n\nAssistant:"


def build_question_prompt(question: str) -> str:
    """Single-question prompt sized for a small in-process model."""
    return f"{_SHORT_PREAMBLE}\n\n{_QUESTION_MARKER}{question}{_ANSWER_MARKER}"


def extract_question(prompt: str) -> str:
    """Recover the question from a prompt built by ``build_question_prompt``.

    Any other text is returned unchanged.
    """
    start = prompt.find(_QUESTION_MARKER)
    if start == -1:
        return prompt
    start += len(_QUESTION_MARKER)
    end = prompt.find(_ANSWER_MARKER, start)
    return prompt[start:end] if end != -1 else prompt[start:]


def build_review_prompt(code: str, context: str = "") -> str:
    """Construct the code-review prompt."""
    extra = f"Additional context: {context}" if context else ""
    return f"""\
You are an expert DevOps engineer and code reviewer. Please review the following code and provide detailed feedback focusing on:

1. **Code Quality**: Best practices, readability, maintainability
2. **Security**: Potential vulnerabilities, security best practices
3. **Performance**: Optimization opportunities, resource usage
4. **DevOps Best Practices**: Containerization, CI/CD considerations, infrastructure
5. **Error Handling**: Robustness, logging, monitoring

Code to review:
```
{code}
```

{extra}

Please provide a comprehensive review with specific recommendations for improvement."""
