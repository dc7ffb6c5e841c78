"""Headless (non-interactive) mode — single-shot CLI execution.

Usage: devnotes "how do I shrink my docker image?" | less

Answer text goes to stdout (pipeable), provider tags and diagnostics to stderr.
"""

from __future__ import annotations

import sys

from devnotes.inference.engine import BackendAvailability, InferenceResponse
from devnotes.news import NewsClient, filter_articles
from devnotes.session import AssistantSession


def format_provider_tag(response: InferenceResponse) -> str:
    parts = [response.provider.value]
    if response.model_name:
        parts.append(response.model_name)
    if response.is_fallback:
        parts.append("fallback")
    return f"[provider: {', '.join(parts)}]"


def format_status(status: BackendAvailability) -> str:
    """Render backend availability as plain text lines."""
    if status.remote_reachable is None:
        remote = "not probed"
    else:
        remote = "reachable" if status.remote_reachable else "unreachable"
    lines = [
        "Backend Status",
        f"  Remote: {remote}",
        f"  Local model: {status.local_state.value}",
    ]
    if not status.local_available:
        lines.append("  Local model disabled for this session after a failure")
    if status.load_progress:
        eta = f", ~{status.estimated_seconds}s left" if status.estimated_seconds else ""
        lines.append(f"  Load progress: {status.load_progress:.0f}%{eta}")
    if status.local_load_failed:
        lines.append(f"  Load failed: {status.local_load_error}")
    return "\n".join(lines)


async def run_headless(session: AssistantSession, prompt: str) -> int:
    """Ask one question, printing the answer to stdout.

    Returns:
        Exit code (0 = answered, 1 = empty prompt).
    """
    if not prompt.strip():
        _err("[error] empty prompt")
        return 1
    response = await session.ask(prompt)
    if response is None:
        _err("[error] request superseded")
        return 1
    print(response.text, flush=True)
    _err(format_provider_tag(response))
    return 0


async def run_review(session: AssistantSession, code: str, context: str = "") -> int:
    """Review one block of code, printing the review to stdout."""
    if not code.strip():
        _err("[error] nothing to review")
        return 1
    response = await session.code_review(code, context)
    print(response.text, flush=True)
    _err(format_provider_tag(response))
    return 0


async def run_news(client: NewsClient, category: str = "all", search: str = "") -> int:
    """Print headlines, one article per block."""
    articles, is_fallback = await client.fetch()
    if is_fallback:
        _err("[news: simulated feed]")
    for article in filter_articles(articles, category, search):
        print(f"{article.title} ({article.source})", flush=True)
        print(f"  {article.description}", flush=True)
        if article.url and article.url != "#":
            print(f"  {article.url}", flush=True)
    return 0


def _err(msg: str) -> None:
    """Print a message to stderr."""
    print(msg, file=sys.stderr, flush=True)
