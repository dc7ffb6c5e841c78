"""In-process small-model backend using llama-cpp-python.

Serves answers from the lightweight responder immediately, while a
background task downloads and loads a small GGUF model. Once the model is
ready it silently takes over; if loading fails the backend stays on the
lightweight responder until ``reload()`` is called.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from devnotes.config import GenerationConfig, LocalConfig
from devnotes.inference.engine import (
    BackendAvailability,
    InferenceRequest,
    LoadFailed,
    LocalModelState,
    Provider,
    RequestKind,
)
from devnotes.inference.lightweight import LightweightResponder
from devnotes.inference.prompts import build_question_prompt, build_review_prompt
from devnotes.inference.static import review_code

logger = logging.getLogger(__name__)

# Rough characters-per-token ratio used to bound output length
_CHARS_PER_TOKEN = 4


def clean_generation(prompt: str, text: str, max_chars: int) -> str:
    """Strip a verbatim prompt echo, trim whitespace, and bound the length."""
    if text.startswith(prompt):
        text = text[len(prompt):]
    text = text.strip()
    if len(text) > max_chars:
        text = text[:max_chars].rstrip()
    return text


async def run_detached(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking call on a daemon thread and await its result.

    Unlike ``asyncio.to_thread`` the worker is not part of the loop's
    default executor, so ``asyncio.run`` and interpreter exit never wait
    for a download or model load that is still in progress.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _settle(result: Any, exc: Exception | None) -> None:
        if future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(result)

    def _worker() -> None:
        try:
            result, exc = func(*args, **kwargs), None
        except Exception as e:
            result, exc = None, e
        try:
            loop.call_soon_threadsafe(_settle, result, exc)
        except RuntimeError:
            # Event loop already closed; nobody is waiting for the result
            logger.debug("Discarding result of %s: event loop closed", getattr(func, "__name__", func))

    threading.Thread(target=_worker, name="local-model-load", daemon=True).start()
    return await future


class LocalModelBackend:
    """Two-stage local text generation: lightweight responder, then llama.cpp."""

    provider = Provider.LOCAL_MODEL

    def __init__(
        self,
        config: LocalConfig,
        generation: GenerationConfig,
        availability: BackendAvailability | None = None,
        loader: Callable[[], Any] | None = None,
        responder: LightweightResponder | None = None,
        auto_load: bool = True,
    ) -> None:
        self.config = config
        self.generation = generation
        self.availability = availability or BackendAvailability()
        self.responder = responder or LightweightResponder()
        # False = generate() never starts the heavy load; only ensure_started() does
        self.auto_load = auto_load
        self._loader = loader
        self._llm: Any = None
        self._task: asyncio.Task | None = None
        self._started_at: float | None = None
        if config.model_path:
            self.model_name = Path(config.model_path).name
        else:
            self.model_name = config.hf_file

    @property
    def state(self) -> LocalModelState:
        return self.availability.local_state

    @property
    def loading(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── lifecycle ────────────────────────────────────────────────────

    def ensure_started(self) -> None:
        """Make the lightweight responder available and kick off the model load.

        Must be called from a running event loop. Idempotent.
        """
        if self._task is not None:
            return
        self.availability.local_state = LocalModelState.LOADING_LIGHTWEIGHT
        logger.info("Using lightweight responder while %s loads", self.model_name)
        self._start_background_load()

    def _start_background_load(self) -> None:
        if self.loading:
            return
        self._task = asyncio.create_task(self._background_load(), name="local-model-load")

    async def reload(self) -> None:
        """Retry a failed model load. Only explicit user action should call this."""
        if self._task is None:
            self.ensure_started()
            return
        if not self.availability.local_load_failed or self.loading:
            return
        logger.info("Retrying load of %s", self.model_name)
        self.availability.local_load_failed = False
        self.availability.local_load_error = ""
        self._start_background_load()

    async def wait_loaded(self) -> bool:
        """Wait for any in-flight background load. Returns True if the model is ready."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.state is LocalModelState.READY

    async def _background_load(self) -> None:
        avail = self.availability
        avail.local_state = LocalModelState.LOADING_HEAVY
        avail.load_progress = 0.0
        avail.estimated_seconds = 0
        self._started_at = time.monotonic()
        try:
            llm = await asyncio.wait_for(self._acquire(), timeout=self.config.load_timeout)
        except asyncio.TimeoutError:
            self._mark_failed(
                LoadFailed(f"Model load timed out after {self.config.load_timeout:.0f}s")
            )
            return
        except LoadFailed as exc:
            self._mark_failed(exc)
            return
        except Exception as exc:  # download and llama.cpp errors are not typed
            self._mark_failed(LoadFailed(f"{type(exc).__name__}: {exc}"))
            return

        self._llm = llm
        avail.load_progress = 100.0
        avail.estimated_seconds = 0
        avail.local_state = LocalModelState.READY
        logger.info(
            "Local model %s ready after %.1fs",
            self.model_name, time.monotonic() - self._started_at,
        )

    def _mark_failed(self, exc: LoadFailed) -> None:
        logger.warning("Local model load failed, staying on lightweight responder: %s", exc)
        avail = self.availability
        avail.local_state = LocalModelState.LOADING_LIGHTWEIGHT
        avail.local_load_failed = True
        avail.local_load_error = str(exc)
        avail.load_progress = 0.0
        avail.estimated_seconds = 0

    async def _acquire(self) -> Any:
        """Obtain a loaded model object exposing ``create_completion``."""
        if self._loader is not None:
            self._set_progress(15.0)
            llm = await run_detached(self._loader)
            self._set_progress(90.0)
            return llm

        self._set_progress(5.0)
        try:
            from llama_cpp import Llama
        except ImportError as exc:
            raise LoadFailed("llama-cpp-python is not installed") from exc
        self._set_progress(10.0)

        model_path = self.config.model_path
        if not model_path:
            self._set_progress(15.0)
            model_path = await run_detached(self._download)
        elif not Path(model_path).exists():
            raise LoadFailed(f"Model file not found: {model_path}")
        self._set_progress(50.0)

        llm = await run_detached(
            Llama,
            model_path=model_path,
            n_ctx=self.config.n_ctx,
            n_threads=self.config.n_threads or os.cpu_count() or 4,
            verbose=False,
        )
        self._set_progress(90.0)
        return llm

    def _download(self) -> str:
        from huggingface_hub import hf_hub_download

        model_dir = Path.home() / ".local" / "share" / "devnotes" / "models"
        model_dir.mkdir(parents=True, exist_ok=True)
        target = model_dir / self.config.hf_file
        if target.exists():
            return str(target)
        logger.info("Downloading %s from %s", self.config.hf_file, self.config.hf_repo)
        return hf_hub_download(
            repo_id=self.config.hf_repo,
            filename=self.config.hf_file,
            local_dir=str(model_dir),
        )

    def _set_progress(self, percent: float) -> None:
        avail = self.availability
        avail.load_progress = percent
        if self._started_at is not None and percent > 10:
            elapsed = time.monotonic() - self._started_at
            total = elapsed / (percent / 100.0)
            avail.estimated_seconds = max(0, round(total - elapsed))

    # ── generation ───────────────────────────────────────────────────

    async def generate(
        self, prompt: str, max_tokens: int | None = None, stand_in: str | None = None,
    ) -> tuple[str, str]:
        """Return ``(text, model_name)``. Never waits on the background load.

        ``stand_in`` replaces the lightweight responder's answer when the
        real model is not serving.
        """
        if self.auto_load:
            self.ensure_started()
        elif self.state is LocalModelState.UNLOADED:
            self.availability.local_state = LocalModelState.LOADING_LIGHTWEIGHT
        max_tokens = max_tokens or self.generation.max_tokens

        if self.state is LocalModelState.READY and self._llm is not None:
            try:
                result = await asyncio.to_thread(
                    self._llm.create_completion,
                    prompt,
                    max_tokens=max_tokens,
                    temperature=self.generation.temperature,
                    top_p=self.generation.top_p,
                )
                text = clean_generation(
                    prompt, result["choices"][0]["text"], max_tokens * _CHARS_PER_TOKEN
                )
                if text:
                    return text, self.model_name
                logger.debug("Model returned empty text, using lightweight responder")
            except (KeyError, IndexError, TypeError, ValueError, RuntimeError) as exc:
                logger.warning("Local model generation failed, using lightweight responder: %s", exc)

        if stand_in is None:
            stand_in = self.responder.respond(prompt)
        return stand_in, self.responder.model_name

    async def complete(self, request: InferenceRequest) -> tuple[str, str | None]:
        if request.kind is RequestKind.CODE_REVIEW:
            prompt = build_review_prompt(request.code, request.context)
            return await self.generate(prompt, stand_in=review_code(request.code, request.context))
        return await self.generate(build_question_prompt(request.query))

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
