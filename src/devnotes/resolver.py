"""Provider resolution — pick a backend per request and degrade in order.

The resolver walks a fixed priority list (by default remote, then the
in-process model, then the static table), dispatches to the first backend
that looks usable, and falls through to the next one on any failure. The
static backend never fails, so every request gets exactly one response and
no backend error ever reaches the caller.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Callable, Mapping

from devnotes.config import DevNotesConfig, ResolverConfig
from devnotes.inference.engine import (
    BackendAvailability,
    BackendTimeout,
    InferenceBackend,
    InferenceError,
    InferenceRequest,
    InferenceResponse,
    Provider,
)
from devnotes.inference.static import StaticBackend

logger = logging.getLogger(__name__)


class ProviderResolver:
    """Owns backend availability and answers every request."""

    def __init__(
        self,
        config: ResolverConfig,
        backends: Mapping[Provider, InferenceBackend],
        availability: BackendAvailability | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.availability = availability or BackendAvailability()
        self.backends: dict[Provider, InferenceBackend] = dict(backends)
        self.backends.setdefault(Provider.STATIC, StaticBackend())
        self._clock = clock

        priority = [Provider(name) for name in config.priority]
        if Provider.STATIC not in priority:
            priority.append(Provider.STATIC)
        self.priority: tuple[Provider, ...] = tuple(dict.fromkeys(priority))

    @classmethod
    def from_config(cls, config: DevNotesConfig, local_auto_load: bool = True) -> ProviderResolver:
        """Build the resolver and its backends from configuration.

        With ``local_auto_load=False`` the in-process model is only loaded
        when its ``ensure_started()`` is called explicitly.
        """
        from devnotes.inference.local import LocalModelBackend
        from devnotes.inference.remote import RemoteBackend

        availability = BackendAvailability()
        backends: dict[Provider, InferenceBackend] = {Provider.STATIC: StaticBackend()}
        if config.remote.url:
            backends[Provider.REMOTE] = RemoteBackend(config.remote, config.generation)
        if config.local.enabled:
            backends[Provider.LOCAL_MODEL] = LocalModelBackend(
                config.local, config.generation,
                availability=availability, auto_load=local_auto_load,
            )
        return cls(config.resolver, backends, availability=availability)

    # ── public API ────────────────────────────────────────────────────

    async def resolve(self, request: InferenceRequest) -> InferenceResponse:
        """Answer the request with the best backend available. Never raises."""
        first = self.priority[0]
        for provider in self.priority:
            backend = self.backends.get(provider)
            if backend is None:
                continue
            if not await self._usable(provider, backend):
                logger.debug("Skipping %s: marked unavailable", provider.value)
                continue

            try:
                text, model_name = await asyncio.wait_for(
                    backend.complete(request), timeout=self.config.timeout,
                )
            except InferenceError as exc:
                error: Exception = exc
            except asyncio.TimeoutError:
                error = BackendTimeout(
                    f"{provider.value} did not answer within {self.config.timeout:.0f}s"
                )
            except Exception as exc:
                logger.exception("Unexpected error from %s backend", provider.value)
                error = exc
            else:
                is_fallback = provider is not first
                logger.info(
                    "Answered %s request with %s%s",
                    request.kind.value, provider.value, " (fallback)" if is_fallback else "",
                )
                return InferenceResponse(
                    text=text, provider=provider, is_fallback=is_fallback, model_name=model_name,
                )

            logger.warning("%s backend failed, falling back: %s", provider.value, error)
            self._mark_unavailable(provider)

        # Only reachable if a custom static backend misbehaved
        text, model_name = await StaticBackend().complete(request)
        return InferenceResponse(
            text=text,
            provider=Provider.STATIC,
            is_fallback=first is not Provider.STATIC,
            model_name=model_name,
        )

    def status(self) -> BackendAvailability:
        """Snapshot of backend availability for display."""
        return dataclasses.replace(self.availability)

    async def probe(self) -> BackendAvailability:
        """Re-check remote reachability now and return a status snapshot."""
        remote = self.backends.get(Provider.REMOTE)
        if remote is not None:
            self.availability.remote_reachable = None
            await self._remote_reachable(remote)
        return self.status()

    async def refresh(self) -> None:
        """Forget cached failures and retry a failed local model load."""
        self.availability.remote_reachable = None
        self.availability.remote_checked_at = 0.0
        self.availability.local_available = True
        local = self.backends.get(Provider.LOCAL_MODEL)
        reload = getattr(local, "reload", None)
        if reload is not None:
            await reload()
        logger.info("Backend availability refreshed")

    async def close(self) -> None:
        for backend in self.backends.values():
            close = getattr(backend, "close", None)
            if close is not None:
                await close()

    # ── helpers ────────────────────────────────────────────────────────

    async def _usable(self, provider: Provider, backend: InferenceBackend) -> bool:
        if provider is Provider.REMOTE:
            return await self._remote_reachable(backend)
        if provider is Provider.LOCAL_MODEL:
            return self.availability.local_available
        return True

    async def _remote_reachable(self, backend: InferenceBackend) -> bool:
        """Cached reachability, re-probed once the TTL has passed."""
        avail = self.availability
        now = self._clock()
        if (
            avail.remote_reachable is not None
            and now - avail.remote_checked_at < self.config.probe_ttl
        ):
            return avail.remote_reachable

        probe = getattr(backend, "probe", None)
        if probe is None:
            reachable = True
        else:
            try:
                reachable = await asyncio.wait_for(probe(), timeout=self.config.timeout)
            except asyncio.TimeoutError:
                reachable = False
            except Exception:
                logger.exception("Remote probe failed unexpectedly")
                reachable = False
        avail.remote_reachable = reachable
        avail.remote_checked_at = self._clock()
        if not reachable:
            logger.info("Remote backend unreachable; will re-probe in %.0fs", self.config.probe_ttl)
        return reachable

    def _mark_unavailable(self, provider: Provider) -> None:
        if provider is Provider.REMOTE:
            self.availability.remote_reachable = False
            self.availability.remote_checked_at = self._clock()
        elif provider is Provider.LOCAL_MODEL:
            self.availability.local_available = False
