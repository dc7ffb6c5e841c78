"""Remote inference backend — talks to the notes API server or Ollama directly."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from devnotes.config import GenerationConfig, RemoteConfig
from devnotes.inference.engine import (
    BackendTimeout,
    BackendUnreachable,
    BadResponse,
    InferenceRequest,
    Provider,
    RequestKind,
)
from devnotes.inference.prompts import build_chat_prompt, build_review_prompt

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"
REVIEW_PATH = "/api/code-review"
GENERATE_PATH = "/api/generate"
HEALTH_PATH = "/health"


def normalize_base_url(url: str) -> str:
    """Strip /v1 suffix and trailing slash to get the server root URL.

    Adds ``http://`` if no scheme is present.

    >>> normalize_base_url("http://localhost:11434/v1")
    'http://localhost:11434'
    >>> normalize_base_url("localhost:3001/")
    'http://localhost:3001'
    """
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    url = url.rstrip("/")
    if url.endswith("/v1"):
        url = url[:-3]
    return url


class RemoteBackend:
    """Text generation via an HTTP server on a configurable host.

    Makes exactly one call per request; fallback is the resolver's job.
    """

    provider = Provider.REMOTE

    def __init__(
        self,
        config: RemoteConfig,
        generation: GenerationConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not config.url:
            raise ValueError("RemoteBackend requires remote.url")
        self.base_url = normalize_base_url(config.url)
        self.model = config.model
        self.api_style = config.api_style
        self.probe_timeout = config.probe_timeout
        self.generation = generation
        # Short connect timeout; a hung read is bounded by remote.timeout
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout, connect=min(config.timeout, 5.0)),
        )
        logger.info("Remote backend: %s model=%s style=%s", self.base_url, self.model, self.api_style)

    async def probe(self) -> bool:
        """Check if the server is reachable. Returns True only on HTTP 200."""
        path = HEALTH_PATH if self.api_style == "service" else "/"
        try:
            resp = await self.client.get(f"{self.base_url}{path}", timeout=self.probe_timeout)
            return resp.status_code == 200
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            logger.debug("Probe of %s failed: %s", self.base_url, exc)
            return False

    async def complete(self, request: InferenceRequest) -> tuple[str, str | None]:
        url, payload = self._build_call(request)
        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise BackendUnreachable(
                f"Cannot connect to {self.base_url} — is the server running?"
            ) from e
        except (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout) as e:
            raise BackendTimeout(
                f"Request to {self.base_url} timed out ({type(e).__name__})."
            ) from e
        except httpx.HTTPStatusError as e:
            body = e.response.text[:200]
            raise BadResponse(f"Remote API error {e.response.status_code}: {body}") from e
        except httpx.TransportError as e:
            raise BackendUnreachable(f"Transport error talking to {self.base_url}: {e}") from e
        except httpx.InvalidURL as e:
            raise BackendUnreachable(f"Invalid remote URL {self.base_url}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise BadResponse(f"Remote API returned non-JSON body: {response.text[:200]}") from e
        return self._parse_response(data)

    def _build_call(self, request: InferenceRequest) -> tuple[str, dict[str, Any]]:
        options = {
            "temperature": self.generation.temperature,
            "top_p": self.generation.top_p,
            "num_predict": self.generation.max_tokens,
        }
        if self.api_style == "ollama":
            if request.kind is RequestKind.CODE_REVIEW:
                prompt = build_review_prompt(request.code, request.context)
            else:
                prompt = build_chat_prompt(request.messages)
            return f"{self.base_url}{GENERATE_PATH}", {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": options,
            }

        if request.kind is RequestKind.CODE_REVIEW:
            return f"{self.base_url}{REVIEW_PATH}", {
                "model": self.model,
                "code": request.code,
                "context": request.context,
                "options": options,
            }
        return f"{self.base_url}{CHAT_PATH}", {
            "model": self.model,
            "messages": [msg.to_dict() for msg in request.messages],
            "options": options,
        }

    def _parse_response(self, data: Any) -> tuple[str, str | None]:
        """Extract the generated text and the name of the model that wrote it."""
        if not isinstance(data, dict):
            raise BadResponse(f"Expected a JSON object, got {type(data).__name__}")
        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise BadResponse("Remote response lacks a 'response' text field")
        if data.get("fallback"):
            # The server's own keyword table; let a real model answer instead
            raise BadResponse("Remote server answered from its fallback table, not a model")
        model_name = data.get("model") or data.get("provider") or self.model
        return text.strip(), str(model_name)

    async def close(self) -> None:
        await self.client.aclose()
