from __future__ import annotations
import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from companion.config import DEFAULT_OLLAMA_BASE_URL, DEFAULT_OLLAMA_MODEL
from companion.prompts import format_history
from companion.services.providers import (
    ProviderError,
    ProviderModelNotFound,
    ProviderResult,
    ProviderTimeout,
    ProviderUnreachable,
    ProviderUpstreamError,
)

logger = logging.getLogger(__name__)

# Refused or unresolvable connections only
RETRYABLE = (ProviderUnreachable,)


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) and value > 0 else 0


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or f"HTTP {resp.status_code}")
    return f"HTTP {resp.status_code}"


class OllamaProvider:
    """Local model server speaking the Ollama /api/chat protocol.

    Refused or unresolvable connections are retried up to max_attempts with
    jittered backoff. Timeouts are not retried.
    """

    name = "ollama"

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        model: str = DEFAULT_OLLAMA_MODEL,
        probe_timeout: float = 5.0,
        timeout: float = 30.0,
        max_attempts: int = 2,
        retry_backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or DEFAULT_OLLAMA_BASE_URL).rstrip("/")
        self.model = model or DEFAULT_OLLAMA_MODEL
        self.probe_timeout = probe_timeout
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport)

    def _unreachable(self, e: Exception) -> ProviderError:
        if isinstance(e, httpx.TimeoutException):
            return ProviderTimeout(f"Ollama request timed out at {self.base_url}", provider=self.name,
                                   base_url=self.base_url, model=self.model)
        return ProviderUnreachable(f"Cannot connect to Ollama at {self.base_url}: {e}", provider=self.name,
                                   base_url=self.base_url, model=self.model)

    async def _tags(self) -> Dict[str, Any]:
        try:
            async with self._client(self.probe_timeout) as client:
                resp = await client.get("/api/tags")
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise self._unreachable(e) from e
        if not resp.is_success:
            raise ProviderUnreachable(f"Ollama at {self.base_url} answered HTTP {resp.status_code}",
                                      provider=self.name, base_url=self.base_url, model=self.model)
        try:
            data = resp.json()
        except ValueError:
            data = {}
        return data if isinstance(data, dict) else {}

    async def probe(self) -> bool:
        """Connectivity check against /api/tags; raises on failure."""
        await self._tags()
        return True

    async def list_models(self) -> List[str]:
        models = (await self._tags()).get("models")
        if not isinstance(models, list):
            return []
        return [m["name"] for m in models if isinstance(m, dict) and isinstance(m.get("name"), str) and m["name"]]

    def build_request(self, messages: Sequence[Dict[str, str]], system_prompt: Optional[str] = None) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": format_history(messages, "ollama", system_prompt),
            "stream": False,
        }

    async def _generate_once(self, body: Dict[str, Any]) -> ProviderResult:
        await self.probe()
        start = time.perf_counter()
        try:
            async with self._client(self.timeout) as client:
                resp = await client.post("/api/chat", json=body)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise self._unreachable(e) from e

        if not resp.is_success:
            message = _error_message(resp)
            low = message.lower()
            if resp.status_code == 404 or ("model" in low and "not found" in low):
                raise ProviderModelNotFound(f"Ollama model {self.model} not found: {message}", provider=self.name,
                                            base_url=self.base_url, model=self.model)
            raise ProviderUpstreamError(f"Ollama error ({resp.status_code}): {message}", provider=self.name,
                                        base_url=self.base_url, model=self.model)

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderUpstreamError("Ollama returned a non-JSON body", provider=self.name,
                                        base_url=self.base_url, model=self.model) from e
        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ProviderUpstreamError("No response generated from Ollama", provider=self.name,
                                        base_url=self.base_url, model=self.model)
        tokens = _as_int(data.get("prompt_eval_count")) + _as_int(data.get("eval_count"))
        latency_ms = int((time.perf_counter() - start) * 1000)
        model = data.get("model")
        return ProviderResult(content=content.strip(), tokens=tokens, latency_ms=max(0, latency_ms),
                              model=model if isinstance(model, str) and model else self.model)

    async def generate(self, messages: Sequence[Dict[str, str]], system_prompt: Optional[str] = None) -> ProviderResult:
        body = self.build_request(messages, system_prompt)
        backoff = self.retry_backoff
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._generate_once(body)
            except RETRYABLE as e:
                if attempt >= self.max_attempts:
                    raise
                logger.warning("Ollama attempt %d/%d failed (%s); retrying", attempt, self.max_attempts, e.kind)
                await asyncio.sleep(backoff + random.uniform(0, backoff))
                backoff = min(backoff * 2, 4.0)
