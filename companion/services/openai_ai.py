from __future__ import annotations
import logging
import time
from typing import Dict, Optional, Sequence

import openai
from openai import AsyncOpenAI

from companion.config import DEFAULT_OPENAI_MODEL
from companion.prompts import format_history
from companion.services.providers import (
    ProviderModelNotFound,
    ProviderResult,
    ProviderTimeout,
    ProviderUnauthorized,
    ProviderUnreachable,
    ProviderUpstreamError,
)

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """OpenAI chat completions through the async SDK client. No retries: calls are billable."""

    name = "openai"

    def __init__(self, api_key: str, model: str = DEFAULT_OPENAI_MODEL, timeout: float = 30.0,
                 client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def generate(self, messages: Sequence[Dict[str, str]], system_prompt: Optional[str] = None) -> ProviderResult:
        start = time.perf_counter()
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=format_history(messages, "openai", system_prompt),
                temperature=0.7,
                max_tokens=1024,
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeout(f"OpenAI request timed out: {e}", provider=self.name, model=self.model) from e
        except openai.APIConnectionError as e:
            raise ProviderUnreachable(f"Cannot reach OpenAI: {e}", provider=self.name, model=self.model) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise ProviderUnauthorized(f"OpenAI rejected the API key: {e}", provider=self.name, model=self.model) from e
        except openai.NotFoundError as e:
            raise ProviderModelNotFound(f"OpenAI model {self.model} not found: {e}", provider=self.name, model=self.model) from e
        except openai.APIError as e:
            raise ProviderUpstreamError(f"OpenAI API error: {e}", provider=self.name, model=self.model) from e

        choices = getattr(resp, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        content = content.strip() if isinstance(content, str) else ""
        if not content:
            raise ProviderUpstreamError("No response generated from OpenAI", provider=self.name, model=self.model)
        usage = getattr(resp, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0)
        latency_ms = int((time.perf_counter() - start) * 1000)
        return ProviderResult(content=content, tokens=max(0, tokens), latency_ms=max(0, latency_ms),
                              model=getattr(resp, "model", None) or self.model)
