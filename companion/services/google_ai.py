from __future__ import annotations
import logging
import time
from typing import Any, Dict, Optional, Sequence

import httpx

from companion.config import DEFAULT_GOOGLE_MODEL
from companion.prompts import format_history
from companion.services.providers import (
    ProviderResult,
    ProviderUnauthorized,
    ProviderUnreachable,
    ProviderUpstreamError,
    ProviderTimeout,
)

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta"

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 1024,
}

SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]

_AUTH_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED"}


def _error_details(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {"message": resp.text or resp.reason_phrase}
    err = data.get("error") if isinstance(data, dict) else None
    return err if isinstance(err, dict) else {"message": str(data)}


def _is_key_rejected(status_code: int, details: Dict[str, Any]) -> bool:
    message = str(details.get("message", "")).lower()
    return (
        status_code in (401, 403)
        or details.get("status") in _AUTH_STATUSES
        or "api key not valid" in message
        or "api_key_invalid" in message
    )


def _first_candidate(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    return candidates[0]


def _extract_text(candidate: Dict[str, Any]) -> str:
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict)).strip()


class GoogleAIProvider:
    """Gemini generateContent over REST."""

    name = "google"

    def __init__(self, api_key: str, model: str = DEFAULT_GOOGLE_MODEL, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{API_BASE}/models/{self.model}:generateContent"

    def build_request(self, messages: Sequence[Dict[str, str]], system_prompt: Optional[str] = None) -> Dict[str, Any]:
        return {
            "contents": format_history(messages, "google", system_prompt),
            "generationConfig": dict(GENERATION_CONFIG),
            "safetySettings": [dict(s) for s in SAFETY_SETTINGS],
        }

    async def generate(self, messages: Sequence[Dict[str, str]], system_prompt: Optional[str] = None) -> ProviderResult:
        body = self.build_request(messages, system_prompt)
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.endpoint, params={"key": self.api_key}, json=body)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"Google AI request timed out: {e}", provider=self.name, model=self.model) from e
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise ProviderUnreachable(f"Cannot reach Google AI: {e}", provider=self.name, model=self.model) from e

        if not resp.is_success:
            details = _error_details(resp)
            message = details.get("message") or f"HTTP {resp.status_code}"
            if _is_key_rejected(resp.status_code, details):
                raise ProviderUnauthorized(f"Google AI rejected the API key: {message}", provider=self.name, model=self.model)
            raise ProviderUpstreamError(f"Google AI API error ({resp.status_code}): {message}", provider=self.name, model=self.model)

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderUpstreamError("Google AI returned a non-JSON body", provider=self.name, model=self.model) from e

        candidate = _first_candidate(data) if isinstance(data, dict) else None
        if candidate is None:
            raise ProviderUpstreamError("No response generated from Google AI", provider=self.name, model=self.model)
        content = _extract_text(candidate)
        if not content:
            reason = candidate.get("finishReason", "unknown")
            raise ProviderUpstreamError(f"Google AI candidate had no text (finishReason={reason})", provider=self.name, model=self.model)

        usage = data.get("usageMetadata")
        tokens = usage.get("totalTokenCount") if isinstance(usage, dict) else 0
        tokens = tokens if isinstance(tokens, int) else 0
        latency_ms = int((time.perf_counter() - start) * 1000)
        return ProviderResult(content=content, tokens=max(0, tokens), latency_ms=max(0, latency_ms), model=self.model)
