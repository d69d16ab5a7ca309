from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

from companion.config import Settings, PROVIDERS

logger = logging.getLogger(__name__)


# -------- Error taxonomy --------
class ProviderError(Exception):
    """Base class for failures talking to an AI provider."""

    kind = "provider_error"

    def __init__(self, message: str, provider: str, base_url: Optional[str] = None, model: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.base_url = base_url
        self.model = model


class ProviderUnreachable(ProviderError):
    kind = "unreachable"


class ProviderUnauthorized(ProviderError):
    kind = "unauthorized"


class ProviderModelNotFound(ProviderError):
    kind = "model_not_found"


class ProviderUpstreamError(ProviderError):
    kind = "upstream"


class ProviderTimeout(ProviderError):
    kind = "timeout"


@dataclass(frozen=True)
class ProviderResult:
    content: str
    tokens: int
    latency_ms: int
    model: str


class Provider(Protocol):
    name: str
    model: str

    async def generate(self, messages: Sequence[Dict[str, str]], system_prompt: Optional[str] = None) -> ProviderResult:
        ...


# -------- AI preference --------
@dataclass(frozen=True)
class AIPreference:
    provider: str
    ollama_base_url: str
    ollama_model: str
    conversation_memory: bool = True
    google_api_key: Optional[str] = None


def resolve_preference(user, settings: Settings) -> AIPreference:
    """Fill the user's stored AI preference with configured defaults."""
    google_key = getattr(user, "google_api_key", None) or settings.google_ai_api_key
    provider = getattr(user, "ai_provider", None)
    if provider not in PROVIDERS:
        provider = "google" if google_key else "ollama"
    memory = getattr(user, "conversation_memory", None)
    return AIPreference(
        provider=provider,
        ollama_base_url=(getattr(user, "ollama_base_url", None) or settings.ollama_base_url).rstrip("/"),
        ollama_model=getattr(user, "ollama_model", None) or settings.ollama_model,
        conversation_memory=True if memory is None else bool(memory),
        google_api_key=getattr(user, "google_api_key", None),
    )


def build_provider(provider: str, preference: AIPreference, settings: Settings) -> Provider:
    """Instantiate the adapter for a provider tag. No failover between providers."""
    if provider == "google":
        from companion.services.google_ai import GoogleAIProvider

        key = preference.google_api_key or settings.google_ai_api_key
        if not key:
            raise ProviderUnauthorized("Google AI not configured: no API key", provider="google", model=settings.google_ai_model)
        return GoogleAIProvider(key, model=settings.google_ai_model, timeout=settings.ai_request_timeout)
    if provider == "openai":
        from companion.services.openai_ai import OpenAIProvider

        if not settings.openai_api_key:
            raise ProviderUnauthorized("OpenAI not configured: no API key", provider="openai", model=settings.openai_model)
        return OpenAIProvider(settings.openai_api_key, model=settings.openai_model, timeout=settings.ai_request_timeout)
    if provider == "ollama":
        from companion.services.ollama_ai import OllamaProvider

        return OllamaProvider(
            preference.ollama_base_url,
            model=preference.ollama_model,
            probe_timeout=settings.ai_probe_timeout,
            timeout=settings.ai_request_timeout,
            max_attempts=settings.ollama_max_attempts,
        )
    raise ValueError(f"Unknown AI provider: {provider}")


# -------- Troubleshooting hints --------
def troubleshooting_steps(err: ProviderError) -> List[str]:
    if err.provider == "ollama":
        base = err.base_url or "http://localhost:11434"
        model = err.model or "llama3:latest"
        if isinstance(err, ProviderModelNotFound):
            return [
                f"Pull the model: ollama pull {model}",
                f"In Docker: docker exec ollama ollama pull {model}",
                "List installed models: ollama list",
                "Or pick an installed model in chat settings",
            ]
        if isinstance(err, (ProviderUnreachable, ProviderTimeout)):
            return [
                f"Ensure Ollama is running and reachable at {base}",
                "Start it with Docker: docker run -d -v ollama:/root/.ollama -p 11434:11434 --name ollama ollama/ollama",
                f"Pull the model: docker exec ollama ollama pull {model}",
                "Check container: docker ps | grep ollama",
                "For Docker Desktop, try: http://host.docker.internal:11434",
                "For WSL2, try: http://172.17.0.1:11434",
                "Or switch to Google AI in chat settings",
            ]
        return [
            f"Check the Ollama logs for errors serving {model}",
            "Try sending the message again",
            "Or switch to Google AI in chat settings",
        ]

    label = "Google AI" if err.provider == "google" else "OpenAI"
    if isinstance(err, ProviderUnauthorized):
        return [
            f"Check that your {label} API key is set and valid in chat settings",
            f"Make sure the key has access to {err.model or 'the configured model'}",
            "Or switch to a local Ollama model in chat settings",
        ]
    if isinstance(err, ProviderModelNotFound):
        return [f"The model {err.model} is not available for this key; choose another model"]
    if isinstance(err, (ProviderUnreachable, ProviderTimeout)):
        return [
            f"Check the server's internet connection to {label}",
            "Try sending the message again in a moment",
            "Or switch to a local Ollama model in chat settings",
        ]
    return [
        f"{label} returned no usable response (it may be rate limited or the reply was filtered)",
        "Wait a moment and try again",
        "Or switch providers in chat settings",
    ]
