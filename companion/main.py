# companion/main.py
from __future__ import annotations
import logging
from typing import List, Literal, Optional

from fastapi import FastAPI, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.responses import JSONResponse
from sqlmodel import Session

from companion.config import settings
from companion.db import init_db, get_session
from companion.models import User
from companion.resources import in_hotlines
from companion.services.chat_service import ChatOrchestrator, session_messages, clear_session
from companion.services.ollama_ai import OllamaProvider
from companion.services.providers import ProviderError, resolve_preference, troubleshooting_steps

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Mental Health Companion", version="1.0.0")

# Ensure database tables exist at import time as well (useful for tests without lifespan)
init_db()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

orchestrator = ChatOrchestrator(settings)


def get_orchestrator() -> ChatOrchestrator:
    return orchestrator


ProviderTag = Literal["openai", "google", "ollama"]


# -------- Request models --------
class ChatIn(BaseModel):
    message: Optional[str] = None
    sessionId: Optional[str] = None
    userId: Optional[int] = None
    provider: Optional[ProviderTag] = None


class ClearChatIn(BaseModel):
    userId: Optional[int] = None
    sessionId: Optional[str] = None


class AISettingsIn(BaseModel):
    provider: Optional[ProviderTag] = None
    googleApiKey: Optional[str] = None
    ollamaBaseUrl: Optional[str] = None
    ollamaModel: Optional[str] = None
    conversationMemory: Optional[bool] = None


class AISettingsUpdateIn(BaseModel):
    userId: Optional[int] = None
    aiSettings: Optional[AISettingsIn] = None


def _error(status_code: int, message: str, troubleshooting: Optional[List[str]] = None) -> JSONResponse:
    body = {"error": message}
    if troubleshooting:
        body["troubleshooting"] = troubleshooting
    return JSONResponse(body, status_code=status_code)


def _ai_settings_out(user: User) -> dict:
    pref = resolve_preference(user, settings)
    out = {
        "provider": pref.provider,
        "conversationMemory": pref.conversation_memory,
        "ollamaBaseUrl": pref.ollama_base_url,
        "ollamaModel": pref.ollama_model,
    }
    if pref.google_api_key:
        out["googleApiKey"] = pref.google_api_key
    return out


# -------- Startup --------
@app.on_event("startup")
def _startup():
    init_db()
    # Report which providers are configured (never prints keys)
    logger.info(
        "AI providers: google=%s openai=%s ollama=%s default=%s",
        "configured" if settings.google_ai_api_key else "no key",
        "configured" if settings.openai_api_key else "no key",
        settings.ollama_base_url,
        settings.default_provider,
    )


@app.get("/api/status")
def status():
    """Which AI backends the server can use. Never returns secrets or API keys."""
    return {
        "defaultProvider": settings.default_provider,
        "google": {"configured": bool(settings.google_ai_api_key), "model": settings.google_ai_model},
        "openai": {"configured": bool(settings.openai_api_key), "model": settings.openai_model},
        "ollama": {"baseUrl": settings.ollama_base_url, "model": settings.ollama_model},
    }


# -------- Chat --------
@app.post("/api/ai/chat")
async def chat(payload: ChatIn, db: Session = Depends(get_session),
               chat_service: ChatOrchestrator = Depends(get_orchestrator)):
    message = (payload.message or "").strip()
    if not message or not payload.sessionId or payload.userId is None:
        return _error(400, "Missing required fields")
    user = db.get(User, payload.userId)
    if not user:
        return _error(404, "User not found")

    turn = await chat_service.handle_turn(db, user, payload.sessionId, message, provider_override=payload.provider)

    metadata = {
        "model": turn.model,
        "provider": turn.provider,
        "tokens": turn.tokens,
        "latencyMs": turn.latency_ms,
        "sessionId": payload.sessionId,
    }
    if turn.crisis_detected:
        metadata["riskLevel"] = turn.crisis_level
        metadata["resources"] = turn.resources
        metadata["immediateActions"] = turn.immediate_actions
    body = {"message": turn.reply, "crisisDetected": turn.crisis_detected, "metadata": metadata}
    if turn.crisis_level:
        body["crisisLevel"] = turn.crisis_level
    if turn.troubleshooting:
        body["troubleshooting"] = turn.troubleshooting
    return JSONResponse(body)


@app.get("/api/ai/chat")
def get_conversation(userId: int = Query(...), sessionId: str = Query(...), db: Session = Depends(get_session)):
    rows = session_messages(db, userId, sessionId)
    return {"messages": [
        {
            "id": r.id,
            "role": r.role,
            "content": r.content,
            "timestamp": r.created_at.isoformat(),
            "crisisDetected": r.crisis_detected,
            "crisisLevel": r.crisis_level,
            "language": r.language,
            "metadata": {"model": r.model, "tokens": r.tokens, "latencyMs": r.latency_ms} if r.role == "assistant" else None,
        }
        for r in rows
    ]}


@app.delete("/api/ai/chat")
def delete_conversation(payload: ClearChatIn, db: Session = Depends(get_session)):
    if payload.userId is None or not payload.sessionId:
        return _error(400, "Missing userId or sessionId")
    deleted = clear_session(db, payload.userId, payload.sessionId)
    if not deleted:
        return _error(404, "Conversation not found")
    return {"success": True}


# -------- AI settings --------
@app.get("/api/user/ai-settings")
def get_ai_settings(userId: int = Query(...), db: Session = Depends(get_session)):
    user = db.get(User, userId)
    if not user:
        return _error(404, "User not found")
    return {"aiSettings": _ai_settings_out(user)}


@app.put("/api/user/ai-settings")
async def update_ai_settings(payload: AISettingsUpdateIn, db: Session = Depends(get_session)):
    if payload.userId is None or payload.aiSettings is None:
        return _error(400, "Missing userId or aiSettings")
    incoming = payload.aiSettings
    user = db.get(User, payload.userId)
    if not user:
        return _error(404, "User not found")

    google_key = incoming.googleApiKey or None
    provider = incoming.provider or ("google" if (google_key or settings.google_ai_api_key) else "ollama")
    base_url = (incoming.ollamaBaseUrl or settings.ollama_base_url).rstrip("/")
    model = incoming.ollamaModel or settings.ollama_model

    # Validate the local model server before switching a user onto it
    if provider == "ollama" and incoming.ollamaBaseUrl:
        probe = OllamaProvider(base_url, model=model, probe_timeout=settings.ai_probe_timeout)
        try:
            await probe.probe()
        except ProviderError as e:
            logger.warning("Ollama connection test failed for %s: %s", base_url, e)
            return _error(400, f"Ollama connection test failed: {e}", troubleshooting_steps(e))

    user.ai_provider = provider
    user.google_api_key = google_key
    user.ollama_base_url = base_url
    user.ollama_model = model
    user.conversation_memory = True if incoming.conversationMemory is None else incoming.conversationMemory
    db.add(user)
    db.commit()
    db.refresh(user)
    return {"success": True, "message": "AI settings saved successfully", "aiSettings": _ai_settings_out(user)}


@app.get("/api/ai/models")
async def list_local_models(baseUrl: Optional[str] = None):
    provider = OllamaProvider(baseUrl or settings.ollama_base_url, probe_timeout=settings.ai_probe_timeout)
    try:
        models = await provider.list_models()
    except ProviderError as e:
        return _error(503, str(e), troubleshooting_steps(e))
    return {"baseUrl": provider.base_url, "models": models}


@app.get("/api/crisis/resources")
def crisis_resources(urgent: bool = False):
    msg = (
        "If you're in immediate danger, please call emergency services right now. "
        "Here are support options you can contact to speak with a trained counselor."
    )
    return {"message": msg, **in_hotlines(urgent)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "companion.main:app",
        host="127.0.0.1",
        port=8002,
        reload=True
    )
