from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlmodel import Session, select

from companion.config import Settings
from companion.models import ChatMessage, CrisisEvent, User
from companion.prompts import build_prompt
from companion.resources import FALLBACK_MESSAGE, immediate_actions, resource_lines, with_crisis_resources
from companion.safety import assess_risk, classify, crisis_level_for
from companion.services.providers import (
    Provider,
    ProviderError,
    ProviderTimeout,
    ProviderUpstreamError,
    build_provider,
    resolve_preference,
    troubleshooting_steps,
)
from companion.utils.language import detect_language

logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., Provider]


@dataclass
class TurnResult:
    reply: str
    crisis_detected: bool
    crisis_level: Optional[str]
    provider: str
    model: str
    tokens: int = 0
    latency_ms: int = 0
    troubleshooting: Optional[List[str]] = None
    resources: List[str] = field(default_factory=list)
    immediate_actions: List[str] = field(default_factory=list)
    error: Optional[str] = None


def _preview(text: str, n: int = 120) -> str:
    return (text[:n] + "...") if len(text) > n else text


def session_messages(db: Session, user_id: int, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
    stmt = select(ChatMessage).where(ChatMessage.user_id == user_id, ChatMessage.session_id == session_id)
    if limit:
        rows = db.exec(stmt.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit)).all()
        return list(reversed(rows))
    return list(db.exec(stmt.order_by(ChatMessage.created_at, ChatMessage.id)).all())


def clear_session(db: Session, user_id: int, session_id: str) -> int:
    """Delete a conversation's messages. Crisis events are an audit trail and are kept."""
    rows = session_messages(db, user_id, session_id)
    for r in rows:
        db.delete(r)
    db.commit()
    return len(rows)


class ChatOrchestrator:
    """Runs one chat turn: classify, call the chosen provider, add crisis resources, persist."""

    def __init__(self, settings: Settings, provider_factory: ProviderFactory = build_provider):
        self.settings = settings
        self.provider_factory = provider_factory

    def _history(self, db: Session, user: User, session_id: str, memory: bool, text: str) -> List[Dict[str, str]]:
        if not memory:
            return [{"role": "user", "content": text}]
        rows = session_messages(db, user.id, session_id, limit=self.settings.chat_history_limit)
        return [{"role": r.role, "content": r.content} for r in rows]

    async def _generate(self, provider_tag, preference, history):
        provider = self.provider_factory(provider_tag, preference, self.settings)
        try:
            return await asyncio.wait_for(provider.generate(history, build_prompt()),
                                          timeout=self.settings.ai_turn_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeout("AI response timeout", provider=provider_tag,
                                  base_url=getattr(provider, "base_url", None), model=provider.model) from e
        except ProviderError:
            raise
        except Exception as e:
            # A turn must still produce the fallback reply and crisis block
            logger.exception("Unexpected failure from AI provider %s", provider_tag)
            raise ProviderUpstreamError(f"Unexpected provider failure: {e}", provider=provider_tag,
                                        base_url=getattr(provider, "base_url", None),
                                        model=getattr(provider, "model", None)) from e

    async def handle_turn(
        self,
        db: Session,
        user: User,
        session_id: str,
        text: str,
        provider_override: Optional[str] = None,
    ) -> TurnResult:
        text = (text or "").strip()
        classification = classify(text)
        assessment = assess_risk(text)
        level = crisis_level_for(classification, assessment)
        crisis = classification.is_crisis
        if crisis:
            logger.warning("Crisis language detected session=%s level=%s keywords=%d",
                           session_id, level, len(classification.matched_keywords))

        user_msg = ChatMessage(
            user_id=user.id, session_id=session_id, role="user", content=text,
            crisis_detected=crisis, crisis_level=level, language=detect_language(text),
        )
        db.add(user_msg)
        db.commit()
        db.refresh(user_msg)

        preference = resolve_preference(user, self.settings)
        provider_tag = provider_override or preference.provider
        history = self._history(db, user, session_id, preference.conversation_memory, text)
        logger.info("chat turn session=%s provider=%s preview=%s", session_id, provider_tag, _preview(text))

        troubleshooting = None
        error_kind = None
        try:
            result = await self._generate(provider_tag, preference, history)
            reply, model, tokens, latency_ms = result.content, result.model, result.tokens, result.latency_ms
        except ProviderError as e:
            logger.warning("AI provider %s failed (%s): %s", e.provider, e.kind, e)
            reply, model, tokens, latency_ms = FALLBACK_MESSAGE, "fallback", 0, 0
            troubleshooting = troubleshooting_steps(e)
            error_kind = e.kind

        resources: List[str] = []
        actions: List[str] = []
        if crisis:
            reply = with_crisis_resources(reply, assessment, level)
            resources = resource_lines(level)
            actions = immediate_actions(level)

        assistant_msg = ChatMessage(
            user_id=user.id, session_id=session_id, role="assistant", content=reply,
            crisis_detected=crisis, crisis_level=level, language=user_msg.language,
            model=model, tokens=tokens, latency_ms=latency_ms,
        )
        db.add(assistant_msg)
        if crisis:
            db.add(CrisisEvent(
                user_id=user.id, message_id=user_msg.id, level=level,
                keywords=json.dumps(classification.matched_keywords, ensure_ascii=False),
                response=reply, escalated=assessment.requires_immediate,
            ))
        db.commit()

        return TurnResult(
            reply=reply,
            crisis_detected=crisis,
            crisis_level=level,
            provider=provider_tag,
            model=model,
            tokens=tokens,
            latency_ms=latency_ms,
            troubleshooting=troubleshooting,
            resources=resources,
            immediate_actions=actions,
            error=error_kind,
        )
