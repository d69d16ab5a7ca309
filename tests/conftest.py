import os
import tempfile
import uuid

import pytest

# Must be set before companion.config is imported anywhere
_TMP = tempfile.mkdtemp(prefix="companion-tests-")
os.environ["COMPANION_DB"] = os.path.join(_TMP, "test.db")
os.environ["GOOGLE_AI_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["OLLAMA_BASE_URL"] = "http://localhost:11434"
os.environ["OLLAMA_MODEL"] = "llama3:latest"

from sqlmodel import Session  # noqa: E402

from companion.db import engine, init_db  # noqa: E402
from companion.models import User  # noqa: E402
from companion.services.providers import ProviderResult  # noqa: E402


class FakeProvider:
    """Stand-in adapter that records calls and returns a canned reply or raises."""

    name = "fake"

    def __init__(self, reply="I'm here with you. What feels heaviest right now?", error=None, model="fake-model"):
        self.reply = reply
        self.error = error
        self.model = model
        self.calls = []

    async def generate(self, messages, system_prompt=None):
        self.calls.append((list(messages), system_prompt))
        if self.error is not None:
            raise self.error
        return ProviderResult(content=self.reply, tokens=42, latency_ms=7, model=self.model)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def db():
    init_db()
    with Session(engine) as session:
        yield session


@pytest.fixture
def user(db):
    u = User(email=f"{uuid.uuid4().hex}@example.com", name="Test User")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def session_id():
    return str(uuid.uuid4())
