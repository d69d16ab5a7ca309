import uuid

import pytest
from fastapi.testclient import TestClient

from companion.config import Settings
from companion.main import app, get_orchestrator
from companion.resources import HOTLINE_NUMBERS, KIRAN_NUMBER
from companion.services.chat_service import ChatOrchestrator
from companion.services.ollama_ai import OllamaProvider
from companion.services.providers import ProviderUnreachable

client = TestClient(app)


def use_provider(provider):
    app.dependency_overrides[get_orchestrator] = lambda: ChatOrchestrator(
        Settings(), provider_factory=lambda tag, pref, s: provider)


@pytest.fixture(autouse=True)
def fake(fake_provider):
    use_provider(fake_provider)
    yield fake_provider
    app.dependency_overrides.pop(get_orchestrator, None)


def chat(user_id, session_id, message, **extra):
    payload = {"message": message, "sessionId": session_id, "userId": user_id, **extra}
    return client.post("/api/ai/chat", json=payload)


def test_chat_missing_fields():
    r = client.post("/api/ai/chat", json={"message": "hi"})
    assert r.status_code == 400
    assert r.json() == {"error": "Missing required fields"}

    r = client.post("/api/ai/chat", json={"message": "   ", "sessionId": "s", "userId": 1})
    assert r.status_code == 400


def test_chat_unknown_user():
    r = chat(987654321, "s", "hello")
    assert r.status_code == 404
    assert r.json()["error"] == "User not found"


def test_chat_normal(user, session_id, fake):
    r = chat(user.id, session_id, "I went for a walk today")
    assert r.status_code == 200
    j = r.json()
    assert j["message"] == fake.reply
    assert j["crisisDetected"] is False
    assert "crisisLevel" not in j
    assert j["metadata"]["model"] == "fake-model"
    assert j["metadata"]["tokens"] == 42
    assert j["metadata"]["latencyMs"] == 7
    assert j["metadata"]["sessionId"] == session_id


def test_chat_crisis(user, session_id):
    r = chat(user.id, session_id, "I want to end my life")
    assert r.status_code == 200
    j = r.json()
    assert j["crisisDetected"] is True
    assert j["crisisLevel"] in ("moderate", "high", "imminent", "low")
    assert any(n in j["message"] for n in HOTLINE_NUMBERS)
    assert j["metadata"]["riskLevel"] == j["crisisLevel"]
    assert j["metadata"]["resources"]
    assert j["metadata"]["immediateActions"]


def test_chat_provider_down_returns_fallback_and_troubleshooting(user, session_id, fake):
    fake.error = ProviderUnreachable("refused", provider="ollama", base_url="http://localhost:11434")
    r = chat(user.id, session_id, "hello?")
    assert r.status_code == 200
    j = r.json()
    assert KIRAN_NUMBER in j["message"]
    assert j["metadata"]["model"] == "fallback"
    assert any("http://localhost:11434" in s for s in j["troubleshooting"])


def test_history_and_delete(user, session_id):
    chat(user.id, session_id, "first")
    chat(user.id, session_id, "second")
    r = client.get("/api/ai/chat", params={"userId": user.id, "sessionId": session_id})
    assert r.status_code == 200
    msgs = r.json()["messages"]
    assert [m["role"] for m in msgs] == ["user", "assistant", "user", "assistant"]
    assert msgs[0]["content"] == "first"
    assert msgs[0]["metadata"] is None
    assert msgs[1]["metadata"]["model"] == "fake-model"

    r = client.request("DELETE", "/api/ai/chat", json={"userId": user.id, "sessionId": session_id})
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = client.get("/api/ai/chat", params={"userId": user.id, "sessionId": session_id})
    assert r.json()["messages"] == []

    r = client.request("DELETE", "/api/ai/chat", json={"userId": user.id, "sessionId": session_id})
    assert r.status_code == 404


def test_delete_missing_fields():
    r = client.request("DELETE", "/api/ai/chat", json={"sessionId": "abc"})
    assert r.status_code == 400


def test_ai_settings_defaults(user):
    r = client.get("/api/user/ai-settings", params={"userId": user.id})
    assert r.status_code == 200
    s = r.json()["aiSettings"]
    assert s["provider"] == "ollama"
    assert s["ollamaBaseUrl"] == "http://localhost:11434"
    assert s["ollamaModel"] == "llama3:latest"
    assert s["conversationMemory"] is True
    assert "googleApiKey" not in s


def test_ai_settings_unknown_user():
    assert client.get("/api/user/ai-settings", params={"userId": 987654321}).status_code == 404


def test_ai_settings_save_google_roundtrip(user):
    r = client.put("/api/user/ai-settings", json={
        "userId": user.id,
        "aiSettings": {"provider": "google", "googleApiKey": "user-key", "conversationMemory": False},
    })
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is True
    assert j["message"] == "AI settings saved successfully"
    assert j["aiSettings"]["provider"] == "google"

    s = client.get("/api/user/ai-settings", params={"userId": user.id}).json()["aiSettings"]
    assert s == {
        "provider": "google",
        "googleApiKey": "user-key",
        "conversationMemory": False,
        "ollamaBaseUrl": "http://localhost:11434",
        "ollamaModel": "llama3:latest",
    }


def test_ai_settings_empty_uses_defaults(user):
    r = client.put("/api/user/ai-settings", json={"userId": user.id, "aiSettings": {}})
    assert r.status_code == 200
    s = r.json()["aiSettings"]
    assert s["provider"] == "ollama"
    assert s["conversationMemory"] is True


def test_ai_settings_missing_body():
    r = client.put("/api/user/ai-settings", json={"aiSettings": {}})
    assert r.status_code == 400


def test_ai_settings_invalid_provider(user):
    r = client.put("/api/user/ai-settings", json={"userId": user.id, "aiSettings": {"provider": "pigeon"}})
    assert r.status_code == 422


def test_ai_settings_ollama_probe_failure(user, monkeypatch):
    async def refuse(self):
        raise ProviderUnreachable("Connection refused", provider="ollama", base_url=self.base_url, model=self.model)

    monkeypatch.setattr(OllamaProvider, "probe", refuse)
    r = client.put("/api/user/ai-settings", json={
        "userId": user.id,
        "aiSettings": {"provider": "ollama", "ollamaBaseUrl": "http://gpu-box:11434"},
    })
    assert r.status_code == 400
    j = r.json()
    assert j["error"].startswith("Ollama connection test failed")
    assert any("http://gpu-box:11434" in s for s in j["troubleshooting"])

    # nothing was saved
    s = client.get("/api/user/ai-settings", params={"userId": user.id}).json()["aiSettings"]
    assert s["ollamaBaseUrl"] == "http://localhost:11434"


def test_ai_settings_ollama_probe_success(user, monkeypatch):
    async def ok(self):
        return True

    monkeypatch.setattr(OllamaProvider, "probe", ok)
    r = client.put("/api/user/ai-settings", json={
        "userId": user.id,
        "aiSettings": {"provider": "ollama", "ollamaBaseUrl": "http://gpu-box:11434/", "ollamaModel": "mistral"},
    })
    assert r.status_code == 200
    s = r.json()["aiSettings"]
    assert s["ollamaBaseUrl"] == "http://gpu-box:11434"
    assert s["ollamaModel"] == "mistral"


def test_list_models(monkeypatch):
    async def models(self):
        return ["llama3:latest", "mistral:latest"]

    monkeypatch.setattr(OllamaProvider, "list_models", models)
    r = client.get("/api/ai/models")
    assert r.status_code == 200
    assert r.json() == {"baseUrl": "http://localhost:11434", "models": ["llama3:latest", "mistral:latest"]}


def test_list_models_unreachable(monkeypatch):
    async def refuse(self):
        raise ProviderUnreachable("Connection refused", provider="ollama", base_url=self.base_url)

    monkeypatch.setattr(OllamaProvider, "list_models", refuse)
    r = client.get("/api/ai/models", params={"baseUrl": "http://nowhere:11434"})
    assert r.status_code == 503
    assert r.json()["troubleshooting"]


def test_status_has_no_secrets():
    r = client.get("/api/status")
    assert r.status_code == 200
    j = r.json()
    assert j["defaultProvider"] == "ollama"
    assert j["google"]["configured"] is False
    assert "apiKey" not in str(j)


def test_crisis_resources():
    j = client.get("/api/crisis/resources").json()
    phones = [r["phone"] for r in j["resources"]]
    assert KIRAN_NUMBER in phones
    assert "102" not in phones

    urgent = client.get("/api/crisis/resources", params={"urgent": "true"}).json()
    assert "102" in [r["phone"] for r in urgent["resources"]]


def test_session_ids_are_isolated(user):
    a, b = str(uuid.uuid4()), str(uuid.uuid4())
    chat(user.id, a, "only in a")
    r = client.get("/api/ai/chat", params={"userId": user.id, "sessionId": b})
    assert r.json()["messages"] == []


def test_ai_settings_ollama_invalid_url(user):
    r = client.put("/api/user/ai-settings", json={
        "userId": user.id,
        "aiSettings": {"provider": "ollama", "ollamaBaseUrl": "http://[::1"},
    })
    assert r.status_code == 400
    j = r.json()
    assert j["error"].startswith("Ollama connection test failed")
    assert j["troubleshooting"]


def test_list_models_invalid_url():
    r = client.get("/api/ai/models", params={"baseUrl": "http://[::1"})
    assert r.status_code == 503
    assert r.json()["troubleshooting"]
