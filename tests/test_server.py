"""API route tests."""

from unittest.mock import MagicMock

from httpx import AsyncClient

from another_i.api import server
from another_i.clients.llm_client import ANTHROPIC_MODELS

SETTINGS = {"provider": "anthropic", "apiKey": "sk-ant", "model": "claude-3-5-haiku-20241022"}


class TestHealthCheck:
    async def test_health(self, api_client: AsyncClient):
        response = await api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestChatRoute:
    async def test_demo_reply(self, api_client: AsyncClient, api_fake):
        response = await api_client.post("/api/chat", json={"messages": [{"role": "user", "content": "やあ"}]})
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == api_fake.reply
        assert data["isDemo"] is True

    async def test_configured_reply(self, api_client: AsyncClient, api_fake):
        response = await api_client.post(
            "/api/chat", json={"messages": [{"role": "user", "content": "やあ"}], "settings": SETTINGS}
        )
        data = response.json()
        assert data["isDemo"] is False
        assert data["provider"] == "fake"

    async def test_response_keys_are_camel_case(self, api_client: AsyncClient, api_fake):
        response = await api_client.post("/api/chat", json={"messages": [{"role": "user", "content": "やあ"}]})
        data = response.json()
        assert "isDemo" in data
        assert "is_demo" not in data

    async def test_history_is_capped(self, api_client: AsyncClient, api_fake):
        messages = [{"role": "user", "content": str(i)} for i in range(30)]
        await api_client.post("/api/chat", json={"messages": messages})
        assert len(api_fake.complete_calls[0]) == 20
        assert api_fake.complete_calls[0][-1]["content"] == "29"

    async def test_provider_failure_is_displayable(self, api_client: AsyncClient, api_fake):
        api_fake.fail_complete = True
        response = await api_client.post(
            "/api/chat", json={"messages": [{"role": "user", "content": "やあ"}], "settings": SETTINGS}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["isDemo"] is True
        assert data["provider"] == "error"
        assert data["error"] == "connection reset"
        assert "connection reset" in data["message"]

    async def test_invalid_role_rejected(self, api_client: AsyncClient):
        response = await api_client.post("/api/chat", json={"messages": [{"role": "system", "content": "x"}]})
        assert response.status_code == 422


class TestSummarizeRoute:
    async def test_summary(self, api_client: AsyncClient, api_fake):
        response = await api_client.post(
            "/api/summarize", json={"messages": [{"role": "user", "content": "考え"}], "settings": SETTINGS}
        )
        assert response.status_code == 200
        assert response.json() == {"summary": api_fake.summary, "isDemo": False, "error": None}

    async def test_failure_returns_local_summary(self, api_client: AsyncClient, api_fake):
        api_fake.fail_summary = True
        response = await api_client.post(
            "/api/summarize", json={"messages": [{"role": "user", "content": "考え"}], "settings": SETTINGS}
        )
        assert response.status_code == 500
        data = response.json()
        assert data["isDemo"] is True
        assert data["summary"].startswith("# 思考ログ")
        assert data["error"] == "summary failed"


class TestTitleRoute:
    async def test_title(self, api_client: AsyncClient, api_fake):
        response = await api_client.post(
            "/api/title",
            json={"message": "転職の相談", "model": "m", "apiKey": "k", "provider": "openai"},
        )
        assert response.status_code == 200
        assert response.json()["title"] == api_fake.title

    async def test_missing_message(self, api_client: AsyncClient):
        response = await api_client.post("/api/title", json={"message": "", "model": "m", "apiKey": "k", "provider": "openai"})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Message is required"

    async def test_provider_failure(self, api_client: AsyncClient, api_fake):
        api_fake.fail_title = True
        response = await api_client.post(
            "/api/title", json={"message": "x", "model": "m", "apiKey": "k", "provider": "gemini"}
        )
        assert response.status_code == 500
        assert response.json()["error"]["message"] == "title failed"


class TestModelsRoute:
    async def test_requires_key(self, api_client: AsyncClient):
        response = await api_client.post("/api/models", json={"provider": "openai"})
        assert response.status_code == 400

    async def test_unknown_provider(self, api_client: AsyncClient):
        response = await api_client.post("/api/models", json={"provider": "mistral", "apiKey": "k"})
        assert response.status_code == 400
        assert response.json()["error"] == "Unknown provider"

    async def test_lists_models(self, api_client: AsyncClient, monkeypatch):
        fake = MagicMock()
        fake.list_models.return_value = ANTHROPIC_MODELS
        monkeypatch.setattr(server, "llm_client", fake)
        response = await api_client.post("/api/models", json={"provider": "anthropic", "apiKey": "k"})
        assert response.status_code == 200
        assert response.json()["models"][0] == {"id": ANTHROPIC_MODELS[0].id, "name": ANTHROPIC_MODELS[0].name}
