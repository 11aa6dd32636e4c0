"""Shared pytest fixtures."""

import os
import tempfile

# Settings are read at import time; point storage and logs somewhere disposable
# before any another_i module is imported.
_TMP_ROOT = tempfile.mkdtemp(prefix="another-i-tests-")
os.environ["ANOTHER_I_DB_PATH"] = os.path.join(_TMP_ROOT, "default.db")
os.environ["ANOTHER_I_LOG_DIR"] = os.path.join(_TMP_ROOT, "logs")
os.environ["ANOTHER_I_LOG_LEVEL"] = "WARNING"

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from another_i.clients.llm_client import CompletionResult, ProviderError
from another_i.core.models import (
    AIProvider,
    AISettings,
    Conversation,
    Folder,
    Message,
    Role,
    is_configured,
)


NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def make_message(role: str, content: str, msg_id: str, minutes: int = 0) -> Message:
    return Message(id=msg_id, role=Role(role), content=content, timestamp=NOW + timedelta(minutes=minutes))


def make_conversation(conv_id: str, title: str = "会話", messages=(), minutes: int = 0, **kwargs) -> Conversation:
    return Conversation(
        id=conv_id,
        title=title,
        messages=tuple(messages),
        created_at=NOW + timedelta(minutes=minutes),
        updated_at=NOW + timedelta(minutes=minutes),
        **kwargs,
    )


class FakeAIClient:
    """
    Scripted stand-in for LLMClient.

    ``release`` gates complete(): clear it to hold a completion in flight,
    set it to let the reply through.
    """

    def __init__(self, reply: str = "考えを聞かせてください。", summary: str = "# 要約\n\n- ポイント", title: str = "「仕事の優先順位」"):
        self.reply = reply
        self.summary = summary
        self.title = title
        self.release = threading.Event()
        self.release.set()
        self.entered = threading.Event()
        self.fail_complete = False
        self.fail_summary = False
        self.fail_title = False
        self.complete_calls: List[List[Dict[str, str]]] = []
        self.summarize_calls: List[List[Dict[str, str]]] = []
        self.title_calls: List[str] = []

    def complete(self, messages, settings: Optional[AISettings] = None) -> CompletionResult:
        self.complete_calls.append(list(messages))
        self.entered.set()
        self.release.wait(5)
        if self.fail_complete:
            raise ProviderError("connection reset", "network", "fake")
        return CompletionResult(text=self.reply, is_fallback=not is_configured(settings), provider="fake")

    def summarize(self, messages, settings: Optional[AISettings] = None) -> str:
        self.summarize_calls.append(list(messages))
        if self.fail_summary:
            raise ProviderError("summary failed", "http_500", "fake")
        return self.summary

    def title_for(self, message: str, settings: AISettings) -> str:
        self.title_calls.append(message)
        if self.fail_title:
            raise ProviderError("title failed", "rate_limit", "fake")
        return self.title


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "state.db")


@pytest.fixture
def fake_client() -> FakeAIClient:
    return FakeAIClient()


@pytest.fixture
def ai_settings() -> AISettings:
    return AISettings(provider=AIProvider.ANTHROPIC, api_key="sk-test-key", model="claude-3-5-haiku-20241022")


@pytest.fixture
def two_folders():
    a = make_conversation("conv-a", "週末の予定", [make_message("user", "週末どうしよう", "m-a1")], minutes=1)
    b = make_conversation("conv-b", "仕事の相談", [make_message("user", "優先順位に困っている", "m-b1")], minutes=5)
    c = make_conversation("conv-c", "読書メモ", minutes=3)
    return (
        Folder(id="folder-1", name="会話", conversations=(a, b)),
        Folder(id="folder-2", name="仕事", conversations=(c,)),
    )


@pytest.fixture
def api_fake(monkeypatch) -> FakeAIClient:
    """Swap the server's shared client for a scripted one."""
    from another_i.api import server

    fake = FakeAIClient()
    monkeypatch.setattr(server, "llm_client", fake)
    return fake


@pytest.fixture
async def api_client(api_fake):
    """Async HTTP client bound to the FastAPI app."""
    from another_i.api import server

    transport = ASGITransport(app=server.app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
