from __future__ import annotations

from types import SimpleNamespace
from typing import Any, List

import pytest
from fastapi.testclient import TestClient

from app import analysis_client as A
from app import main
from app import session_store as S
from app.activity_logging import ActivityLogger
from app.drawing_store import DrawingStore, ProfileStore


class FakeCompletions:
    """Stands in for client.chat.completions; each outcome is a reply text or an exception."""

    def __init__(self, outcomes: List[Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(id="resp_test", choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_openai(monkeypatch):
    """Install a fake OpenAI client; call it with the outcomes to replay."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(A, "RETRY_BACKOFF", 0.0)

    def _install(*outcomes: Any) -> FakeCompletions:
        completions = FakeCompletions(list(outcomes))
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(A, "_get_client", lambda: client)
        return completions

    return _install


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture
def store(tmp_path) -> DrawingStore:
    return DrawingStore(tmp_path / "drawings")


@pytest.fixture
def client(tmp_path, monkeypatch, store):
    monkeypatch.setattr(main, "STORE", store)
    monkeypatch.setattr(main, "PROFILES", ProfileStore(store.base_dir))
    monkeypatch.setattr(main, "ACTIVITY", ActivityLogger(base_dir=tmp_path / "logs"))
    monkeypatch.setattr(main, "LOG_IO", False)
    with TestClient(main.app) as c:
        yield c
    S.clear_sessions()


@pytest.fixture
def session_with_child(client):
    """A session with one profile selected; returns (sid, child)."""
    sid = client.post("/session/init", json={"parent_email": "parent@example.com", "parent_name": "Sam Parent"}).json()["sid"]
    child = client.post(f"/session/{sid}/profiles", json={"name": "Maya Lee", "age": 7}).json()
    r = client.post(f"/session/{sid}/active-child", json={"child_id": child["id"]})
    assert r.status_code == 200
    return sid, child
