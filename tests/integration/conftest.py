"""Integration-test fixtures for deterministic provider and credential behavior."""

from __future__ import annotations

import pytest

from tests.doubles import InMemoryCredentialStore
from tourvoice.llm.openai_client import OpenAIChatClient, OpenAISpeechClient


@pytest.fixture(autouse=True)
def _mock_openai_calls(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock OpenAI chat and speech calls to avoid network requirements."""

    def _mock_chat_completion(self, **kwargs: object) -> str:
        """Return deterministic narration text."""

        _ = self
        _ = kwargs
        return "integration-mocked narration for this stop."

    def _mock_synthesize_speech(self, **kwargs: object) -> bytes:
        """Return deterministic placeholder MP3 bytes."""

        _ = self
        _ = kwargs
        return b"ID3-integration-audio"

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _mock_chat_completion)
    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _mock_synthesize_speech)


@pytest.fixture(autouse=True)
def credential_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryCredentialStore:
    """Replace secure storage with an empty in-memory store and clear the env key."""

    store = InMemoryCredentialStore()
    monkeypatch.setattr("tourvoice.cli.create_credential_store", lambda: store)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return store
