"""
Shared test fixtures and configuration.
"""

import asyncio
import os
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/cloakchat_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LLM_API_KEY", "")

from cloakchat.core.chat_service import ChatService  # noqa: E402
from cloakchat.core.chat_store import ChatStore  # noqa: E402
from cloakchat.core.token_estimator import HeuristicTokenEstimator  # noqa: E402
from cloakchat.llm.base import LLMProvider, LLMResponse  # noqa: E402
from cloakchat.llm.families import ModelFamily  # noqa: E402
from cloakchat.models import RenamedChat, SyncSnapshot  # noqa: E402
from cloakchat.services.remote_chat import RemoteChatProvider  # noqa: E402


class FakeProvider(LLMProvider):
    """In-memory provider that records calls and replays canned output."""

    def __init__(self, chunks=None, reply="Fake reply", error=None, delay=0.0):
        super().__init__(api_key="test-key", model="fake-model")
        self.chunks = list(chunks) if chunks is not None else ["Hello", " there"]
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    def _record(self, messages, temperature, max_tokens, stream, kwargs):
        self.calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": stream,
            **kwargs,
        })

    async def chat_completion(self, messages, temperature=None, max_tokens=None, **kwargs):
        self._record(messages, temperature, max_tokens, False, kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.reply, model=kwargs.get("model") or self.model)

    async def chat_completion_stream(self, messages, temperature=None, max_tokens=None, **kwargs):
        self._record(messages, temperature, max_tokens, True, kwargs)
        for chunk in self.chunks:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk
        if self.error is not None:
            raise self.error


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def estimator():
    return HeuristicTokenEstimator()


@pytest.fixture
def store():
    return ChatStore()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def fake_remote():
    remote = AsyncMock(spec=RemoteChatProvider)
    remote.fetch_all.return_value = SyncSnapshot()
    remote.autorename.return_value = RenamedChat(name="Renamed Chat")
    remote.delete.return_value = True
    return remote


@pytest.fixture
def service(store, estimator, fake_provider, fake_remote):
    providers = {family: fake_provider for family in ModelFamily}
    return ChatService(
        store,
        estimator,
        providers,
        remote=fake_remote,
        available_models=["gpt-3.5-turbo", "gpt-4"],
    )
