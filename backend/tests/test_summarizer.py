"""
Unit tests for title generation and memory compression.
"""

import asyncio

import pytest

from cloakchat.core.prompts import SUMMARIZE_PROMPT, TOPIC_PROMPT
from cloakchat.core.summarizer import Summarizer
from cloakchat.llm.client import ChatStatus, ModelClient
from cloakchat.models import DEFAULT_TOPIC, ChatMessage, ModelConfig, Role


def make_summarizer(store, estimator, provider, **kwargs):
    kwargs.setdefault("available_models", ["gpt-3.5-turbo", "gpt-4"])
    return Summarizer(store, estimator, lambda model: ModelClient(provider), **kwargs)


def seed(store, messages, **config):
    session = store.current_session()

    def apply(s):
        s.messages = messages
        s.mask.model_settings = ModelConfig(**config)
    return store.update_session(session.id, apply)


def long_messages(count, chars=800):
    return [
        ChatMessage(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content="a" * chars)
        for i in range(count)
    ]


class TestTitleGeneration:

    @pytest.mark.asyncio
    async def test_fires_once_at_threshold(self, store, estimator, fake_provider):
        fake_provider.reply = '"Trip Planning."'
        session = seed(store, [ChatMessage(content="a" * 200)])  # exactly 50 tokens
        summarizer = make_summarizer(store, estimator, fake_provider)

        first = summarizer.start_title_generation(session.id)
        second = summarizer.start_title_generation(session.id)
        assert first is not None
        assert second is None

        result = await first.wait()
        assert result.status == ChatStatus.FINISHED
        assert len(fake_provider.calls) == 1

        call = fake_provider.calls[0]
        assert call["stream"] is False
        assert call["model"] == "gpt-3.5-turbo"
        assert call["messages"][-1].content == TOPIC_PROMPT

        updated = store.get_session(session.id)
        assert updated.topic == "Trip Planning"
        assert updated.topic_updated is True

        # latched: no second request
        assert summarizer.start_title_generation(session.id) is None
        assert len(fake_provider.calls) == 1

    def test_below_threshold(self, store, estimator, fake_provider):
        session = seed(store, [ChatMessage(content="a" * 196)])
        summarizer = make_summarizer(store, estimator, fake_provider)
        assert summarizer.should_generate_title(session) is False

    def test_disabled(self, store, estimator, fake_provider):
        session = seed(store, [ChatMessage(content="a" * 400)])
        summarizer = make_summarizer(store, estimator, fake_provider, enable_auto_title=False)
        assert summarizer.should_generate_title(session) is False

    def test_custom_topic_is_kept(self, store, estimator, fake_provider):
        session = seed(store, [ChatMessage(content="a" * 400)])
        session = store.update_session(session.id, lambda s: setattr(s, "topic", "My Topic"))
        summarizer = make_summarizer(store, estimator, fake_provider)
        assert summarizer.should_generate_title(session) is False

    @pytest.mark.asyncio
    async def test_failure_leaves_topic(self, store, estimator, fake_provider):
        fake_provider.error = RuntimeError("boom")
        session = seed(store, [ChatMessage(content="a" * 400)])
        summarizer = make_summarizer(store, estimator, fake_provider)

        task = summarizer.start_title_generation(session.id)
        result = await task.wait()

        assert result.status == ChatStatus.ERROR
        updated = store.get_session(session.id)
        assert updated.topic == DEFAULT_TOPIC
        assert updated.topic_updated is False
        # a later turn may try again
        assert summarizer.should_generate_title(updated) is True

    @pytest.mark.asyncio
    async def test_empty_reply_keeps_default(self, store, estimator, fake_provider):
        fake_provider.reply = ""
        session = seed(store, [ChatMessage(content="a" * 400)])
        summarizer = make_summarizer(store, estimator, fake_provider)

        await summarizer.start_title_generation(session.id).wait()

        updated = store.get_session(session.id)
        assert updated.topic == DEFAULT_TOPIC
        assert updated.topic_updated is False

    @pytest.mark.asyncio
    async def test_gemini_session_uses_gemini_summarize_model(self, store, estimator, fake_provider):
        session = seed(store, [ChatMessage(content="a" * 400)], model="gemini-ultra")
        summarizer = make_summarizer(store, estimator, fake_provider)

        await summarizer.start_title_generation(session.id).wait()
        assert fake_provider.calls[0]["model"] == "gemini-pro"


class TestMessagesToSummarize:

    def test_truncates_to_history_count_over_budget(self, store, estimator, fake_provider):
        session = seed(store, long_messages(6), max_tokens=300, history_message_count=4)
        summarizer = make_summarizer(store, estimator, fake_provider)

        messages, history_length = summarizer.messages_to_summarize(session)
        assert history_length == 1200
        assert [m.id for m in messages] == [m.id for m in session.messages[2:]]

    def test_starts_at_later_of_summary_and_clear(self, store, estimator, fake_provider):
        session = seed(store, long_messages(6, chars=4))

        def apply(s):
            s.last_summarize_index = 2
            s.clear_context_index = 4
            s.memory_prompt = "before"
        session = store.update_session(session.id, apply)
        summarizer = make_summarizer(store, estimator, fake_provider)

        messages, history_length = summarizer.messages_to_summarize(session)
        assert history_length == 2
        assert messages[0].role == Role.SYSTEM
        assert messages[0].content.endswith("before")
        assert [m.id for m in messages[1:]] == [m.id for m in session.messages[4:]]

    def test_skips_error_messages(self, store, estimator, fake_provider):
        messages = long_messages(4, chars=4)
        messages[1].is_error = True
        session = seed(store, messages)
        summarizer = make_summarizer(store, estimator, fake_provider)

        to_summarize, _ = summarizer.messages_to_summarize(session)
        assert len(to_summarize) == 3


class TestMemoryCompression:

    @pytest.mark.asyncio
    async def test_commits_memory_on_finish(self, store, estimator, fake_provider):
        fake_provider.chunks = ["Summary ", "of chat"]
        session = seed(store, long_messages(6), model="gpt-4", top_p=0.9)
        summarizer = make_summarizer(store, estimator, fake_provider)

        task = summarizer.start_memory_compression(session.id)
        assert task is not None
        result = await task.wait()
        assert result.status == ChatStatus.FINISHED

        updated = store.get_session(session.id)
        assert updated.memory_prompt == "Summary of chat"
        assert updated.last_summarize_index == 6
        assert summarizer.pending_memory == {}

        call = fake_provider.calls[0]
        assert call["stream"] is True
        assert call["max_tokens"] is None
        assert call["model"] == "gpt-3.5-turbo"
        assert call["top_p"] == 0.9
        assert call["messages"][-1].content == SUMMARIZE_PROMPT

    def test_below_threshold_does_nothing(self, store, estimator, fake_provider):
        session = seed(store, long_messages(4))  # 800 tokens
        summarizer = make_summarizer(store, estimator, fake_provider)
        assert summarizer.start_memory_compression(session.id) is None

    def test_send_memory_disabled(self, store, estimator, fake_provider):
        session = seed(store, long_messages(6), send_memory=False)
        summarizer = make_summarizer(store, estimator, fake_provider)
        assert summarizer.start_memory_compression(session.id) is None

    @pytest.mark.asyncio
    async def test_failure_commits_nothing(self, store, estimator, fake_provider):
        fake_provider.chunks = ["partial summary"]
        fake_provider.error = RuntimeError("stream broke")
        session = seed(store, long_messages(6))
        summarizer = make_summarizer(store, estimator, fake_provider)

        result = await summarizer.start_memory_compression(session.id).wait()
        assert result.status == ChatStatus.ERROR

        updated = store.get_session(session.id)
        assert updated.memory_prompt == ""
        assert updated.last_summarize_index == 0
        assert summarizer.pending_memory == {}

    @pytest.mark.asyncio
    async def test_index_captured_at_trigger_time(self, store, estimator, fake_provider):
        fake_provider.delay = 0.01
        session = seed(store, long_messages(6))
        summarizer = make_summarizer(store, estimator, fake_provider)

        task = summarizer.start_memory_compression(session.id)
        await asyncio.sleep(0)
        store.append_messages(session.id, [ChatMessage(content="late"), ChatMessage(content="later")])
        await task.wait()

        updated = store.get_session(session.id)
        assert len(updated.messages) == 8
        assert updated.last_summarize_index == 6

    @pytest.mark.asyncio
    async def test_summarize_session_runs_both(self, store, estimator, fake_provider):
        session = seed(store, long_messages(6))
        summarizer = make_summarizer(store, estimator, fake_provider)

        tasks = summarizer.summarize_session(session.id)
        assert len(tasks) == 2
        for task in tasks:
            await task.wait()
        assert len(fake_provider.calls) == 2

    def test_summarize_missing_session(self, store, estimator, fake_provider):
        summarizer = make_summarizer(store, estimator, fake_provider)
        assert summarizer.summarize_session("missing") == []
