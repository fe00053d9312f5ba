"""
Unit tests for token estimation.
"""

from unittest.mock import MagicMock, patch

from cloakchat.core.token_estimator import (
    HeuristicTokenEstimator,
    TiktokenEstimator,
    count_messages,
    estimate_message,
)
from cloakchat.models import ChatMessage, multimodal_content


class TestHeuristicTokenEstimator:
    """Tests for the character-class estimate."""

    def test_empty_text(self):
        assert HeuristicTokenEstimator().estimate("") == 0

    def test_ascii_letters_cost_a_quarter(self):
        assert HeuristicTokenEstimator().estimate("abcd") == 1
        assert HeuristicTokenEstimator().estimate("a" * 200) == 50

    def test_other_ascii_costs_a_half(self):
        assert HeuristicTokenEstimator().estimate("1234") == 2

    def test_non_ascii_costs_one_and_a_half(self):
        assert HeuristicTokenEstimator().estimate("你好") == 3

    def test_rounds_up(self):
        # 10 letters + 1 space = 12 quarters
        assert HeuristicTokenEstimator().estimate("hello world") == 3
        assert HeuristicTokenEstimator().estimate("a") == 1


class TestTiktokenEstimator:
    """Tests for the tiktoken-backed estimate."""

    def test_uses_model_encoding(self):
        encoder = MagicMock()
        encoder.encode.return_value = [1, 2, 3]
        with patch("tiktoken.encoding_for_model", return_value=encoder) as for_model:
            estimator = TiktokenEstimator(model="gpt-4")
            assert estimator.estimate("hi there") == 3
            for_model.assert_called_once_with("gpt-4")

    def test_unknown_model_falls_back(self):
        encoder = MagicMock()
        encoder.encode.return_value = [1]
        with patch("tiktoken.encoding_for_model", side_effect=KeyError("nope")), \
                patch("tiktoken.get_encoding", return_value=encoder) as get_encoding:
            estimator = TiktokenEstimator(model="gemini-pro")
            assert estimator.estimate("x") == 1
            get_encoding.assert_called_once_with("cl100k_base")


class TestMessageCounting:

    def test_multimodal_counts_first_text_part(self):
        message = ChatMessage(content=multimodal_content("abcd", ["https://example.com/a.png"]))
        assert estimate_message(message, HeuristicTokenEstimator()) == 1

    def test_count_messages_sums(self):
        messages = [ChatMessage(content="abcd"), ChatMessage(content="1234")]
        assert count_messages(messages, HeuristicTokenEstimator()) == 3
