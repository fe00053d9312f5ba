"""
Unit tests for template fill and topic cleanup.
"""

from datetime import datetime

from cloakchat.core.prompts import (
    DEFAULT_SYSTEM_TEMPLATE,
    TOPIC_MAX_LENGTH,
    fill_template_with,
    memory_prompt_content,
    trim_topic,
)
from cloakchat.models import ModelConfig


class TestFillTemplate:
    """Tests for fill_template_with."""

    def test_default_template_is_input(self):
        assert fill_template_with("hi", ModelConfig()) == "hi"

    def test_template_with_input_placeholder(self):
        config = ModelConfig(template="Answer briefly: {{input}}")
        assert fill_template_with("why?", config) == "Answer briefly: why?"

    def test_template_without_placeholder_appends_input(self):
        config = ModelConfig(template="Be brief.")
        assert fill_template_with("why?", config) == "Be brief.\nwhy?"

    def test_input_starting_with_template_drops_it(self):
        config = ModelConfig(template="Hello")
        assert fill_template_with("Hello there", config) == "\nHello there"

    def test_input_is_substituted_last(self):
        config = ModelConfig(template="{{input}}")
        assert fill_template_with("{{model}}", config) == "{{model}}"

    def test_system_template(self):
        config = ModelConfig(model="gpt-4-turbo-preview")
        text = fill_template_with(
            "", config,
            template=DEFAULT_SYSTEM_TEMPLATE,
            now=datetime(2024, 1, 2, 3, 4, 5),
        )
        assert "trained by OpenAI" in text
        assert "Knowledge cutoff: 2023-12" in text
        assert "Current model: gpt-4-turbo-preview" in text
        assert "Current time: Tue Jan 02 2024 03:04:05" in text

    def test_unknown_model_uses_defaults(self):
        config = ModelConfig(model="my-model", template="{{ServiceProvider}} {{cutoff}} {{lang}} {{input}}")
        assert fill_template_with("x", config, lang="fr") == "OpenAI 2021-09 fr x"

    def test_gemini_provider(self):
        config = ModelConfig(model="gemini-pro", template="{{ServiceProvider}} {{cutoff}}{{input}}")
        assert fill_template_with("", config) == "Google 2023-12"


class TestTrimTopic:

    def test_strips_quotes_and_trailing_punctuation(self):
        assert trim_topic('"Weekend Trip Planning."') == "Weekend Trip Planning"

    def test_strips_bold(self):
        assert trim_topic("**Bold Title**") == "Bold Title"

    def test_strips_cjk_punctuation(self):
        assert trim_topic("旅行计划。") == "旅行计划"

    def test_caps_length(self):
        assert len(trim_topic("x" * 80)) == TOPIC_MAX_LENGTH


def test_memory_prompt_content():
    assert memory_prompt_content("we talked") == (
        "This is a summary of the chat history as a recap: we talked"
    )
