"""
Prompt text, templates and per-model constants.
"""

import re
from datetime import datetime
from typing import Optional

from ..models.session import DEFAULT_INPUT_TEMPLATE, DEFAULT_TOPIC, ModelConfig

DEFAULT_SYSTEM_TEMPLATE = """
You are ChatGPT, a large language model trained by {{ServiceProvider}}.
Knowledge cutoff: {{cutoff}}
Current model: {{model}}
Current time: {{time}}
Latex inline: $x^2$ 
Latex block: $$e=mc^2$$
"""

TOPIC_PROMPT = (
    "Please generate a four to five word title summarizing our conversation "
    "without any lead-in, punctuation, quotation marks, periods, symbols, bold "
    "text, or additional text. Remove enclosing quotation marks."
)

SUMMARIZE_PROMPT = (
    "Summarize the discussion briefly in 200 words or less to use as a prompt "
    "for future context."
)

MEMORY_PROMPT_PREFIX = "This is a summary of the chat history as a recap: "

KNOWLEDGE_CUTOFF = {
    "default": "2021-09",
    "gpt-4-turbo-preview": "2023-12",
    "gpt-4-1106-preview": "2023-04",
    "gpt-4-0125-preview": "2023-12",
    "gpt-4-vision-preview": "2023-04",
    "gemini-pro": "2023-12",
}

# Known models and the service provider that trains them
MODEL_PROVIDERS = {
    "gpt-3.5-turbo": "OpenAI",
    "gpt-4": "OpenAI",
    "gpt-4-turbo-preview": "OpenAI",
    "gpt-4-1106-preview": "OpenAI",
    "gpt-4-0125-preview": "OpenAI",
    "gpt-4-vision-preview": "OpenAI",
    "gemini-pro": "Google",
    "gemini-pro-vision": "Google",
    "claude-2.1": "Anthropic",
    "claude-3-opus-20240229": "Anthropic",
    "claude-3-sonnet-20240229": "Anthropic",
    "claude-3-haiku-20240307": "Anthropic",
}

TOPIC_MAX_LENGTH = 50

_INPUT_VAR = "{{input}}"


def memory_prompt_content(memory_prompt: str) -> str:
    return MEMORY_PROMPT_PREFIX + memory_prompt


def trim_topic(topic: str) -> str:
    """Clean up a model-generated title for display."""
    topic = re.sub(r'^["“”*]+|["“”*]+$', "", topic.strip())
    topic = re.sub(r"[，。！？”“\"、,.!?*]*$", "", topic)
    return topic.strip()[:TOPIC_MAX_LENGTH]


def fill_template_with(
    input: str,
    model_config: ModelConfig,
    template: Optional[str] = None,
    lang: str = "en",
    now: Optional[datetime] = None,
) -> str:
    """
    Render a prompt template around the user's input.

    Placeholders are `{{name}}` tokens. A template the input already starts
    with is dropped; a template without `{{input}}` gets it appended on a new
    line.
    """
    model = model_config.model
    variables = {
        "ServiceProvider": MODEL_PROVIDERS.get(model, "OpenAI"),
        "cutoff": KNOWLEDGE_CUTOFF.get(model, KNOWLEDGE_CUTOFF["default"]),
        "model": model,
        "time": (now or datetime.now()).strftime("%a %b %d %Y %H:%M:%S"),
        "lang": lang,
        "input": input,
    }

    output = template if template is not None else (model_config.template or DEFAULT_INPUT_TEMPLATE)

    # remove duplicate
    if input.startswith(output):
        output = ""

    if _INPUT_VAR not in output:
        output += "\n" + _INPUT_VAR

    for name, value in variables.items():
        output = output.replace("{{" + name + "}}", str(value))

    return output


__all__ = [
    "DEFAULT_TOPIC",
    "DEFAULT_INPUT_TEMPLATE",
    "DEFAULT_SYSTEM_TEMPLATE",
    "TOPIC_PROMPT",
    "SUMMARIZE_PROMPT",
    "KNOWLEDGE_CUTOFF",
    "MODEL_PROVIDERS",
    "TOPIC_MAX_LENGTH",
    "memory_prompt_content",
    "trim_topic",
    "fill_template_with",
]
