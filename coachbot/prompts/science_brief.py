"""
Science Brief - Evidence-Based FAQ / Myth Buster
================================================

1. Receive a topic string from the /science command.
2. Build a deterministic prompt with fixed sections:
   Evidence, Uncertainties, Practical.
3. Send it with the strict system message to OpenRouter.
4. Return the text for immediate delivery to the chat.
"""

from typing import Optional

from ..infrastructure.llm import OpenRouterClient
from .base import context_section, ensure_enabled, require_text
from .templates import SCIENCE_PROMPT_TEMPLATE, SCIENCE_SYSTEM_PROMPT


def build_science_brief_prompt(topic: str, context: Optional[str] = None) -> str:
    trimmed_topic = require_text(topic, "Topic is required to build a science brief prompt.")
    return SCIENCE_PROMPT_TEMPLATE.format(
        topic=trimmed_topic,
        context_section=context_section(context),
    )


def generate_science_brief(
    client: OpenRouterClient,
    topic: str,
    context: Optional[str] = None,
) -> str:
    sanitized = require_text(topic, "Topic is required for science brief generation.")
    ensure_enabled(client)

    prompt = build_science_brief_prompt(sanitized, context)
    return client.generate_text(prompt, SCIENCE_SYSTEM_PROMPT)
