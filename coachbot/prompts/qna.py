"""
QnA - Short, Direct Coaching Answers
====================================

For general questions that need a concise, practical reply. Unlike science
briefs (evidence summary) or chat summaries (conversation recap), answers
are kept brief for WhatsApp readability.
"""

import logging
from typing import Optional

from ..infrastructure.llm import OpenRouterClient
from .base import context_section, ensure_enabled, require_text
from .templates import QNA_PROMPT_TEMPLATE, QNA_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


def build_qna_prompt(question: str, context: Optional[str] = None) -> str:
    trimmed_question = require_text(question, "Question is required to build a QnA prompt.")
    return QNA_PROMPT_TEMPLATE.format(
        question=trimmed_question,
        context_section=context_section(context),
    )


def generate_qna_response(
    client: OpenRouterClient,
    question: str,
    context: Optional[str] = None,
) -> str:
    """Answer a coaching question with the QnA guardrails."""
    sanitized = require_text(question, "Question is required for QnA generation.")
    ensure_enabled(client)

    prompt = build_qna_prompt(sanitized, context)
    logger.debug(f"QnA prompt built ({len(prompt)} chars)")
    return client.generate_text(prompt, QNA_SYSTEM_PROMPT)
