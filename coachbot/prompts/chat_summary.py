"""
Chat Summary - Recap of Recent Conversation
===========================================

Fetches the latest messages of a chat, keeps the ones inside the lookback
window, turns them into a plain transcript and asks the model for a recap
(overview, action items, open questions).
"""

import logging
import time
from datetime import datetime
from typing import Iterable, List, Optional

from ..infrastructure.llm import OpenRouterClient
from ..infrastructure.whatsapp import ChatMessage, MessagingProvider
from .base import ensure_enabled, require_text
from .templates import SUMMARY_PROMPT_TEMPLATE, SUMMARY_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_SECONDS = 24 * 60 * 60
DEFAULT_MAX_MESSAGES = 50
NOTHING_TO_SUMMARIZE = "No messages in the selected window to summarize."


def build_chat_summary_prompt(transcript: str) -> str:
    trimmed = require_text(transcript, "Transcript is required to build a chat summary prompt.")
    return SUMMARY_PROMPT_TEMPLATE.format(transcript=trimmed)


def build_transcript(
    messages: Iterable[ChatMessage],
    lookback_seconds: int = DEFAULT_LOOKBACK_SECONDS,
    max_messages: int = DEFAULT_MAX_MESSAGES,
    now: Optional[float] = None,
) -> str:
    """
    Turn chat messages into "[YYYY-MM-DD HH:MM] Me|Them: body" lines.

    Messages without text or older than the lookback window are dropped.
    Messages with an unknown timestamp are kept. Only the newest
    max_messages survive, in chronological order.
    """
    cutoff = (now if now is not None else time.time()) - lookback_seconds

    kept: List[ChatMessage] = []
    for message in messages:
        if not (message.body or "").strip():
            continue
        if message.timestamp is not None and message.timestamp < cutoff:
            continue
        kept.append(message)

    kept.sort(key=lambda m: m.timestamp if m.timestamp is not None else float("inf"))
    kept = kept[-max_messages:] if max_messages > 0 else []

    lines = []
    for message in kept:
        author = "Me" if message.from_me else "Them"
        if message.timestamp is not None:
            stamp = datetime.fromtimestamp(message.timestamp).strftime("%Y-%m-%d %H:%M")
            lines.append(f"[{stamp}] {author}: {message.body.strip()}")
        else:
            lines.append(f"{author}: {message.body.strip()}")
    return "\n".join(lines)


def summarize_recent_chat(
    provider: MessagingProvider,
    client: OpenRouterClient,
    chat_id: str,
    lookback_seconds: int = DEFAULT_LOOKBACK_SECONDS,
    max_messages: int = DEFAULT_MAX_MESSAGES,
) -> str:
    """
    Summarize the recent conversation of a chat.

    Returns:
        The model's recap, or NOTHING_TO_SUMMARIZE when the window is empty.
    """
    ensure_enabled(client)

    messages = provider.fetch_messages(chat_id, limit=max_messages)
    transcript = build_transcript(messages, lookback_seconds, max_messages)
    if not transcript:
        logger.info(f"Nothing to summarize in chat {chat_id}")
        return NOTHING_TO_SUMMARIZE

    prompt = build_chat_summary_prompt(transcript)
    return client.generate_text(prompt, SUMMARY_SYSTEM_PROMPT)
