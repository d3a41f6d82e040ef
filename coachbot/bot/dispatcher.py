"""
Message Dispatcher - Routes Chat Events to Generation Flows
===========================================================

COMMANDS (case-insensitive prefix):
    /ask <question>      short coaching answer (legacy alias: !ask)
    /science <topic>     evidence brief
    /summary             recap of this chat's recent messages
    /calories <meal>     calorie/macro estimate; with a photo, of the photo
    /help                command list

Every attachment is saved first, whatever the text says. Images that come
without a command get a caption when the OpenRouter client is enabled.

ERROR HANDLING:
- Usage and missing-key problems are answered with a plain reply
- Remote failures are logged, the message gets a ⚠️ reaction and an apology
- Nothing raised while handling one message escapes handle()
"""

import logging
from typing import Callable, Optional, Tuple

from ..infrastructure.config import get_settings
from ..infrastructure.llm import OpenRouterClient
from ..infrastructure.storage import MediaStore
from ..infrastructure.whatsapp import IncomingMessage, MediaPayload, MessagingProvider
from ..prompts import (
    COMMANDS,
    estimate_plate_calories,
    format_calorie_estimate,
    generate_qna_response,
    generate_science_brief,
    summarize_recent_chat,
)

logger = logging.getLogger(__name__)

PENDING_REACTION = "⏳"
SUCCESS_REACTION = "✅"
FAILURE_REACTION = "⚠️"

LEGACY_ASK = "!ask"
HELP_COMMAND = "/help"

DISABLED_REPLY = "OpenRouter API key missing. Set OPENROUTER_API_KEY to enable AI responses."
APOLOGY_REPLY = "I could not reach OpenRouter right now. Please try again soon."
NO_ESTIMATE_REPLY = (
    "I couldn't estimate that meal. Try a clearer photo or describe the portions, "
    "e.g. /calories 2 rotis with dal and a bowl of curd"
)

USAGE = {
    "qna": "Usage: /ask <your question>",
    "science": "Usage: /science <topic>",
    "calories": "Usage: /calories <meal description>, or send a meal photo with /calories as caption",
}

HELP_REPLY = "\n".join([
    "🤖 Commands:",
    "/ask <question> - quick coaching answer",
    "/science <topic> - what the evidence says",
    "/summary - recap of the last 24h of this chat",
    "/calories <meal> - calorie & macro estimate (or send a photo with /calories)",
    "Any photo without a command gets a short caption.",
])


def parse_command(body: str) -> Tuple[Optional[str], str]:
    """
    Split a message body into (command name, argument).

    Returns (None, body) when the body does not start with a known token.
    A token only matches as a whole word: "/askme" is not "/ask".
    """
    text = (body or "").strip()
    lowered = text.lower()

    tokens = [(token, name) for name, token in COMMANDS.items()]
    tokens += [(LEGACY_ASK, "qna"), (HELP_COMMAND, "help")]

    for token, name in tokens:
        if lowered == token:
            return name, ""
        if lowered.startswith(token) and lowered[len(token)].isspace():
            return name, text[len(token):].strip()
    return None, text


class MessageDispatcher:
    """
    Handles one incoming chat event at a time.

    USAGE:
        dispatcher = MessageDispatcher(provider, OpenRouterClient.from_settings())
        for message in provider.poll_incoming():
            dispatcher.handle(message)
    """

    def __init__(
        self,
        provider: MessagingProvider,
        client: OpenRouterClient,
        media_store: Optional[MediaStore] = None,
        summary_lookback_hours: Optional[int] = None,
        summary_max_messages: Optional[int] = None,
    ):
        bot_settings = get_settings().bot
        self._provider = provider
        self._client = client
        self._media_store = media_store or MediaStore(bot_settings.downloads_dir)
        if summary_lookback_hours is None:
            summary_lookback_hours = bot_settings.summary_lookback_hours
        if summary_max_messages is None:
            summary_max_messages = bot_settings.summary_max_messages
        self._lookback_seconds = summary_lookback_hours * 3600
        self._max_messages = summary_max_messages

        self._handlers = {
            "qna": self._handle_ask,
            "science": self._handle_science,
            "summary": self._handle_summary,
            "calories": self._handle_calories,
            "help": self._handle_help,
        }

    def handle(self, message: IncomingMessage) -> None:
        """Route one message. Never raises."""
        try:
            self._dispatch(message)
        except Exception as e:
            logger.exception(f"Unhandled error for message {message.id}: {e}")

    def _dispatch(self, message: IncomingMessage) -> None:
        if message.from_me:
            return

        command, argument = parse_command(message.body)

        if message.has_media:
            self._handle_media(message, command, argument)
            return

        if command is not None:
            self._handlers[command](message, argument)

    # ── Text commands ─────────────────────────────────────────────

    def _handle_ask(self, message: IncomingMessage, question: str) -> None:
        if not question:
            self._provider.reply(message, USAGE["qna"])
            return
        self._run_generation(
            message, "QnA", lambda: generate_qna_response(self._client, question)
        )

    def _handle_science(self, message: IncomingMessage, topic: str) -> None:
        if not topic:
            self._provider.reply(message, USAGE["science"])
            return
        self._run_generation(
            message, "science brief", lambda: generate_science_brief(self._client, topic)
        )

    def _handle_summary(self, message: IncomingMessage, _argument: str) -> None:
        self._run_generation(
            message,
            "chat summary",
            lambda: summarize_recent_chat(
                self._provider,
                self._client,
                message.chat_id,
                lookback_seconds=self._lookback_seconds,
                max_messages=self._max_messages,
            ),
        )

    def _handle_calories(self, message: IncomingMessage, description: str) -> None:
        if not description:
            self._provider.reply(message, USAGE["calories"])
            return
        self._run_generation(
            message, "calorie estimate", lambda: self._calorie_reply(description)
        )

    def _handle_help(self, message: IncomingMessage, _argument: str) -> None:
        self._provider.reply(message, HELP_REPLY)

    def _calorie_reply(self, caption: str, media: Optional[MediaPayload] = None) -> str:
        estimate = estimate_plate_calories(
            self._client,
            caption=caption,
            image_base64=media.data if media else None,
            mime_type=media.mimetype if media else None,
        )
        if estimate is None:
            return NO_ESTIMATE_REPLY
        return format_calorie_estimate(estimate)

    def _run_generation(self, message: IncomingMessage, label: str, produce: Callable[[], str]) -> None:
        """Pending reaction, one API round trip, result or apology."""
        if not self._client.is_enabled():
            self._provider.reply(message, DISABLED_REPLY)
            return

        try:
            self._provider.react(message, PENDING_REACTION)
            response = produce()
            self._provider.send_message(message.chat_id, response)
            self._provider.react(message, SUCCESS_REACTION)
        except Exception as e:
            logger.exception(f"Failed to generate {label} response: {e}")
            self._provider.react(message, FAILURE_REACTION)
            self._provider.reply(message, APOLOGY_REPLY)

    # ── Attachments ───────────────────────────────────────────────

    def _handle_media(self, message: IncomingMessage, command: Optional[str], argument: str) -> None:
        media = self._save_media(message)

        if command == "calories":
            if media is not None and media.is_image:
                self._run_generation(
                    message, "calorie estimate", lambda: self._calorie_reply(argument, media)
                )
            else:
                self._handle_calories(message, argument)
            return

        if command is not None:
            self._handlers[command](message, argument)
            return

        if media is not None and media.is_image and self._client.is_enabled():
            self._caption_image(message, media)

    def _save_media(self, message: IncomingMessage) -> Optional[MediaPayload]:
        """Download and store an attachment. Failures are logged, never raised."""
        try:
            media = self._provider.download_media(message)
            if media is None:
                logger.warning(f"Media flag detected but no payload downloaded for message {message.id}")
                return None

            saved_path = self._media_store.persist(media, message)
            logger.info(f"💾 Saved media from message {message.id} to {saved_path}")
            return media
        except Exception as e:
            logger.exception(f"Error handling media message {message.id}: {e}")
            return None

    def _caption_image(self, message: IncomingMessage, media: MediaPayload) -> None:
        try:
            caption = self._client.describe_image(base64_data=media.data, mime_type=media.mimetype)
            self._provider.send_message(message.chat_id, f"🖼️ Caption: {caption}")
        except Exception as e:
            logger.exception(f"Failed to caption image via OpenRouter: {e}")
