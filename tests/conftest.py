"""
Pytest configuration and shared fakes.
Puts the project root on sys.path and provides in-memory stand-ins for the
WhatsApp provider and the OpenRouter client, so no browser or network is used.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from coachbot.infrastructure.llm import OpenRouterDisabledError  # noqa: E402
from coachbot.infrastructure.whatsapp import (  # noqa: E402
    ChatMessage,
    IncomingMessage,
    MediaPayload,
    MessagingProvider,
)

# 1x1 transparent PNG
PNG_BASE64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGNgYAAAAAMAASsJTYQAAAAASUVORK5CYII="


class FakeProvider(MessagingProvider):
    """Records everything the bot sends instead of driving a browser."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.replies: List[tuple] = []
        self.reactions: List[tuple] = []
        self.media: Dict[str, MediaPayload] = {}
        self.history: Dict[str, List[ChatMessage]] = {}
        self.incoming: List[List[IncomingMessage]] = []
        self.download_error: Optional[Exception] = None

    def connect(self, **kwargs) -> bool:
        return True

    def is_connected(self) -> bool:
        return True

    def poll_incoming(self) -> List[IncomingMessage]:
        return self.incoming.pop(0) if self.incoming else []

    def send_message(self, chat_id: str, text: str) -> bool:
        self.sent.append((chat_id, text))
        return True

    def reply(self, message: IncomingMessage, text: str) -> bool:
        self.replies.append((message.id, text))
        return True

    def react(self, message: IncomingMessage, emoji: str) -> bool:
        self.reactions.append((message.id, emoji))
        return True

    def download_media(self, message: IncomingMessage) -> Optional[MediaPayload]:
        if self.download_error:
            raise self.download_error
        return self.media.get(message.id)

    def fetch_messages(self, chat_id: str, limit: int = 50) -> List[ChatMessage]:
        return self.history.get(chat_id, [])[-limit:]

    def close(self) -> None:
        pass


class FakeClient:
    """Duck-typed OpenRouterClient that returns canned replies."""

    def __init__(self, enabled: bool = True, text_reply: str = "fake reply",
                 image_reply: str = "a plate of food", error: Optional[Exception] = None):
        self.enabled = enabled
        self.text_reply = text_reply
        self.image_reply = image_reply
        self.error = error
        self.text_calls: List[dict] = []
        self.image_calls: List[dict] = []

    def is_enabled(self) -> bool:
        return self.enabled

    def generate_text(self, prompt, system=None, max_tokens=None, temperature=None):
        if not self.enabled:
            raise OpenRouterDisabledError("OpenRouter client is disabled.")
        self.text_calls.append({"prompt": prompt, "system": system})
        if self.error:
            raise self.error
        return self.text_reply

    def describe_image(self, base64_data=None, mime_type=None, image_url=None, image_path=None,
                       instruction=None, system=None, max_tokens=None, temperature=None):
        if not self.enabled:
            raise OpenRouterDisabledError("OpenRouter client is disabled.")
        self.image_calls.append({
            "base64_data": base64_data,
            "mime_type": mime_type,
            "instruction": instruction,
            "system": system,
        })
        if self.error:
            raise self.error
        return self.image_reply


def make_message(body: str = "", msg_id: str = "false_4917612345678@c.us_3EB0AA",
                 has_media: bool = False, from_me: bool = False,
                 timestamp: Optional[int] = 1700000000) -> IncomingMessage:
    return IncomingMessage(
        id=msg_id,
        chat_id="4917612345678@c.us",
        body=body,
        timestamp=timestamp,
        from_me=from_me,
        has_media=has_media,
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client():
    return FakeClient()
