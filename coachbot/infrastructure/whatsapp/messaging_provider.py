"""
Messaging Provider - Abstraction Layer for WhatsApp Messaging
==============================================================

Provides a unified interface the bot talks to. Currently backed by
Selenium-driven WhatsApp Web; tests use an in-memory provider.

USAGE:
    provider = SeleniumProvider()
    provider.connect()
    provider.confirm_login()
    for message in provider.poll_incoming():
        ...
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Set

from .models import ChatMessage, IncomingMessage, MediaPayload

logger = logging.getLogger(__name__)


class MessagingProvider(ABC):
    """
    Abstract base class for WhatsApp messaging providers.
    Implement this interface to add new messaging backends.
    """

    @abstractmethod
    def connect(self, **kwargs) -> bool:
        """Connect to the messaging service. Returns True if successful."""
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if provider is currently connected and ready."""
        ...

    @abstractmethod
    def poll_incoming(self) -> List[IncomingMessage]:
        """Return messages that arrived since the last poll."""
        ...

    @abstractmethod
    def send_message(self, chat_id: str, text: str) -> bool:
        """Send a text message to a chat. Returns True if sent."""
        ...

    @abstractmethod
    def reply(self, message: IncomingMessage, text: str) -> bool:
        """Answer a message in its chat. Returns True if sent."""
        ...

    @abstractmethod
    def react(self, message: IncomingMessage, emoji: str) -> bool:
        """React to a message with an emoji. Returns True on success."""
        ...

    @abstractmethod
    def download_media(self, message: IncomingMessage) -> Optional[MediaPayload]:
        """Download the attachment of a message, None if nothing came back."""
        ...

    @abstractmethod
    def fetch_messages(self, chat_id: str, limit: int = 50) -> List[ChatMessage]:
        """Return the most recent messages of a chat, oldest first."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Clean up resources."""
        ...


class SeleniumProvider(MessagingProvider):
    """
    Selenium-based WhatsApp Web automation.
    Wraps WhatsAppClient and remembers which message rows were handled.
    """

    def __init__(self, headless: Optional[bool] = None):
        self._headless = headless
        self._client = None
        self._connected = False
        self._seen_ids: Set[str] = set()
        # rows older than the login minute are history, not new messages
        self._since: Optional[int] = None

    def connect(self, **kwargs) -> bool:
        """Launch browser and open WhatsApp Web."""
        try:
            from .whatsapp_client import WhatsAppClient
            self._client = WhatsAppClient(headless=self._headless)
            return True
        except Exception as e:
            logger.exception(f"Failed to launch Selenium WhatsApp: {e}")
            return False

    def is_connected(self) -> bool:
        return self._connected and self._client is not None

    def confirm_login(self, timeout: Optional[int] = None) -> bool:
        """Wait for QR code scan, then mark everything already visible as seen."""
        if not self._client:
            return False
        result = self._client.wait_for_login(timeout=timeout)
        self._connected = result
        if result:
            self._since = int(time.time()) // 60 * 60
            self._seen_ids.update(m.id for m in self._client.read_messages())
        return result

    def poll_incoming(self) -> List[IncomingMessage]:
        """
        Collect rows that were not handled yet.

        New messages in the chat that is already open get no unread badge,
        so that chat is read first; chats with a badge follow.
        """
        if not self._client:
            return []

        fresh = []
        if self._client.current_chat_id:
            fresh.extend(self._take_new(self._client.read_messages()))

        for chat_id in self._client.iter_unread_chats():
            fresh.extend(self._take_new(self._client.read_messages()))
            logger.debug(f"Polled chat {chat_id}: {len(fresh)} new message(s) so far")
        return fresh

    def _take_new(self, messages: List[IncomingMessage]) -> List[IncomingMessage]:
        new = []
        for message in messages:
            if message.id in self._seen_ids:
                continue
            self._seen_ids.add(message.id)
            if self._is_history(message) or message.from_me:
                continue
            new.append(message)
        return new

    def _is_history(self, message: IncomingMessage) -> bool:
        return (
            self._since is not None
            and message.timestamp is not None
            and message.timestamp < self._since
        )

    def send_message(self, chat_id: str, text: str) -> bool:
        """Open chat and send message via Selenium."""
        if not self._client:
            return False
        if not self._client.open_chat(chat_id):
            return False
        if not self._client.send_message(text):
            return False
        # Only our own rows: a user message that landed meanwhile is still pending
        self._seen_ids.update(m.id for m in self._client.read_messages(limit=5) if m.from_me)
        return True

    def reply(self, message: IncomingMessage, text: str) -> bool:
        """WhatsApp Web quoting is not automated; the answer goes to the same chat."""
        return self.send_message(message.chat_id, text)

    def react(self, message: IncomingMessage, emoji: str) -> bool:
        if not self._client or not self._client.open_chat(message.chat_id):
            return False
        return self._client.react(message.id, emoji)

    def download_media(self, message: IncomingMessage) -> Optional[MediaPayload]:
        if not self._client or not self._client.open_chat(message.chat_id):
            return None
        return self._client.download_media(message.id, message.media_kind or "image")

    def fetch_messages(self, chat_id: str, limit: int = 50) -> List[ChatMessage]:
        if not self._client or not self._client.open_chat(chat_id):
            return []
        return [
            ChatMessage(body=m.body, timestamp=m.timestamp, from_me=m.from_me)
            for m in self._client.read_messages(limit=limit)
        ]

    @property
    def raw_client(self):
        """Access the underlying WhatsAppClient (for advanced Selenium usage)."""
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            self._connected = False
