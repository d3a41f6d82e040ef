"""
WhatsApp Message Models
=======================

Plain records passed between the transport and the bot.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class IncomingMessage:
    """A message row read from WhatsApp Web."""
    id: str
    chat_id: str
    body: str = ""
    timestamp: Optional[int] = None
    from_me: bool = False
    has_media: bool = False
    # "image", "video", "audio", "document" or "" when there is no attachment
    media_kind: str = ""


@dataclass
class ChatMessage:
    """Read-only view of a chat message, used for transcripts."""
    body: str
    timestamp: Optional[int] = None
    from_me: bool = False


@dataclass
class MediaPayload:
    """Downloaded attachment: base64 data plus its content type."""
    data: str
    mimetype: str = ""
    filename: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.mimetype.lower().startswith("image/")


def parse_message_id(serialized: str) -> tuple:
    """
    Split a serialized WhatsApp message id into (from_me, chat_id).

    Format: "<fromMe>_<chatId>_<messageId>", e.g. "false_4917612345678@c.us_3EB0C4".
    Group messages carry a fourth participant part which is ignored.
    """
    parts = (serialized or "").split("_")
    if len(parts) < 3:
        return False, ""
    return parts[0] == "true", parts[1]
