"""
Media Store - Attachment Persistence
====================================

Writes downloaded attachments to a directory. File names come from the
original filename when WhatsApp provides one, otherwise from the message id
and timestamp, so every message maps to its own file.
"""

import base64
import logging
import mimetypes
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..config import get_settings
from ..whatsapp.models import IncomingMessage, MediaPayload

logger = logging.getLogger(__name__)

_ILLEGAL_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")


def sanitize_filename(value: str) -> str:
    """Replace every character outside [A-Za-z0-9-_.] with an underscore."""
    return _ILLEGAL_CHARS.sub("_", value)


def format_message_id(message: IncomingMessage) -> str:
    return message.id or "message"


def derive_message_slug(message: IncomingMessage) -> str:
    """Build "<message id>-<ISO timestamp>" with ':' and '.' made file-safe."""
    if message.timestamp:
        stamp = datetime.fromtimestamp(message.timestamp, tz=timezone.utc)
        # Millisecond precision with a trailing Z, like a JS ISO string
        iso = stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"
        suffix = re.sub(r"[:.]", "-", iso)
    else:
        suffix = str(int(time.time() * 1000))
    return f"{format_message_id(message)}-{suffix}"


def extension_for(mimetype: Optional[str]) -> Optional[str]:
    """Extension (without dot) implied by a content type, if known."""
    if not mimetype:
        return None
    guessed = mimetypes.guess_extension(mimetype.split(";")[0].strip().lower())
    return guessed.lstrip(".") if guessed else None


class MediaStore:
    """
    Saves MediaPayload bytes under a downloads directory.

    Usage:
        store = MediaStore()
        path = store.persist(media, message)
    """

    def __init__(self, downloads_dir: Optional[Union[str, Path]] = None):
        if downloads_dir is None:
            downloads_dir = get_settings().bot.downloads_dir
        self.downloads_dir = Path(downloads_dir)

    def ensure_dir(self) -> Path:
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        return self.downloads_dir

    def build_filename(self, media: MediaPayload, message: IncomingMessage) -> str:
        slug = derive_message_slug(message)
        base_name = sanitize_filename(media.filename or slug) or slug

        extension = extension_for(media.mimetype)
        if extension and not base_name.lower().endswith(f".{extension.lower()}"):
            return f"{base_name}.{extension}"
        return base_name

    def persist(self, media: MediaPayload, message: IncomingMessage) -> Path:
        """Decode the payload and write it to disk. Returns the file path."""
        self.ensure_dir()
        path = self.downloads_dir / self.build_filename(media, message)
        path.write_bytes(base64.b64decode(media.data))
        logger.debug(f"Wrote {path.stat().st_size} bytes to {path}")
        return path
