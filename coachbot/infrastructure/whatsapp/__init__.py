from .models import ChatMessage, IncomingMessage, MediaPayload
from .messaging_provider import MessagingProvider, SeleniumProvider

__all__ = [
    "ChatMessage",
    "IncomingMessage",
    "MediaPayload",
    "MessagingProvider",
    "SeleniumProvider",
]
