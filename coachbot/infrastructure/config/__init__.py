from .settings import (
    BotSettings,
    OpenRouterSettings,
    Settings,
    WhatsAppSettings,
    get_settings,
)

__all__ = [
    "BotSettings",
    "OpenRouterSettings",
    "Settings",
    "WhatsAppSettings",
    "get_settings",
]
