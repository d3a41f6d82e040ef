"""
Settings Module - Centralized Configuration Management
=======================================================

ARCHITECTURAL DECISION:
- All configuration is loaded from environment variables (no hardcoded secrets)
- Settings are immutable dataclasses
- Single source of truth for all configurable values

A missing OPENROUTER_API_KEY disables the AI commands and image captions,
but the bot still runs and keeps saving attachments.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache

from dotenv import load_dotenv

# .env file is a development convenience; real env vars win
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, ""))
    except ValueError:
        return default


@dataclass(frozen=True)
class OpenRouterSettings:
    """OpenRouter LLM settings for text generation and image captions."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""))
    api_url: str = field(
        default_factory=lambda: os.getenv("OPENROUTER_API_URL", "https://openrouter.ai/api/v1")
    )

    text_model: str = field(
        default_factory=lambda: os.getenv("OPENROUTER_TEXT_MODEL", "openai/gpt-4o-mini")
    )
    # Empty means "use the text model"
    vision_model: str = field(default_factory=lambda: os.getenv("OPENROUTER_VISION_MODEL", ""))

    # Attribution headers shown on openrouter.ai
    referer: str = field(default_factory=lambda: os.getenv("OPENROUTER_REFERER", ""))
    app_title: str = field(
        default_factory=lambda: os.getenv("OPENROUTER_APP_TITLE", "WhatsApp Demo Bot")
    )

    timeout_seconds: float = field(default_factory=lambda: _env_float("OPENROUTER_TIMEOUT", 60.0))


@dataclass(frozen=True)
class WhatsAppSettings:
    """WhatsApp Web automation settings."""

    # headless only works once the profile already holds a scanned session
    headless: bool = field(default_factory=lambda: _env_bool("WHATSAPP_HEADLESS", False))
    profile_dir: Path = field(
        default_factory=lambda: Path(os.getenv("WHATSAPP_PROFILE_DIR", "whatsapp_profile")).resolve()
    )

    # Chrome saves clicked documents here before they are moved into the media store
    download_staging_dir: Path = field(
        default_factory=lambda: Path(os.getenv("WHATSAPP_DOWNLOAD_DIR", "whatsapp_downloads")).resolve()
    )
    download_timeout: int = field(default_factory=lambda: _env_int("WHATSAPP_DOWNLOAD_TIMEOUT", 30))

    login_timeout: int = 120
    poll_interval: float = field(default_factory=lambda: _env_float("WHATSAPP_POLL_INTERVAL", 3.0))


@dataclass(frozen=True)
class BotSettings:
    """Command handling and attachment settings."""

    downloads_dir: Path = field(
        default_factory=lambda: Path(os.getenv("DOWNLOADS_DIR", "downloads")).resolve()
    )

    # /summary window
    summary_lookback_hours: int = field(
        default_factory=lambda: _env_int("SUMMARY_LOOKBACK_HOURS", 24)
    )
    summary_max_messages: int = field(
        default_factory=lambda: _env_int("SUMMARY_MAX_MESSAGES", 50)
    )


@dataclass(frozen=True)
class Settings:
    """
    Root settings container - Single source of truth for all configuration.

    Usage:
        from coachbot.infrastructure.config import get_settings
        settings = get_settings()
        print(settings.openrouter.text_model)
    """

    openrouter: OpenRouterSettings = field(default_factory=OpenRouterSettings)
    whatsapp: WhatsAppSettings = field(default_factory=WhatsAppSettings)
    bot: BotSettings = field(default_factory=BotSettings)

    def validate(self) -> list[str]:
        """
        Validate settings and return list of warnings.
        Returns empty list if all settings are valid.
        """
        issues = []

        if not self.openrouter.api_key:
            issues.append(
                "WARNING: OPENROUTER_API_KEY not set. "
                "AI commands and image captions will be disabled."
            )

        if self.whatsapp.headless and not self.whatsapp.profile_dir.exists():
            issues.append(
                f"WARNING: headless mode without a saved profile at {self.whatsapp.profile_dir}. "
                "The QR code cannot be scanned."
            )

        if self.bot.summary_max_messages <= 0:
            issues.append("WARNING: SUMMARY_MAX_MESSAGES must be positive.")

        return issues


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get singleton Settings instance.
    Cached to ensure consistent settings throughout application lifecycle.
    """
    return Settings()
