"""Shared input checks for the prompt builders."""

from typing import Optional

from ..infrastructure.llm import OpenRouterClient, OpenRouterDisabledError


class InputRequiredError(ValueError):
    """Raised when a required prompt input is empty or whitespace-only."""
    pass


def require_text(value: Optional[str], message: str) -> str:
    """Return the trimmed value, or raise InputRequiredError if nothing is left."""
    trimmed = (value or "").strip()
    if not trimmed:
        raise InputRequiredError(message)
    return trimmed


def context_section(context: Optional[str]) -> str:
    """Render optional context as its own line, or nothing at all."""
    trimmed = (context or "").strip()
    return f"Context: {trimmed}\n" if trimmed else ""


def ensure_enabled(client: OpenRouterClient) -> None:
    if not client.is_enabled():
        raise OpenRouterDisabledError("OpenRouter client is disabled.")
