from .openrouter_client import (
    OpenRouterClient,
    OpenRouterClientError,
    OpenRouterDisabledError,
)

__all__ = ["OpenRouterClient", "OpenRouterClientError", "OpenRouterDisabledError"]
