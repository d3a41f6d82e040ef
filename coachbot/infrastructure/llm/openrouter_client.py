"""
OpenRouter Client - Text Generation and Image Captions
=======================================================

ARCHITECTURAL DECISION:
- Uses the OpenRouter chat completions API (OpenAI-compatible)
- One blocking request per call: no retries, no streaming
- Network/HTTP errors from requests are passed through to the caller
- Disabled (no API key) means every call is a caller error

USAGE:
    client = OpenRouterClient.from_settings()
    if client.is_enabled():
        print(client.generate_text("Best post-workout meal?"))
        print(client.describe_image(image_path="downloads/plate.jpg"))
"""

import base64
import logging
import mimetypes
from pathlib import Path
from typing import Optional, Union

import requests

from ..config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_INSTRUCTION = "Describe this image in one or two short sentences."


class OpenRouterClientError(Exception):
    """Base exception for OpenRouter client errors."""
    pass


class OpenRouterDisabledError(OpenRouterClientError):
    """Raised when an API call is attempted without an API key."""
    pass


class OpenRouterClient:
    """
    Thin wrapper over the OpenRouter chat completions endpoint.

    Exposes exactly two operations:
    - generate_text: prompt (+ optional system message) -> reply text
    - describe_image: image (+ optional instruction/system) -> caption text
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: str = "openai/gpt-4o-mini",
        vision_model: Optional[str] = None,
        referer: Optional[str] = None,
        app_title: str = "WhatsApp Demo Bot",
        api_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 60.0,
    ):
        self._api_key = (api_key or "").strip()
        self._text_model = text_model
        self._vision_model = vision_model or text_model
        self._referer = referer or ""
        self._app_title = app_title
        self._endpoint = f"{api_url.rstrip('/')}/chat/completions"
        self._timeout = timeout

    @classmethod
    def from_settings(cls) -> "OpenRouterClient":
        """Build a client from environment-backed settings."""
        settings = get_settings().openrouter
        return cls(
            api_key=settings.api_key,
            text_model=settings.text_model,
            vision_model=settings.vision_model,
            referer=settings.referer,
            app_title=settings.app_title,
            api_url=settings.api_url,
            timeout=settings.timeout_seconds,
        )

    @property
    def text_model(self) -> str:
        return self._text_model

    @property
    def vision_model(self) -> str:
        return self._vision_model

    def is_enabled(self) -> bool:
        """True iff an API key is configured."""
        return bool(self._api_key)

    def generate_text(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Generate a reply for a text prompt.

        Args:
            prompt: User message content.
            system: Optional system instruction.

        Returns:
            Reply text, stripped.
        """
        self._ensure_enabled()

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        return self._complete(self._text_model, messages, max_tokens, temperature)

    def describe_image(
        self,
        base64_data: Optional[str] = None,
        mime_type: Optional[str] = None,
        image_url: Optional[str] = None,
        image_path: Optional[Union[str, Path]] = None,
        instruction: Optional[str] = None,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Caption an image with the vision model.

        Exactly one image source is used, in this order of preference:
        inline base64 data, a remote (or data:) URL, a local file path.
        """
        self._ensure_enabled()

        url = self._resolve_image_url(base64_data, mime_type, image_url, image_path)

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": instruction or DEFAULT_IMAGE_INSTRUCTION},
                {"type": "image_url", "image_url": {"url": url}},
            ],
        })

        return self._complete(self._vision_model, messages, max_tokens, temperature)

    def _ensure_enabled(self) -> None:
        if not self.is_enabled():
            raise OpenRouterDisabledError("OpenRouter client is disabled.")

    def _resolve_image_url(
        self,
        base64_data: Optional[str],
        mime_type: Optional[str],
        image_url: Optional[str],
        image_path: Optional[Union[str, Path]],
    ) -> str:
        """Turn whichever image source was given into a URL the API accepts."""
        if base64_data:
            return f"data:{mime_type or 'image/jpeg'};base64,{base64_data}"

        if image_url:
            return image_url

        if image_path:
            path = Path(image_path)
            guessed, _ = mimetypes.guess_type(path.name)
            encoded = base64.b64encode(path.read_bytes()).decode("ascii")
            return f"data:{mime_type or guessed or 'image/jpeg'};base64,{encoded}"

        raise ValueError("An image is required: pass base64_data, image_url or image_path.")

    def _headers(self) -> dict:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "X-Title": self._app_title,
        }
        if self._referer:
            headers["HTTP-Referer"] = self._referer
        return headers

    def _complete(
        self,
        model: str,
        messages: list,
        max_tokens: Optional[int],
        temperature: Optional[float],
    ) -> str:
        """Send one chat completion request and return the reply text."""
        payload = {"model": model, "messages": messages}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature

        logger.debug(f"OpenRouter request: model={model}, messages={len(messages)}")

        response = requests.post(
            self._endpoint,
            headers=self._headers(),
            json=payload,
            timeout=self._timeout,
        )
        response.raise_for_status()

        content = self._extract_response_content(response.json())
        if not content:
            raise OpenRouterClientError(f"OpenRouter returned no content (model={model})")

        return content

    def _extract_response_content(self, data: dict) -> str:
        """Extract text content from API response."""
        try:
            choices = data.get("choices", [])
            if choices:
                content = choices[0].get("message", {}).get("content")
                # Some providers return content as a list of parts
                if isinstance(content, list):
                    content = "".join(
                        part.get("text", "") for part in content if isinstance(part, dict)
                    )
                return (content or "").strip()
        except (AttributeError, KeyError, IndexError, TypeError):
            pass
        return ""
