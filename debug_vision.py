"""
Vision API Check - Manual Script
================================

Sends one local image to the OpenRouter vision model three ways (file path,
inline base64, data URL) and prints what comes back. Useful when captions
stop working and you need to know whether the API or the bot is at fault.

Run:
    python debug_vision.py downloads/photo.jpg
"""

import sys
import base64
import logging
import mimetypes
from pathlib import Path

from coachbot.infrastructure.llm import OpenRouterClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

INSTRUCTION = "Describe what you see in this image in 2-3 sentences."
SYSTEM = "You are a helpful assistant that describes images accurately."


def check(label: str, call) -> bool:
    print(f"\n🔄 {label}")
    try:
        response = call()
    except Exception as e:
        logger.exception(f"{label} failed: {e}")
        print(f"   ❌ {label} failed")
        return False
    print(f"   ✅ {response[:500]}")
    return True


def main() -> int:
    if len(sys.argv) != 2:
        print(__doc__)
        return 2

    image_path = Path(sys.argv[1])
    if not image_path.is_file():
        print(f"❌ Cannot read image at {image_path}")
        return 1

    client = OpenRouterClient.from_settings()
    if not client.is_enabled():
        print("❌ OPENROUTER_API_KEY is not set")
        return 1

    print(f"Text model:   {client.text_model}")
    print(f"Vision model: {client.vision_model}")

    mime_type = mimetypes.guess_type(image_path.name)[0] or "image/jpeg"
    encoded = base64.b64encode(image_path.read_bytes()).decode("ascii")
    params = {"instruction": INSTRUCTION, "system": SYSTEM, "max_tokens": 300, "temperature": 0.2}

    results = [
        check("image_path", lambda: client.describe_image(image_path=image_path, **params)),
        check("base64_data", lambda: client.describe_image(base64_data=encoded, mime_type=mime_type, **params)),
        check(
            "image_url (data URL)",
            lambda: client.describe_image(image_url=f"data:{mime_type};base64,{encoded}", **params),
        ),
    ]

    passed = sum(results)
    print("\n" + "-" * 60)
    print(f"Total: {len(results)} | Passed: {passed} | Failed: {len(results) - passed}")
    if passed < len(results):
        print("\n💡 Check the API key, and that OPENROUTER_VISION_MODEL accepts images.")
    return 0 if passed == len(results) else 1


if __name__ == "__main__":
    sys.exit(main())
