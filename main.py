"""
Coach Bot - WhatsApp Entry Point
================================

Run this to start the bot:
    python main.py

A Chrome window opens WhatsApp Web. Scan the QR code once; the session is
kept in the profile directory for later runs.

Environment (or .env):
    OPENROUTER_API_KEY   enables /ask, /science, /summary, /calories and captions
    DOWNLOADS_DIR        where attachments are saved (default ./downloads)
"""

import sys
import logging

from coachbot.bot import MessageDispatcher, run_polling_loop
from coachbot.infrastructure.config import get_settings
from coachbot.infrastructure.llm import OpenRouterClient
from coachbot.infrastructure.storage import MediaStore
from coachbot.infrastructure.whatsapp import SeleniumProvider

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
)
logger = logging.getLogger(__name__)


def run_bot() -> int:
    """Connect to WhatsApp Web and handle messages until Ctrl+C."""

    print("\n" + "=" * 60)
    print("   Coach Bot - WhatsApp")
    print("=" * 60 + "\n")

    settings = get_settings()
    for issue in settings.validate():
        logger.warning(issue)

    client = OpenRouterClient.from_settings()
    if not client.is_enabled():
        logger.warning("OpenRouter API key not detected. AI commands and captions will be disabled.")

    media_store = MediaStore(settings.bot.downloads_dir)
    media_store.ensure_dir()

    provider = SeleniumProvider()
    if not provider.connect():
        print("Failed to launch browser")
        return 1

    if not settings.whatsapp.headless:
        print("=" * 60)
        print("SCAN THE QR CODE IF ASKED")
        print("   Wait for chats to load, then press ENTER")
        print("=" * 60)

        try:
            input("\n>>> Press ENTER when WhatsApp is ready... <<<\n")
        except KeyboardInterrupt:
            print("\nCancelled")
            provider.close()
            return 1

    if not provider.confirm_login():
        print("WhatsApp didn't load. Try again.")
        provider.close()
        return 1

    print("\n🤖 WhatsApp bot is ready and waiting for messages... (Ctrl+C to stop)\n")

    dispatcher = MessageDispatcher(provider, client, media_store)
    try:
        run_polling_loop(provider, dispatcher, poll_interval=settings.whatsapp.poll_interval)
    except KeyboardInterrupt:
        print("\n\nStopping bot.")
    finally:
        provider.close()

    return 0


if __name__ == "__main__":
    sys.exit(run_bot())
