"""
Bot Runner - Polling Loop
=========================

Single-threaded: each poll returns the new messages, and each one is handed
to the dispatcher before the next poll. There is no queue.
"""

import logging
import time
from typing import Optional

from ..infrastructure.whatsapp import MessagingProvider
from .dispatcher import MessageDispatcher

logger = logging.getLogger(__name__)


def run_polling_loop(
    provider: MessagingProvider,
    dispatcher: MessageDispatcher,
    poll_interval: float = 3.0,
    max_cycles: Optional[int] = None,
) -> int:
    """
    Poll the provider and dispatch messages until interrupted.

    Args:
        max_cycles: Stop after this many polls (None runs forever).

    Returns:
        Number of messages handled.
    """
    handled = 0
    cycles = 0

    while max_cycles is None or cycles < max_cycles:
        cycles += 1
        try:
            messages = provider.poll_incoming()
        except Exception as e:
            # A flaky page read should not end the session
            logger.exception(f"Polling failed: {e}")
            messages = []

        for message in messages:
            logger.info(f"📩 Message {message.id} in {message.chat_id}: {message.body[:50]!r}")
            dispatcher.handle(message)
            handled += 1

        if max_cycles is None or cycles < max_cycles:
            time.sleep(poll_interval)

    return handled
