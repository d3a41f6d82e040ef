from .dispatcher import MessageDispatcher, parse_command
from .runner import run_polling_loop

__all__ = ["MessageDispatcher", "parse_command", "run_polling_loop"]
