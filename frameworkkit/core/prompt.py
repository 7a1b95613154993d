"""
Interactive confirmation with a bounded wait.
"""

import logging
import queue
import sys
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT = 30


def is_interactive() -> bool:
    """Check whether both stdin and stdout are attached to a terminal."""
    return bool(
        sys.stdin and sys.stdin.isatty() and sys.stdout and sys.stdout.isatty()
    )


def confirm(
    question: str,
    timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
    default: bool = True,
    input_func: Optional[Callable[[str], str]] = None,
) -> bool:
    """
    Ask a yes/no question on the terminal.

    The answer is read in a daemon thread so an unanswered prompt never
    blocks longer than ``timeout`` seconds. A timeout, end of input or an
    interrupt count as "no".

    Args:
        question: Question to print, ``[Y/n]`` or ``[y/N]`` is appended
        timeout: Seconds to wait for an answer
        default: Answer used for an empty response
        input_func: Replacement for :func:`input`

    Returns:
        True if the user confirmed
    """
    read = input_func or input
    suffix = "[Y/n]" if default else "[y/N]"
    answers: "queue.Queue[Optional[str]]" = queue.Queue(maxsize=1)

    def _ask():
        try:
            answers.put(read(f"{question} {suffix} "))
        except (EOFError, KeyboardInterrupt):
            answers.put(None)

    threading.Thread(target=_ask, daemon=True).start()

    try:
        response = answers.get(timeout=timeout)
    except queue.Empty:
        print()
        logger.info(f"No answer within {timeout}s, assuming 'no'")
        return False

    if response is None:
        return False
    response = response.strip().lower()
    if not response:
        return default
    return response in ("y", "yes")
