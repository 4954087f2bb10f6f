"""
Melodix Utilities - Shared helper functions.
"""
import math
import threading
import logging

logger = logging.getLogger(__name__)


def run_async(fn, *args):
    """Fire-and-forget async execution in daemon thread.

    Wraps function to catch and log exceptions.
    """
    def wrapper():
        try:
            fn(*args)
        except Exception as e:
            logger.warning(f'Async task {fn.__name__} failed: {e}', exc_info=True)

    threading.Thread(target=wrapper, daemon=True).start()


def db_to_gain(db: float) -> float:
    """Convert decibels to a linear amplitude factor."""
    return math.pow(10.0, db / 20.0)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
