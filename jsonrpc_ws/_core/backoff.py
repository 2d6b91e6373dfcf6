"""
Reconnect backoff policy.

The supervisor keeps a reconnect counter between 0 and
``reconnect_counter_max``. It is increased by one whenever a session ends
and a reconnect is scheduled, and decreased by one whenever a liveness
probe succeeds. The delay before the next connection attempt is computed
from the counter value before it is increased.
"""

from __future__ import annotations

import random

# 2 ** 8 * 100 = 25600
DEFAULT_RECONNECT_COUNTER_MAX = 8


def default_reconnect_delay(counter: int) -> float:
    """
    Exponential backoff with jitter.

    Args:
        counter: Current reconnect counter (pre-increment)

    Returns:
        Delay in milliseconds, between ``2**counter * 50`` and
        ``2**counter * 100``
    """
    return 2 ** counter * 100 * random.uniform(0.5, 1.0)


def next_reconnect_counter(counter: int, maximum: int) -> int:
    """Counter value after a failed session, clamped to ``[0, maximum]``."""
    return max(0, min(counter + 1, maximum))


def decay_reconnect_counter(counter: int) -> int:
    """Counter value after a successful probe, never below zero."""
    return max(0, counter - 1)
