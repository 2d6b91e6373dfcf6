"""
Tests for jsonrpc_ws._core.backoff module.
"""

from unittest.mock import patch

import pytest

from jsonrpc_ws._core.backoff import (
    DEFAULT_RECONNECT_COUNTER_MAX,
    decay_reconnect_counter,
    default_reconnect_delay,
    next_reconnect_counter,
)


class TestDefaultReconnectDelay:
    """Tests for default_reconnect_delay function."""

    @pytest.mark.parametrize("counter", range(0, DEFAULT_RECONNECT_COUNTER_MAX + 1))
    def test_within_jitter_bounds(self, counter):
        """Delay is between half and all of 2**counter * 100."""
        for _ in range(20):
            delay = default_reconnect_delay(counter)
            assert 2 ** counter * 50 <= delay <= 2 ** counter * 100

    def test_uses_uniform_jitter(self):
        """Jitter factor comes from random.uniform(0.5, 1.0)."""
        with patch("jsonrpc_ws._core.backoff.random.uniform", return_value=0.75) as uniform:
            assert default_reconnect_delay(3) == 600
        uniform.assert_called_once_with(0.5, 1.0)

    def test_max_delay(self):
        """With the default counter max the longest delay is 25.6 seconds."""
        with patch("jsonrpc_ws._core.backoff.random.uniform", return_value=1.0):
            assert default_reconnect_delay(DEFAULT_RECONNECT_COUNTER_MAX) == 25600


class TestCounterArithmetic:
    """Tests for reconnect counter helpers."""

    def test_next_increments(self):
        assert next_reconnect_counter(0, 8) == 1
        assert next_reconnect_counter(7, 8) == 8

    def test_next_clamps_to_max(self):
        assert next_reconnect_counter(8, 8) == 8
        assert next_reconnect_counter(12, 8) == 8

    def test_next_with_zero_max(self):
        """A maximum of zero keeps the counter at zero."""
        assert next_reconnect_counter(0, 0) == 0

    def test_decay(self):
        assert decay_reconnect_counter(5) == 4
        assert decay_reconnect_counter(1) == 0

    def test_decay_never_negative(self):
        assert decay_reconnect_counter(0) == 0
