"""Unit tests for CancellationToken."""

import time

import pytest

from repo_upsert.cancellation import CancellationToken
from repo_upsert.errors import CancelledError


class TestCancellationToken:
    """Tests for explicit cancellation and deadlines."""

    def test_fresh_token_not_cancelled(self):
        """Test a new token without deadline is live."""
        token = CancellationToken()

        assert token.cancelled is False
        assert token.remaining() is None
        assert token.bound_timeout(30) == 30
        token.raise_if_cancelled("GetRef")

    def test_cancel(self):
        """Test cancel() makes the next check raise."""
        token = CancellationToken()
        token.cancel()

        assert token.cancelled is True
        with pytest.raises(CancelledError, match="Cancelled before CreateTree"):
            token.raise_if_cancelled("CreateTree")

    def test_deadline_bounds_timeout(self):
        """Test the per-request timeout is clamped to the remaining budget."""
        token = CancellationToken(timeout_seconds=2)

        assert 0 < token.remaining() <= 2
        assert token.bound_timeout(30) <= 2
        assert token.bound_timeout(0.5) == 0.5

    def test_deadline_expiry(self):
        """Test an elapsed deadline reports cancellation."""
        token = CancellationToken(timeout_seconds=0.01)
        time.sleep(0.05)

        assert token.deadline_expired is True
        assert token.remaining() == 0.0
        with pytest.raises(CancelledError, match="Deadline expired before GetCommit"):
            token.raise_if_cancelled("GetCommit")

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_invalid_timeout(self, timeout):
        """Test a non-positive budget is rejected."""
        with pytest.raises(ValueError):
            CancellationToken(timeout_seconds=timeout)
