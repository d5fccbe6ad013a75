"""Unit tests for RateLimiter."""

import asyncio
import threading

import pytest

from vid2chat.rate_limiter import RateLimiter


class TestAdmit:
    def test_window_boundary(self):
        limiter = RateLimiter(limit=3, window_seconds=1.0)

        assert limiter.admit("ip", now=0.000).allowed
        assert limiter.admit("ip", now=0.001).allowed
        assert limiter.admit("ip", now=0.002).allowed

        rejected = limiter.admit("ip", now=0.003)
        assert not rejected.allowed
        assert rejected.retry_after_seconds == 1

        assert limiter.admit("ip", now=1.001).allowed

    def test_identities_are_independent(self):
        limiter = RateLimiter(limit=1, window_seconds=60)
        assert limiter.admit("a", now=0).allowed
        assert limiter.admit("b", now=0).allowed
        assert not limiter.admit("a", now=1).allowed

    def test_retry_after_rounds_up(self):
        limiter = RateLimiter(limit=1, window_seconds=100)
        limiter.admit("ip", now=0)
        assert limiter.admit("ip", now=10.5).retry_after_seconds == 90

    def test_rejection_does_not_extend_window(self):
        limiter = RateLimiter(limit=1, window_seconds=10)
        limiter.admit("ip", now=0)
        for t in range(1, 10):
            assert not limiter.admit("ip", now=t).allowed
        assert limiter.admit("ip", now=10).allowed

    def test_snapshot_reports_remaining_and_reset(self):
        limiter = RateLimiter(limit=5, window_seconds=60)
        admission = limiter.admit("ip", now=0)

        assert admission.snapshot.remaining == 4
        assert admission.snapshot.limit == 5
        assert admission.snapshot.reset_at == "1970-01-01T00:01:00Z"
        assert admission.snapshot.to_dict() == {
            "remaining": 4,
            "limit": 5,
            "resetAt": "1970-01-01T00:01:00Z",
        }

    def test_snapshot_does_not_count(self):
        limiter = RateLimiter(limit=2, window_seconds=60)
        limiter.admit("ip", now=0)
        assert limiter.snapshot("ip", now=1).remaining == 1
        assert limiter.snapshot("ip", now=1).remaining == 1
        assert limiter.snapshot("new", now=1).remaining == 2

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(limit=0)
        with pytest.raises(ValueError):
            RateLimiter(window_seconds=0)

    def test_concurrent_admits_never_exceed_limit(self):
        limiter = RateLimiter(limit=100, window_seconds=60)
        allowed = []

        def worker():
            for _ in range(50):
                if limiter.admit("ip", now=1.0).allowed:
                    allowed.append(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(allowed) == 100


class TestReclamation:
    def test_purge_expired(self):
        limiter = RateLimiter(limit=10, window_seconds=10)
        limiter.admit("old", now=0)
        limiter.admit("new", now=5)

        assert limiter.purge_expired(now=10) == 1
        assert len(limiter) == 1
        assert limiter.purge_expired(now=15) == 1
        assert len(limiter) == 0

    def test_default_cleanup_interval(self):
        limiter = RateLimiter(limit=1, window_seconds=24 * 3600)
        assert limiter.cleanup_interval_seconds == 3600

    @pytest.mark.asyncio
    async def test_background_task_purges(self):
        limiter = RateLimiter(limit=1, window_seconds=0.01, cleanup_interval_seconds=0.01)
        limiter.admit("ip")
        limiter.start()
        await asyncio.sleep(0.1)
        await limiter.close()

        assert len(limiter) == 0
        assert limiter._cleanup_task is None
