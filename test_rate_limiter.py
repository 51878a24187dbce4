#!/usr/bin/env python3
"""
Test script for per-caller rate limiting
"""
from sitechat.rate_limiter import RateLimiter
from testing_fakes import FakeClock


def test_sixth_request_within_a_minute_is_rejected():
    clock = FakeClock()
    limiter = RateLimiter(per_minute=5, burst=3, burst_window=10, clock=clock)

    # Spaced out so the burst window never trips
    for i in range(5):
        assert limiter.check("session-abc"), f"Request {i + 1} should pass"
        clock.advance(11)
    assert not limiter.check("session-abc"), "6th request within 60s must be rejected"

    # Another caller is unaffected
    assert limiter.check("session-xyz")
    print("✅ Per-minute limit enforced per caller")


def test_burst_limit():
    clock = FakeClock()
    limiter = RateLimiter(per_minute=5, burst=3, burst_window=10, clock=clock)
    assert limiter.check("ip-1")
    assert limiter.check("ip-1")
    assert limiter.check("ip-1")
    assert not limiter.check("ip-1"), "4th request inside the burst window must be rejected"
    print("✅ Burst limit enforced")


def test_counters_expire():
    clock = FakeClock()
    limiter = RateLimiter(per_minute=2, burst=5, burst_window=10, clock=clock)
    assert limiter.check("ip-2")
    assert limiter.check("ip-2")
    assert not limiter.check("ip-2")
    clock.advance(61)
    assert limiter.check("ip-2")
    print("✅ Counters reset after their window")


def test_authenticated_callers_bypass():
    limiter = RateLimiter(per_minute=1, burst=1, burst_window=10, clock=FakeClock())
    for _ in range(10):
        assert limiter.check("admin", authenticated=True)
    assert limiter.check("admin")
    assert not limiter.check("admin")
    print("✅ Authenticated callers are never limited")


def test_expired_counters_swept():
    clock = FakeClock()
    limiter = RateLimiter(per_minute=5, burst=3, burst_window=10, clock=clock)
    for i in range(1000):
        assert limiter.check(f"10.0.{i // 256}.{i % 256}")
    assert len(limiter._counters) == 2000

    clock.advance(100000)
    assert limiter.check("192.168.1.1")

    # Only the minute and burst counters of the last caller remain
    assert len(limiter._counters) == 2
    print("✅ Expired counters do not accumulate")


if __name__ == "__main__":
    print("=" * 60)
    print("Testing Rate Limiter")
    print("=" * 60)
    test_sixth_request_within_a_minute_is_rejected()
    test_burst_limit()
    test_counters_expire()
    test_authenticated_callers_bypass()
    test_expired_counters_swept()
    print("\n✅ ALL TESTS PASSED!")
