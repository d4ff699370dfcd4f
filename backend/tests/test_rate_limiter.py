from app.services import rate_limiter as rate_limiter_module
from app.services.rate_limiter import InMemoryRateLimiter


def test_hits_within_limit_are_allowed():
    limiter = InMemoryRateLimiter()
    assert [limiter.hit("k", 3, 60) for _ in range(3)] == [0, 0, 0]


def test_rejection_reports_seconds_until_window_frees(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limiter_module.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter()

    limiter.hit("k", 2, 60)
    clock[0] += 10
    limiter.hit("k", 2, 60)

    assert limiter.hit("k", 2, 60) == 60 - 10
    clock[0] += 50
    assert limiter.hit("k", 2, 60) == 0


def test_keys_are_independent():
    limiter = InMemoryRateLimiter()
    limiter.hit("a", 1, 60)
    assert limiter.hit("a", 1, 60) > 0
    assert limiter.hit("b", 1, 60) == 0


def test_reset_clears_all_windows():
    limiter = InMemoryRateLimiter()
    limiter.hit("a", 1, 60)
    limiter.reset()
    assert limiter.hit("a", 1, 60) == 0


def test_idle_keys_are_dropped_once_their_windows_expire(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limiter_module.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter()

    for n in range(500):
        limiter.hit(f"10.0.0.1:user{n}@example.com", 10, 60)
    assert len(limiter) == 500

    clock[0] += 61
    limiter.hit("10.0.0.2:other@example.com", 10, 60)

    assert len(limiter) == 1


def test_keys_with_live_hits_survive_a_sweep(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limiter_module.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter()

    limiter.hit("hourly", 1, 3600)
    limiter.hit("minutely", 1, 60)
    clock[0] += 120
    limiter.hit("new", 1, 60)

    assert len(limiter) == 2
    assert limiter.hit("hourly", 1, 3600) > 0
