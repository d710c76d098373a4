from santavibe.services.rate_limit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_max_calls_per_window():
    clock = FakeClock()
    limiter = RateLimiter(max_calls=2, period_seconds=10, clock=clock)
    assert limiter.allow((1, "draw")).allowed
    assert limiter.allow((1, "draw")).allowed

    blocked = limiter.allow((1, "draw"))
    assert not blocked.allowed
    assert blocked.retry_after == 10


def test_keys_are_independent():
    limiter = RateLimiter(max_calls=1, period_seconds=10, clock=FakeClock())
    assert limiter.allow((1, "draw")).allowed
    assert limiter.allow((1, "list")).allowed
    assert limiter.allow((2, "draw")).allowed
    assert not limiter.allow((1, "draw")).allowed


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(max_calls=1, period_seconds=10, clock=clock)
    assert limiter.allow("key").allowed
    clock.now += 4
    result = limiter.allow("key")
    assert not result.allowed
    assert result.retry_after == 6
    clock.now += 6
    assert limiter.allow("key").allowed


def test_configure_resets_history():
    limiter = RateLimiter(max_calls=1, period_seconds=10, clock=FakeClock())
    assert limiter.allow("key").allowed
    assert not limiter.allow("key").allowed
    limiter.configure(max_calls=3, period_seconds=5)
    assert limiter.max_calls == 3
    assert limiter.allow("key").allowed
