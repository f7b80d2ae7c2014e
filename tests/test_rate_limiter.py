import pytest

from src.Services.provider.rate_limiter import RateLimiter


@pytest.fixture
def limiter(db, fake_clock):
    def _make(session=None, **overrides):
        options = dict(min_interval_ms=200, burst_limit=5, burst_window_ms=1000)
        options.update(overrides)
        return RateLimiter(session or db, clock=fake_clock.time, sleep=fake_clock.sleep, **options)
    return _make


def test_first_call_does_not_wait(limiter, fake_clock):
    assert limiter().acquire() == 0.0
    assert fake_clock.sleeps == []


def test_minimum_interval_between_calls(limiter, fake_clock):
    rl = limiter()
    rl.acquire()
    waited = rl.acquire()

    assert waited == pytest.approx(0.2)
    assert fake_clock.sleeps == [pytest.approx(0.2)]


def test_burst_window(limiter, fake_clock):
    rl = limiter(min_interval_ms=0, burst_limit=2)
    rl.acquire()
    rl.acquire()
    rl.acquire()

    assert fake_clock.sleeps == [pytest.approx(1.0)]
    assert rl.state()["window_calls"] == 1


def test_backoff_is_waited_out_and_never_shortened(limiter, fake_clock):
    rl = limiter()
    rl.register_backoff(10)
    rl.register_backoff(2)

    rl.acquire()

    assert fake_clock.sleeps[0] == pytest.approx(10)


def test_clear_backoff(limiter, fake_clock):
    rl = limiter()
    rl.register_backoff(10)
    rl.clear_backoff()
    rl.acquire()

    assert fake_clock.sleeps == []


def test_state_is_shared_between_sessions(limiter, session_factory, fake_clock):
    other = session_factory()
    try:
        limiter().acquire()
        limiter(session=other).acquire()
    finally:
        other.close()

    assert fake_clock.sleeps == [pytest.approx(0.2)]
