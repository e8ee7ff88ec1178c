from app.platform.circuit_breaker import CircuitBreaker, CircuitState


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_breaker(cooldown=10):
    clock = FakeClock()
    return CircuitBreaker("test", cooldown_seconds=cooldown, clock=clock), clock


def test_starts_closed():
    breaker, _ = make_breaker()

    assert breaker.state == CircuitState.closed
    assert breaker.allow_request() is True


def test_failure_opens_until_cooldown():
    breaker, clock = make_breaker(cooldown=10)

    breaker.record_failure()

    assert breaker.state == CircuitState.open
    assert breaker.allow_request() is False
    clock.now = 9.9
    assert breaker.allow_request() is False


def test_single_probe_after_cooldown():
    breaker, clock = make_breaker(cooldown=10)
    breaker.record_failure()
    clock.now = 10

    assert breaker.state == CircuitState.half_open
    assert breaker.allow_request() is True
    assert breaker.allow_request() is False


def test_successful_probe_closes():
    breaker, clock = make_breaker()
    breaker.record_failure()
    clock.now = 100
    breaker.allow_request()

    breaker.record_success()

    assert breaker.state == CircuitState.closed
    assert breaker.allow_request() is True


def test_failed_probe_reopens_with_fresh_cooldown():
    breaker, clock = make_breaker(cooldown=10)
    breaker.record_failure()
    clock.now = 10
    breaker.allow_request()

    breaker.record_failure()

    assert breaker.state == CircuitState.open
    clock.now = 15
    assert breaker.allow_request() is False
    clock.now = 20
    assert breaker.allow_request() is True
