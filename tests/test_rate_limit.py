"""Limite de requisições por cliente em janela fixa."""
from fastapi.testclient import TestClient

from atendimentos.main import create_app
from atendimentos.middleware import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_limiter_blocks_after_max_and_resets_after_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window=60, clock=clock)

    assert limiter.hit("a")[:2] == (True, 1)
    assert limiter.hit("a")[:2] == (True, 0)
    allowed, remaining, reset = limiter.hit("a")
    assert (allowed, remaining) == (False, 0)
    assert reset == 60

    # Outro cliente tem o próprio contador
    assert limiter.hit("b")[0] is True

    clock.now = 61
    assert limiter.hit("a")[:2] == (True, 1)


def test_limiter_drops_expired_windows():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window=10, clock=clock)
    limiter.hit("antigo")

    clock.now = 25
    limiter.hit("novo")

    assert set(limiter._janelas) == {"novo"}


def test_app_answers_429_when_limit_exceeded(make_settings):
    with TestClient(create_app(make_settings(rate_limit_max=2))) as client:
        first = client.get("/")
        client.get("/")
        blocked = client.get("/")
        other_client = client.get("/", headers={"X-Forwarded-For": "10.0.0.9"})

    assert first.status_code == 200
    assert first.headers["RateLimit-Limit"] == "2"
    assert first.headers["RateLimit-Remaining"] == "1"
    assert blocked.status_code == 429
    assert "Retry-After" in blocked.headers
    assert other_client.status_code == 200
