"""
Tests for the in-memory rate limiter
"""

import pytest

from app.utils import security
from app.utils.security import rate_limit_check, rate_limiter

@pytest.fixture(autouse=True)
def fresh_limiter():
    rate_limiter.clear()
    yield
    rate_limiter.clear()

def test_limit_enforced_per_client():
    assert rate_limit_check("10.0.0.1", limit=2)
    assert rate_limit_check("10.0.0.1", limit=2)
    assert not rate_limit_check("10.0.0.1", limit=2)
    assert rate_limit_check("10.0.0.2", limit=2)

def test_idle_clients_are_forgotten(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(security.time, "time", lambda: now[0])

    for i in range(5):
        rate_limit_check(f"10.0.0.{i}", limit=10)
    assert len(rate_limiter) == 5

    now[0] += 61
    assert rate_limit_check("10.0.1.1", limit=10)

    assert list(rate_limiter) == ["10.0.1.1"]

def test_window_reopens_after_a_minute(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(security.time, "time", lambda: now[0])

    assert rate_limit_check("10.0.0.1", limit=1)
    assert not rate_limit_check("10.0.0.1", limit=1)

    now[0] += 61
    assert rate_limit_check("10.0.0.1", limit=1)
    assert rate_limiter["10.0.0.1"] == [now[0]]
