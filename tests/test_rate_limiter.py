from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from tapinfi.core import rate_limiter
from tapinfi.core.rate_limiter import RateRule, rate_limit_ip, reset_limits

RULE = RateRule("test:form", limit=2, window_seconds=10)


def _request(ip: str) -> Request:
    return Request({"type": "http", "method": "POST", "path": "/", "headers": [], "client": (ip, 50000)})


@pytest.fixture()
def clock(monkeypatch):
    reset_limits()
    now = [1000.0]
    monkeypatch.setattr(rate_limiter, "time", SimpleNamespace(monotonic=lambda: now[0]))
    yield now
    reset_limits()


def test_blocks_after_limit_within_window(clock):
    rate_limit_ip(_request("10.0.0.1"), RULE)
    rate_limit_ip(_request("10.0.0.1"), RULE)
    with pytest.raises(HTTPException) as excinfo:
        rate_limit_ip(_request("10.0.0.1"), RULE)
    assert excinfo.value.status_code == 429

    rate_limit_ip(_request("10.0.0.2"), RULE)

    clock[0] += RULE.window_seconds + 1
    rate_limit_ip(_request("10.0.0.1"), RULE)


def test_forwarded_for_header_names_the_client():
    request = Request({"type": "http", "headers": [(b"x-forwarded-for", b"203.0.113.9, 10.0.0.1")], "client": ("10.0.0.1", 1)})
    assert rate_limiter.client_ip(request) == "203.0.113.9"


def test_drained_clients_are_forgotten(clock):
    for n in range(50):
        rate_limit_ip(_request(f"10.0.1.{n}"), RULE)
    assert len(rate_limiter._hits) == 50

    clock[0] += rate_limiter.SWEEP_INTERVAL_SECONDS + RULE.window_seconds
    rate_limit_ip(_request("10.0.2.1"), RULE)

    assert [ip for _rule, ip in rate_limiter._hits] == ["10.0.2.1"]
