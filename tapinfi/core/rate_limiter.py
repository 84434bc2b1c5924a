"""In-process, per-IP sliding-window limits for the account forms."""
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass

from fastapi import HTTPException, Request


@dataclass(frozen=True)
class RateRule:
    name: str
    limit: int
    window_seconds: int


SIGN_IN = RateRule("auth:login", limit=5, window_seconds=60)
SIGN_UP = RateRule("auth:signup", limit=3, window_seconds=300)
FORGOT_PASSWORD = RateRule("auth:forgot", limit=5, window_seconds=300)
RESET_PASSWORD = RateRule("auth:reset", limit=5, window_seconds=300)

SWEEP_INTERVAL_SECONDS = 60

_hits: dict[tuple[RateRule, str], deque[float]] = {}
_lock = threading.Lock()
_last_sweep = 0.0


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _drop_expired(hits: deque[float], now: float, rule: RateRule) -> None:
    while hits and hits[0] <= now - rule.window_seconds:
        hits.popleft()


def _sweep(now: float) -> None:
    """Forget every client whose window has fully drained. Caller holds _lock."""
    global _last_sweep
    if now - _last_sweep < SWEEP_INTERVAL_SECONDS:
        return
    _last_sweep = now
    for key in list(_hits):
        rule, _ip = key
        _drop_expired(_hits[key], now, rule)
        if not _hits[key]:
            del _hits[key]


def rate_limit_ip(request: Request, rule: RateRule) -> None:
    """Record a hit for the caller's IP; 429 once the rule's window is full."""
    now = time.monotonic()
    key = (rule, client_ip(request))
    with _lock:
        _sweep(now)
        hits = _hits.setdefault(key, deque())
        _drop_expired(hits, now, rule)
        if len(hits) >= rule.limit:
            raise HTTPException(429, "Too many attempts. Try again in a moment.")
        hits.append(now)


def reset_limits() -> None:
    global _last_sweep
    with _lock:
        _hits.clear()
        _last_sweep = 0.0
