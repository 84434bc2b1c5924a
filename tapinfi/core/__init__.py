"""
Core utilities shared across the Tapinfi API.

This package hosts:
- configuration helpers (env vars, paths, TTLs)
- cross-cutting services such as logging, the mailer adapter, CSRF,
  password hashing and rate limit helpers.

Services depend on these primitives instead of importing os.environ or
FastAPI internals directly.
"""
