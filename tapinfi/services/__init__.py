"""
Use cases for the Tapinfi cards platform.

Each service module orchestrates repositories and domain rules (sign-in,
profile editing, profile resolution, themes, wallet). Routers call these
services instead of touching the database or the session cookie directly.
"""
