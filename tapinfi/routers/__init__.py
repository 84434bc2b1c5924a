"""
FastAPI routers grouped by domain (auth, profile, wallet, themes, cards).

Each module exposes an APIRouter included by tapinfi.app.
"""
