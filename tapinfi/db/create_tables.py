"""Create (or rebuild) the Tapinfi schema on DATABASE_URL.

Usage:
  python -m tapinfi.db.create_tables [--drop]
"""
from __future__ import annotations

import argparse

from sqlalchemy.exc import SQLAlchemyError

from .session import Base, get_engine
from . import models  # noqa: F401  # register every table on Base.metadata


def create_all(*, drop_first: bool = False) -> list[str]:
    engine = get_engine()
    if drop_first:
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return sorted(Base.metadata.tables)


def main() -> None:
    ap = argparse.ArgumentParser(description="Create the Tapinfi tables")
    ap.add_argument("--drop", action="store_true", help="drop every table before creating it again")
    args = ap.parse_args()
    try:
        tables = create_all(drop_first=args.drop)
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
    print(f"OK: {len(tables)} tables ready ({', '.join(tables)})")


if __name__ == "__main__":
    main()
