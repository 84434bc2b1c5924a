#!/usr/bin/env python3
"""
Register available themes.

Usage:
  python scripts/add_theme.py --id GreenProfile --name "Green profile" [--image-url URL]
  python scripts/add_theme.py --builtin     # every theme the public page can render
"""
from __future__ import annotations

import argparse
import re
import sys

from sqlalchemy.exc import SQLAlchemyError

from tapinfi.domain.themes import ThemeKind
from tapinfi.services.theme_service import ThemeError, ThemeExistsError, ThemeService


def _display_name(kind: ThemeKind) -> str:
    words = re.sub(r"(?<!^)(?=[A-Z])", " ", kind.value)
    return words.replace(" Theme", "").strip()


def main() -> None:
    ap = argparse.ArgumentParser(description="Register Tapinfi themes")
    ap.add_argument("--id", help="theme identifier (e.g. GreenProfile)")
    ap.add_argument("--name", help="display name")
    ap.add_argument("--image-url", default="", help="optional preview image URL")
    ap.add_argument("--builtin", action="store_true", help="register all built-in themes")
    args = ap.parse_args()

    service = ThemeService()
    if args.builtin:
        for kind in ThemeKind:
            if kind is ThemeKind.NEUTRAL:
                continue
            try:
                service.create_theme(kind.value, _display_name(kind))
                print(f"OK: {kind.value}")
            except ThemeExistsError:
                print(f"skip: {kind.value} already registered")
        return
    if not args.id or not args.name:
        ap.error("--id and --name are required unless --builtin is given")
    try:
        theme = service.create_theme(args.id, args.name, args.image_url)
    except ThemeError as exc:
        raise SystemExit(exc.message)
    print(f"OK: theme {theme.id} ({theme.name}) registered")


if __name__ == "__main__":
    try:
        main()
    except SQLAlchemyError as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
