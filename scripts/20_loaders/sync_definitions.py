#!/usr/bin/env python3
"""Sync a game's category/entity definition file into the catalog.

Dry-run by default: the changes are computed and rolled back. Pass --apply
to commit. Entities no longer listed under a defined category are deleted
together with their mods' catalog rows (folders on disk are untouched).

Example:
  python scripts/20_loaders/sync_definitions.py vocab/definitions/zzz.yaml --apply
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.session import CatalogStore  # noqa: E402
from scripts.lib.taxonomy_sync import load_definitions, sync_definitions  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Upsert categories/entities from a definition file")
    ap.add_argument("file", help="Definition file (.yaml/.yml, .json or .toml)")
    ap.add_argument("--db-url", help="SQLAlchemy DB URL (defaults to MODMGR_DB_URL)")
    ap.add_argument("--no-prune", action="store_true", help="Keep entities missing from the definition")
    ap.add_argument("--apply", action="store_true", help="Commit changes (default: dry-run)")
    return ap.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    path = Path(args.file)
    if not path.is_file():
        print(f"[error] Definition file not found: {path}")
        return 2
    try:
        definitions = load_definitions(path)
    except ValueError as e:
        print(f"[error] {path}: {e}")
        return 2

    store = CatalogStore(args.db_url)
    try:
        with store.session() as session:
            report = sync_definitions(session, definitions, prune=not args.no_prune)
            if args.apply:
                session.commit()
            else:
                session.rollback()
    finally:
        store.dispose()

    print(f"Categories in file: {len(definitions)}; {report.summary()}")
    for slug in report.pruned_slugs:
        print(f"  - pruned entity {slug}")
    if args.apply:
        print("Committed definition sync.")
    else:
        print("Dry-run complete (no changes committed). Use --apply to write.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
