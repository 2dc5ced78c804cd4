#!/usr/bin/env python3
"""Scan the mods folder and reconcile the catalog with what is on disk.

New mod folders are added, rows whose folders disappeared are pruned and
``DISABLEDfoo`` folders are renamed to ``DISABLED_foo``. A scan always
writes; there is no dry-run.

Example:
  python scripts/10_inventory/scan_mods.py --mods-root "D:/Games/ZZMI/Mods"
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.session import CatalogStore  # noqa: E402
from scripts.lib import events as ev  # noqa: E402
from scripts.lib.deduction import DEFAULT_CATEGORY_SLUG  # noqa: E402
from scripts.lib.errors import BatchOperationError, CatalogError  # noqa: E402
from scripts.lib.events import EventBus, ScanProgress  # noqa: E402
from scripts.lib.mod_scanner import scan_mods_directory  # noqa: E402
from scripts.lib.settings import resolve_mods_root  # noqa: E402


def _printer(quiet: bool):
    def on_event(name: str, payload: Any) -> None:
        if isinstance(payload, ScanProgress):
            if not quiet:
                print(f"[{payload.processed}/{payload.total}] {payload.message}")
        elif name in (ev.PRUNE_START, ev.PRUNE_COMPLETE):
            if payload.get("count"):
                print(f"[info] {name}: {payload['count']} mods")
        elif name in (ev.SCAN_ERROR, ev.PRUNE_ERROR):
            print(f"[error] {payload['message']}")
    return on_event


def parse_args(argv: list[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Scan the mods folder into the catalog")
    ap.add_argument("--db-url", help="SQLAlchemy DB URL (defaults to MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Mods folder (defaults to the saved setting or MODMGR_MODS_ROOT)")
    ap.add_argument("--default-category", default=DEFAULT_CATEGORY_SLUG,
                    help="Category whose '-other' bucket receives unrecognized mods")
    ap.add_argument("--quiet", action="store_true", help="Only print the summary")
    ap.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return ap.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    store = CatalogStore(args.db_url)
    try:
        mods_root = resolve_mods_root(store, args.mods_root)
        print(f"Scanning {mods_root}")
        bus = EventBus()
        bus.subscribe_all(_printer(args.quiet))
        summary = scan_mods_directory(store, mods_root, bus, default_category=args.default_category)
    except BatchOperationError as e:
        if e.summary is not None:
            print(e.summary.message())
        return 1
    except CatalogError as e:
        print(f"[error] {e}")
        return 2
    finally:
        store.dispose()
    print(summary.message())
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
