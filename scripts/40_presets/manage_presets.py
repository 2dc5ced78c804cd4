#!/usr/bin/env python3
"""Manage presets: named snapshots of which mods are enabled.

Subcommands:
  list                       show presets (favorites marked with *)
  create NAME                snapshot the current enabled/disabled state
  overwrite ID               replace a preset's contents with the current state
  apply ID                   rename folders to match the preset
  favorite ID                toggle the favorite flag
  delete ID                  remove the preset (mod folders untouched)

Examples:
  python scripts/40_presets/manage_presets.py create "Story run"
  python scripts/40_presets/manage_presets.py apply 2
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.session import CatalogStore  # noqa: E402
from scripts.lib import events as ev  # noqa: E402
from scripts.lib.errors import BatchOperationError, CatalogError  # noqa: E402
from scripts.lib.events import ApplyProgress, EventBus  # noqa: E402
from scripts.lib.presets import (  # noqa: E402
    apply_preset,
    create_preset,
    delete_preset,
    list_presets,
    overwrite_preset,
    toggle_preset_favorite,
)
from scripts.lib.settings import resolve_mods_root  # noqa: E402


def _print_progress(name: str, payload: Any) -> None:
    if isinstance(payload, ApplyProgress):
        print(f"[{payload.processed}/{payload.total}] {payload.message}")
    elif name == ev.PRESET_APPLY_ERROR:
        print(f"[error] {payload['message']}")


def parse_args(argv: list[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Create, apply and maintain presets")
    ap.add_argument("--db-url", help="SQLAlchemy DB URL (defaults to MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Mods folder (defaults to the saved setting or MODMGR_MODS_ROOT)")
    sub = ap.add_subparsers(dest="cmd", required=True)
    sub.add_parser("list")
    p = sub.add_parser("create")
    p.add_argument("name")
    for cmd in ("overwrite", "apply", "favorite", "delete"):
        p = sub.add_parser(cmd)
        p.add_argument("id", type=int)
    return ap.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    store = CatalogStore(args.db_url)
    try:
        if args.cmd == "list":
            presets = list_presets(store)
            if not presets:
                print("No presets.")
            for p in presets:
                star = "*" if p.is_favorite else " "
                print(f"{star} {p.id:>4}  {p.name}  ({p.asset_count} mods)")
        elif args.cmd == "create":
            preset_id = create_preset(store, resolve_mods_root(store, args.mods_root), args.name)
            print(f"Created preset {preset_id}: {args.name}")
        elif args.cmd == "overwrite":
            count = overwrite_preset(store, resolve_mods_root(store, args.mods_root), args.id)
            print(f"Preset {args.id} now holds {count} mods")
        elif args.cmd == "apply":
            bus = EventBus()
            bus.subscribe_all(_print_progress)
            summary = apply_preset(store, resolve_mods_root(store, args.mods_root), args.id, bus)
            print(summary.message())
        elif args.cmd == "favorite":
            state = toggle_preset_favorite(store, args.id)
            print(f"Preset {args.id} favorite: {state}")
        elif args.cmd == "delete":
            delete_preset(store, args.id)
            print(f"Deleted preset {args.id}")
    except BatchOperationError as e:
        if e.summary is not None:
            print(e.summary.message())
        return 1
    except CatalogError as e:
        print(f"[error] {e}")
        return 2
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
