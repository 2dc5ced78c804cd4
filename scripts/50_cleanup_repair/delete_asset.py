#!/usr/bin/env python3
"""Delete a mod folder from disk and its catalog row, by id or clean folder path.

Dry-run by default; use --apply to delete. The folder is removed in whichever
form exists (enabled or DISABLED_), and preset memberships cascade.

Examples:
    python scripts/50_cleanup_repair/delete_asset.py --id 66 --apply
    python scripts/50_cleanup_repair/delete_asset.py --folder characters/ellen-joe/EllenMaid --apply
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import select  # noqa: E402

from db.models import Asset  # noqa: E402
from db.session import CatalogStore  # noqa: E402
from scripts.lib.asset_ops import delete_asset  # noqa: E402
from scripts.lib.errors import CatalogError  # noqa: E402
from scripts.lib.settings import resolve_mods_root  # noqa: E402


def find_asset_id(store: CatalogStore, asset_id: int | None, folder: str | None) -> int | None:
    with store.session() as session:
        if asset_id is not None:
            return asset_id if session.get(Asset, asset_id) is not None else None
        if folder:
            return session.execute(
                select(Asset.id).where(Asset.folder_name == folder.strip("/"))
            ).scalar_one_or_none()
    return None


def main(argv: list[str]) -> int:
    ap = argparse.ArgumentParser(description="Delete a mod folder and its catalog row (dry-run by default)")
    ap.add_argument("--db-url", dest="db_url", help="Database URL (overrides MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Mods folder (defaults to the saved setting or MODMGR_MODS_ROOT)")
    ap.add_argument("--id", type=int, help="Asset id to delete")
    ap.add_argument("--folder", help="Clean folder path relative to the mods root (exact match)")
    ap.add_argument("--apply", action="store_true", help="Delete the folder and row")
    args = ap.parse_args(argv)

    if args.id is None and not args.folder:
        print("Provide --id or --folder")
        return 2

    store = CatalogStore(args.db_url)
    try:
        asset_id = find_asset_id(store, args.id, args.folder)
        if asset_id is None:
            print(json.dumps({"found": False, "id": args.id, "folder": args.folder}))
            return 0
        with store.session() as session:
            a = session.get(Asset, asset_id)
            info = {
                "found": True,
                "id": a.id,
                "name": a.name,
                "folder": a.folder_name,
                "presets": len(a.preset_links or []),
            }
        print(json.dumps({"dry_run": (not args.apply), **info}, indent=2))
        if args.apply:
            mods_root = resolve_mods_root(store, args.mods_root)
            removed = delete_asset(store, mods_root, asset_id)
            if not removed:
                print(f"[warn] No folder found on disk for {info['folder']}")
            print(f"Deleted asset {asset_id} ({info['folder']}).")
    except CatalogError as e:
        print(f"[error] {e}")
        return 2
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
