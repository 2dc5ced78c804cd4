#!/usr/bin/env python3
"""Enable or disable mods by renaming their folders (DISABLED_ prefix).

Without --enable/--disable each listed mod is flipped. Dry-run by default;
use --apply to rename.

Examples:
    python scripts/50_cleanup_repair/toggle_asset.py --ids 3 7 --apply
    python scripts/50_cleanup_repair/toggle_asset.py --ids 3 --disable --apply
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.models import Asset  # noqa: E402
from db.session import CatalogStore  # noqa: E402
from scripts.lib.enable_state import ModPaths, set_enabled  # noqa: E402
from scripts.lib.errors import CatalogError, FolderMissingError  # noqa: E402
from scripts.lib.settings import resolve_mods_root  # noqa: E402


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Toggle mods between enabled and disabled (dry-run by default)")
    ap.add_argument("--db-url", dest="db_url", help="Database URL (overrides MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Mods folder (defaults to the saved setting or MODMGR_MODS_ROOT)")
    ap.add_argument("--ids", nargs="+", type=int, required=True, help="Asset ids")
    state = ap.add_mutually_exclusive_group()
    state.add_argument("--enable", action="store_true", help="Force enabled")
    state.add_argument("--disable", action="store_true", help="Force disabled")
    ap.add_argument("--apply", action="store_true", help="Rename folders; default is dry-run")
    args = ap.parse_args(argv)

    store = CatalogStore(args.db_url)
    failures = 0
    changed = 0
    try:
        mods_root = resolve_mods_root(store, args.mods_root)
        with store.session() as session:
            rows = {a.id: a.folder_name for a in session.query(Asset).filter(Asset.id.in_(args.ids))}
        for asset_id in args.ids:
            clean = rows.get(asset_id)
            if clean is None:
                print(f"[warn] Asset {asset_id} not found")
                failures += 1
                continue
            try:
                current = ModPaths.for_clean_path(mods_root, clean).is_enabled()
            except FolderMissingError as e:
                print(f"[warn] {e}")
                failures += 1
                continue
            wanted = True if args.enable else False if args.disable else not current
            if wanted == current:
                print(f"Asset {asset_id}: {clean} already {'enabled' if current else 'disabled'}")
                continue
            print(f"Asset {asset_id}: {clean} -> {'enabled' if wanted else 'disabled'}")
            if args.apply:
                try:
                    set_enabled(mods_root, clean, wanted)
                except OSError as e:
                    print(f"[error] {clean}: {e}")
                    failures += 1
                    continue
            changed += 1
    except CatalogError as e:
        print(f"[error] {e}")
        return 2
    finally:
        store.dispose()
    verb = "Changed" if args.apply else "Would change"
    print(f"{verb} {changed}; failures {failures}")
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
