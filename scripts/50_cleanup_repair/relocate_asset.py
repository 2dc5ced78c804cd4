#!/usr/bin/env python3
"""Move a mod under another entity and/or edit its catalog metadata.

The folder keeps its enabled/disabled form and lands at
<category>/<entity>/<folder name>. Dry-run by default; use --apply to move.

Examples:
    python scripts/50_cleanup_repair/relocate_asset.py --id 12 --entity ellen-joe --apply
    python scripts/50_cleanup_repair/relocate_asset.py --id 12 --name "Maid Outfit" --author Someone --apply
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.models import Asset, Entity  # noqa: E402
from db.session import CatalogStore  # noqa: E402
from scripts.lib.asset_ops import AssetUpdate, update_asset_info  # noqa: E402
from scripts.lib.errors import CatalogError  # noqa: E402
from scripts.lib.settings import resolve_mods_root  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Relocate/edit a cataloged mod (dry-run by default)")
    ap.add_argument("--db-url", dest="db_url", help="Database URL (overrides MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Mods folder (defaults to the saved setting or MODMGR_MODS_ROOT)")
    ap.add_argument("--id", type=int, required=True, help="Asset id")
    ap.add_argument("--entity", help="Move under this entity slug")
    ap.add_argument("--name")
    ap.add_argument("--description")
    ap.add_argument("--author")
    ap.add_argument("--tag", help="Category tag (the INI type hint)")
    ap.add_argument("--image", help="Image file to copy into the mod folder as its preview")
    ap.add_argument("--apply", action="store_true", help="Apply the change")
    return ap.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    update = AssetUpdate(
        name=args.name,
        description=args.description,
        author=args.author,
        category_tag=args.tag,
        target_entity_slug=args.entity,
        image_source=Path(args.image) if args.image else None,
    )
    store = CatalogStore(args.db_url)
    try:
        with store.session() as session:
            asset = session.get(Asset, args.id)
            if asset is None:
                print(f"[error] Asset not found: {args.id}")
                return 2
            current_entity = session.get(Entity, asset.entity_id)
            print(f"Asset {asset.id}: {asset.name} at {asset.folder_name} (entity {current_entity.slug})")
        if args.entity:
            print(f"  entity -> {args.entity}")
        for field in ("name", "description", "author", "tag", "image"):
            value = getattr(args, field)
            if value is not None:
                print(f"  {field} -> {value}")
        if not args.apply:
            print("Dry-run complete. Use --apply to write.")
            return 0
        mods_root = resolve_mods_root(store, args.mods_root)
        row = update_asset_info(store, mods_root, args.id, update)
        print(f"Updated asset {row.id}; folder now {row.folder_name}")
    except CatalogError as e:
        print(f"[error] {e}")
        return 2
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
