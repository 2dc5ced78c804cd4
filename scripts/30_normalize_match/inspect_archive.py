#!/usr/bin/env python3
"""Analyze a mod archive (.zip/.7z/.rar) and optionally import it.

Without --import the deduced metadata is printed as JSON. With --import the
archive is extracted to <mods>/<category>/<entity>/<name> and cataloged;
values not given on the command line are taken from the analysis. Import is
dry-run unless --apply is given.

Examples:
  python scripts/30_normalize_match/inspect_archive.py Ellen_Maid.zip
  python scripts/30_normalize_match/inspect_archive.py Ellen_Maid.zip --import --apply
  python scripts/30_normalize_match/inspect_archive.py pack.7z --import --root "Pack/EllenMaid" --entity ellen-joe --apply
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.session import CatalogStore  # noqa: E402
from scripts.lib.archive_inspector import ImportRequest, analyze_archive, import_archive  # noqa: E402
from scripts.lib.archive_sources import open_archive  # noqa: E402
from scripts.lib.errors import CatalogError  # noqa: E402
from scripts.lib.settings import resolve_mods_root  # noqa: E402
from scripts.lib.taxonomy_index import load_taxonomy_index  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Inspect/import a mod archive")
    ap.add_argument("archive", help="Path to .zip, .7z or .rar")
    ap.add_argument("--db-url", help="SQLAlchemy DB URL (defaults to MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Mods folder (defaults to the saved setting or MODMGR_MODS_ROOT)")
    ap.add_argument("--entries", action="store_true", help="Include the full entry list in the output")
    ap.add_argument("--import", dest="do_import", action="store_true", help="Extract and catalog the archive")
    ap.add_argument("--entity", help="Target entity slug (default: deduced)")
    ap.add_argument("--name", help="Mod name (default: deduced)")
    ap.add_argument("--author", help="Author (default: deduced)")
    ap.add_argument("--description")
    ap.add_argument("--root", help="Only extract this folder of the archive (default: first likely mod root)")
    ap.add_argument("--whole", action="store_true", help="Extract the whole archive instead of one root")
    ap.add_argument("--preview", help="Image file to use as preview")
    ap.add_argument("--preset", type=int, action="append", default=[], help="Add the mod to this preset id (repeatable)")
    ap.add_argument("--apply", action="store_true", help="Perform the import (default: dry-run)")
    return ap.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    archive = Path(args.archive)
    store = CatalogStore(args.db_url)
    try:
        source = open_archive(archive)
        with store.session() as session:
            index = load_taxonomy_index(session)
        analysis = analyze_archive(archive, index, source=source)
        out = analysis.to_dict()
        if not args.entries:
            out.pop("entries", None)
            out["likely_roots"] = analysis.likely_roots
        print(json.dumps(out, indent=2, ensure_ascii=False))

        if not args.do_import:
            return 0
        entity = args.entity or analysis.deduced_entity_slug
        if not entity:
            print("[error] No entity could be deduced; pass --entity")
            return 2
        selected_root = None
        if not args.whole:
            selected_root = args.root or (analysis.likely_roots[0] if analysis.likely_roots else None)
        req = ImportRequest(
            entity_slug=entity,
            mod_name=args.name or analysis.deduced_mod_name or archive.stem,
            description=args.description,
            author=args.author or analysis.deduced_author,
            category_tag=analysis.raw_ini_type,
            selected_root=selected_root,
            preview_file=Path(args.preview) if args.preview else None,
            preset_ids=args.preset,
        )
        if not args.apply:
            print(f"[info] Would import into entity '{req.entity_slug}' as '{req.mod_name}'"
                  f" (root: {req.selected_root or '<whole archive>'}). Use --apply to import.")
            return 0
        mods_root = resolve_mods_root(store, args.mods_root)
        result = import_archive(store, mods_root, archive, req, source=source)
        print(f"Imported {result.files_written} files to {result.clean_path} (asset id {result.asset_id})")
        return 0
    except CatalogError as e:
        print(f"[error] {e}")
        return 2
    finally:
        store.dispose()


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
