#!/usr/bin/env python3
"""Print catalog totals: enabled/disabled/missing mods and mods per category.

Examples:
  python scripts/60_reports_analysis/report_dashboard.py
  python scripts/60_reports_analysis/report_dashboard.py --category characters
  python scripts/60_reports_analysis/report_dashboard.py --json
"""
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.session import CatalogStore  # noqa: E402
from scripts.lib.errors import CatalogError  # noqa: E402
from scripts.lib.settings import resolve_mods_root  # noqa: E402
from scripts.lib.stats import dashboard_stats, entities_with_counts  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Catalog dashboard report")
    ap.add_argument("--db-url", help="SQLAlchemy DB URL (defaults to MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Mods folder (defaults to the saved setting or MODMGR_MODS_ROOT)")
    ap.add_argument("--category", help="Also list entities of this category slug with mod counts")
    ap.add_argument("--json", action="store_true", help="Emit JSON")
    args = ap.parse_args(argv)

    store = CatalogStore(args.db_url)
    try:
        mods_root = resolve_mods_root(store, args.mods_root)
        stats = dashboard_stats(store, mods_root)
        entities = entities_with_counts(store, mods_root, args.category) if args.category else []
    except CatalogError as e:
        print(f"[error] {e}")
        return 2
    finally:
        store.dispose()

    if args.json:
        out = asdict(stats)
        if args.category:
            out["entities"] = [asdict(e) for e in entities]
        print(json.dumps(out, indent=2, ensure_ascii=False))
        return 0

    print(f"Total mods:     {stats.total_mods}")
    print(f"  enabled:      {stats.enabled_mods}")
    print(f"  disabled:     {stats.disabled_mods}")
    print(f"  missing:      {stats.missing_mods}")
    print(f"Uncategorized:  {stats.uncategorized_mods}")
    print("By category:")
    for name, count in stats.category_counts.items():
        print(f"  {name:<20} {count}")
    if args.category:
        print(f"Entities in {args.category}:")
        for e in entities:
            print(f"  {e.slug:<30} {e.enabled_mods}/{e.total_mods} enabled")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
