#!/usr/bin/env python3
"""Catalog database bootstrapper

Creates or upgrades the catalog schema to the latest Alembic revision and,
optionally, records the mods folder in the settings table.

Defaults are safe:
- Uses Alembic migrations by default (no destructive operations)
- Accepts --db-url to override the target DB (preferred over env var MODMGR_DB_URL)
- Falls back to SQLAlchemy metadata create_all if Alembic is unavailable

Examples:
  python scripts/00_bootstrap/bootstrap_db.py --db-url sqlite:///./data/modmgr.db
  python scripts/00_bootstrap/bootstrap_db.py --mods-root "D:/Games/ZZMI/Mods"

Optional:
  --use-metadata      Use SQLAlchemy Base.metadata.create_all instead of Alembic
  --echo              Enable SQL echo for troubleshooting
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.session import DEFAULT_DB_URL, CatalogStore, ensure_sqlite_dir, normalize_sqlite_url  # noqa: E402
from scripts.lib.settings import save_mods_root  # noqa: E402


def _run_alembic_upgrade_head(db_url: str, project_root: Path) -> int:
    try:
        from alembic import command
        from alembic.config import Config
    except ImportError as e:
        print("[warn] Alembic not available:", e)
        return 2

    ini_path = project_root / "alembic.ini"
    if not ini_path.is_file():
        print(f"[error] alembic.ini not found at {ini_path}")
        return 2

    cfg = Config(str(ini_path))
    # Ensure script location and URL are set correctly regardless of CWD
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    print("Running Alembic upgrade to head...")
    try:
        command.upgrade(cfg, "head")
    except Exception as e:
        print(f"[warn] Alembic upgrade failed ({e})")
        return 2
    print("Alembic upgrade complete.")
    return 0


def _create_with_metadata(db_url: str, echo: bool = False) -> int:
    print("Creating tables via SQLAlchemy metadata (create_all)...")
    store = CatalogStore(db_url, echo=echo, create_schema=True)
    store.dispose()
    print("Metadata create_all complete.")
    return 0


def parse_args(argv: list[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Bootstrap/upgrade the catalog database schema")
    ap.add_argument("--db-url", dest="db_url", default=os.environ.get("MODMGR_DB_URL", DEFAULT_DB_URL),
                    help="Target database URL (overrides env var MODMGR_DB_URL)")
    ap.add_argument("--mods-root", help="Record this folder as the mods root in the settings table")
    ap.add_argument("--use-metadata", action="store_true",
                    help="Use SQLAlchemy Base.metadata.create_all instead of Alembic")
    ap.add_argument("--echo", action="store_true", help="Echo SQL statements (metadata mode)")
    return ap.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    db_url = normalize_sqlite_url(args.db_url)
    print(f"Target DB URL: {db_url}")
    ensure_sqlite_dir(db_url)

    if args.use_metadata:
        rc = _create_with_metadata(db_url, echo=args.echo)
    else:
        # Prefer Alembic; fall back to metadata if Alembic is not available
        rc = _run_alembic_upgrade_head(db_url, ROOT)
        if rc != 0:
            print("[warn] Falling back to SQLAlchemy metadata create_all...")
            rc = _create_with_metadata(db_url, echo=args.echo)
    if rc != 0:
        return rc

    if args.mods_root:
        mods_root = Path(args.mods_root).expanduser().resolve()
        if not mods_root.is_dir():
            print(f"[error] Mods folder does not exist: {mods_root}")
            return 2
        store = CatalogStore(db_url, create_schema=False)
        try:
            save_mods_root(store, mods_root)
        finally:
            store.dispose()
        print(f"Mods folder set to {mods_root}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
