"""Reconcile the catalog with the mod folders present on disk.

A scan walks the mods root, repairs ``DISABLEDfoo`` style names, treats every
folder that directly holds a mod ``.ini`` as one mod (without looking inside
it for more), inserts catalog rows for mods it has not seen and finally
deletes rows whose folders were not encountered. Running it twice over an
unchanged tree changes nothing the second time.

Catalog access happens in short borrows of the store; deduction and renames
happen outside them.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from db.models import Asset
from db.session import CatalogStore
from scripts.lib import events as ev
from scripts.lib.deduction import DEFAULT_CATEGORY_SLUG, Deduction, deduce_mod_info
from scripts.lib.enable_state import clean_relative_path, needs_marker_repair, repaired_name
from scripts.lib.errors import BatchOperationError, ConfigurationError
from scripts.lib.events import EventBus, ScanProgress
from scripts.lib.mod_config import has_mod_config
from scripts.lib.taxonomy_index import load_taxonomy_index

_log = logging.getLogger(__name__)

_PRUNE_CHUNK = 500


@dataclass
class ScanSummary:
    total: int = 0
    processed: int = 0
    added: int = 0
    pruned: int = 0
    renamed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def message(self) -> str:
        renamed = f" Renamed {self.renamed} malformed disabled folders." if self.renamed else ""
        return (
            f"Scan complete. Processed {self.processed} mod folders. Added {self.added} new mods. "
            f"Pruned {self.pruned} missing mods.{renamed} {self.error_count} errors occurred."
        )


def is_mod_folder(path: Path) -> bool:
    return has_mod_config(path)


def count_candidate_folders(mods_root: Path) -> int:
    """Pre-pass estimate of the work: mod folders plus folders that will be renamed."""
    total = 0
    for dirpath, dirnames, _ in os.walk(mods_root):
        for name in dirnames:
            if needs_marker_repair(name) or is_mod_folder(Path(dirpath) / name):
                total += 1
    return total


def _repair_marker(path: Path) -> Path:
    fixed = path.with_name(repaired_name(path.name))
    if fixed.exists():
        raise FileExistsError(f"{fixed} already exists")
    os.rename(path, fixed)
    return fixed


class _Walk:
    """Directory walk yielding mod folders; renames and walk errors are recorded on the summary."""

    def __init__(self, mods_root: Path, summary: ScanSummary, bus: EventBus) -> None:
        self.mods_root = mods_root
        self.summary = summary
        self.bus = bus

    def _on_walk_error(self, err: OSError) -> None:
        self.summary.errors.append(f"Cannot read {err.filename}: {err.strerror}")
        _log.warning("Walk error: %s", err)

    def __iter__(self) -> Iterator[Path]:
        for dirpath, dirnames, _ in os.walk(self.mods_root, onerror=self._on_walk_error):
            dirnames.sort()
            descend: List[str] = []
            for name in dirnames:
                path = Path(dirpath) / name
                if needs_marker_repair(name):
                    try:
                        fixed = _repair_marker(path)
                    except OSError as e:
                        # Skip the folder and everything below it
                        self.summary.errors.append(f"Failed to rename {path}: {e}")
                        _log.warning("Failed to rename %s: %s", path, e)
                        continue
                    self.summary.renamed += 1
                    self.bus.emit(ev.SCAN_PROGRESS, ScanProgress(
                        processed=self.summary.processed,
                        total=self.summary.total,
                        current_path=self._rel(fixed),
                        message=f"Renamed {name} -> {fixed.name}",
                    ))
                    path, name = fixed, fixed.name
                if is_mod_folder(path):
                    yield path
                    continue
                descend.append(name)
            dirnames[:] = descend

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.mods_root).as_posix()


def _existing_asset_ids(store: CatalogStore) -> Set[int]:
    with store.session() as session:
        return set(session.execute(select(Asset.id)).scalars())


def _cataloged(session, clean_path: str) -> Optional[Tuple[int, int]]:
    row = session.execute(
        select(Asset.id, Asset.entity_id).where(Asset.folder_name == clean_path)
    ).first()
    return (row[0], row[1]) if row is not None else None


def _record_mod(store: CatalogStore, entity_id: int, clean_path: str, deduction: Deduction) -> int:
    """Return the id of the catalog row for this mod, inserting one if needed.

    A row already stored at ``clean_path`` is kept as is, even when it sits
    under a different entity than the one deduced now (imports and relocations
    choose the entity explicitly).
    """
    with store.session() as session:
        existing = _cataloged(session, clean_path)
        if existing is not None:
            if existing[1] != entity_id:
                _log.debug("%s is cataloged under entity %s; deduced %s, keeping the catalog entry",
                           clean_path, existing[1], entity_id)
            return existing[0]
        asset = Asset(
            entity_id=entity_id,
            name=deduction.mod_name,
            description=deduction.description,
            folder_name=clean_path,
            image_filename=deduction.image_filename,
            author=deduction.author,
            category_tag=deduction.type_tag,
        )
        session.add(asset)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            existing = _cataloged(session, clean_path)
            if existing is None:
                raise
            _log.warning("%s was cataloged concurrently (%s); keeping row %s", clean_path, e.orig, existing[0])
            return existing[0]
        return asset.id


def _prune(store: CatalogStore, stale_ids: List[int], bus: EventBus) -> int:
    bus.emit(ev.PRUNE_START, {"count": len(stale_ids)})
    if not stale_ids:
        bus.emit(ev.PRUNE_COMPLETE, {"count": 0})
        return 0
    bus.emit(ev.PRUNE_PROGRESS, {"message": f"Removing {len(stale_ids)} mods no longer on disk"})
    try:
        with store.session() as session:
            for i in range(0, len(stale_ids), _PRUNE_CHUNK):
                session.execute(delete(Asset).where(Asset.id.in_(stale_ids[i:i + _PRUNE_CHUNK])))
            session.commit()
    except SQLAlchemyError as e:
        bus.emit(ev.PRUNE_ERROR, {"message": f"Failed to prune missing mods: {e}"})
        raise
    _log.info("Pruned %d missing mods", len(stale_ids))
    bus.emit(ev.PRUNE_COMPLETE, {"count": len(stale_ids)})
    return len(stale_ids)


def scan_mods_directory(
    store: CatalogStore,
    mods_root: Path,
    bus: Optional[EventBus] = None,
    default_category: str = DEFAULT_CATEGORY_SLUG,
) -> ScanSummary:
    """Run one full scan. Raises ``BatchOperationError`` if any folder failed."""
    bus = bus or EventBus()
    if not mods_root.is_dir():
        msg = f"Mods folder does not exist or is not a directory: {mods_root}"
        bus.emit(ev.SCAN_ERROR, {"message": msg})
        raise ConfigurationError(msg)

    summary = ScanSummary()
    bus.emit(ev.SCAN_STARTED, None)
    try:
        with store.session() as session:
            index = load_taxonomy_index(session)
        before = _existing_asset_ids(store)
        summary.total = count_candidate_folders(mods_root)
        bus.emit(ev.SCAN_PROGRESS, ScanProgress(0, summary.total, None, "Starting scan..."))

        found: Set[int] = set()
        for folder in _Walk(mods_root, summary, bus):
            summary.processed += 1
            rel = folder.relative_to(mods_root).as_posix()
            bus.emit(ev.SCAN_PROGRESS, ScanProgress(
                summary.processed, summary.total, rel, f"Processing: {folder.name}"
            ))
            deduction = deduce_mod_info(folder, mods_root, index, default_category)
            entity_id = index.entity_id(deduction.entity_slug)
            if entity_id is None:
                summary.errors.append(f"{rel}: entity '{deduction.entity_slug}' is not in the catalog")
                continue
            asset_id = _record_mod(store, entity_id, clean_relative_path(folder, mods_root), deduction)
            if asset_id not in before:
                summary.added += 1
            found.add(asset_id)

        summary.pruned = _prune(store, sorted(before - found), bus)
    except SQLAlchemyError as e:
        bus.emit(ev.SCAN_ERROR, {"message": f"Catalog error during scan: {e}"})
        raise

    _log.info(summary.message())
    if summary.errors:
        err = BatchOperationError("Scan", summary.errors, summary)
        bus.emit(ev.SCAN_ERROR, {"message": err.itemized(), "summary": summary})
        raise err
    bus.emit(ev.SCAN_COMPLETE, {"message": summary.message(), "summary": summary})
    return summary
