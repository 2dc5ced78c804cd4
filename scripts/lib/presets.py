"""Named snapshots of which mods are enabled, and applying them back to disk."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select

from db.models import Asset, Preset, PresetAsset
from db.session import CatalogStore
from scripts.lib import events as ev
from scripts.lib.enable_state import ModPaths, set_enabled
from scripts.lib.errors import BatchOperationError, ConflictError, FolderMissingError, NotFoundError
from scripts.lib.events import ApplyProgress, EventBus

_log = logging.getLogger(__name__)

FAVORITE_LIMIT = 3


@dataclass(frozen=True)
class PresetView:
    id: int
    name: str
    is_favorite: bool
    asset_count: int


@dataclass
class ApplySummary:
    total: int = 0
    processed: int = 0
    changed: int = 0
    errors: List[str] = field(default_factory=list)

    def message(self) -> str:
        return f"Preset applied. {self.changed} of {self.total} mods changed state. {len(self.errors)} errors occurred."


def _snapshot(store: CatalogStore, mods_root: Path) -> List[Tuple[int, bool]]:
    """(asset id, enabled) for every cataloged asset whose folder exists."""
    with store.session() as session:
        rows = session.execute(select(Asset.id, Asset.folder_name).order_by(Asset.id)).all()
    out: List[Tuple[int, bool]] = []
    for asset_id, clean_path in rows:
        try:
            out.append((asset_id, ModPaths.for_clean_path(mods_root, clean_path).is_enabled()))
        except FolderMissingError:
            _log.debug("Preset snapshot skips %s: folder missing", clean_path)
    return out


def _name_taken(session, name: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Preset.id).where(func.lower(Preset.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Preset.id != exclude_id)
    return session.execute(stmt).first() is not None


def create_preset(store: CatalogStore, mods_root: Path, name: str) -> int:
    name = (name or "").strip()
    if not name:
        raise ConflictError("Preset name cannot be empty")
    with store.session() as session:
        if _name_taken(session, name):
            raise ConflictError(f"A preset named '{name}' already exists")
    snapshot = _snapshot(store, mods_root)
    with store.session() as session:
        preset = Preset(name=name, is_favorite=False)
        session.add(preset)
        session.flush()
        session.add_all(PresetAsset(preset_id=preset.id, asset_id=a, is_enabled=e) for a, e in snapshot)
        session.commit()
        _log.info("Created preset %s with %d mods", name, len(snapshot))
        return preset.id


def overwrite_preset(store: CatalogStore, mods_root: Path, preset_id: int) -> int:
    """Replace a preset's contents with the current on-disk state; returns the member count."""
    snapshot = _snapshot(store, mods_root)
    with store.session() as session:
        if session.get(Preset, preset_id) is None:
            raise NotFoundError(f"Preset not found: {preset_id}")
        session.execute(delete(PresetAsset).where(PresetAsset.preset_id == preset_id))
        session.add_all(PresetAsset(preset_id=preset_id, asset_id=a, is_enabled=e) for a, e in snapshot)
        session.commit()
    return len(snapshot)


def list_presets(store: CatalogStore) -> List[PresetView]:
    with store.session() as session:
        rows = session.execute(
            select(Preset.id, Preset.name, Preset.is_favorite, func.count(PresetAsset.asset_id))
            .outerjoin(PresetAsset, PresetAsset.preset_id == Preset.id)
            .group_by(Preset.id)
            .order_by(func.lower(Preset.name))
        ).all()
    return [PresetView(id=r[0], name=r[1], is_favorite=bool(r[2]), asset_count=r[3]) for r in rows]


def favorite_presets(store: CatalogStore, limit: int = FAVORITE_LIMIT) -> List[PresetView]:
    return [p for p in list_presets(store) if p.is_favorite][:limit]


def toggle_preset_favorite(store: CatalogStore, preset_id: int) -> bool:
    with store.session() as session:
        preset = session.get(Preset, preset_id)
        if preset is None:
            raise NotFoundError(f"Preset not found: {preset_id}")
        preset.is_favorite = not preset.is_favorite
        session.commit()
        return preset.is_favorite


def delete_preset(store: CatalogStore, preset_id: int) -> None:
    with store.session() as session:
        preset = session.get(Preset, preset_id)
        if preset is None:
            raise NotFoundError(f"Preset not found: {preset_id}")
        session.delete(preset)
        session.commit()


def add_asset_to_presets(store: CatalogStore, asset_id: int, preset_ids: Iterable[int], enabled: bool = True) -> int:
    """Add (or update) one asset's membership in several presets; returns how many were touched."""
    touched = 0
    with store.session() as session:
        if session.get(Asset, asset_id) is None:
            raise NotFoundError(f"Asset not found: {asset_id}")
        for preset_id in preset_ids:
            if session.get(Preset, preset_id) is None:
                raise NotFoundError(f"Preset not found: {preset_id}")
            link = session.get(PresetAsset, (preset_id, asset_id))
            if link is None:
                session.add(PresetAsset(preset_id=preset_id, asset_id=asset_id, is_enabled=enabled))
            else:
                link.is_enabled = enabled
            touched += 1
        session.commit()
    return touched


def apply_preset(
    store: CatalogStore,
    mods_root: Path,
    preset_id: int,
    bus: Optional[EventBus] = None,
) -> ApplySummary:
    """Rename every member folder to the state stored in the preset.

    Per-mod failures are collected and the run continues; if any occurred a
    ``BatchOperationError`` is raised at the end. Renames already done stay done.
    """
    bus = bus or EventBus()
    with store.session() as session:
        preset = session.get(Preset, preset_id)
        if preset is None:
            raise NotFoundError(f"Preset not found: {preset_id}")
        members = session.execute(
            select(Asset.id, Asset.folder_name, PresetAsset.is_enabled)
            .join(PresetAsset, PresetAsset.asset_id == Asset.id)
            .where(PresetAsset.preset_id == preset_id)
            .order_by(Asset.id)
        ).all()

    summary = ApplySummary(total=len(members))
    bus.emit(ev.PRESET_APPLY_START, {"total": summary.total})
    for asset_id, clean_path, wanted in members:
        try:
            if set_enabled(mods_root, clean_path, bool(wanted)):
                summary.changed += 1
        except (FolderMissingError, OSError) as e:
            summary.errors.append(f"{clean_path}: {e}")
            _log.warning("Preset %s: cannot set %s: %s", preset_id, clean_path, e)
        summary.processed += 1
        bus.emit(ev.PRESET_APPLY_PROGRESS, ApplyProgress(
            processed=summary.processed,
            total=summary.total,
            current_id=asset_id,
            message=f"{'Enabling' if wanted else 'Disabling'} {clean_path}",
        ))

    if summary.errors:
        err = BatchOperationError("Preset apply", summary.errors, summary)
        bus.emit(ev.PRESET_APPLY_ERROR, {"message": err.itemized()})
        raise err
    bus.emit(ev.PRESET_APPLY_COMPLETE, {"message": summary.message(), "summary": summary})
    return summary
