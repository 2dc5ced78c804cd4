from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional

from sqlalchemy import select

from db.models import Asset, Category, Entity
from db.session import CatalogStore
from scripts.lib import enable_state
from scripts.lib.deduction import TARGET_IMAGE_FILENAME
from scripts.lib.enable_state import ModPaths
from scripts.lib.errors import ConflictError, FolderMissingError, NotFoundError
from scripts.lib.mod_config import Keybind, find_keybinds

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetView:
    id: int
    entity_id: int
    name: str
    description: Optional[str]
    folder_name: str
    image_filename: Optional[str]
    author: Optional[str]
    category_tag: Optional[str]
    is_enabled: bool
    # Relative path as it currently exists on disk (may carry the disabled prefix)
    disk_path: str


@dataclass
class AssetUpdate:
    name: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    category_tag: Optional[str] = None
    target_entity_slug: Optional[str] = None
    image_bytes: Optional[bytes] = None
    image_source: Optional[Path] = None


def _get_asset(store: CatalogStore, asset_id: int) -> Asset:
    with store.session() as session:
        asset = session.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError(f"Asset not found: {asset_id}")
        return asset


def list_assets_for_entity(store: CatalogStore, mods_root: Path, entity_slug: str) -> List[AssetView]:
    """Assets of an entity with their on-disk state; rows whose folder is gone are skipped."""
    with store.session() as session:
        entity_id = session.execute(select(Entity.id).where(Entity.slug == entity_slug)).scalar_one_or_none()
        if entity_id is None:
            raise NotFoundError(f"Entity not found: {entity_slug}")
        rows = session.execute(
            select(Asset).where(Asset.entity_id == entity_id).order_by(Asset.name)
        ).scalars().all()

    out: List[AssetView] = []
    for a in rows:
        paths = ModPaths.for_clean_path(mods_root, a.folder_name)
        try:
            current, enabled = paths.current()
        except FolderMissingError:
            _log.debug("Skipping %s: folder missing on disk", a.folder_name)
            continue
        out.append(AssetView(
            id=a.id,
            entity_id=a.entity_id,
            name=a.name,
            description=a.description,
            folder_name=a.folder_name,
            image_filename=a.image_filename,
            author=a.author,
            category_tag=a.category_tag,
            is_enabled=enabled,
            disk_path=current.relative_to(mods_root).as_posix(),
        ))
    return out


def toggle_asset(store: CatalogStore, mods_root: Path, asset_id: int) -> bool:
    """Flip an asset's enabled state on disk; returns the new state."""
    asset = _get_asset(store, asset_id)
    return enable_state.toggle(mods_root, asset.folder_name)


def asset_image_path(store: CatalogStore, mods_root: Path, asset_id: int) -> Path:
    asset = _get_asset(store, asset_id)
    if not asset.image_filename:
        raise NotFoundError(f"Asset {asset_id} has no preview image")
    folder, _ = ModPaths.for_clean_path(mods_root, asset.folder_name).current()
    image = folder / asset.image_filename
    if not image.is_file():
        raise NotFoundError(f"Preview image missing on disk: {image}")
    return image


def read_keybinds(store: CatalogStore, mods_root: Path, asset_id: int) -> List[Keybind]:
    asset = _get_asset(store, asset_id)
    folder, _ = ModPaths.for_clean_path(mods_root, asset.folder_name).current()
    return find_keybinds(folder)


def _write_image(folder: Path, update: AssetUpdate) -> Optional[str]:
    if update.image_bytes:
        (folder / TARGET_IMAGE_FILENAME).write_bytes(update.image_bytes)
        return TARGET_IMAGE_FILENAME
    if update.image_source:
        src = Path(update.image_source)
        if not src.is_file():
            raise NotFoundError(f"Image file not found: {src}")
        dest = folder / src.name
        if src.resolve() != dest.resolve():
            shutil.copy2(src, dest)
        return src.name
    return None


def update_asset_info(store: CatalogStore, mods_root: Path, asset_id: int, update: AssetUpdate) -> Asset:
    """Edit metadata and optionally move the mod under another entity.

    A move keeps the folder's current enabled/disabled form and lands at
    ``<category>/<entity>/<folder name>``. The catalog row is only changed
    after the filesystem work succeeded.
    """
    asset = _get_asset(store, asset_id)
    new_clean = asset.folder_name
    new_entity_id = asset.entity_id

    if update.target_entity_slug:
        with store.session() as session:
            row = session.execute(
                select(Entity.id, Entity.slug, Category.slug)
                .join(Category, Entity.category_id == Category.id)
                .where(Entity.slug == update.target_entity_slug)
            ).one_or_none()
        if row is None:
            raise NotFoundError(f"Entity not found: {update.target_entity_slug}")
        new_entity_id, entity_slug, category_slug = row
        if new_entity_id != asset.entity_id:
            basename = PurePosixPath(asset.folder_name).name
            new_clean = f"{category_slug}/{entity_slug}/{basename}"

    paths = ModPaths.for_clean_path(mods_root, asset.folder_name)
    current, enabled = paths.current()
    original = current
    if new_clean != asset.folder_name:
        with store.session() as session:
            taken = session.execute(
                select(Asset.id).where(Asset.folder_name == new_clean, Asset.id != asset_id)
            ).first()
        if taken is not None:
            raise ConflictError(f"Another mod is already cataloged at {new_clean}")
        new_paths = ModPaths.for_clean_path(mods_root, new_clean)
        target = new_paths.enabled if enabled else new_paths.disabled
        if new_paths.enabled.exists() or new_paths.disabled.exists():
            raise ConflictError(f"Destination already exists: {target}")
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(os.fspath(current), os.fspath(target))
        _log.info("Moved %s -> %s", asset.folder_name, new_clean)
        current = target

    try:
        image = _write_image(current, update)
        with store.session() as session:
            row = session.get(Asset, asset_id)
            if row is None:
                raise NotFoundError(f"Asset not found: {asset_id}")
            row.entity_id = new_entity_id
            row.folder_name = new_clean
            if update.name is not None:
                row.name = update.name.strip() or row.name
            if update.description is not None:
                row.description = update.description or None
            if update.author is not None:
                row.author = update.author or None
            if update.category_tag is not None:
                row.category_tag = update.category_tag or None
            if image:
                row.image_filename = image
            session.commit()
    except Exception:
        if current != original:
            # Catalog still points at the old path
            _log.warning("Update of asset %s failed; moving %s back", asset_id, new_clean)
            shutil.move(os.fspath(current), os.fspath(original))
        raise
    return row


def delete_asset(store: CatalogStore, mods_root: Path, asset_id: int) -> bool:
    """Remove the mod folder (whichever form exists) and its catalog row.

    Returns False when no folder was found on disk; the row is removed anyway.
    """
    asset = _get_asset(store, asset_id)
    paths = ModPaths.for_clean_path(mods_root, asset.folder_name)
    removed = False
    for folder in (paths.enabled, paths.disabled):
        if folder.is_dir():
            shutil.rmtree(folder)
            removed = True
    if not removed:
        _log.warning("No folder on disk for asset %s (%s); deleting catalog row only", asset_id, asset.folder_name)
    with store.session() as session:
        row = session.get(Asset, asset_id)
        if row is not None:
            session.delete(row)
            session.commit()
    return removed
