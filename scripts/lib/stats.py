from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select

from db.models import Asset, Category, Entity
from db.session import CatalogStore
from scripts.lib.enable_state import ModPaths
from scripts.lib.errors import FolderMissingError, NotFoundError
from scripts.lib.taxonomy_index import OTHER_ENTITY_SUFFIX, is_other_entity_slug


@dataclass
class DashboardStats:
    total_mods: int = 0
    enabled_mods: int = 0
    disabled_mods: int = 0
    missing_mods: int = 0
    uncategorized_mods: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class EntityCounts:
    id: int
    name: str
    slug: str
    details: Optional[str]
    base_image: Optional[str]
    total_mods: int
    enabled_mods: int


def _state(mods_root: Path, clean_path: str) -> Optional[bool]:
    try:
        return ModPaths.for_clean_path(mods_root, clean_path).is_enabled()
    except FolderMissingError:
        return None


def dashboard_stats(store: CatalogStore, mods_root: Path) -> DashboardStats:
    with store.session() as session:
        rows = session.execute(
            select(Asset.folder_name, Entity.slug, Category.name)
            .join(Entity, Asset.entity_id == Entity.id)
            .join(Category, Entity.category_id == Category.id)
        ).all()
        category_names = session.execute(select(Category.name).order_by(Category.name)).scalars().all()

    stats = DashboardStats(total_mods=len(rows))
    stats.category_counts = {name: 0 for name in category_names}
    for clean_path, entity_slug, category_name in rows:
        stats.category_counts[category_name] = stats.category_counts.get(category_name, 0) + 1
        if entity_slug.endswith(OTHER_ENTITY_SUFFIX):
            stats.uncategorized_mods += 1
        state = _state(mods_root, clean_path)
        if state is None:
            stats.missing_mods += 1
        elif state:
            stats.enabled_mods += 1
        else:
            stats.disabled_mods += 1
    return stats


def entities_with_counts(store: CatalogStore, mods_root: Path, category_slug: str) -> List[EntityCounts]:
    """Entities of a category with mod totals; the "-other" bucket comes first, then by name."""
    with store.session() as session:
        category_id = session.execute(
            select(Category.id).where(Category.slug == category_slug)
        ).scalar_one_or_none()
        if category_id is None:
            raise NotFoundError(f"Category not found: {category_slug}")
        entities = session.execute(
            select(Entity).where(Entity.category_id == category_id)
        ).scalars().all()
        folders: Dict[int, List[str]] = {}
        for entity_id, folder_name in session.execute(
            select(Asset.entity_id, Asset.folder_name)
            .join(Entity, Asset.entity_id == Entity.id)
            .where(Entity.category_id == category_id)
        ):
            folders.setdefault(entity_id, []).append(folder_name)

    out = []
    for ent in sorted(entities, key=lambda e: (not is_other_entity_slug(e.slug), e.name.lower())):
        states = [_state(mods_root, f) for f in folders.get(ent.id, [])]
        present = [s for s in states if s is not None]
        out.append(EntityCounts(
            id=ent.id,
            name=ent.name,
            slug=ent.slug,
            details=ent.details,
            base_image=ent.base_image,
            total_mods=len(present),
            enabled_mods=sum(1 for s in present if s),
        ))
    return out
