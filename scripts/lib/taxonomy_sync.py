"""Load a game's taxonomy definition and upsert it into the catalog.

Definition documents map a category slug to its display name and entity list::

    characters:
      name: Characters
      entities:
        - name: Ellen Joe
          slug: ellen-joe
          description: ...
          details: {element: ice}
          base_image: ellen.png

YAML is the native format; ``.json`` and ``.toml`` documents with the same
shape are accepted too.
"""
from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from ruamel.yaml import YAML
from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models import Category, Entity
from scripts.lib.taxonomy_index import OTHER_ENTITY_NAME, other_entity_slug

_log = logging.getLogger(__name__)

OTHER_ENTITY_DESCRIPTION = "Uncategorized assets."


@dataclass(frozen=True)
class EntityDefinition:
    name: str
    slug: str
    description: Optional[str] = None
    details: Optional[str] = None
    base_image: Optional[str] = None


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    entities: List[EntityDefinition] = field(default_factory=list)


@dataclass
class SyncReport:
    categories_added: int = 0
    categories_updated: int = 0
    entities_added: int = 0
    entities_updated: int = 0
    entities_pruned: int = 0
    pruned_slugs: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"categories +{self.categories_added} ~{self.categories_updated}; "
            f"entities +{self.entities_added} ~{self.entities_updated} -{self.entities_pruned}"
        )


def load_yaml(path: Path) -> Any:
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    yaml.allow_duplicate_keys = True
    with path.open("r", encoding="utf-8") as f:
        return yaml.load(f)


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _details_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)


def parse_definitions(data: Any) -> Dict[str, CategoryDefinition]:
    if not isinstance(data, dict):
        raise ValueError("Definition document must be a mapping of category slug to category")
    out: Dict[str, CategoryDefinition] = {}
    for cat_slug, cat in data.items():
        if not isinstance(cat, dict) or not cat.get("name"):
            raise ValueError(f"Category '{cat_slug}' needs a name")
        entities: List[EntityDefinition] = []
        for item in cat.get("entities") or []:
            if not isinstance(item, dict) or not item.get("slug") or not item.get("name"):
                raise ValueError(f"Entity in '{cat_slug}' needs name and slug: {item!r}")
            entities.append(EntityDefinition(
                name=str(item["name"]),
                slug=str(item["slug"]),
                description=_opt_str(item.get("description")),
                details=_details_text(item.get("details")),
                base_image=_opt_str(item.get("base_image")),
            ))
        out[str(cat_slug)] = CategoryDefinition(name=str(cat["name"]), entities=entities)
    return out


def load_definitions(path: Path) -> Dict[str, CategoryDefinition]:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = load_yaml(path)
    elif suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
    elif suffix == ".toml":
        with path.open("rb") as f:
            data = tomllib.load(f)
    else:
        raise ValueError(f"Unsupported definition format: {path.suffix}")
    return parse_definitions(data)


def upsert_category(session: Session, slug: str, name: str, report: SyncReport) -> Category:
    cat = session.execute(select(Category).where(Category.slug == slug)).scalar_one_or_none()
    if cat is None:
        cat = Category(slug=slug, name=name)
        session.add(cat)
        session.flush()
        report.categories_added += 1
    elif cat.name != name:
        cat.name = name
        report.categories_updated += 1
    return cat


def upsert_entity(
    session: Session,
    category: Category,
    slug: str,
    name: str,
    description: Optional[str],
    details: Optional[str],
    base_image: Optional[str],
    report: SyncReport,
) -> Entity:
    ent = session.execute(select(Entity).where(Entity.slug == slug)).scalar_one_or_none()
    if ent is None:
        ent = Entity(
            category_id=category.id,
            slug=slug,
            name=name,
            description=description,
            details=details or "{}",
            base_image=base_image,
        )
        session.add(ent)
        session.flush()
        report.entities_added += 1
        return ent
    wanted = {
        "category_id": category.id,
        "name": name,
        "description": description,
        "details": details or "{}",
        "base_image": base_image,
    }
    changed = False
    for attr, value in wanted.items():
        if getattr(ent, attr) != value:
            setattr(ent, attr, value)
            changed = True
    if changed:
        report.entities_updated += 1
    return ent


def sync_definitions(session: Session, definitions: Dict[str, CategoryDefinition], prune: bool = True) -> SyncReport:
    """Upsert categories/entities and drop entities a defined category no longer lists.

    Pruning is scoped to categories present in ``definitions``; deleting an
    entity cascades to its assets. The caller decides whether to commit.
    """
    report = SyncReport()
    keep_by_category: Dict[int, Set[str]] = {}
    for cat_slug, cat_def in definitions.items():
        category = upsert_category(session, cat_slug, cat_def.name, report)
        keep = {other_entity_slug(cat_slug)}
        upsert_entity(
            session, category, other_entity_slug(cat_slug), OTHER_ENTITY_NAME,
            OTHER_ENTITY_DESCRIPTION, "{}", None, report,
        )
        for ent_def in cat_def.entities:
            upsert_entity(
                session, category, ent_def.slug, ent_def.name,
                ent_def.description, ent_def.details, ent_def.base_image, report,
            )
            keep.add(ent_def.slug)
        keep_by_category[category.id] = keep
    session.flush()
    if not prune:
        return report

    # Only after every category is upserted, so entities moved between categories survive
    for category_id, keep in keep_by_category.items():
        stale = session.execute(
            select(Entity).where(Entity.category_id == category_id, Entity.slug.not_in(keep))
        ).scalars().all()
        for ent in stale:
            _log.info("Pruning entity %s (no longer defined)", ent.slug)
            report.pruned_slugs.append(ent.slug)
            session.delete(ent)
        report.entities_pruned += len(stale)
    session.flush()
    return report
