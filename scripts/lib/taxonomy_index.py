from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models import Category, Entity

OTHER_ENTITY_SUFFIX = "-other"
OTHER_ENTITY_NAME = "Other/Unknown"


def other_entity_slug(category_slug: str) -> str:
    return f"{category_slug}{OTHER_ENTITY_SUFFIX}"


def is_other_entity_slug(slug: str) -> bool:
    return slug.endswith(OTHER_ENTITY_SUFFIX)


@dataclass(frozen=True)
class CategoryRow:
    id: int
    name: str
    slug: str


@dataclass(frozen=True)
class EntityRow:
    id: int
    name: str
    slug: str
    category_slug: str


@dataclass
class TaxonomyIndex:
    """Lookup tables over the category/entity taxonomy.

    All name-derived keys are lowercased. Insertion order follows entity id,
    which makes the iterating match strategies deterministic. Synthetic
    "-other" fallback entities are reachable by slug only; their shared
    display name would otherwise shadow real entities.
    """

    category_slug_to_id: Dict[str, int] = field(default_factory=dict)
    category_name_to_slug: Dict[str, str] = field(default_factory=dict)
    entity_slug_to_id: Dict[str, int] = field(default_factory=dict)
    entity_name_to_slug: Dict[str, str] = field(default_factory=dict)
    entity_first_word_to_slug: Dict[str, str] = field(default_factory=dict)
    entity_first_two_words_to_slug: Dict[str, str] = field(default_factory=dict)
    entity_slug_to_category_slug: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, categories: Iterable[CategoryRow], entities: Iterable[EntityRow]) -> "TaxonomyIndex":
        idx = cls()
        for cat in categories:
            idx.category_slug_to_id[cat.slug] = cat.id
            idx.category_name_to_slug.setdefault(cat.name.lower(), cat.slug)
        for ent in entities:
            idx.entity_slug_to_id[ent.slug] = ent.id
            idx.entity_slug_to_category_slug[ent.slug] = ent.category_slug
            if is_other_entity_slug(ent.slug):
                continue
            full = ent.name.lower().strip()
            if not full:
                continue
            # First registration wins when two entities share a key
            idx.entity_name_to_slug.setdefault(full, ent.slug)
            words = full.split()
            if words and words[0] != full:
                idx.entity_first_word_to_slug.setdefault(words[0], ent.slug)
            if len(words) >= 2:
                two = f"{words[0]} {words[1]}"
                if two != full:
                    idx.entity_first_two_words_to_slug.setdefault(two, ent.slug)
        return idx

    def entity_id(self, slug: str) -> Optional[int]:
        return self.entity_slug_to_id.get(slug)

    def category_of(self, entity_slug: str) -> Optional[str]:
        return self.entity_slug_to_category_slug.get(entity_slug)

    def other_entity_for(self, category_slug: str) -> str:
        return other_entity_slug(category_slug)

    def category_items(self) -> Tuple[Tuple[str, str], ...]:
        """(lowercase name, slug) pairs in category id order."""
        return tuple(self.category_name_to_slug.items())


def load_taxonomy_index(session: Session) -> TaxonomyIndex:
    categories = [
        CategoryRow(id=c.id, name=c.name, slug=c.slug)
        for c in session.execute(select(Category).order_by(Category.id)).scalars()
    ]
    rows = session.execute(
        select(Entity.id, Entity.name, Entity.slug, Category.slug)
        .join(Category, Entity.category_id == Category.id)
        .order_by(Entity.id)
    ).all()
    entities = [EntityRow(id=r[0], name=r[1], slug=r[2], category_slug=r[3]) for r in rows]
    return TaxonomyIndex.build(categories, entities)
