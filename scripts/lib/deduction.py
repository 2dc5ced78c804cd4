"""Infer catalog metadata for a mod folder from its names and embedded config.

The target entity is resolved from, in order: the folder's own name, the
intermediate parent folders, the config file's target value and the stems of
the folder's top-level files. When none of those names an entity the mod is
filed under a category's "-other" bucket, with the category taken from the
parent folders, the config's type value or the top-level folder below the
mods root. Deduction never fails: the default category's bucket is the last
resort.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from scripts.lib.enable_state import strip_disabled_prefix
from scripts.lib.hint_matcher import (
    match_category_exact,
    match_category_segment,
    match_category_type_hint,
    match_hint,
)
from scripts.lib.mod_config import ModConfig, load_mod_config, top_level_files
from scripts.lib.name_cleaner import display_name
from scripts.lib.taxonomy_index import TaxonomyIndex, other_entity_slug

_log = logging.getLogger(__name__)

PREVIEW_CANDIDATES = (
    "preview.png",
    "preview.jpg",
    "icon.png",
    "icon.jpg",
    "thumbnail.png",
    "thumbnail.jpg",
)
TARGET_IMAGE_FILENAME = "preview.png"

DEFAULT_CATEGORY_SLUG = os.environ.get("MODMGR_DEFAULT_CATEGORY", "characters")


@dataclass(frozen=True)
class Deduction:
    entity_slug: str
    mod_name: str
    type_tag: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    image_filename: Optional[str] = None
    # Which step produced entity_slug; useful for reports and tests
    matched_by: str = "default"


def find_preview_image(filenames: Iterable[str]) -> Optional[str]:
    """Return the on-disk spelling of the first preview candidate present (case-insensitive)."""
    by_lower = {}
    for name in filenames:
        by_lower.setdefault(name.lower(), name)
    for candidate in PREVIEW_CANDIDATES:
        if candidate in by_lower:
            return by_lower[candidate]
    return None


def _intermediate_parents(folder: Path, mods_root: Path) -> Iterator[Path]:
    """Parents of ``folder`` strictly below the mods root's immediate child."""
    current = folder.parent
    while current != mods_root and current.parent != mods_root and current != current.parent:
        yield current
        current = current.parent


def _top_level_segment(folder: Path, mods_root: Path) -> Optional[str]:
    try:
        rel = folder.relative_to(mods_root)
    except ValueError:
        return None
    return rel.parts[0] if rel.parts else None


def resolve_entity(
    folder: Path,
    mods_root: Path,
    index: TaxonomyIndex,
    config: ModConfig,
    filenames: List[str],
) -> Optional[Tuple[str, str]]:
    """Entity-level resolution; returns ``(slug, step)`` or None."""
    slug = match_hint(strip_disabled_prefix(folder.name), index)
    if slug:
        return slug, "folder_name"
    for parent in _intermediate_parents(folder, mods_root):
        slug = match_hint(parent.name, index)
        if slug:
            return slug, "parent_folder"
    if config.target:
        slug = match_hint(config.target, index)
        if slug:
            return slug, "config_target"
    for name in filenames:
        slug = match_hint(Path(name).stem, index)
        if slug:
            return slug, "file_stem"
    return None


def resolve_category(folder: Path, mods_root: Path, index: TaxonomyIndex, config: ModConfig) -> Optional[Tuple[str, str]]:
    """Category-level fallback; returns ``(category_slug, step)`` or None."""
    for parent in _intermediate_parents(folder, mods_root):
        slug = match_category_exact(parent.name, index)
        if slug:
            return slug, "category_parent"
    if config.type_hint:
        slug = match_category_type_hint(config.type_hint, index)
        if slug:
            return slug, "category_type"
    slug = match_category_segment(_top_level_segment(folder, mods_root), index)
    if slug:
        return slug, "category_segment"
    return None


def deduce_mod_info(
    folder: Path,
    mods_root: Path,
    index: TaxonomyIndex,
    default_category: str = DEFAULT_CATEGORY_SLUG,
) -> Deduction:
    _, config = load_mod_config(folder)
    filenames = [p.name for p in top_level_files(folder)]

    entity = resolve_entity(folder, mods_root, index, config, filenames)
    if entity is not None:
        entity_slug, step = entity
    else:
        category = resolve_category(folder, mods_root, index, config)
        if category is not None:
            entity_slug, step = other_entity_slug(category[0]), category[1]
        else:
            entity_slug, step = other_entity_slug(default_category), "default"
    _log.debug("Deduced %s for %s via %s", entity_slug, folder, step)

    raw_name = folder.name
    return Deduction(
        entity_slug=entity_slug,
        mod_name=display_name(config.name or raw_name, raw_name),
        type_tag=config.type_hint,
        author=config.author,
        description=config.description,
        image_filename=find_preview_image(filenames),
        matched_by=step,
    )
