"""Inspect mod archives before import and extract them into the mods tree.

Analysis lists the archive, reads every ``.ini`` inside it, marks directories
that directly hold an ``.ini`` as likely mod roots and deduces name, author,
entity and category the same way folder deduction does, so an import form can
be pre-filled. Import extracts (optionally only one root) into
``<category>/<entity>/<name>`` and records the asset.
"""
from __future__ import annotations

import logging
import shutil
from dataclasses import asdict, dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from db.models import Asset, Category, Entity, Preset, PresetAsset
from db.session import CatalogStore
from scripts.lib.archive_sources import ArchiveSource, normalize_entry_path, open_archive
from scripts.lib.deduction import PREVIEW_CANDIDATES, TARGET_IMAGE_FILENAME, find_preview_image
from scripts.lib.enable_state import ModPaths
from scripts.lib.errors import ArchiveFormatError, CatalogError, ConflictError, NotFoundError
from scripts.lib.hint_matcher import match_category_stem, match_category_type_hint, match_hint
from scripts.lib.mod_config import is_config_filename, parse_mod_config, top_level_files
from scripts.lib.name_cleaner import clean_and_extract_name, clean_mod_name, sanitize_folder_name
from scripts.lib.taxonomy_index import TaxonomyIndex

_log = logging.getLogger(__name__)

_EXTRACT_BATCH = 200


@dataclass(frozen=True)
class ArchiveEntry:
    path: str
    is_dir: bool
    is_likely_mod_root: bool = False


@dataclass
class ArchiveAnalysis:
    file_path: str
    entries: List[ArchiveEntry] = field(default_factory=list)
    deduced_mod_name: Optional[str] = None
    deduced_author: Optional[str] = None
    deduced_category_slug: Optional[str] = None
    deduced_entity_slug: Optional[str] = None
    raw_ini_type: Optional[str] = None
    raw_ini_target: Optional[str] = None
    detected_preview_internal_path: Optional[str] = None

    @property
    def likely_roots(self) -> List[str]:
        return [e.path for e in self.entries if e.is_likely_mod_root]

    def to_dict(self) -> dict:
        return asdict(self)


def _parent(path: str) -> str:
    parent = PurePosixPath(path).parent.as_posix()
    return "" if parent == "." else parent


def _preview_in(root: str, file_paths: Sequence[str]) -> Optional[str]:
    """Case-insensitive lookup of a preview candidate directly inside ``root``."""
    by_lower = {p.lower(): p for p in file_paths}
    for candidate in PREVIEW_CANDIDATES:
        hit = by_lower.get(f"{root}/{candidate}".lower())
        if hit:
            return hit
    return None


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def analyze_archive(archive_path: Path, index: TaxonomyIndex, source: Optional[ArchiveSource] = None) -> ArchiveAnalysis:
    archive_path = Path(archive_path)
    source = source or open_archive(archive_path)
    listed = source.list_entries()

    config_paths = sorted(p for p, is_dir in listed if not is_dir and is_config_filename(PurePosixPath(p).name))
    config_text: Dict[str, str] = {p: _decode(b) for p, b in source.read_many(config_paths).items()}
    config_parents = {_parent(p) for p in config_paths} - {""}

    entries = sorted(
        (ArchiveEntry(path=p, is_dir=d, is_likely_mod_root=d and p in config_parents) for p, d in listed),
        key=lambda e: e.path,
    )
    file_paths = [e.path for e in entries if not e.is_dir]
    result = ArchiveAnalysis(file_path=str(archive_path), entries=entries)

    roots = [e.path for e in entries if e.is_likely_mod_root]
    if roots:
        root = roots[0]
        result.detected_preview_internal_path = _preview_in(root, file_paths)
        ini_path = next((p for p in config_paths if _parent(p) == root), None)
        if ini_path is not None:
            config = parse_mod_config(config_text[ini_path], source=ini_path)
            if config.name:
                result.deduced_mod_name = clean_mod_name(config.name) or None
            result.deduced_author = config.author
            result.raw_ini_target = config.target
            result.raw_ini_type = config.type_hint
            result.deduced_entity_slug = match_hint(config.target, index)
            result.deduced_category_slug = match_category_type_hint(config.type_hint, index)
        if result.deduced_entity_slug is None:
            result.deduced_entity_slug = match_hint(PurePosixPath(root).name, index)

    if result.deduced_entity_slug is None:
        for path in file_paths:
            slug = match_hint(PurePosixPath(path).stem, index)
            if slug:
                result.deduced_entity_slug = slug
                break

    stem = archive_path.stem
    if result.deduced_entity_slug is None:
        result.deduced_entity_slug = match_hint(stem, index)
    if result.deduced_category_slug is None and result.deduced_entity_slug is None:
        result.deduced_category_slug = match_category_stem(stem, index)
    if result.deduced_entity_slug and not result.deduced_category_slug:
        result.deduced_category_slug = index.category_of(result.deduced_entity_slug)

    if not result.deduced_mod_name:
        result.deduced_mod_name = clean_and_extract_name(stem) or stem
    return result


def read_archive_entry(archive_path: Path, internal_path: str) -> bytes:
    """Raw bytes of one archive member; raises ``EntryNotFound`` when absent."""
    return open_archive(Path(archive_path)).read(internal_path)


@dataclass
class ImportRequest:
    entity_slug: str
    mod_name: str
    description: Optional[str] = None
    author: Optional[str] = None
    category_tag: Optional[str] = None
    selected_root: Optional[str] = None
    preview_bytes: Optional[bytes] = None
    preview_file: Optional[Path] = None
    preset_ids: Sequence[int] = ()


@dataclass(frozen=True)
class ImportResult:
    asset_id: int
    clean_path: str
    folder: Path
    files_written: int


def _safe_relative(rel: str) -> PurePosixPath:
    p = PurePosixPath(rel)
    if p.is_absolute() or ".." in p.parts:
        raise ArchiveFormatError(f"Refusing to extract entry outside the destination: {rel}")
    return p


def _members_to_extract(source: ArchiveSource, selected_root: Optional[str]) -> List[Tuple[str, PurePosixPath]]:
    """``(archive path, relative destination path)`` for every file to extract."""
    prefix = normalize_entry_path(selected_root) if selected_root else ""
    out = []
    for path, is_dir in source.list_entries():
        if is_dir:
            continue
        if prefix:
            if not path.startswith(prefix + "/"):
                continue
            rel = path[len(prefix) + 1:]
        else:
            rel = path
        out.append((path, _safe_relative(rel)))
    if prefix and not out:
        raise NotFoundError(f"Selected folder '{selected_root}' has no files in the archive")
    return out


def extract_archive(source: ArchiveSource, dest: Path, selected_root: Optional[str] = None) -> int:
    members = _members_to_extract(source, selected_root)
    dest.mkdir(parents=True, exist_ok=False)
    for i in range(0, len(members), _EXTRACT_BATCH):
        batch = members[i:i + _EXTRACT_BATCH]
        data = source.read_many([m[0] for m in batch])
        for path, rel in batch:
            target = dest.joinpath(*rel.parts)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data[path])
    return len(members)


def _place_preview(dest: Path, req: ImportRequest) -> Optional[str]:
    if req.preview_bytes:
        (dest / TARGET_IMAGE_FILENAME).write_bytes(req.preview_bytes)
        return TARGET_IMAGE_FILENAME
    if req.preview_file:
        src = Path(req.preview_file)
        shutil.copy2(src, dest / src.name)
        return src.name
    return find_preview_image(p.name for p in top_level_files(dest))


def import_archive(
    store: CatalogStore,
    mods_root: Path,
    archive_path: Path,
    req: ImportRequest,
    source: Optional[ArchiveSource] = None,
) -> ImportResult:
    folder_name = sanitize_folder_name(req.mod_name)
    if not folder_name:
        raise CatalogError("Mod name is empty after sanitizing")

    with store.session() as session:
        row = session.execute(
            select(Entity.id, Entity.slug, Category.slug)
            .join(Category, Entity.category_id == Category.id)
            .where(Entity.slug == req.entity_slug)
        ).one_or_none()
        if row is None:
            raise NotFoundError(f"Entity not found: {req.entity_slug}")
        entity_id, entity_slug, category_slug = row
        clean_path = f"{category_slug}/{entity_slug}/{folder_name}"
        if session.execute(select(Asset.id).where(Asset.folder_name == clean_path)).first() is not None:
            raise ConflictError(f"A mod is already cataloged at {clean_path}")

    paths = ModPaths.for_clean_path(mods_root, clean_path)
    if paths.enabled.exists() or paths.disabled.exists():
        raise ConflictError(f"Destination already exists: {paths.enabled}")

    source = source or open_archive(Path(archive_path))
    dest = paths.enabled
    try:
        written = extract_archive(source, dest, req.selected_root)
        image = _place_preview(dest, req)
    except Exception:
        shutil.rmtree(dest, ignore_errors=True)
        raise

    try:
        with store.session() as session:
            asset = Asset(
                entity_id=entity_id,
                name=req.mod_name.strip(),
                description=req.description,
                folder_name=clean_path,
                image_filename=image,
                author=req.author,
                category_tag=req.category_tag,
            )
            session.add(asset)
            session.flush()
            for preset_id in req.preset_ids:
                if session.get(Preset, preset_id) is None:
                    raise NotFoundError(f"Preset not found: {preset_id}")
                session.add(PresetAsset(preset_id=preset_id, asset_id=asset.id, is_enabled=True))
            session.commit()
            asset_id = asset.id
    except IntegrityError as e:
        shutil.rmtree(dest, ignore_errors=True)
        raise ConflictError(f"Could not record imported mod {clean_path}: {e.orig}") from e
    except Exception:
        shutil.rmtree(dest, ignore_errors=True)
        raise

    _log.info("Imported %s into %s (%d files)", Path(archive_path).name, clean_path, written)
    return ImportResult(asset_id=asset_id, clean_path=clean_path, folder=dest, files_written=written)
