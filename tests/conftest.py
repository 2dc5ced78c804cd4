from __future__ import annotations

import copy
import sys
import zipfile
from pathlib import Path
from typing import Dict, Optional, Union

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from db.session import CatalogStore  # noqa: E402
from scripts.lib.taxonomy_sync import parse_definitions, sync_definitions  # noqa: E402

# Small taxonomy shared by the DB-backed tests. Keep first words distinctive:
# the "contains first word" strategy matches any hint containing one.
TAXONOMY = {
    "characters": {
        "name": "Characters",
        "entities": [
            {"name": "Ellen Joe", "slug": "ellen-joe", "details": {"element": "ice"}},
            {"name": "Nicole Demara", "slug": "nicole-demara"},
            {"name": "Raiden Shogun", "slug": "raiden-shogun"},
            {"name": "Zhu Yuan", "slug": "zhu-yuan"},
        ],
    },
    "weapons": {
        "name": "Weapons",
        "entities": [
            {"name": "Deep Sea Visitor", "slug": "deep-sea-visitor"},
        ],
    },
}

FileData = Union[str, bytes]


def write_mod(
    root: Path,
    rel: str,
    ini: Optional[str] = "[Mod]\n",
    files: Optional[Dict[str, FileData]] = None,
    ini_name: str = "mod.ini",
) -> Path:
    """Create a mod folder below ``root``; ``ini=None`` leaves it without a config file."""
    folder = root.joinpath(*rel.split("/"))
    folder.mkdir(parents=True, exist_ok=True)
    if ini is not None:
        (folder / ini_name).write_text(ini, encoding="utf-8")
    for name, data in (files or {}).items():
        p = folder.joinpath(*name.split("/"))
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, bytes):
            p.write_bytes(data)
        else:
            p.write_text(data, encoding="utf-8")
    return folder


def write_zip(path: Path, members: Dict[str, FileData]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


@pytest.fixture
def taxonomy() -> dict:
    return copy.deepcopy(TAXONOMY)


@pytest.fixture
def store(tmp_path: Path):
    s = CatalogStore(f"sqlite:///{(tmp_path / 'catalog.db').as_posix()}")
    yield s
    s.dispose()


@pytest.fixture
def seeded_store(store: CatalogStore) -> CatalogStore:
    with store.session() as session:
        sync_definitions(session, parse_definitions(TAXONOMY))
        session.commit()
    return store


@pytest.fixture
def mods_root(tmp_path: Path) -> Path:
    root = tmp_path / "Mods"
    root.mkdir()
    return root


@pytest.fixture
def make_mod(mods_root: Path):
    def _make(rel: str, ini: Optional[str] = "[Mod]\n", files: Optional[Dict[str, FileData]] = None,
              ini_name: str = "mod.ini") -> Path:
        return write_mod(mods_root, rel, ini, files, ini_name)
    return _make


@pytest.fixture
def make_zip(tmp_path: Path):
    def _make(name: str, members: Dict[str, FileData]) -> Path:
        return write_zip(tmp_path / name, members)
    return _make
