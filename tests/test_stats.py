from __future__ import annotations

from pathlib import Path

import pytest

from scripts.lib.errors import NotFoundError
from scripts.lib.mod_scanner import scan_mods_directory
from scripts.lib.stats import dashboard_stats, entities_with_counts


@pytest.fixture
def scanned(seeded_store, make_mod, mods_root: Path):
    make_mod("characters/EllenMaid")
    make_mod("characters/DISABLED_EllenSwim")
    make_mod("characters/NicoleDress")
    make_mod("Weapons/xq_7731")
    make_mod("misc/xq_0001")
    scan_mods_directory(seeded_store, mods_root)
    return seeded_store


def test_dashboard_stats(scanned, mods_root: Path):
    folder = mods_root / "characters" / "NicoleDress"
    (folder / "mod.ini").unlink()
    folder.rmdir()
    stats = dashboard_stats(scanned, mods_root)
    assert stats.total_mods == 5
    assert stats.enabled_mods == 3
    assert stats.disabled_mods == 1
    assert stats.missing_mods == 1
    assert stats.uncategorized_mods == 2
    assert stats.category_counts == {"Characters": 4, "Weapons": 1}


def test_entities_with_counts(scanned, mods_root: Path):
    rows = entities_with_counts(scanned, mods_root, "characters")
    assert rows[0].slug == "characters-other"
    assert [r.name for r in rows[1:]] == ["Ellen Joe", "Nicole Demara", "Raiden Shogun", "Zhu Yuan"]
    ellen = next(r for r in rows if r.slug == "ellen-joe")
    assert (ellen.total_mods, ellen.enabled_mods) == (2, 1)
    assert rows[0].total_mods == 1
    with pytest.raises(NotFoundError):
        entities_with_counts(scanned, mods_root, "nope")
