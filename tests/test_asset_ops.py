from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import OperationalError

from db.models import Asset
from scripts.lib.asset_ops import (
    AssetUpdate,
    asset_image_path,
    delete_asset,
    list_assets_for_entity,
    read_keybinds,
    toggle_asset,
    update_asset_info,
)
from scripts.lib.errors import ConflictError, NotFoundError
from scripts.lib.mod_scanner import scan_mods_directory

KEYS_INI = "[Mod]\nname = Maid\n; Constants\n[KeySwap]\nkey = VK_F5\n"


@pytest.fixture
def catalog(seeded_store, make_mod, mods_root: Path):
    make_mod("characters/ellen-joe/EllenMaid", ini=KEYS_INI, files={"preview.png": b"img"})
    make_mod("characters/ellen-joe/EllenSwim")
    make_mod("characters/NicoleDress")
    scan_mods_directory(seeded_store, mods_root)
    with seeded_store.session() as session:
        return {a.folder_name: a.id for a in session.execute(select(Asset)).scalars()}


def test_list_assets_for_entity(seeded_store, mods_root: Path, catalog):
    views = list_assets_for_entity(seeded_store, mods_root, "ellen-joe")
    assert [v.name for v in views] == ["EllenSwim", "Maid"]
    assert all(v.is_enabled for v in views)
    assert views[1].image_filename == "preview.png"
    with pytest.raises(NotFoundError):
        list_assets_for_entity(seeded_store, mods_root, "nobody")


def test_missing_folders_are_skipped(seeded_store, mods_root: Path, catalog):
    (mods_root / "characters" / "ellen-joe" / "EllenSwim" / "mod.ini").unlink()
    (mods_root / "characters" / "ellen-joe" / "EllenSwim").rmdir()
    assert [v.folder_name for v in list_assets_for_entity(seeded_store, mods_root, "ellen-joe")] == [
        "characters/ellen-joe/EllenMaid"
    ]


def test_toggle_reflects_in_listing(seeded_store, mods_root: Path, catalog):
    asset_id = catalog["characters/ellen-joe/EllenSwim"]
    assert toggle_asset(seeded_store, mods_root, asset_id) is False
    view = next(v for v in list_assets_for_entity(seeded_store, mods_root, "ellen-joe") if v.id == asset_id)
    assert view.is_enabled is False
    assert view.disk_path == "characters/ellen-joe/DISABLED_EllenSwim"
    assert toggle_asset(seeded_store, mods_root, asset_id) is True


def test_move_to_other_entity_keeps_disabled_state(seeded_store, mods_root: Path, catalog):
    asset_id = catalog["characters/NicoleDress"]
    toggle_asset(seeded_store, mods_root, asset_id)
    row = update_asset_info(
        seeded_store, mods_root, asset_id,
        AssetUpdate(target_entity_slug="zhu-yuan", name="Police Dress", author="Someone"),
    )
    assert row.folder_name == "characters/zhu-yuan/NicoleDress"
    assert (mods_root / "characters" / "zhu-yuan" / "DISABLED_NicoleDress" / "mod.ini").is_file()
    assert not (mods_root / "characters" / "DISABLED_NicoleDress").exists()
    assert [v.name for v in list_assets_for_entity(seeded_store, mods_root, "zhu-yuan")] == ["Police Dress"]


def test_move_conflict_leaves_everything_in_place(seeded_store, mods_root: Path, catalog):
    asset_id = catalog["characters/NicoleDress"]
    (mods_root / "characters" / "zhu-yuan" / "NicoleDress").mkdir(parents=True)
    with pytest.raises(ConflictError):
        update_asset_info(seeded_store, mods_root, asset_id, AssetUpdate(target_entity_slug="zhu-yuan"))
    assert (mods_root / "characters" / "NicoleDress" / "mod.ini").is_file()
    with seeded_store.session() as session:
        assert session.get(Asset, asset_id).folder_name == "characters/NicoleDress"


def test_image_update_and_lookup(seeded_store, mods_root: Path, catalog, tmp_path: Path):
    asset_id = catalog["characters/ellen-joe/EllenSwim"]
    with pytest.raises(NotFoundError):
        asset_image_path(seeded_store, mods_root, asset_id)
    update_asset_info(seeded_store, mods_root, asset_id, AssetUpdate(image_bytes=b"new"))
    assert asset_image_path(seeded_store, mods_root, asset_id).read_bytes() == b"new"

    src = tmp_path / "cover.jpg"
    src.write_bytes(b"jpg")
    row = update_asset_info(seeded_store, mods_root, asset_id, AssetUpdate(image_source=src))
    assert row.image_filename == "cover.jpg"
    assert asset_image_path(seeded_store, mods_root, asset_id).name == "cover.jpg"


def test_read_keybinds(seeded_store, mods_root: Path, catalog):
    binds = read_keybinds(seeded_store, mods_root, catalog["characters/ellen-joe/EllenMaid"])
    assert [(b.title, b.key) for b in binds] == [("KeySwap", "VK_F5")]


def test_delete_asset(seeded_store, mods_root: Path, catalog):
    asset_id = catalog["characters/ellen-joe/EllenMaid"]
    toggle_asset(seeded_store, mods_root, asset_id)
    assert delete_asset(seeded_store, mods_root, asset_id) is True
    assert not (mods_root / "characters" / "ellen-joe" / "DISABLED_EllenMaid").exists()
    with seeded_store.session() as session:
        assert session.get(Asset, asset_id) is None
    with pytest.raises(NotFoundError):
        delete_asset(seeded_store, mods_root, asset_id)


def test_delete_asset_without_folder(seeded_store, mods_root: Path, catalog):
    asset_id = catalog["characters/NicoleDress"]
    (mods_root / "characters" / "NicoleDress" / "mod.ini").unlink()
    (mods_root / "characters" / "NicoleDress").rmdir()
    assert delete_asset(seeded_store, mods_root, asset_id) is False
    with seeded_store.session() as session:
        assert session.get(Asset, asset_id) is None


def test_move_is_undone_when_catalog_update_fails(seeded_store, mods_root: Path, catalog):
    asset_id = catalog["characters/NicoleDress"]

    def _refuse(session):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    event.listen(seeded_store._sessions, "before_commit", _refuse)
    try:
        with pytest.raises(OperationalError):
            update_asset_info(seeded_store, mods_root, asset_id, AssetUpdate(target_entity_slug="zhu-yuan"))
    finally:
        event.remove(seeded_store._sessions, "before_commit", _refuse)
    assert (mods_root / "characters" / "NicoleDress" / "mod.ini").is_file()
    assert not (mods_root / "characters" / "zhu-yuan" / "NicoleDress").exists()
    with seeded_store.session() as session:
        row = session.get(Asset, asset_id)
        assert row.folder_name == "characters/NicoleDress"


def test_move_is_undone_when_image_is_missing(seeded_store, mods_root: Path, catalog, tmp_path: Path):
    asset_id = catalog["characters/NicoleDress"]
    with pytest.raises(NotFoundError):
        update_asset_info(
            seeded_store, mods_root, asset_id,
            AssetUpdate(target_entity_slug="zhu-yuan", image_source=tmp_path / "gone.png"),
        )
    assert (mods_root / "characters" / "NicoleDress" / "mod.ini").is_file()
    assert not (mods_root / "characters" / "zhu-yuan" / "NicoleDress").exists()
