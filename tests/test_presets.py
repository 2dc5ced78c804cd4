from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import select

from db.models import Asset, PresetAsset
from scripts.lib import events as ev
from scripts.lib.enable_state import ModPaths
from scripts.lib.errors import BatchOperationError, ConflictError, NotFoundError
from scripts.lib.events import ApplyProgress, recording_bus
from scripts.lib.mod_scanner import scan_mods_directory
from scripts.lib.presets import (
    add_asset_to_presets,
    apply_preset,
    create_preset,
    delete_preset,
    favorite_presets,
    list_presets,
    overwrite_preset,
    toggle_preset_favorite,
)


@pytest.fixture
def catalog(seeded_store, make_mod, mods_root: Path):
    for rel in ("characters/EllenMaid", "characters/NicoleDress", "characters/RaidenKimono"):
        make_mod(rel)
    scan_mods_directory(seeded_store, mods_root)
    with seeded_store.session() as session:
        return {a.folder_name: a.id for a in session.execute(select(Asset)).scalars()}


def _state(mods_root: Path, clean: str) -> bool:
    return ModPaths.for_clean_path(mods_root, clean).is_enabled()


def test_create_snapshots_current_state(seeded_store, mods_root: Path, catalog):
    ModPaths.for_clean_path(mods_root, "characters/NicoleDress").enabled.rename(
        mods_root / "characters" / "DISABLED_NicoleDress"
    )
    preset_id = create_preset(seeded_store, mods_root, "Story run")
    with seeded_store.session() as session:
        links = {
            link.asset_id: link.is_enabled
            for link in session.execute(select(PresetAsset).where(PresetAsset.preset_id == preset_id)).scalars()
        }
    assert links == {
        catalog["characters/EllenMaid"]: True,
        catalog["characters/NicoleDress"]: False,
        catalog["characters/RaidenKimono"]: True,
    }


def test_names_are_unique_case_insensitive(seeded_store, mods_root: Path, catalog):
    create_preset(seeded_store, mods_root, "Story run")
    with pytest.raises(ConflictError):
        create_preset(seeded_store, mods_root, "STORY RUN")
    with pytest.raises(ConflictError):
        create_preset(seeded_store, mods_root, "   ")


def test_missing_folders_are_left_out(seeded_store, mods_root: Path, catalog):
    folder = mods_root / "characters" / "RaidenKimono"
    (folder / "mod.ini").unlink()
    folder.rmdir()
    preset_id = create_preset(seeded_store, mods_root, "Partial")
    assert next(p for p in list_presets(seeded_store) if p.id == preset_id).asset_count == 2


def test_apply_restores_snapshot(seeded_store, mods_root: Path, catalog):
    preset_id = create_preset(seeded_store, mods_root, "All on")
    for clean in ("characters/EllenMaid", "characters/RaidenKimono"):
        ModPaths.for_clean_path(mods_root, clean).enabled.rename(
            mods_root / "characters" / f"DISABLED_{clean.split('/')[-1]}"
        )
    bus, sink = recording_bus()
    summary = apply_preset(seeded_store, mods_root, preset_id, bus)
    assert summary.total == 3
    assert summary.changed == 2
    assert summary.message() == "Preset applied. 2 of 3 mods changed state. 0 errors occurred."
    assert all(_state(mods_root, c) for c in catalog)
    assert sink.names()[0] == ev.PRESET_APPLY_START
    assert sink.names()[-1] == ev.PRESET_APPLY_COMPLETE
    progress = sink.payloads(ev.PRESET_APPLY_PROGRESS)
    assert [p.processed for p in progress] == [1, 2, 3]
    assert all(isinstance(p, ApplyProgress) for p in progress)


def test_apply_continues_past_failures(seeded_store, mods_root: Path, catalog):
    preset_id = create_preset(seeded_store, mods_root, "Snapshot")
    ModPaths.for_clean_path(mods_root, "characters/RaidenKimono").enabled.rename(
        mods_root / "characters" / "DISABLED_RaidenKimono"
    )
    gone = mods_root / "characters" / "EllenMaid"
    (gone / "mod.ini").unlink()
    gone.rmdir()
    bus, sink = recording_bus()
    with pytest.raises(BatchOperationError) as exc:
        apply_preset(seeded_store, mods_root, preset_id, bus)
    assert exc.value.summary.changed == 1
    assert "characters/EllenMaid" in exc.value.itemized()
    assert _state(mods_root, "characters/RaidenKimono") is True
    assert sink.names()[-1] == ev.PRESET_APPLY_ERROR


def test_overwrite_favorite_delete(seeded_store, mods_root: Path, catalog):
    a = create_preset(seeded_store, mods_root, "A")
    b = create_preset(seeded_store, mods_root, "b")
    create_preset(seeded_store, mods_root, "C")
    assert [p.name for p in list_presets(seeded_store)] == ["A", "b", "C"]

    assert toggle_preset_favorite(seeded_store, b) is True
    assert [p.id for p in favorite_presets(seeded_store)] == [b]
    assert toggle_preset_favorite(seeded_store, b) is False

    folder = mods_root / "characters" / "NicoleDress"
    (folder / "mod.ini").unlink()
    folder.rmdir()
    assert overwrite_preset(seeded_store, mods_root, a) == 2

    delete_preset(seeded_store, a)
    assert a not in [p.id for p in list_presets(seeded_store)]
    with pytest.raises(NotFoundError):
        delete_preset(seeded_store, a)
    with pytest.raises(NotFoundError):
        apply_preset(seeded_store, mods_root, a)


def test_add_asset_to_presets(seeded_store, mods_root: Path, catalog):
    a = create_preset(seeded_store, mods_root, "A")
    b = create_preset(seeded_store, mods_root, "B")
    asset_id = catalog["characters/EllenMaid"]
    assert add_asset_to_presets(seeded_store, asset_id, [a, b], enabled=False) == 2
    with seeded_store.session() as session:
        assert session.get(PresetAsset, (a, asset_id)).is_enabled is False
    with pytest.raises(NotFoundError):
        add_asset_to_presets(seeded_store, asset_id, [9999])
