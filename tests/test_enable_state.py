from __future__ import annotations

import logging
from pathlib import Path

import pytest

from scripts.lib.enable_state import (
    ModPaths,
    clean_relative_path,
    disabled_name,
    needs_marker_repair,
    repaired_name,
    set_enabled,
    strip_disabled_prefix,
    toggle,
)
from scripts.lib.errors import FolderMissingError


def test_name_helpers():
    assert disabled_name("EllenMaid") == "DISABLED_EllenMaid"
    assert disabled_name("DISABLED_EllenMaid") == "DISABLED_EllenMaid"
    assert strip_disabled_prefix("DISABLED_EllenMaid") == "EllenMaid"
    assert strip_disabled_prefix("disabled_EllenMaid") == "disabled_EllenMaid"
    assert needs_marker_repair("DISABLEDEllenMaid")
    assert not needs_marker_repair("DISABLED_EllenMaid")
    assert repaired_name("DISABLEDEllenMaid") == "DISABLED_EllenMaid"


def test_clean_relative_path_strips_marker_from_last_segment(tmp_path: Path):
    folder = tmp_path / "DISABLED_chars" / "DISABLED_Ellen"
    assert clean_relative_path(folder, tmp_path) == "DISABLED_chars/Ellen"


def test_paths_for_clean_path(tmp_path: Path):
    paths = ModPaths.for_clean_path(tmp_path, "characters/ellen-joe/Maid")
    assert paths.enabled == tmp_path / "characters" / "ellen-joe" / "Maid"
    assert paths.disabled == tmp_path / "characters" / "ellen-joe" / "DISABLED_Maid"


def test_state_is_derived_from_disk(tmp_path: Path):
    paths = ModPaths.for_clean_path(tmp_path, "a/Mod")
    with pytest.raises(FolderMissingError):
        paths.current()
    paths.disabled.mkdir(parents=True)
    assert paths.is_enabled() is False
    assert paths.relative_on_disk(tmp_path) == "a/DISABLED_Mod"


def test_toggle_round_trip(tmp_path: Path):
    (tmp_path / "a" / "Mod").mkdir(parents=True)
    (tmp_path / "a" / "Mod" / "mod.ini").write_text("[Mod]\n", encoding="utf-8")
    assert toggle(tmp_path, "a/Mod") is False
    assert (tmp_path / "a" / "DISABLED_Mod" / "mod.ini").is_file()
    assert not (tmp_path / "a" / "Mod").exists()
    assert toggle(tmp_path, "a/Mod") is True
    assert (tmp_path / "a" / "Mod" / "mod.ini").is_file()


def test_both_forms_present_prefers_enabled(tmp_path: Path, caplog):
    (tmp_path / "Mod").mkdir()
    (tmp_path / "DISABLED_Mod").mkdir()
    paths = ModPaths.for_clean_path(tmp_path, "Mod")
    with caplog.at_level(logging.WARNING, logger="scripts.lib.enable_state"):
        assert paths.current() == (tmp_path / "Mod", True)
    assert "Both enabled and disabled" in caplog.text
    with pytest.raises(FileExistsError):
        toggle(tmp_path, "Mod")


def test_set_enabled_is_noop_when_already_there(tmp_path: Path):
    (tmp_path / "Mod").mkdir()
    assert set_enabled(tmp_path, "Mod", True) is False
    assert set_enabled(tmp_path, "Mod", False) is True
    assert (tmp_path / "DISABLED_Mod").is_dir()
    with pytest.raises(FolderMissingError):
        set_enabled(tmp_path, "Other", True)
