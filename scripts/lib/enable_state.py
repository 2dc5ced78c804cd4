"""Enabled/disabled state of a mod folder, encoded in its on-disk name.

A disabled mod lives next to where the enabled one would be, with the final
path segment prefixed by ``DISABLED_``. The catalog only stores the clean
(unprefixed) relative path; the state is always read from disk.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Tuple

from scripts.lib.errors import FolderMissingError

_log = logging.getLogger(__name__)

DISABLED_PREFIX = "DISABLED_"
DISABLED_WORD = "DISABLED"


def is_disabled_name(name: str) -> bool:
    return name.startswith(DISABLED_PREFIX)


def strip_disabled_prefix(name: str) -> str:
    return name[len(DISABLED_PREFIX):] if name.startswith(DISABLED_PREFIX) else name


def disabled_name(name: str) -> str:
    return f"{DISABLED_PREFIX}{strip_disabled_prefix(name)}"


def needs_marker_repair(name: str) -> bool:
    """``DISABLEDFoo`` style names that miss the separator of the marker."""
    return name.startswith(DISABLED_WORD) and not name.startswith(DISABLED_PREFIX)


def repaired_name(name: str) -> str:
    return f"{DISABLED_PREFIX}{name[len(DISABLED_WORD):]}"


def clean_relative_path(folder: Path, mods_root: Path) -> str:
    """Forward-slash path of ``folder`` below ``mods_root`` with the marker removed from the last segment."""
    rel = folder.relative_to(mods_root)
    parts = list(rel.parts)
    if not parts:
        raise ValueError(f"{folder} is the mods root itself")
    parts[-1] = strip_disabled_prefix(parts[-1])
    return PurePosixPath(*parts).as_posix()


@dataclass(frozen=True)
class ModPaths:
    clean_path: str
    enabled: Path
    disabled: Path

    @classmethod
    def for_clean_path(cls, mods_root: Path, clean_path: str) -> "ModPaths":
        rel = PurePosixPath(clean_path.replace("\\", "/"))
        if not rel.name:
            raise ValueError(f"Invalid clean relative path: {clean_path!r}")
        enabled = mods_root.joinpath(*rel.parts)
        return cls(clean_path=rel.as_posix(), enabled=enabled, disabled=enabled.with_name(disabled_name(rel.name)))

    def current(self) -> Tuple[Path, bool]:
        """Return ``(existing path, is_enabled)``.

        When both forms exist the enabled folder wins and the anomaly is logged.
        """
        enabled_exists = self.enabled.is_dir()
        disabled_exists = self.disabled.is_dir()
        if enabled_exists and disabled_exists:
            _log.warning(
                "Both enabled and disabled folders exist for %s; treating it as enabled", self.clean_path
            )
            return self.enabled, True
        if enabled_exists:
            return self.enabled, True
        if disabled_exists:
            return self.disabled, False
        raise FolderMissingError(self.clean_path)

    def is_enabled(self) -> bool:
        return self.current()[1]

    def relative_on_disk(self, mods_root: Path) -> str:
        path, _ = self.current()
        return path.relative_to(mods_root).as_posix()


def toggle(mods_root: Path, clean_path: str) -> bool:
    """Flip the state of a mod folder; returns the new enabled state."""
    paths = ModPaths.for_clean_path(mods_root, clean_path)
    current, enabled = paths.current()
    target = paths.disabled if enabled else paths.enabled
    if target.exists():
        # Both forms on disk: renaming would clobber the other copy
        raise FileExistsError(f"Cannot toggle {clean_path}: {target} already exists")
    os.rename(current, target)
    _log.info("%s %s", "Disabled" if enabled else "Enabled", clean_path)
    return not enabled


def set_enabled(mods_root: Path, clean_path: str, enabled: bool) -> bool:
    """Bring a mod folder to the requested state; returns True when a rename happened."""
    paths = ModPaths.for_clean_path(mods_root, clean_path)
    current, is_enabled = paths.current()
    if is_enabled == enabled:
        return False
    target = paths.enabled if enabled else paths.disabled
    if target.exists():
        raise FileExistsError(f"Cannot change state of {clean_path}: {target} already exists")
    os.rename(current, target)
    return True
