from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from db.session import CatalogStore, get_setting, set_setting
from scripts.lib.errors import ConfigurationError

MODS_FOLDER_SETTING = "mods_folder_path"
MODS_ROOT_ENV = "MODMGR_MODS_ROOT"


def resolve_mods_root(store: CatalogStore, override: Optional[str] = None) -> Path:
    """Mods root from an explicit value, the settings table, or ``MODMGR_MODS_ROOT``, in that order."""
    value = override
    if not value:
        with store.session() as session:
            value = get_setting(session, MODS_FOLDER_SETTING)
    if not value:
        value = os.environ.get(MODS_ROOT_ENV)
    if not value:
        raise ConfigurationError(
            f"Mods folder is not configured (set '{MODS_FOLDER_SETTING}' or {MODS_ROOT_ENV})"
        )
    root = Path(value).expanduser()
    if not root.is_dir():
        raise ConfigurationError(f"Mods folder does not exist or is not a directory: {root}")
    return root


def save_mods_root(store: CatalogStore, path: Path) -> None:
    with store.session() as session:
        set_setting(session, MODS_FOLDER_SETTING, str(path))
        session.commit()
