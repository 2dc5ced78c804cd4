"""db package exports for the catalog database layer.

Re-exports the commonly used symbols so scripts can write
``from db import CatalogStore`` instead of reaching into submodules.
"""
from .models import Base, Category, Entity, Asset, Preset, PresetAsset, Setting  # noqa: F401
from .session import CatalogStore, get_setting, set_setting  # noqa: F401

__all__ = [
    "Base",
    "Category",
    "Entity",
    "Asset",
    "Preset",
    "PresetAsset",
    "Setting",
    "CatalogStore",
    "get_setting",
    "set_setting",
]
