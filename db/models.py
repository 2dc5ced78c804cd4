from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(256), nullable=False)
    # Stable identifier used in folder paths and definition files
    slug = Column(String(128), nullable=False, unique=True, index=True)

    entities = relationship(
        "Entity",
        back_populates="category",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Entity.id",
    )

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Category id={self.id} slug={self.slug}>"


class Entity(Base):
    __tablename__ = "entities"

    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    slug = Column(String(256), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    # Free-form JSON text carried through from the definition document
    details = Column(Text, nullable=True)
    base_image = Column(String(512), nullable=True)

    category = relationship("Category", back_populates="entities")
    assets = relationship("Asset", back_populates="entity", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Entity id={self.id} slug={self.slug}>"


class Asset(Base):
    __tablename__ = "assets"

    id = Column(Integer, primary_key=True)
    entity_id = Column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    # Clean relative path (forward slashes, no disabled marker); the asset's identity.
    # Enabled/disabled state is never stored; it is derived from disk.
    folder_name = Column(String(1024), nullable=False, unique=True, index=True)
    image_filename = Column(String(512), nullable=True)
    author = Column(String(256), nullable=True)
    category_tag = Column(String(256), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    entity = relationship("Entity", back_populates="assets")
    preset_links = relationship("PresetAsset", back_populates="asset", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Asset id={self.id} path={self.folder_name}>"


class Preset(Base):
    __tablename__ = "presets"

    id = Column(Integer, primary_key=True)
    name = Column(String(256), nullable=False, unique=True)
    is_favorite = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    assets = relationship("PresetAsset", back_populates="preset", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Preset id={self.id} name={self.name}>"


class PresetAsset(Base):
    __tablename__ = "preset_assets"

    preset_id = Column(Integer, ForeignKey("presets.id", ondelete="CASCADE"), primary_key=True)
    asset_id = Column(Integer, ForeignKey("assets.id", ondelete="CASCADE"), primary_key=True, index=True)
    is_enabled = Column(Boolean, nullable=False, default=True)

    preset = relationship("Preset", back_populates="assets")
    asset = relationship("Asset", back_populates="preset_links")

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<PresetAsset preset={self.preset_id} asset={self.asset_id} enabled={self.is_enabled}>"


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Setting {self.key}={self.value}>"
