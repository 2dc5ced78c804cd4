"""Uniform list/read access to .zip, .7z and .rar archives.

Each adapter exposes ``list_entries()`` (forward-slash paths, directory
flags) and ``read(path)``; inspection and extraction are written once
against that interface.
"""
from __future__ import annotations

import logging
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Tuple

import py7zr
import rarfile

from scripts.lib.errors import ArchiveFormatError, EntryNotFound

_log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".zip", ".7z", ".rar"}


def normalize_entry_path(name: str) -> str:
    return name.replace("\\", "/").strip("/")


class ArchiveSource(ABC):
    """List/read capability over one archive file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @abstractmethod
    def _raw_entries(self) -> List[Tuple[str, str, bool]]:
        """``(native name, normalized path, is_dir)`` for every stored entry."""

    @abstractmethod
    def _read_native(self, native_names: List[str]) -> Dict[str, bytes]:
        """Contents keyed by native name, for file entries only."""

    def list_entries(self) -> List[Tuple[str, bool]]:
        """Stored entries plus directories implied by file paths, in archive order."""
        out: List[Tuple[str, bool]] = []
        seen = set()
        for _, path, is_dir in self._raw_entries():
            if not path:
                continue
            for parent in reversed(PurePosixPath(path).parents[:-1]):
                p = parent.as_posix()
                if p not in seen:
                    seen.add(p)
                    out.append((p, True))
            if path not in seen:
                seen.add(path)
                out.append((path, is_dir))
        return out

    def _native_map(self) -> Dict[str, str]:
        return {path: native for native, path, is_dir in self._raw_entries() if not is_dir and path}

    def read_many(self, paths: Iterable[str]) -> Dict[str, bytes]:
        wanted = [normalize_entry_path(p) for p in paths]
        native = self._native_map()
        missing = [p for p in wanted if p not in native]
        if missing:
            raise EntryNotFound(missing[0])
        if not wanted:
            return {}
        data = self._read_native([native[p] for p in wanted])
        return {p: data[native[p]] for p in wanted}

    def read(self, path: str) -> bytes:
        return self.read_many([path])[normalize_entry_path(path)]


class ZipSource(ArchiveSource):
    def _open(self) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(self.path, "r")
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveFormatError(f"Cannot open zip archive {self.path}: {e}") from e

    def _raw_entries(self) -> List[Tuple[str, str, bool]]:
        with self._open() as zf:
            return [(i.filename, normalize_entry_path(i.filename), i.is_dir()) for i in zf.infolist()]

    def _read_native(self, native_names: List[str]) -> Dict[str, bytes]:
        with self._open() as zf:
            try:
                return {n: zf.read(n) for n in native_names}
            except (zipfile.BadZipFile, zipfile.LargeZipFile, RuntimeError) as e:
                raise ArchiveFormatError(f"Cannot read from {self.path}: {e}") from e


class SevenZipSource(ArchiveSource):
    def _open(self) -> py7zr.SevenZipFile:
        try:
            return py7zr.SevenZipFile(self.path, "r")
        except (py7zr.Bad7zFile, OSError) as e:
            raise ArchiveFormatError(f"Cannot open 7z archive {self.path}: {e}") from e

    def _raw_entries(self) -> List[Tuple[str, str, bool]]:
        with self._open() as sz:
            return [(i.filename, normalize_entry_path(i.filename), bool(i.is_directory)) for i in sz.list()]

    def _read_native(self, native_names: List[str]) -> Dict[str, bytes]:
        # One pass over the solid stream for all requested members
        with self._open() as sz:
            try:
                results = sz.read(targets=list(native_names))
            except py7zr.Bad7zFile as e:
                raise ArchiveFormatError(f"Cannot read from {self.path}: {e}") from e
        return {n: results[n].read() for n in native_names}


class RarSource(ArchiveSource):
    def _open(self) -> rarfile.RarFile:
        try:
            return rarfile.RarFile(self.path, "r")
        except (rarfile.Error, OSError) as e:
            raise ArchiveFormatError(f"Cannot open rar archive {self.path}: {e}") from e

    def _raw_entries(self) -> List[Tuple[str, str, bool]]:
        with self._open() as rf:
            return [(i.filename, normalize_entry_path(i.filename), i.is_dir()) for i in rf.infolist()]

    def _read_native(self, native_names: List[str]) -> Dict[str, bytes]:
        with self._open() as rf:
            try:
                return {n: rf.read(n) for n in native_names}
            except rarfile.Error as e:
                raise ArchiveFormatError(f"Cannot read from {self.path}: {e}") from e


_ADAPTERS = {
    ".zip": ZipSource,
    ".7z": SevenZipSource,
    ".rar": RarSource,
}


def open_archive(path: Path) -> ArchiveSource:
    path = Path(path)
    if not path.is_file():
        raise ArchiveFormatError(f"Archive not found: {path}")
    adapter = _ADAPTERS.get(path.suffix.lower())
    if adapter is None:
        raise ArchiveFormatError(
            f"Unsupported archive type '{path.suffix}' (supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))})"
        )
    return adapter(path)
