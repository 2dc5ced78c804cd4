"""Reading the small subset of mod ``.ini`` files the catalog cares about.

Mod configs are loosely formatted: duplicate sections and keys, stray lines,
mixed ``;``/``#`` comments. Parsing is lenient and never raises for content
problems; whatever could be read is used.
"""
from __future__ import annotations

import configparser
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

_log = logging.getLogger(__name__)

CONFIG_EXTENSION = ".ini"
DISABLED_PREFIX_LOWER = "disabled_"

# Auxiliary shader/fix configs that ship alongside real mods but do not mark a mod folder
EXCLUDED_CONFIG_FILENAMES = frozenset({
    "orfix.ini",
    "region.ini",
    "offset.ini",
    "water.ini",
    "fixdash.ini",
    "deltatime.ini",
    "object.ini",
    "timer.ini",
})

METADATA_SECTIONS = ("Mod", "Settings", "Info", "General")
_NAME_KEYS = ("name", "modname")
_AUTHOR_KEYS = ("author",)
_DESCRIPTION_KEYS = ("description",)
_TARGET_KEYS = ("target", "entity", "character")
_TYPE_KEYS = ("type", "category")

_KEY_SECTION_RE = re.compile(r"^\[\s*key", re.IGNORECASE)
_SECTION_RE = re.compile(r"^\[.*\]$")


@dataclass(frozen=True)
class ModConfig:
    name: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    target: Optional[str] = None
    type_hint: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not any((self.name, self.author, self.description, self.target, self.type_hint))


def is_config_filename(filename: str) -> bool:
    return filename.lower().endswith(CONFIG_EXTENSION)


def is_mod_config_filename(filename: str) -> bool:
    """True for ``.ini`` files that mark a mod folder (auxiliary fix configs excluded)."""
    lower = filename.lower()
    if not lower.endswith(CONFIG_EXTENSION):
        return False
    if lower.startswith(DISABLED_PREFIX_LOWER):
        lower = lower[len(DISABLED_PREFIX_LOWER):]
    return lower not in EXCLUDED_CONFIG_FILENAMES


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        strict=False,
        interpolation=None,
        allow_no_value=True,
        comment_prefixes=(";", "#"),
        inline_comment_prefixes=None,
    )
    return parser


def _section(parser: configparser.ConfigParser, wanted: str) -> Optional[configparser.SectionProxy]:
    for name in parser.sections():
        if name.strip().lower() == wanted.lower():
            return parser[name]
    return None


def _section_value(parser: configparser.ConfigParser, keys: Iterable[str]) -> Optional[str]:
    # Later metadata sections override earlier ones
    for section_name in reversed(METADATA_SECTIONS):
        section = _section(parser, section_name)
        if section is None:
            continue
        for key in keys:
            value = section.get(key)
            if value is not None and value.strip():
                return value.strip().strip('"').strip()
    return None


def parse_mod_config(text: str, source: str = "<config>") -> ModConfig:
    parser = _new_parser()
    try:
        parser.read_string(text, source=source)
    except configparser.MissingSectionHeaderError:
        _log.warning("Config %s has no section header; ignoring", source)
        return ModConfig()
    except configparser.ParsingError as e:
        # ParsingError is raised after the whole file was read; keep what parsed
        _log.debug("Config %s had unparsable lines: %s", source, e)
    return ModConfig(
        name=_section_value(parser, _NAME_KEYS),
        author=_section_value(parser, _AUTHOR_KEYS),
        description=_section_value(parser, _DESCRIPTION_KEYS),
        target=_section_value(parser, _TARGET_KEYS),
        type_hint=_section_value(parser, _TYPE_KEYS),
    )


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def top_level_files(folder: Path) -> List[Path]:
    """Regular files directly inside ``folder`` in listing order (empty if unreadable)."""
    try:
        return [p for p in folder.iterdir() if p.is_file()]
    except OSError as e:
        _log.warning("Cannot list %s: %s", folder, e)
        return []


def find_config_file(folder: Path) -> Optional[Path]:
    for p in top_level_files(folder):
        if is_config_filename(p.name):
            return p
    return None


def has_mod_config(folder: Path) -> bool:
    return any(is_mod_config_filename(p.name) for p in top_level_files(folder))


def load_mod_config(folder: Path) -> Tuple[Optional[Path], ModConfig]:
    path = find_config_file(folder)
    if path is None:
        return None, ModConfig()
    try:
        text = read_text(path)
    except OSError as e:
        _log.warning("Cannot read config %s: %s", path, e)
        return path, ModConfig()
    return path, parse_mod_config(text, source=str(path))


@dataclass(frozen=True)
class Keybind:
    title: str
    key: str


def extract_keybinds(text: str) -> List[Keybind]:
    """Collect ``key = ...`` bindings from ``[Key...]`` sections after a ``; Constants`` comment.

    Sections before the marker are ignored; each binding is reported with
    the title of the section it was found in, in file order.
    """
    found: List[Keybind] = []
    seen_marker = False
    current: Optional[str] = None
    for raw in text.splitlines():
        line = raw.strip()
        if not seen_marker:
            if line.startswith(";") and "constants" in line[1:].lower():
                seen_marker = True
            continue
        if _SECTION_RE.match(line):
            title = line[1:-1].strip()
            current = title if _KEY_SECTION_RE.match(line) else None
            continue
        if current is None or not line.lower().startswith("key") or "=" not in line:
            continue
        value = line.split("=", 1)[1].strip()
        if value:
            found.append(Keybind(title=current, key=value))
    return found


def find_keybinds(folder: Path) -> List[Keybind]:
    """Keybinds from the first top-level config file in ``folder`` that has any."""
    for p in top_level_files(folder):
        if not is_config_filename(p.name):
            continue
        try:
            found = extract_keybinds(read_text(p))
        except OSError as e:
            _log.warning("Cannot read config %s: %s", p, e)
            continue
        if found:
            return found
    return []
