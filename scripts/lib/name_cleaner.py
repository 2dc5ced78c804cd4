from __future__ import annotations

import re

# Bracketed groups usually carry tags like "[NSFW]" or "(by someone)"
_BRACKET_GROUP_RE = re.compile(r"\[[^\[\]]*\]|\([^()]*\)|\{[^{}]*\}")
_SEPARATOR_RE = re.compile(r"[_\-.\s]+")
# Whole tokens that never contribute to a name: versions and tag words
_MARKER_TOKEN_RE = re.compile(r"^(?:v\d+|ver\d+|version\d*|disabled|af|nsfw)$", re.IGNORECASE)
_LEADING_NAME_RE = re.compile(r"^[A-Za-z ]+")

# Display-name cleanup: version suffixes and disabled markers only
_MOD_NAME_CLEANUP_RE = re.compile(r"(_v\d+(\.\d+)*|_DISABLED|DISABLED_|\(disabled\))", re.IGNORECASE)

_FOLDER_NAME_DROP_RE = re.compile(r"[\"'`]")


def _clean_once(text: str) -> str:
    text = _BRACKET_GROUP_RE.sub(" ", text)
    tokens = [t for t in _SEPARATOR_RE.split(text) if t and not _MARKER_TOKEN_RE.match(t)]
    joined = " ".join(tokens).strip()
    m = _LEADING_NAME_RE.match(joined)
    if m and m.group(0).strip():
        return " ".join(m.group(0).split()).lower()
    return joined.lower()


def clean_and_extract_name(text: str) -> str:
    """Normalize a folder/file/hint string to a lowercase name candidate.

    Drops bracket and paren groups, version tokens (``v2``, ``ver3``) and tag
    words (``disabled``, ``nsfw``, ``af``), turns ``_ - .`` and whitespace
    runs into single spaces, then keeps the leading run of letters and spaces.
    If the string does not start with a letter the whole trimmed result is
    kept instead.

    >>> clean_and_extract_name("Raiden_Shogun_v2_DISABLED")
    'raiden shogun'

    Applying the function to its own output returns the same string.
    """
    if not text:
        return ""
    previous = text
    cleaned = _clean_once(text)
    # A pass can expose new markers (e.g. a bracket group glued inside a token);
    # repeat until stable so cleaning is idempotent.
    for _ in range(32):
        if cleaned == previous:
            break
        previous, cleaned = cleaned, _clean_once(cleaned)
    return cleaned


def clean_mod_name(text: str) -> str:
    """Strip version suffixes and disabled markers used in display names."""
    return _MOD_NAME_CLEANUP_RE.sub("", text or "").strip()


def display_name(candidate: str, fallback: str) -> str:
    """Cleaned display name, or ``fallback`` untouched when cleanup empties it."""
    cleaned = clean_mod_name(candidate)
    return cleaned if cleaned else fallback


def sanitize_folder_name(name: str) -> str:
    """Folder-safe form of a user supplied mod name ("My Mod v1.2" -> "My_Mod_v1_2")."""
    out = (name or "").strip().replace(" ", "_").replace(".", "_")
    return _FOLDER_NAME_DROP_RE.sub("", out)
