"""Map free-text hints (folder names, file stems, config values) onto taxonomy slugs.

Entity matching is an ordered cascade of small strategies; the first strategy
that produces a slug wins. Category matching comes in the three flavours the
deduction fallback needs (exact, type hint, top-level path segment) plus the
archive-stem variant used by the archive inspector.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from scripts.lib.name_cleaner import clean_and_extract_name
from scripts.lib.taxonomy_index import TaxonomyIndex


@dataclass(frozen=True)
class HintContext:
    raw: str
    lower: str
    cleaned: str

    @classmethod
    def of(cls, hint: str) -> "HintContext":
        return cls(raw=hint, lower=hint.lower(), cleaned=clean_and_extract_name(hint))


@dataclass(frozen=True)
class MatchStrategy:
    name: str
    apply: Callable[[HintContext, TaxonomyIndex], Optional[str]]

    def __call__(self, ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
        return self.apply(ctx, index)


def _exact_slug(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return ctx.raw if ctx.raw in index.entity_slug_to_id else None


def _exact_name(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return index.entity_name_to_slug.get(ctx.lower)


def _cleaned_name(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return index.entity_name_to_slug.get(ctx.cleaned)


def _cleaned_first_two_words(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return index.entity_first_two_words_to_slug.get(ctx.cleaned)


def _cleaned_first_word(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return index.entity_first_word_to_slug.get(ctx.cleaned)


def _leading_token_first_word(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    tokens = ctx.cleaned.split()
    if not tokens or len(tokens[0]) <= 1:
        return None
    return index.entity_first_word_to_slug.get(tokens[0])


def _first_prefix(cleaned: str, keys: Iterable[Tuple[str, str]], min_len: int) -> Optional[str]:
    for key, slug in keys:
        if len(key) > min_len and cleaned.startswith(key):
            return slug
    return None


def _first_contained(cleaned: str, keys: Iterable[Tuple[str, str]]) -> Optional[str]:
    for key, slug in keys:
        if key in cleaned:
            return slug
    return None


def _prefix_full_name(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return _first_prefix(ctx.cleaned, index.entity_name_to_slug.items(), 2)


def _prefix_first_two_words(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return _first_prefix(ctx.cleaned, index.entity_first_two_words_to_slug.items(), 0)


def _prefix_first_word(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    return _first_prefix(ctx.cleaned, index.entity_first_word_to_slug.items(), 1)


def _contains_full_name(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    if len(ctx.cleaned) <= 3:
        return None
    return _first_contained(ctx.cleaned, index.entity_name_to_slug.items())


def _contains_first_two_words(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    if len(ctx.cleaned) <= 3:
        return None
    return _first_contained(ctx.cleaned, index.entity_first_two_words_to_slug.items())


def _contains_first_word(ctx: HintContext, index: TaxonomyIndex) -> Optional[str]:
    if len(ctx.cleaned) <= 2:
        return None
    return _first_contained(ctx.cleaned, index.entity_first_word_to_slug.items())


# Priority order matters: earlier strategies are stricter.
STRATEGIES: Tuple[MatchStrategy, ...] = (
    MatchStrategy("exact_slug", _exact_slug),
    MatchStrategy("exact_name", _exact_name),
    MatchStrategy("cleaned_name", _cleaned_name),
    MatchStrategy("cleaned_first_two_words", _cleaned_first_two_words),
    MatchStrategy("cleaned_first_word", _cleaned_first_word),
    MatchStrategy("leading_token_first_word", _leading_token_first_word),
    MatchStrategy("prefix_full_name", _prefix_full_name),
    MatchStrategy("prefix_first_two_words", _prefix_first_two_words),
    MatchStrategy("prefix_first_word", _prefix_first_word),
    MatchStrategy("contains_full_name", _contains_full_name),
    MatchStrategy("contains_first_two_words", _contains_first_two_words),
    MatchStrategy("contains_first_word", _contains_first_word),
)

STRATEGY_NAMES = tuple(s.name for s in STRATEGIES)


def match_hint_detailed(hint: Optional[str], index: TaxonomyIndex) -> Optional[Tuple[str, str]]:
    """Return ``(entity_slug, strategy_name)`` for the first strategy that matches."""
    if not hint:
        return None
    ctx = HintContext.of(hint)
    for strategy in STRATEGIES:
        slug = strategy(ctx, index)
        if slug is not None:
            return slug, strategy.name
    return None


def match_hint(hint: Optional[str], index: TaxonomyIndex) -> Optional[str]:
    found = match_hint_detailed(hint, index)
    return found[0] if found else None


# ----------------------------- categories ---------------------------------

def match_category_exact(hint: Optional[str], index: TaxonomyIndex) -> Optional[str]:
    """Folder name equal to a category slug (case-sensitive) or name (case-insensitive)."""
    if not hint:
        return None
    if hint in index.category_slug_to_id:
        return hint
    return index.category_name_to_slug.get(hint.lower())


def match_category_type_hint(hint: Optional[str], index: TaxonomyIndex) -> Optional[str]:
    """Config ``Type``/``Category`` value: exact, then name starts with, then name contains."""
    if not hint:
        return None
    found = match_category_exact(hint, index)
    if found:
        return found
    lower = hint.lower()
    for name, slug in index.category_items():
        if name.startswith(lower):
            return slug
    if len(lower) > 2:
        for name, slug in index.category_items():
            if lower in name:
                return slug
    return None


def match_category_segment(segment: Optional[str], index: TaxonomyIndex) -> Optional[str]:
    """Top-level folder under the mods root: exact, then mutual prefix, then contains."""
    if not segment:
        return None
    found = match_category_exact(segment, index)
    if found:
        return found
    lower = segment.lower()
    for slug in index.category_slug_to_id:
        if lower.startswith(slug) or slug.startswith(lower):
            return slug
    for name, slug in index.category_items():
        if lower.startswith(name) or name.startswith(lower):
            return slug
    if len(lower) > 2:
        for name, slug in index.category_items():
            if lower in name:
                return slug
    return None


def match_category_stem(stem: Optional[str], index: TaxonomyIndex) -> Optional[str]:
    """Archive file stem: exact slug, cleaned stem equals a name, or a stem word inside a name."""
    if not stem:
        return None
    if stem in index.category_slug_to_id:
        return stem
    cleaned = clean_and_extract_name(stem)
    if cleaned in index.category_name_to_slug:
        return index.category_name_to_slug[cleaned]
    for word in cleaned.split():
        if len(word) <= 2:
            continue
        for name, slug in index.category_items():
            if word in name:
                return slug
    return None
