"""Ranking of cached titles against a query. Pure functions, no I/O."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz

from repositories.titles_repo import SearchableTitle
from utils.text import create_slug, normalize_search_text

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "search"

EXACT_SCORE = 1.0
PREFIX_SCORE = 0.85
SUBSTRING_SCORE = 0.7


@dataclass(frozen=True)
class SearchResult:
    item: SearchableTitle
    score: float
    matched_name: str
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.item.to_dict()
        payload["similarity_score"] = round(self.score, 4)
        payload["matched_name"] = self.matched_name
        if self.source is not None:
            payload["type"] = self.source
        return payload


def similarity(left: str, right: str) -> float:
    """
    Normalized InDel similarity in [0, 1]: ``2 * LCS / (len(left) + len(right))``.

    Character order matters, so reordered words score well below a bigram
    Dice coefficient: "monarch sea" vs "sea monarch" is 14/22 (about 0.64),
    where Dice gives about 0.89. Token-sorted ratios would score that pair
    1.0 and make word shuffles indistinguishable from prefix hits. The 0.6
    detail-lookup threshold is tuned for this scale.
    """
    if not left or not right:
        return 0.0
    return fuzz.ratio(left, right) / 100.0


def score_name(query: str, name: str) -> float:
    """Score one name: exact > prefix > substring > fuzzy similarity.

    Both arguments are expected to be normalized already.
    """
    if name == query:
        return EXACT_SCORE
    if name.startswith(query):
        return PREFIX_SCORE
    if query in name:
        return SUBSTRING_SCORE
    return similarity(query, name)


def best_score(query: str, item: SearchableTitle) -> Tuple[float, str]:
    """Best score over every searchable name of ``item`` and the name that won."""
    names = item.searchable_names or (item.title,)
    best, matched = 0.0, item.title
    for name in names:
        if not name:
            continue
        score = score_name(query, normalize_search_text(name))
        if score > best:
            best, matched = score, name
    return best, matched


def has_genre(item: SearchableTitle, genre_slug: str) -> bool:
    return any(create_slug(genre) == genre_slug for genre in item.genres or ())


def search(
    query: str,
    corpus: Iterable[SearchableTitle],
    threshold: float = 0.2,
    genre_filter: Optional[str] = None,
    source: Optional[str] = None,
) -> List[SearchResult]:
    """Rank ``corpus`` against ``query``; best first, ties keep corpus order."""
    normalized_query = normalize_search_text(query)
    if not normalized_query:
        return []

    filter_slug = create_slug(genre_filter) if genre_filter else None

    results = []
    checked = 0
    for item in corpus:
        if filter_slug and not has_genre(item, filter_slug):
            continue
        checked += 1
        score, matched = best_score(normalized_query, item)
        if score >= threshold:
            results.append(SearchResult(item=item, score=score, matched_name=matched, source=source))

    if not results:
        LOGGER.debug(
            "Search for %r yielded 0 results. Items checked: %d", query, checked, extra={"source": LOG_SOURCE}
        )
    return sorted(results, key=lambda result: result.score, reverse=True)


def find_by_slug(slug: str, caches: Iterable[Tuple[str, Iterable[SearchableTitle]]]) -> Optional[SearchResult]:
    """First title whose canonical or alternate name slugifies to ``slug``."""
    for source, items in caches:
        for item in items:
            for name in item.searchable_names or (item.title,):
                if create_slug(name) == slug:
                    return SearchResult(item=item, score=EXACT_SCORE, matched_name=name, source=source)
    return None


def find_best_match(
    slug: str,
    caches: Iterable[Tuple[str, Iterable[SearchableTitle]]],
    fuzzy_threshold: float = 0.6,
) -> Optional[SearchResult]:
    """Single best title for a detail lookup: slug match first, then fuzzy."""
    slug = (slug or "").strip().lower()
    if not slug:
        return None

    caches = [(source, tuple(items)) for source, items in caches]
    exact = find_by_slug(slug, caches)
    if exact is not None:
        return exact

    term = slug.replace("-", " ")
    candidates: List[SearchResult] = []
    for source, items in caches:
        candidates.extend(search(term, items, fuzzy_threshold, source=source))
    if not candidates:
        return None
    return max(candidates, key=lambda result: result.score)


def titles_by_genre(
    genre_slug: str, caches: Iterable[Tuple[str, Iterable[SearchableTitle]]]
) -> List[Dict[str, Any]]:
    """Every title tagged with ``genre_slug``, once per (id, source)."""
    genre_slug = create_slug(genre_slug)
    seen = set()
    results = []
    for source, items in caches:
        for item in items:
            key = (item.id, source)
            if key in seen or not has_genre(item, genre_slug):
                continue
            seen.add(key)
            payload = item.to_dict()
            payload.pop("searchable_names", None)
            payload["type"] = source
            results.append(payload)
    return results
