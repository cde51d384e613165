"""Client-side name match scoring.

The server-side search ranks with the store's trigram and full-text
functions. This scorer is the offline fallback used to rank small candidate
lists without a database round-trip.
"""

from typing import Any, Dict, Iterable, List, Mapping, Set

from taxroll_archive.utils.names import normalize_name

EXACT_SCORE = 100
PREFIX_SCORE = 80
SUBSTRING_SCORE = 65
BIGRAM_SCALE = 60


def _bigrams(normalized: str) -> Set[str]:
    padded = f" {normalized} "
    return {padded[i:i + 2] for i in range(len(padded) - 1)}


def dice_coefficient(a: str, b: str) -> float:
    """Dice overlap of the padded bigram sets of two normalized strings."""
    if not a or not b:
        return 0.0
    bigrams_a = _bigrams(a)
    bigrams_b = _bigrams(b)
    shared = len(bigrams_a & bigrams_b)
    return (2 * shared) / (len(bigrams_a) + len(bigrams_b))


def score_name_match(query: Any, candidate: Any) -> int:
    """Score how well a candidate name matches a query.

    Tiers: identical after normalization (100), prefix (80), substring (65),
    otherwise the bigram Dice coefficient scaled to 0-60. Empty input on
    either side scores 0.
    """
    q = normalize_name(query)
    c = normalize_name(candidate)
    if not q or not c:
        return 0
    if q == c:
        return EXACT_SCORE
    if c.startswith(q):
        return PREFIX_SCORE
    if q in c:
        return SUBSTRING_SCORE
    return round(dice_coefficient(q, c) * BIGRAM_SCALE)


def candidate_name(candidate: Mapping[str, Any]) -> str:
    return candidate.get("name_normalized") or candidate.get("name_original") or ""


def rank_candidates(query: Any, candidates: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Rank candidates by descending match score.

    Each candidate is copied with a ``rank`` key added. ``sorted`` is stable,
    so equal scores keep their input order.
    """
    scored = [
        {**candidate, "rank": score_name_match(query, candidate_name(candidate))}
        for candidate in candidates
    ]
    return sorted(scored, key=lambda item: item["rank"], reverse=True)
