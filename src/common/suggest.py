"""Did-you-mean suggestions for unknown package names."""

from __future__ import annotations

from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from constants import Constants


def did_you_mean(name: str, known_names: Iterable[str], max_distance: Optional[int] = None) -> Optional[str]:
    """Return the known name closest to ``name`` by edit distance.

    Args:
        name: The unknown name as typed by the user.
        known_names: Every name that could have been meant.
        max_distance: Largest edit distance still considered a typo.

    Returns:
        The closest name, or None when nothing is close enough. Ties are
        broken alphabetically.
    """
    limit = Constants.SUGGESTION_MAX_DISTANCE if max_distance is None else max_distance
    best: Optional[str] = None
    best_distance = limit + 1
    for candidate in sorted(set(known_names)):
        if candidate == name:
            continue
        distance = Levenshtein.distance(name, candidate, score_cutoff=limit)
        if distance < best_distance:
            best, best_distance = candidate, distance
    return best
