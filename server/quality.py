"""Quality filtering and name+address dedup of discovered candidates.

Rating filtering is only applied while it still leaves enough places to fill
a full result; it never shrinks the output below what the raw pool allows.
"""
import re
from typing import Dict, List, Optional, Sequence

from . import config
from .places import Candidate

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_key(value: Optional[str]) -> str:
    if value is None:
        return ""
    base = _NON_ALNUM.sub(" ", value.strip().lower())
    return _WHITESPACE.sub(" ", base).strip()


def _rating_or_floor(candidate: Candidate) -> float:
    return candidate.rating if candidate.rating is not None else -1.0


def _prefer(current: Candidate, existing: Candidate) -> bool:
    current_rating = _rating_or_floor(current)
    existing_rating = _rating_or_floor(existing)
    if current_rating != existing_rating:
        return current_rating > existing_rating
    return (current.distance_m or 0.0) < (existing.distance_m or 0.0)


def dedupe_by_name_and_address(candidates: Sequence[Candidate]) -> List[Candidate]:
    """Collapse listings that share a normalized name and address.

    Chains and data variants often show up under different place ids. Entries
    missing either part are kept as-is under their place id.
    """
    best: Dict[str, Candidate] = {}
    for candidate in candidates:
        name_key = normalize_key(candidate.name)
        address_key = normalize_key(candidate.formatted_address)
        if not name_key or not address_key:
            best.setdefault("__pid__" + candidate.place_id, candidate)
            continue
        key = name_key + "|" + address_key
        existing = best.get(key)
        if existing is None or _prefer(candidate, existing):
            best[key] = candidate
    return list(best.values())


def with_coordinates(candidates: Sequence[Candidate]) -> List[Candidate]:
    return [c for c in candidates if c.has_coordinate]


def rating_filtered(candidates: Sequence[Candidate], min_rating: float) -> List[Candidate]:
    return [c for c in candidates if c.meets_rating(min_rating)]


def select_candidates(
    candidates: Sequence[Candidate],
    target: int = config.TARGET_UNIQUE_PLACES,
    min_rating: float = config.MIN_RATING,
) -> List[Candidate]:
    located = with_coordinates(candidates)
    good = rating_filtered(located, min_rating)
    use_rating_filter = len(good) >= target
    pool = good if use_rating_filter else located

    deduped = dedupe_by_name_and_address(pool)
    if len(deduped) < target and use_rating_filter:
        deduped = dedupe_by_name_and_address(located)
    return deduped
