"""Builds the escalating sequence of place searches around a coordinate."""
import random
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from . import config
from .geo import Coordinate
from .places import QueryKind, QuerySpec

PlanEntry = Tuple[QueryKind, str]


def category_plan(place_types: Iterable[str]) -> List[PlanEntry]:
    return [(QueryKind.NEARBY_CATEGORY, place_type) for place_type in place_types]


def keyword_plan(keywords: Iterable[str]) -> List[PlanEntry]:
    return [(QueryKind.TEXT_KEYWORD, keyword) for keyword in keywords]


class QueryPlanner:
    """Rounds of searches with growing radius.

    Every round runs the primary entries in random order; once the round radius
    reaches ``fallback_min_radius_m`` the fallback entries join in. Radii are
    jittered slightly so repeated requests don't send identical queries.

    The default primary entries are the configured categories plus
    ``config.PRIMARY_KEYWORDS``; ``keywords`` adds text searches on top of
    whichever primary entries are used.
    """

    def __init__(
        self,
        primary: Optional[Sequence[PlanEntry]] = None,
        fallback: Optional[Sequence[PlanEntry]] = None,
        radius_plan_m: Sequence[int] = config.RADIUS_PLAN_M,
        max_radius_m: int = config.MAX_RADIUS_M,
        fallback_min_radius_m: int = config.FALLBACK_TYPES_MIN_RADIUS_M,
        jitter_floor: float = config.RADIUS_JITTER_FLOOR,
        rng: Optional[random.Random] = None,
        keywords: Sequence[str] = (),
    ):
        if primary is None:
            primary = category_plan(config.PRIMARY_PLACE_TYPES) + keyword_plan(config.PRIMARY_KEYWORDS)
        self.primary = list(primary) + keyword_plan(keywords)
        self.fallback = list(fallback) if fallback is not None else category_plan(config.FALLBACK_PLACE_TYPES)
        self.radius_plan_m = list(radius_plan_m)
        self.max_radius_m = max_radius_m
        self.fallback_min_radius_m = fallback_min_radius_m
        self.jitter_floor = jitter_floor
        self.rng = rng or random.Random()

    def entries_for_radius(self, radius_m: int) -> List[PlanEntry]:
        entries = list(self.primary)
        if radius_m >= self.fallback_min_radius_m:
            entries.extend(self.fallback)
        self.rng.shuffle(entries)
        return entries

    def jitter_radius(self, radius_m: int) -> int:
        factor = self.jitter_floor + self.rng.random() * (1.0 - self.jitter_floor)
        jittered = max(1, int(round(radius_m * factor)))
        return min(jittered, self.max_radius_m)

    def rounds(self, center: Coordinate) -> Iterator[Tuple[int, List[QuerySpec]]]:
        """Yield ``(nominal_radius, queries)`` per round, built lazily."""
        for radius_m in self.radius_plan_m:
            queries = [
                QuerySpec(kind, value, center, self.jitter_radius(radius_m))
                for kind, value in self.entries_for_radius(radius_m)
            ]
            yield radius_m, queries

    def fallback_queries(self, centers: Sequence[Coordinate]) -> Iterator[QuerySpec]:
        """Every entry at the ceiling radius around each shifted center."""
        entries = list(self.fallback) + list(self.primary)
        self.rng.shuffle(entries)
        for center in centers:
            for kind, value in entries:
                yield QuerySpec(kind, value, center, self.max_radius_m)
