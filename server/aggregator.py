"""Place discovery: drive the query plan against the place search until there
are enough unique venues around a midpoint.

The loop is sequential. After every search the merged candidates are counted;
as soon as the target is met no further query is issued. If the radius plan
runs out first, the same categories are retried around shifted centers so a
midpoint that lands between towns still finds somewhere to meet.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from . import config
from .errors import OracleError
from .geo import Coordinate, fallback_centers
from .places import Candidate, CandidateStore, PlaceSearchOracle, QuerySpec
from .query_planner import QueryPlanner

logger = logging.getLogger(__name__)


class DiscoveryState(str, Enum):
    PLANNING = "planning"
    QUERYING = "querying"
    EVALUATING = "evaluating"
    FALLBACK_CENTERS = "fallback_centers"
    DONE = "done"
    FAILED = "failed"


@dataclass
class DiscoveryResult:
    midpoint: Coordinate
    candidates: List[Candidate] = field(default_factory=list)
    state: DiscoveryState = DiscoveryState.PLANNING
    queries_run: int = 0
    fallback_queries_run: int = 0
    failures: int = 0
    target_reached: bool = False
    last_failure: Optional[OracleError] = None

    @property
    def with_coordinates(self) -> int:
        return sum(1 for c in self.candidates if c.has_coordinate)


class PlaceAggregator:
    def __init__(
        self,
        oracle: PlaceSearchOracle,
        planner: Optional[QueryPlanner] = None,
        target: int = config.TARGET_UNIQUE_PLACES,
        min_rating: float = config.MIN_RATING,
        max_total_queries: int = config.MAX_TOTAL_QUERIES,
        fallback_offsets_m: Sequence[float] = config.FALLBACK_CENTER_OFFSETS_M,
    ):
        self.oracle = oracle
        self.planner = planner or QueryPlanner()
        self.target = target
        self.min_rating = min_rating
        self.max_total_queries = max_total_queries
        self.fallback_offsets_m = list(fallback_offsets_m)

    def discover(self, midpoint: Coordinate) -> DiscoveryResult:
        """Collect candidates around ``midpoint``.

        Raises the last ``OracleError`` only when nothing at all was found and
        at least one search failed; an empty result without failures is valid.
        """
        store = CandidateStore()
        result = DiscoveryResult(midpoint=midpoint)

        stopped = False
        for radius_m, queries in self.planner.rounds(midpoint):
            logger.debug("Discovery round radius=%sm queries=%d", radius_m, len(queries))
            if self._run(queries, midpoint, store, result):
                stopped = True
                break

        if (not stopped
                and store.count_with_coordinates() < self.target
                and result.queries_run < self.max_total_queries):
            centers = fallback_centers(midpoint, self.fallback_offsets_m)
            result.state = DiscoveryState.FALLBACK_CENTERS
            logger.info(
                "Only %d places near (%.5f, %.5f); trying %d shifted centers",
                store.count_with_coordinates(), midpoint.lat, midpoint.lng, len(centers),
            )
            self._run(self.planner.fallback_queries(centers), midpoint, store, result, fallback=True)

        result.candidates = store.snapshot()
        if not result.candidates and result.last_failure is not None:
            result.state = DiscoveryState.FAILED
            logger.error(
                "Place discovery failed: %d of %d searches failed and nothing was found",
                result.failures, result.queries_run,
            )
            raise result.last_failure

        result.state = DiscoveryState.DONE
        logger.info(
            "Place discovery done: unique=%d with_coords=%d queries=%d fallback_queries=%d failures=%d target_reached=%s",
            len(result.candidates), result.with_coordinates, result.queries_run,
            result.fallback_queries_run, result.failures, result.target_reached,
        )
        return result

    def _run(
        self,
        queries: Iterable[QuerySpec],
        midpoint: Coordinate,
        store: CandidateStore,
        result: DiscoveryResult,
        fallback: bool = False,
    ) -> bool:
        """Issue ``queries`` in order; True once the target or the budget stops the search."""
        for query in queries:
            if result.queries_run >= self.max_total_queries:
                logger.debug("Query budget of %d exhausted", self.max_total_queries)
                return True

            if not fallback:
                result.state = DiscoveryState.QUERYING
            result.queries_run += 1
            if fallback:
                result.fallback_queries_run += 1
            try:
                page = self.oracle.search(query)
            except OracleError as e:
                result.failures += 1
                result.last_failure = e
                logger.warning(
                    "Place search failed (%s=%s radius=%sm): %s",
                    query.kind.value, query.value, query.radius_m, e,
                )
                continue

            for record in page.records:
                store.add_if_absent(Candidate.from_record(record, midpoint))

            if not fallback:
                result.state = DiscoveryState.EVALUATING
            if self._target_reached(store):
                result.target_reached = True
                return True
        return False

    def _target_reached(self, store: CandidateStore) -> bool:
        high_quality = store.count_high_quality(self.min_rating)
        with_coords = store.count_with_coordinates()
        return high_quality >= self.target or with_coords >= self.target
