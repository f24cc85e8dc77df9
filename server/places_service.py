"""Venues around a midpoint: discovery, quality filtering and presentation."""
import logging
import math
import random
from typing import Dict, List, Optional, Sequence

from . import config
from .aggregator import PlaceAggregator
from .errors import ConfigurationMissing, InvalidInput
from .geo import Coordinate
from .presenter import present_places
from .quality import select_candidates
from .query_planner import QueryPlanner

logger = logging.getLogger(__name__)


def validate_coordinate(lat, lng) -> Coordinate:
    for label, value, bound in (('lat', lat, 90), ('lng', lng, 180)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise InvalidInput(f"{label} must be a number")
        if value < -bound or value > bound:
            raise InvalidInput(f"{label} must be between {-bound} and {bound}")
    return Coordinate(float(lat), float(lng))


class PlacesService:
    def __init__(
        self,
        maps_service,
        rng: Optional[random.Random] = None,
        target: int = config.TARGET_UNIQUE_PLACES,
        min_rating: float = config.MIN_RATING,
        max_total_queries: int = config.MAX_TOTAL_QUERIES,
        keywords: Sequence[str] = (),
    ):
        self.maps_service = maps_service
        self.rng = rng
        self.target = target
        self.min_rating = min_rating
        self.max_total_queries = max_total_queries
        self.keywords = list(keywords)

    def find_places(self, lat, lng) -> List[Dict]:
        if self.maps_service is None:
            raise ConfigurationMissing()
        midpoint = validate_coordinate(lat, lng)

        if self.maps_service.is_mock:
            return self.maps_service.mock_places(midpoint)

        rng = self.rng or random.Random()
        aggregator = PlaceAggregator(
            self.maps_service,
            planner=QueryPlanner(rng=rng, keywords=self.keywords),
            target=self.target,
            min_rating=self.min_rating,
            max_total_queries=self.max_total_queries,
        )
        result = aggregator.discover(midpoint)
        selected = select_candidates(result.candidates, self.target, self.min_rating)
        logger.debug("Selected %d of %d discovered places", len(selected), len(result.candidates))
        return present_places(selected, self.target, rng)
