"""Place records, planned queries and the per-request candidate store."""
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Protocol

from .geo import Coordinate, distance_meters


class QueryKind(str, Enum):
    NEARBY_CATEGORY = "nearby_category"
    TEXT_KEYWORD = "text_keyword"


@dataclass(frozen=True)
class QuerySpec:
    """One planned place search."""
    kind: QueryKind
    value: str
    center: Coordinate
    radius_m: int
    continuation_token: Optional[str] = None


@dataclass(frozen=True)
class PlaceRecord:
    """A partial place as returned by one search, before it becomes a candidate."""
    place_id: str
    name: str
    formatted_address: Optional[str] = None
    rating: Optional[float] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinate(self.lat, self.lng)


@dataclass(frozen=True)
class SearchPage:
    records: List[PlaceRecord]
    continuation_token: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    place_id: str
    name: str
    formatted_address: Optional[str]
    rating: Optional[float]
    coordinate: Optional[Coordinate]
    distance_m: Optional[float]

    @classmethod
    def from_record(cls, record: PlaceRecord, midpoint: Coordinate) -> "Candidate":
        # Distance is always measured from the true midpoint, whatever center found it.
        coordinate = record.coordinate
        distance = distance_meters(midpoint, coordinate) if coordinate is not None else None
        return cls(
            place_id=record.place_id,
            name=record.name,
            formatted_address=record.formatted_address,
            rating=record.rating,
            coordinate=coordinate,
            distance_m=distance,
        )

    @property
    def has_coordinate(self) -> bool:
        return self.coordinate is not None

    def meets_rating(self, min_rating: float) -> bool:
        """Unrated places are acceptable; only known low ratings fail."""
        return self.rating is None or self.rating >= min_rating


class PlaceSearchOracle(Protocol):
    def search(self, query: QuerySpec) -> SearchPage:
        """Run one place search. Raises ``OracleError`` on any failure."""
        ...


class CandidateStore:
    """Candidates of one discovery request keyed by place id; first seen wins."""

    def __init__(self):
        self._by_place_id: Dict[str, Candidate] = {}
        self._lock = threading.Lock()

    def add_if_absent(self, candidate: Candidate) -> bool:
        with self._lock:
            if candidate.place_id in self._by_place_id:
                return False
            self._by_place_id[candidate.place_id] = candidate
            return True

    def snapshot(self) -> List[Candidate]:
        with self._lock:
            return list(self._by_place_id.values())

    def count_with_coordinates(self) -> int:
        return sum(1 for c in self.snapshot() if c.has_coordinate)

    def count_high_quality(self, min_rating: float) -> int:
        return sum(1 for c in self.snapshot() if c.has_coordinate and c.meets_rating(min_rating))

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_place_id)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.snapshot())

    def __contains__(self, place_id: str) -> bool:
        with self._lock:
            return place_id in self._by_place_id
