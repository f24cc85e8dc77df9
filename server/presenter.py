import random
from typing import Dict, List, Optional, Sequence

from . import config
from .geo import meters_to_miles
from .places import Candidate


def format_distance_miles(meters: float) -> str:
    return f"{meters_to_miles(meters):.1f} mi"


def place_to_dict(candidate: Candidate) -> Dict:
    return {
        'place_id': candidate.place_id,
        'name': candidate.name,
        'distance': format_distance_miles(candidate.distance_m or 0.0),
        'lat': candidate.coordinate.lat,
        'lng': candidate.coordinate.lng,
    }


def present_places(
    candidates: Sequence[Candidate],
    limit: int = config.TARGET_UNIQUE_PLACES,
    rng: Optional[random.Random] = None,
) -> List[Dict]:
    """Shuffle so the same midpoint doesn't always lead with the same places, then cap."""
    rng = rng or random.Random()
    shuffled = list(candidates)
    rng.shuffle(shuffled)
    return [place_to_dict(c) for c in shuffled[:limit]]
