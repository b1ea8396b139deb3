"""
Geographic Resolver
ZIP code -> county -> rating area, the key every pricing lookup needs.

Rating areas are memoised per county in a RatingAreaCache that is passed in
at construction. The cache is cleared only when the reference data reports a
reload.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from errors import InvalidZipFormat, RatingAreaNotFound, ZipNotFound
from plan_availability import PlanAvailabilityIndex
from reference_data import ReferenceData

logger = logging.getLogger(__name__)

MIN_ZIP = 10000
MAX_ZIP = 99999


class RatingAreaCache:
    """Read-through cache of rating area ids keyed by county id."""

    def __init__(self):
        self._entries: Dict[int, str] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get_or_load(self, county_id: int, loader: Callable[[int], str]) -> str:
        with self._lock:
            if county_id in self._entries:
                return self._entries[county_id]
            generation = self._generation
        # Loader errors propagate and leave nothing cached
        rating_area_id = loader(county_id)
        with self._lock:
            # Invalidated while loading: the value came from the old tables
            if generation != self._generation:
                return rating_area_id
            return self._entries.setdefault(county_id, rating_area_id)

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __contains__(self, county_id: int) -> bool:
        with self._lock:
            return county_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass(frozen=True)
class CountyInfo:
    county_id: int
    name: str
    state: str
    rating_area_id: str
    available_plans: int = 0

    def to_dict(self) -> dict:
        return {
            "county_id": self.county_id,
            "name": self.name,
            "state": self.state,
            "rating_area_id": self.rating_area_id,
            "available_plans": self.available_plans,
        }


@dataclass(frozen=True)
class CountyResolution:
    """One county for the ZIP, or every candidate county for caller disambiguation."""
    zip_code: str
    single: bool
    county: Optional[CountyInfo] = None
    counties: List[CountyInfo] = field(default_factory=list)

    def select(self, county_id: Optional[int]) -> Optional[CountyInfo]:
        """The resolved county, or the candidate matching an explicit selection."""
        if self.single:
            return self.county
        for candidate in self.counties:
            if candidate.county_id == county_id:
                return candidate
        return None

    def to_dict(self) -> dict:
        if self.single:
            return {"zip_code": self.zip_code, "single": True, "county": self.county.to_dict()}
        return {
            "zip_code": self.zip_code,
            "single": False,
            "counties": [c.to_dict() for c in self.counties],
        }


def normalize_zip_code(zip_code) -> str:
    """
    Validate a 5-digit US ZIP code (10000-99999).

    Raises:
        InvalidZipFormat: anything else
    """
    if isinstance(zip_code, bool) or zip_code is None:
        raise InvalidZipFormat(f"Invalid ZIP code {zip_code!r}", zip_code=zip_code)
    if isinstance(zip_code, int):
        text = str(zip_code)
    else:
        text = str(zip_code).strip()
    if len(text) != 5 or not text.isdigit() or not MIN_ZIP <= int(text) <= MAX_ZIP:
        raise InvalidZipFormat(
            f"Invalid ZIP code {zip_code!r}: expected 5 digits between {MIN_ZIP} and {MAX_ZIP}",
            zip_code=zip_code,
        )
    return text


class GeographicResolver:
    """Resolves ZIP codes to counties and counties to rating areas."""

    def __init__(self, reference_data: ReferenceData,
                 cache: Optional[RatingAreaCache] = None,
                 availability: Optional[PlanAvailabilityIndex] = None):
        self.reference_data = reference_data
        self.cache = cache if cache is not None else RatingAreaCache()
        self.availability = availability or PlanAvailabilityIndex.from_reference_data(reference_data)
        reference_data.subscribe(self.on_reference_reload)

    def on_reference_reload(self, reference_data: ReferenceData) -> None:
        """Reference tables changed: drop cached rating areas and availability."""
        self.reference_data = reference_data
        self.availability = PlanAvailabilityIndex.from_reference_data(reference_data)
        self.cache.invalidate()
        logger.info("GEOGRAPHY: rating area cache invalidated after reference reload")

    def _load_rating_area(self, county_id: int) -> str:
        rows = self.reference_data.zip_counties_for_county(county_id)
        if not rows:
            raise RatingAreaNotFound(
                f"No rating area found for county {county_id}", county_id=county_id
            )
        rating_areas = sorted({row.rating_area_id for row in rows})
        if len(rating_areas) > 1:
            logger.debug(f"GEOGRAPHY: county {county_id} spans rating areas {rating_areas}, using {rating_areas[0]}")
        return rating_areas[0]

    def rating_area_for_county(self, county_id: int) -> str:
        """
        Rating area for a county.

        Raises:
            RatingAreaNotFound: the county has no ZIP mapping
        """
        return self.cache.get_or_load(county_id, self._load_rating_area)

    def resolve_county(self, zip_code) -> CountyResolution:
        """
        Resolve a ZIP code to its county, or to every candidate county when
        the ZIP spans several. No candidate is auto-picked.

        Raises:
            InvalidZipFormat: not a 5-digit ZIP in 10000-99999
            ZipNotFound: no county mapping for the ZIP
            RatingAreaNotFound: a mapped county has no rating area
        """
        zip_text = normalize_zip_code(zip_code)
        rows = self.reference_data.zip_counties_for(zip_text)
        if not rows:
            raise ZipNotFound(f"ZIP code {zip_text} not found", zip_code=zip_text)

        counties = []
        seen = set()
        for row in rows:
            if row.county_id in seen:
                continue
            seen.add(row.county_id)
            county = self.reference_data.county(row.county_id)
            counties.append(CountyInfo(
                county_id=row.county_id,
                name=county.name if county else "",
                state=county.state if county else "",
                rating_area_id=self.rating_area_for_county(row.county_id),
                available_plans=self.availability.plan_count(row.county_id),
            ))

        if len(counties) == 1:
            return CountyResolution(zip_code=zip_text, single=True, county=counties[0])
        return CountyResolution(zip_code=zip_text, single=False, counties=counties)
