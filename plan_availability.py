"""
Plan Availability Index
Set-membership queries over the plan/county association.
"""

from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, List, Set, Tuple

from reference_data import ReferenceData


class PlanAvailabilityIndex:
    """Which plans are sold in which county."""

    def __init__(self, plan_counties: Iterable[Tuple[str, int]]):
        by_county: Dict[int, Set[str]] = defaultdict(set)
        for plan_id, county_id in plan_counties:
            by_county[county_id].add(plan_id)
        self._by_county: Dict[int, FrozenSet[str]] = {
            county_id: frozenset(plan_ids) for county_id, plan_ids in by_county.items()
        }

    @classmethod
    def from_reference_data(cls, reference_data: ReferenceData) -> "PlanAvailabilityIndex":
        return cls(reference_data.plan_counties)

    def plans_in_county(self, county_id: int) -> List[str]:
        """Plan ids sold in the county, sorted."""
        return sorted(self._by_county.get(county_id, frozenset()))

    def is_available(self, plan_id: str, county_id: int) -> bool:
        return plan_id in self._by_county.get(county_id, frozenset())

    def filter_available(self, plan_ids: Iterable[str], county_id: int) -> List[str]:
        """Candidates sold in the county, in the order given."""
        available = self._by_county.get(county_id, frozenset())
        return [plan_id for plan_id in plan_ids if plan_id in available]

    def plan_count(self, county_id: int) -> int:
        return len(self._by_county.get(county_id, frozenset()))


def split_by_market(plan_ids: Iterable[str],
                    reference_data: ReferenceData) -> Tuple[List[str], List[str]]:
    """
    Split plan ids into (on_market, off_market). Plans sold both ways are
    on-market. Unknown plan ids are dropped.
    """
    on_market, off_market = [], []
    for plan_id in plan_ids:
        plan = reference_data.plan(plan_id)
        if plan is None:
            continue
        if plan.on_market:
            on_market.append(plan_id)
        else:
            off_market.append(plan_id)
    return on_market, off_market
