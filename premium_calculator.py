"""
Premium Calculator
Prices plans for individuals and households from rate tables.

Family pricing order:
1. A flat fixed_price on the rate table, regardless of composition
2. The tier price for the household's family structure
3. Sum of each rated member's age premium (ACA 3-child rule applies)
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from constants import (
    FAMILY_INDIVIDUAL,
    FAMILY_COUPLE,
    FAMILY_SINGLE_PARENT,
    FAMILY_FAMILY,
    FAMILY_CHILD_ONLY,
    CHILD_RATING_AGE_MAX,
    MAX_RATED_CHILDREN,
)
from errors import InvalidInput, PlanNotFound
from quote_types import HouseholdMember
from rate_table import RateTable, to_money

logger = logging.getLogger(__name__)

PRICING_FIXED = "fixed_price"
PRICING_TIER = "tier"
PRICING_PER_MEMBER = "per_member"


@dataclass(frozen=True)
class IndividualPremium:
    """Monthly premium for one person on one plan."""
    plan_id: str
    rating_area_id: str
    age: int
    tobacco: bool
    base_premium: Decimal
    tobacco_surcharge: Decimal
    total_premium: Decimal


@dataclass(frozen=True)
class FamilyPremium:
    """Monthly premium for a household on one plan."""
    plan_id: str
    rating_area_id: str
    family_structure: Optional[str]
    pricing_method: str
    premium: Decimal
    member_count: int
    rated_member_count: int


def classify_household(members: Sequence[HouseholdMember]) -> Optional[str]:
    """
    Classify a household into a canonical family structure by counting
    adults versus dependents.

    Returns None for compositions without a tier (more than two adults).
    """
    if not members:
        return None

    adults = [m for m in members if m.is_adult]
    dependents = [m for m in members if not m.is_adult]

    if not adults:
        return FAMILY_CHILD_ONLY
    if len(adults) == 1:
        return FAMILY_SINGLE_PARENT if dependents else FAMILY_INDIVIDUAL
    if len(adults) == 2:
        return FAMILY_FAMILY if dependents else FAMILY_COUPLE
    return None


def select_rated_members(members: Sequence[HouseholdMember]) -> List[HouseholdMember]:
    """
    Apply the ACA 3-child rule: only the 3 oldest children under 21 are
    rated. Adults and dependents 21+ are always rated.
    """
    adults = [m for m in members if m.is_adult]
    dependents = [m for m in members if not m.is_adult]

    children_under_21 = [m for m in dependents if m.age <= CHILD_RATING_AGE_MAX]
    dependents_21_plus = [m for m in dependents if m.age > CHILD_RATING_AGE_MAX]

    # Sort under-21 children by age descending, take top 3
    children_sorted = sorted(children_under_21, key=lambda m: m.age, reverse=True)
    return adults + children_sorted[:MAX_RATED_CHILDREN] + dependents_21_plus


class PremiumCalculator:
    """Prices plans against the rate tables held by the reference data."""

    def __init__(self, reference_data):
        self.reference_data = reference_data

    def get_rate_table(self, plan_id: str, rating_area_id: str,
                       as_of: Optional[date] = None) -> RateTable:
        """
        Rate table for a plan and rating area effective on as_of.
        When several overlap, the most recently effective one wins.

        Raises:
            PlanNotFound: no effective rate table
        """
        tables = [
            table for table in self.reference_data.rate_tables_for(plan_id, rating_area_id)
            if table.is_effective(as_of)
        ]
        if not tables:
            raise PlanNotFound(
                f"No pricing found for plan {plan_id} in rating area {rating_area_id}",
                plan_id=plan_id, rating_area_id=rating_area_id,
            )
        return max(tables, key=lambda t: t.effective_date or date.min)

    def price_individual(self, plan_id: str, age: int, tobacco: bool,
                         rating_area_id: str, as_of: Optional[date] = None) -> IndividualPremium:
        """
        Monthly premium for one person.

        Raises:
            PlanNotFound: no rate table for the plan in the rating area
            AgeOutOfRange: age cannot be priced from the table
        """
        table = self.get_rate_table(plan_id, rating_area_id, as_of)
        base = table.premium_for_age(age, tobacco=False)
        total = table.premium_for_age(age, tobacco=tobacco) if tobacco else base

        return IndividualPremium(
            plan_id=plan_id,
            rating_area_id=rating_area_id,
            age=age,
            tobacco=tobacco,
            base_premium=base,
            tobacco_surcharge=total - base,
            total_premium=total,
        )

    def family_premium(self, table: RateTable,
                       members: Sequence[HouseholdMember]) -> FamilyPremium:
        """Household premium from an already-resolved rate table."""
        if not members:
            raise InvalidInput("Cannot price an empty household", plan_id=table.plan_id)

        structure = classify_household(members)

        if table.fixed_price is not None:
            return FamilyPremium(
                plan_id=table.plan_id,
                rating_area_id=table.rating_area_id,
                family_structure=structure,
                pricing_method=PRICING_FIXED,
                premium=to_money(table.fixed_price),
                member_count=len(members),
                rated_member_count=len(members),
            )

        if structure is not None:
            tobacco = structure == FAMILY_INDIVIDUAL and members[0].tobacco
            tier_price = table.family_pricing.price_for(structure, tobacco=tobacco)
            if tier_price is not None:
                return FamilyPremium(
                    plan_id=table.plan_id,
                    rating_area_id=table.rating_area_id,
                    family_structure=structure,
                    pricing_method=PRICING_TIER,
                    premium=to_money(tier_price),
                    member_count=len(members),
                    rated_member_count=len(members),
                )

        rated = select_rated_members(members)
        total = sum(
            (table.premium_for_age(member.age, tobacco=member.tobacco) for member in rated),
            Decimal('0'),
        )
        return FamilyPremium(
            plan_id=table.plan_id,
            rating_area_id=table.rating_area_id,
            family_structure=structure,
            pricing_method=PRICING_PER_MEMBER,
            premium=to_money(total),
            member_count=len(members),
            rated_member_count=len(rated),
        )

    def price_family(self, plan_id: str, members: Sequence[HouseholdMember],
                     rating_area_id: str, as_of: Optional[date] = None) -> FamilyPremium:
        """
        Monthly premium for a household.

        Raises:
            PlanNotFound: no rate table for the plan in the rating area
            AgeOutOfRange: a rated member's age cannot be priced
            InvalidInput: empty household
        """
        table = self.get_rate_table(plan_id, rating_area_id, as_of)
        return self.family_premium(table, members)
