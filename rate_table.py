"""
Rate Table
Per-plan, per-rating-area premium lookup with age interpolation and clamping.

Rates are monthly premiums held as Decimal. Source tables carry integer ages
0-65; sparse tables keyed by representative ages are interpolated linearly
and rounded half-up to the cent.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from constants import (
    CHILD_RATING_AGE_MAX,
    FAMILY_INDIVIDUAL,
    FAMILY_COUPLE,
    FAMILY_SINGLE_PARENT,
    FAMILY_FAMILY,
    FAMILY_CHILD_ONLY,
)
from errors import AgeOutOfRange

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def to_money(value) -> Decimal:
    """Convert a number to a Decimal rounded half-up to the cent."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AgeRate:
    """Monthly premium pair for one tabulated age."""
    regular: Decimal
    tobacco: Decimal

    def for_tobacco(self, tobacco: bool) -> Decimal:
        return self.tobacco if tobacco else self.regular


@dataclass
class FamilyStructurePricing:
    """
    Optional fixed prices for common household compositions.
    None means the plan does not publish a tier price for that composition.
    """
    single: Optional[Decimal] = None
    single_tobacco: Optional[Decimal] = None
    single_and_spouse: Optional[Decimal] = None
    single_and_children: Optional[Decimal] = None
    family: Optional[Decimal] = None
    child_only: Optional[Decimal] = None

    def price_for(self, structure: str, tobacco: bool = False) -> Optional[Decimal]:
        """
        Tier price for a canonical family structure.

        A tobacco-using individual only matches the single_tobacco tier;
        the plain single tier is a non-tobacco price.
        """
        if structure == FAMILY_INDIVIDUAL:
            return self.single_tobacco if tobacco else self.single
        if structure == FAMILY_COUPLE:
            return self.single_and_spouse
        if structure == FAMILY_SINGLE_PARENT:
            return self.single_and_children
        if structure == FAMILY_FAMILY:
            return self.family
        if structure == FAMILY_CHILD_ONLY:
            return self.child_only
        return None

    def has_any(self) -> bool:
        return any(
            value is not None for value in (
                self.single, self.single_tobacco, self.single_and_spouse,
                self.single_and_children, self.family, self.child_only,
            )
        )


@dataclass
class RateTable:
    """Pricing record keyed by (plan_id, rating_area_id, effective date range)."""
    plan_id: str
    rating_area_id: str
    age_rates: Dict[int, AgeRate] = field(default_factory=dict)
    family_pricing: FamilyStructurePricing = field(default_factory=FamilyStructurePricing)
    fixed_price: Optional[Decimal] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None

    @property
    def tabulated_ages(self) -> List[int]:
        return sorted(self.age_rates)

    @property
    def max_tabulated_age(self) -> Optional[int]:
        return max(self.age_rates) if self.age_rates else None

    @property
    def min_tabulated_age(self) -> Optional[int]:
        return min(self.age_rates) if self.age_rates else None

    def is_effective(self, as_of: Optional[date] = None) -> bool:
        """True when as_of falls inside the effective/expiration window (inclusive)."""
        as_of = as_of or date.today()
        if self.effective_date and as_of < self.effective_date:
            return False
        if self.expiration_date and as_of > self.expiration_date:
            return False
        return True

    def premium_for_age(self, age: int, tobacco: bool = False) -> Decimal:
        """
        Monthly premium for an age.

        Ages above the maximum tabulated age are priced at the maximum
        tabulated age. Ages between two tabulated ages are interpolated
        linearly and rounded half-up to the cent.

        Raises:
            AgeOutOfRange: negative age, an age below the lowest tabulated
                age, or an empty table
        """
        if age is None or age < 0:
            raise AgeOutOfRange(
                f"Age {age} is negative", age=age, plan_id=self.plan_id
            )
        if not self.age_rates:
            raise AgeOutOfRange(
                f"Plan {self.plan_id} has no age rates in {self.rating_area_id}",
                age=age, plan_id=self.plan_id,
            )

        age = int(age)
        max_age = self.max_tabulated_age
        if age > max_age:
            age = max_age

        exact = self.age_rates.get(age)
        if exact is not None:
            return to_money(exact.for_tobacco(tobacco))

        if age < self.min_tabulated_age:
            raise AgeOutOfRange(
                f"Age {age} is below the lowest tabulated age "
                f"({self.min_tabulated_age}) for plan {self.plan_id}",
                age=age, plan_id=self.plan_id,
            )

        ages = self.tabulated_ages
        age_low = max(a for a in ages if a < age)
        age_high = min(a for a in ages if a > age)
        rate_low = self.age_rates[age_low].for_tobacco(tobacco)
        rate_high = self.age_rates[age_high].for_tobacco(tobacco)

        rate = rate_low + (rate_high - rate_low) * Decimal(age - age_low) / Decimal(age_high - age_low)
        return to_money(rate)

    def tobacco_warnings(self) -> List[str]:
        """
        Data-quality warnings for ages where the tobacco rate is below the
        regular rate. Ages 0-20 are reported too; the under-21 surcharge
        exemption allows equal rates, not lower ones.
        """
        warnings = []
        for age in self.tabulated_ages:
            rate = self.age_rates[age]
            if rate.tobacco < rate.regular:
                band = " (child rating band)" if age <= CHILD_RATING_AGE_MAX else ""
                warnings.append(
                    f"Tobacco price ({rate.tobacco}) is less than regular price "
                    f"({rate.regular}) for age {age}{band} in plan {self.plan_id}, "
                    f"rating area {self.rating_area_id}"
                )
        return warnings
