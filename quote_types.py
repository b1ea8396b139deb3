"""
Quote Types
Dataclasses for group quoting: member/class inputs and the canonical result schema.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Dict, List, Tuple, Any

from constants import ADULT_RELATIONSHIPS, RELATIONSHIP_TYPES, CHILD_RATING_AGE_MAX, MARKET_ON, MARKETS
from errors import InvalidClassConfiguration, InvalidInput
from rate_table import to_money

ZERO = Decimal('0.00')


def calculate_age(date_of_birth: date, reference_date: Optional[date] = None) -> int:
    """Age in whole years on reference_date (defaults to today)."""
    reference_date = reference_date or date.today()
    age = reference_date.year - date_of_birth.year
    if (reference_date.month, reference_date.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def _money_or_none(value) -> Optional[float]:
    return float(value) if value is not None else None


# =============================================================================
# INPUTS
# =============================================================================

@dataclass(frozen=True)
class HouseholdMember:
    """One rated person in a household. relationship is 'self' for the employee."""
    age: int
    tobacco: bool = False
    relationship: str = 'self'

    @property
    def is_adult(self) -> bool:
        # The policy holder always counts as an adult for family classification
        if self.relationship == 'self' or self.relationship in ADULT_RELATIONSHIPS:
            return True
        if self.relationship == 'child':
            return False
        return self.age > CHILD_RATING_AGE_MAX


@dataclass
class Dependent:
    """Dependent covered under a member's ICHRA."""
    relationship: str = 'child'  # spouse, child, domestic_partner, other
    age: Optional[int] = None
    date_of_birth: Optional[date] = None
    tobacco: bool = False

    def age_on(self, reference_date: Optional[date] = None) -> int:
        if self.age is not None:
            return self.age
        if self.date_of_birth is None:
            raise InvalidInput("Dependent has neither age nor date of birth")
        return calculate_age(self.date_of_birth, reference_date)


@dataclass
class PreviousContributions:
    """Baseline from the member's previous employer-sponsored plan (monthly)."""
    employer_contribution: Decimal = ZERO
    member_contribution: Decimal = ZERO
    plan_name: str = ""
    plan_type: Optional[str] = None
    metal_level: Optional[str] = None
    carrier: Optional[str] = None

    @property
    def total_cost(self) -> Decimal:
        return to_money(self.employer_contribution) + to_money(self.member_contribution)


@dataclass
class Member:
    """
    Employee being quoted.

    Either age or date_of_birth must be set. county_id resolves a
    multi-county ZIP; without it an ambiguous ZIP is a per-member error.
    """
    member_id: str
    zip_code: str
    first_name: str = ""
    last_name: str = ""
    age: Optional[int] = None
    date_of_birth: Optional[date] = None
    tobacco: bool = False
    household_income: Optional[Decimal] = None
    household_size: Optional[int] = None
    class_id: Optional[str] = None
    county_id: Optional[int] = None
    dependents: List[Dependent] = field(default_factory=list)
    previous_contributions: PreviousContributions = field(default_factory=PreviousContributions)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.member_id

    @property
    def effective_household_size(self) -> int:
        """Declared household size, or the employee plus covered dependents."""
        if self.household_size is not None:
            return self.household_size
        return 1 + len(self.dependents)

    def age_on(self, reference_date: Optional[date] = None) -> int:
        if self.age is not None:
            return self.age
        if self.date_of_birth is None:
            raise InvalidInput(f"Member {self.member_id} has neither age nor date of birth")
        return calculate_age(self.date_of_birth, reference_date)

    def household(self, reference_date: Optional[date] = None) -> List[HouseholdMember]:
        """Employee first, then dependents in the order given."""
        members = [HouseholdMember(self.age_on(reference_date), self.tobacco, 'self')]
        for dependent in self.dependents:
            if dependent.relationship not in RELATIONSHIP_TYPES:
                raise InvalidInput(
                    f"Member {self.member_id} has a dependent with unknown relationship "
                    f"{dependent.relationship!r}"
                )
            members.append(HouseholdMember(
                dependent.age_on(reference_date), dependent.tobacco, dependent.relationship
            ))
        return members


@dataclass(frozen=True)
class AgeBasedContribution:
    """Contribution amounts for an inclusive employee age range."""
    min_age: int
    max_age: int
    employee_contribution: Decimal
    dependent_contribution: Decimal = ZERO

    def covers(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


@dataclass
class IchraClass:
    """ICHRA employee class and its monthly contribution rules."""
    class_id: str
    name: str
    employee_contribution: Decimal = ZERO
    dependent_contribution: Decimal = ZERO
    age_based_contributions: List[AgeBasedContribution] = field(default_factory=list)
    parent_class_id: Optional[str] = None
    description: str = ""

    @property
    def is_sub_class(self) -> bool:
        return self.parent_class_id is not None

    def validate(self) -> None:
        """
        Raises:
            InvalidClassConfiguration: negative amounts, inverted ranges or
                overlapping age ranges
        """
        if self.employee_contribution < 0 or self.dependent_contribution < 0:
            raise InvalidClassConfiguration(
                f"Class {self.name} has a negative contribution", class_id=self.class_id
            )
        ranges = sorted(self.age_based_contributions, key=lambda r: r.min_age)
        for age_range in ranges:
            if age_range.min_age > age_range.max_age:
                raise InvalidClassConfiguration(
                    f"Class {self.name} has an inverted age range "
                    f"{age_range.min_age}-{age_range.max_age}",
                    class_id=self.class_id,
                )
            if age_range.employee_contribution < 0 or age_range.dependent_contribution < 0:
                raise InvalidClassConfiguration(
                    f"Class {self.name} has a negative age-based contribution",
                    class_id=self.class_id,
                )
        for current, following in zip(ranges, ranges[1:]):
            if current.max_age >= following.min_age:
                raise InvalidClassConfiguration(
                    f"Age ranges cannot overlap ({current.min_age}-{current.max_age} "
                    f"and {following.min_age}-{following.max_age}) in class {self.name}",
                    class_id=self.class_id,
                )

    def get_contribution_for_age(self, age: int) -> Tuple[Decimal, Decimal]:
        """(employee, dependent) monthly amounts for an employee age."""
        for age_range in self.age_based_contributions:
            if age_range.covers(age):
                return (to_money(age_range.employee_contribution),
                        to_money(age_range.dependent_contribution))
        return to_money(self.employee_contribution), to_money(self.dependent_contribution)

    def contribution_for(self, age: int, dependent_count: int = 0) -> Decimal:
        """Total monthly contribution: employee amount plus one dependent amount per dependent."""
        employee, dependent = self.get_contribution_for_age(age)
        return employee + dependent * dependent_count


@dataclass(frozen=True)
class QuoteFilters:
    """
    Candidate-plan filters. Empty tuples mean no restriction on that field.
    market is one of 'on-market', 'off-market' or None for both.
    """
    carriers: Tuple[str, ...] = ()
    metal_levels: Tuple[str, ...] = ()
    market: Optional[str] = None

    @classmethod
    def from_dict(cls, filters: Optional[Dict[str, Any]]) -> "QuoteFilters":
        """Build from a loose dict such as {'metalLevel': ['Silver'], 'market': 'all'}."""
        if not filters:
            return cls()

        def _as_tuple(value) -> Tuple[str, ...]:
            if value is None:
                return ()
            if isinstance(value, str):
                value = [value]
            return tuple(sorted(set(str(v) for v in value if v)))

        market = filters.get('market')
        if market in (None, '', 'all'):
            market = None
        elif market not in MARKETS:
            raise InvalidInput(f"Unknown market filter {market!r}")

        return cls(
            carriers=_as_tuple(filters.get('carrier', filters.get('carriers'))),
            metal_levels=_as_tuple(filters.get('metalLevel', filters.get('metal_levels'))),
            market=market,
        )

    @property
    def is_empty(self) -> bool:
        return not self.carriers and not self.metal_levels and self.market is None

    def matches(self, plan: "PlanQuote") -> bool:
        if self.carriers and plan.carrier not in self.carriers:
            return False
        if self.metal_levels and plan.metal_level not in self.metal_levels:
            return False
        if self.market is not None and plan.market != self.market:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "carriers": list(self.carriers),
            "metal_levels": list(self.metal_levels),
            "market": self.market,
        }


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class PlanQuote:
    """One priced candidate plan for one member."""
    plan_id: str
    plan_name: str
    carrier: str
    metal_level: str
    plan_type: Optional[str]
    market: str
    full_premium: Decimal
    subsidy: Decimal
    premium_after_subsidy: Decimal
    contribution_applied: Decimal
    member_cost: Decimal
    member_savings: Decimal
    total_savings: Decimal
    pricing_method: str = "per_member"
    deductible: Optional[Decimal] = None
    out_of_pocket_max: Optional[Decimal] = None

    @property
    def is_on_market(self) -> bool:
        return self.market == MARKET_ON

    @property
    def selection_key(self) -> Tuple[Decimal, Decimal, str]:
        """Lowest member cost, then lowest unsubsidised premium, then plan id."""
        return self.member_cost, self.full_premium, self.plan_id

    def to_dict(self) -> dict:
        return {
            "plan_id": self.plan_id,
            "plan_name": self.plan_name,
            "carrier": self.carrier,
            "metal_level": self.metal_level,
            "plan_type": self.plan_type,
            "market": self.market,
            "full_premium": float(self.full_premium),
            "subsidy": float(self.subsidy),
            "premium_after_subsidy": float(self.premium_after_subsidy),
            "contribution_applied": float(self.contribution_applied),
            "member_cost": float(self.member_cost),
            "member_savings": float(self.member_savings),
            "total_savings": float(self.total_savings),
            "pricing_method": self.pricing_method,
            "deductible": _money_or_none(self.deductible),
            "out_of_pocket_max": _money_or_none(self.out_of_pocket_max),
        }


@dataclass
class MemberQuote:
    """Quote for one member: all priced candidates plus the filtered selection."""
    member_id: str
    member_name: str
    class_id: Optional[str]
    class_name: str
    age: int
    county_id: int
    county_name: str
    state: str
    rating_area_id: str
    household_size: int
    household_income: Optional[Decimal]
    contribution: Decimal
    previous_contributions: PreviousContributions
    candidates: List[PlanQuote] = field(default_factory=list)
    plans: List[PlanQuote] = field(default_factory=list)
    recommended_plans: List[PlanQuote] = field(default_factory=list)
    best_plan: Optional[PlanQuote] = None
    benchmark_premium: Optional[Decimal] = None
    subsidy: Optional[Any] = None        # subsidy_calculator.SubsidyResult
    affordability: Optional[Any] = None  # subsidy_calculator.AffordabilityResult
    warnings: List[str] = field(default_factory=list)

    @property
    def has_plan(self) -> bool:
        return self.best_plan is not None

    @property
    def previous_employer_cost(self) -> Decimal:
        return to_money(self.previous_contributions.employer_contribution)

    @property
    def previous_member_cost(self) -> Decimal:
        return to_money(self.previous_contributions.member_contribution)

    @property
    def new_employer_cost(self) -> Decimal:
        return self.best_plan.contribution_applied if self.best_plan else ZERO

    @property
    def new_member_cost(self) -> Decimal:
        return self.best_plan.member_cost if self.best_plan else ZERO

    @property
    def on_market_count(self) -> int:
        return sum(1 for p in self.plans if p.is_on_market)

    @property
    def off_market_count(self) -> int:
        return sum(1 for p in self.plans if not p.is_on_market)

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "member_name": self.member_name,
            "class_id": self.class_id,
            "class_name": self.class_name,
            "age": self.age,
            "county_id": self.county_id,
            "county_name": self.county_name,
            "state": self.state,
            "rating_area_id": self.rating_area_id,
            "household_size": self.household_size,
            "household_income": _money_or_none(self.household_income),
            "contribution": float(self.contribution),
            "previous_plan": {
                "plan_name": self.previous_contributions.plan_name,
                "employer_contribution": float(self.previous_employer_cost),
                "member_contribution": float(self.previous_member_cost),
                "total_cost": float(self.previous_contributions.total_cost),
            },
            "plan_options": {
                "on_market": self.on_market_count,
                "off_market": self.off_market_count,
            },
            "best_plan": self.best_plan.to_dict() if self.best_plan else None,
            "recommended_plans": [p.to_dict() for p in self.recommended_plans],
            "benchmark_premium": _money_or_none(self.benchmark_premium),
            "subsidy": self.subsidy.to_dict() if self.subsidy else None,
            "affordability": self.affordability.to_dict() if self.affordability else None,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class MemberError:
    """Per-member failure recorded in the group quote's error manifest."""
    member_id: str
    member_name: str
    kind: str
    message: str

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "member_name": self.member_name,
            "kind": self.kind,
            "message": self.message,
        }


@dataclass(frozen=True)
class CostComparison:
    """Old vs new monthly cost for one side of the ICHRA switch."""
    old_monthly_cost: Decimal = ZERO
    new_monthly_cost: Decimal = ZERO
    monthly_savings: Decimal = ZERO
    annual_savings: Decimal = ZERO
    savings_percentage: Decimal = ZERO
    member_count: int = 0
    average_savings_per_member: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "old_monthly_cost": float(self.old_monthly_cost),
            "new_monthly_cost": float(self.new_monthly_cost),
            "monthly_savings": float(self.monthly_savings),
            "annual_savings": float(self.annual_savings),
            "savings_percentage": float(self.savings_percentage),
            "member_count": self.member_count,
            "average_savings_per_member": float(self.average_savings_per_member),
        }


@dataclass(frozen=True)
class OverallSummary:
    old_total_cost: Decimal = ZERO
    new_total_cost: Decimal = ZERO
    monthly_savings: Decimal = ZERO
    annual_savings: Decimal = ZERO
    employees_with_savings: int = 0
    employees_with_increases: int = 0

    def to_dict(self) -> dict:
        return {
            "old_total_cost": float(self.old_total_cost),
            "new_total_cost": float(self.new_total_cost),
            "monthly_savings": float(self.monthly_savings),
            "annual_savings": float(self.annual_savings),
            "employees_with_savings": self.employees_with_savings,
            "employees_with_increases": self.employees_with_increases,
        }


@dataclass(frozen=True)
class SubsidyAnalysis:
    eligible_count: int = 0
    eligibility_rate: Decimal = ZERO
    average_subsidy: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "eligible_count": self.eligible_count,
            "eligibility_rate": float(self.eligibility_rate),
            "average_subsidy": float(self.average_subsidy),
        }


@dataclass(frozen=True)
class PlanAnalysis:
    total_plans: int = 0
    on_market_plans: int = 0
    off_market_plans: int = 0
    average_plans_per_member: Decimal = ZERO
    average_premium: Decimal = ZERO
    lowest_premium: Optional[Decimal] = None
    highest_premium: Optional[Decimal] = None

    def to_dict(self) -> dict:
        return {
            "total_plans": self.total_plans,
            "on_market_plans": self.on_market_plans,
            "off_market_plans": self.off_market_plans,
            "average_plans_per_member": float(self.average_plans_per_member),
            "average_premium": float(self.average_premium),
            "lowest_premium": _money_or_none(self.lowest_premium),
            "highest_premium": _money_or_none(self.highest_premium),
        }


@dataclass
class GroupQuoteResult:
    """
    Group-level quote. Aggregates cover successful members with a selected
    plan only; failed and timed-out members are listed separately.
    """
    group_id: str
    quote_date: date
    plan_year: int
    filters: QuoteFilters
    member_quotes: List[MemberQuote] = field(default_factory=list)
    errors: List[MemberError] = field(default_factory=list)
    timed_out_member_ids: List[str] = field(default_factory=list)
    employer: CostComparison = field(default_factory=CostComparison)
    employees: CostComparison = field(default_factory=CostComparison)
    overall: OverallSummary = field(default_factory=OverallSummary)
    subsidy_analysis: SubsidyAnalysis = field(default_factory=SubsidyAnalysis)
    plan_analysis: PlanAnalysis = field(default_factory=PlanAnalysis)

    @property
    def is_partial(self) -> bool:
        return bool(self.errors or self.timed_out_member_ids)

    def member_quote(self, member_id: str) -> Optional[MemberQuote]:
        for quote in self.member_quotes:
            if quote.member_id == member_id:
                return quote
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "group_id": self.group_id,
            "quote_date": self.quote_date.isoformat(),
            "plan_year": self.plan_year,
            "filters": self.filters.to_dict(),
            "is_partial": self.is_partial,
            "member_quotes": [q.to_dict() for q in self.member_quotes],
            "errors": [e.to_dict() for e in self.errors],
            "timed_out_member_ids": list(self.timed_out_member_ids),
            "comparison_summary": {
                "employer": self.employer.to_dict(),
                "employees": self.employees.to_dict(),
                "overall": self.overall.to_dict(),
                "subsidy_analysis": self.subsidy_analysis.to_dict(),
                "plan_analysis": self.plan_analysis.to_dict(),
            },
        }
