"""
ACA Premium Tax Credit (Subsidy) Calculator

Calculates the monthly Advance Premium Tax Credit a household can apply to
on-market plans, and the IRS ICHRA affordability test.

Key concepts:
- LCSP (Lowest Cost Silver Plan): Used for IRS ICHRA affordability test
- SLCSP (Second Lowest Cost Silver Plan): Benchmark for the subsidy amount
- FPL (Federal Poverty Level): Determines eligibility and the applicable percentage

Money is Decimal, rounded half-up to the cent. Eligibility compares the
unrounded FPL percentage against the 100%-400% band.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, List, Sequence, Tuple

from constants import (
    FPL_TABLES,
    ACA_APPLICABLE_PERCENTAGE_SCHEDULES,
    ACA_SUBSIDY_FPL_FLOOR,
    ACA_SUBSIDY_FPL_CAP,
    AFFORDABILITY_THRESHOLDS,
    DEFAULT_PLAN_YEAR,
    MEDICARE_ELIGIBILITY_AGE,
)
from errors import InvalidInput
from rate_table import to_money

logger = logging.getLogger(__name__)

HUNDREDTH = Decimal('0.01')
ZERO = Decimal('0.00')


def _to_decimal(value) -> Decimal:
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidInput(f"{value!r} is not a number") from None
    if not number.is_finite():
        raise InvalidInput(f"{value!r} is not a finite number")
    return number



@dataclass(frozen=True)
class SubsidyResult:
    """Monthly subsidy calculation for one household."""
    is_eligible: bool
    fpl_percentage: Decimal
    applicable_percentage: Optional[Decimal]
    expected_contribution: Optional[Decimal]
    max_subsidy: Optional[Decimal]
    monthly_subsidy: Decimal
    benchmark_premium: Decimal
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_eligible": self.is_eligible,
            "fpl_percentage": float(self.fpl_percentage),
            "applicable_percentage": (float(self.applicable_percentage)
                                      if self.applicable_percentage is not None else None),
            "expected_contribution": (float(self.expected_contribution)
                                      if self.expected_contribution is not None else None),
            "max_subsidy": float(self.max_subsidy) if self.max_subsidy is not None else None,
            "monthly_subsidy": float(self.monthly_subsidy),
            "benchmark_premium": float(self.benchmark_premium),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class BenchmarkResult:
    """Second-lowest-cost Silver plan selection for a rating area and household."""
    benchmark_premium: Optional[Decimal]
    benchmark_plan_id: Optional[str]
    silver_plan_count: int
    warning: Optional[str] = None

    @property
    def has_benchmark(self) -> bool:
        return self.benchmark_premium is not None


@dataclass(frozen=True)
class AffordabilityResult:
    """IRS ICHRA affordability test against the self-only LCSP premium."""
    lcsp_premium: Decimal
    contribution: Decimal
    employee_cost: Decimal
    max_affordable_cost: Decimal
    threshold: Decimal
    is_affordable: bool

    def to_dict(self) -> dict:
        return {
            "lcsp_premium": float(self.lcsp_premium),
            "contribution": float(self.contribution),
            "employee_cost": float(self.employee_cost),
            "max_affordable_cost": float(self.max_affordable_cost),
            "threshold": float(self.threshold),
            "is_affordable": self.is_affordable,
        }


def get_fpl_for_household(household_size: int, state: Optional[str] = None,
                          plan_year: int = DEFAULT_PLAN_YEAR) -> int:
    """
    Get Federal Poverty Level for a given household size.

    Args:
        household_size: Number of people in household (1-8+)
        state: Optional state code for Alaska/Hawaii adjustments
        plan_year: Coverage year; uses the prior year's HHS guidelines

    Returns:
        Annual FPL in dollars
    """
    if household_size is None or household_size < 1:
        raise InvalidInput(f"Household size must be at least 1, got {household_size}")
    if plan_year not in FPL_TABLES:
        raise InvalidInput(f"No poverty guidelines for plan year {plan_year}")

    tables = FPL_TABLES[plan_year]
    fpl_table, per_additional = tables.get((state or '').upper(), tables['default'])

    # Cap at 8 for direct lookup, add per-person for larger households
    if household_size <= 8:
        return fpl_table[household_size]
    return fpl_table[8] + (household_size - 8) * per_additional


def get_applicable_percentage(fpl_percentage, plan_year: int = DEFAULT_PLAN_YEAR) -> Optional[Decimal]:
    """
    Get the applicable percentage of income for ACA subsidy calculation.

    Uses linear interpolation within the plan year's FPL brackets, rounded
    to hundredths of a percent.

    Args:
        fpl_percentage: Household income as percentage of FPL (e.g., 200 for 200% FPL)

    Returns:
        Applicable percentage (e.g. Decimal('4.19')), or None above the FPL cap
    """
    if plan_year not in ACA_APPLICABLE_PERCENTAGE_SCHEDULES:
        raise InvalidInput(f"No applicable percentage schedule for plan year {plan_year}")

    schedule = ACA_APPLICABLE_PERCENTAGE_SCHEDULES[plan_year]
    fpl_percentage = _to_decimal(fpl_percentage)

    if fpl_percentage > ACA_SUBSIDY_FPL_CAP:
        return None

    if fpl_percentage < ACA_SUBSIDY_FPL_FLOOR:
        # Below 100% FPL - Medicaid territory, report the lowest bracket
        return schedule[0][2]

    for lower_fpl, upper_fpl, lower_pct, upper_pct in schedule:
        if lower_fpl <= fpl_percentage < upper_fpl or fpl_percentage == upper_fpl == ACA_SUBSIDY_FPL_CAP:
            if upper_fpl == lower_fpl or upper_pct == lower_pct:
                return lower_pct
            ratio = (fpl_percentage - lower_fpl) / (upper_fpl - lower_fpl)
            pct = lower_pct + (upper_pct - lower_pct) * ratio
            return pct.quantize(HUNDREDTH, rounding=ROUND_HALF_UP)

    # Shouldn't reach here, but default to highest bracket
    return schedule[-1][3]


def calculate_subsidy(benchmark_premium, income, household_size: int,
                      age: Optional[int] = None, state: Optional[str] = None,
                      plan_year: int = DEFAULT_PLAN_YEAR) -> SubsidyResult:
    """
    Calculate ACA premium tax credit (monthly subsidy).

    Args:
        benchmark_premium: Monthly SLCSP premium for the member
        income: Annual household income in dollars
        household_size: Number of people in household
        age: Member age; Medicare-eligible members receive no subsidy
        state: State code (for Alaska/Hawaii FPL adjustments)
        plan_year: Coverage year for FPL and applicable-percentage tables

    Raises:
        InvalidInput: non-numeric amounts, benchmark <= 0, income < 0 or
            household size < 1
    """
    if benchmark_premium is None or _to_decimal(benchmark_premium) <= 0:
        raise InvalidInput(f"Benchmark premium must be greater than 0, got {benchmark_premium}")
    if income is None or _to_decimal(income) < 0:
        raise InvalidInput(f"Income must not be negative, got {income}")
    if household_size is None or household_size < 1:
        raise InvalidInput(f"Household size must be at least 1, got {household_size}")

    benchmark = to_money(benchmark_premium)
    income = _to_decimal(income)

    fpl = get_fpl_for_household(household_size, state, plan_year)
    raw_fpl_percentage = income / Decimal(fpl) * 100
    fpl_percentage = raw_fpl_percentage.quantize(HUNDREDTH, rounding=ROUND_HALF_UP)

    def _ineligible(reason: str) -> SubsidyResult:
        return SubsidyResult(
            is_eligible=False,
            fpl_percentage=fpl_percentage,
            applicable_percentage=None,
            expected_contribution=None,
            max_subsidy=None,
            monthly_subsidy=ZERO,
            benchmark_premium=benchmark,
            reason=reason,
        )

    if age is not None and age >= MEDICARE_ELIGIBILITY_AGE:
        return _ineligible('Medicare-eligible - not eligible for ACA marketplace subsidies')
    if raw_fpl_percentage < ACA_SUBSIDY_FPL_FLOOR:
        return _ineligible(f'Income below {ACA_SUBSIDY_FPL_FLOOR}% FPL')
    if raw_fpl_percentage > ACA_SUBSIDY_FPL_CAP:
        return _ineligible(f'Income exceeds {ACA_SUBSIDY_FPL_CAP}% FPL')

    applicable_pct = get_applicable_percentage(raw_fpl_percentage, plan_year)

    # Expected contribution is what the household pays toward the benchmark
    expected_contribution = to_money(income * applicable_pct / 100 / 12)
    max_subsidy = benchmark - expected_contribution
    monthly_subsidy = max(ZERO, max_subsidy)

    return SubsidyResult(
        is_eligible=True,
        fpl_percentage=fpl_percentage,
        applicable_percentage=applicable_pct,
        expected_contribution=expected_contribution,
        max_subsidy=max_subsidy,
        monthly_subsidy=monthly_subsidy,
        benchmark_premium=benchmark,
        reason=None if monthly_subsidy > 0 else 'Benchmark premium is below the expected contribution',
    )


def select_benchmark(silver_premiums: Sequence[Tuple[str, Decimal]]) -> BenchmarkResult:
    """
    Select the second-lowest-cost Silver plan premium.

    Args:
        silver_premiums: (plan_id, monthly premium) for every on-market Silver
            plan in the rating area, priced for the household

    Ties on premium are ordered by plan id. With a single Silver plan it is
    used as the benchmark and a warning is attached; with none there is no
    benchmark.
    """
    ranked: List[Tuple[Decimal, str]] = sorted(
        (to_money(premium), plan_id) for plan_id, premium in silver_premiums
    )

    if not ranked:
        return BenchmarkResult(
            benchmark_premium=None,
            benchmark_plan_id=None,
            silver_plan_count=0,
            warning='No Silver plans available - subsidy cannot be calculated',
        )

    if len(ranked) == 1:
        premium, plan_id = ranked[0]
        return BenchmarkResult(
            benchmark_premium=premium,
            benchmark_plan_id=plan_id,
            silver_plan_count=1,
            warning='Only one Silver plan available - using it as benchmark',
        )

    premium, plan_id = ranked[1]
    return BenchmarkResult(
        benchmark_premium=premium,
        benchmark_plan_id=plan_id,
        silver_plan_count=len(ranked),
    )


def check_ichra_affordability(lcsp_premium, contribution, monthly_income,
                              plan_year: int = DEFAULT_PLAN_YEAR) -> AffordabilityResult:
    """
    IRS ICHRA affordability test.

    An ICHRA is affordable if the employee's self-only LCSP cost after the
    employer contribution is at most the plan year's threshold share of
    monthly household income.
    """
    if plan_year not in AFFORDABILITY_THRESHOLDS:
        raise InvalidInput(f"No affordability threshold for plan year {plan_year}")
    if monthly_income is None or _to_decimal(monthly_income) < 0:
        raise InvalidInput(f"Monthly income must not be negative, got {monthly_income}")

    threshold = AFFORDABILITY_THRESHOLDS[plan_year]
    lcsp = to_money(lcsp_premium)
    contribution = to_money(contribution)
    employee_cost = max(ZERO, lcsp - contribution)
    max_affordable = to_money(_to_decimal(monthly_income) * threshold)

    return AffordabilityResult(
        lcsp_premium=lcsp,
        contribution=contribution,
        employee_cost=employee_cost,
        max_affordable_cost=max_affordable,
        threshold=threshold,
        is_affordable=employee_cost <= max_affordable,
    )
