"""
Quote Orchestrator
Group quoting: for each member resolve geography, enumerate available plans,
price them, subsidise on-market plans, apply the ICHRA contribution and pick
the best plan; then aggregate employer and employee comparisons.

Members are quoted in parallel on a bounded thread pool. A failing member is
recorded in the error manifest and excluded from aggregates without
affecting its siblings. Every candidate is kept on the member quote so
filters can be reapplied without re-pricing.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Union

from config import QuoteConfig
from constants import BENCHMARK_METAL_LEVEL
from errors import (
    AmbiguousCounty,
    ClassNotFound,
    InvalidInput,
    PlanNotFound,
    QuoteEngineError,
    ReferenceDataError,
)
from geography import GeographicResolver, RatingAreaCache
from plan_availability import PlanAvailabilityIndex, split_by_market
from premium_calculator import PremiumCalculator
from quote_types import (
    CostComparison,
    GroupQuoteResult,
    IchraClass,
    Member,
    MemberError,
    MemberQuote,
    OverallSummary,
    PlanAnalysis,
    PlanQuote,
    QuoteFilters,
    SubsidyAnalysis,
)
from rate_table import to_money
from reference_data import ReferenceData
from subsidy_calculator import calculate_subsidy, check_ichra_affordability, select_benchmark

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if not whole:
        return ZERO
    return (Decimal(part) / Decimal(whole) * 100).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def _average(total: Decimal, count: int) -> Decimal:
    return to_money(Decimal(total) / count) if count else ZERO


def _coerce_filters(filters: Union[QuoteFilters, dict, None]) -> QuoteFilters:
    if isinstance(filters, QuoteFilters):
        return filters
    return QuoteFilters.from_dict(filters)


class QuoteOrchestrator:
    """Runs group quotes against one set of reference data."""

    def __init__(self, reference_data: ReferenceData,
                 config: Optional[QuoteConfig] = None,
                 resolver: Optional[GeographicResolver] = None,
                 premium_calculator: Optional[PremiumCalculator] = None,
                 availability: Optional[PlanAvailabilityIndex] = None):
        self.reference_data = reference_data
        self.config = config or QuoteConfig()
        is_valid, error = self.config.validate()
        if not is_valid:
            raise InvalidInput(f"Invalid quote configuration: {error}")
        self.availability = availability or PlanAvailabilityIndex.from_reference_data(reference_data)
        self.resolver = resolver or GeographicResolver(
            reference_data, cache=RatingAreaCache(), availability=self.availability
        )
        self.premium_calculator = premium_calculator or PremiumCalculator(reference_data)
        reference_data.subscribe(self._on_reference_reload)

    def _on_reference_reload(self, reference_data: ReferenceData) -> None:
        self.availability = PlanAvailabilityIndex.from_reference_data(reference_data)

    # =========================================================================
    # PER-MEMBER PIPELINE
    # =========================================================================

    def quote_member(self, member: Member, ichra_class: Optional[IchraClass],
                     quote_date: Optional[date] = None,
                     filters: Union[QuoteFilters, dict, None] = None) -> MemberQuote:
        """
        Quote one member.

        Raises:
            QuoteEngineError: the member cannot be quoted (bad ZIP, ambiguous
                county, unknown class, unpriceable age, invalid income)
        """
        quote_date = quote_date or date.today()

        if ichra_class is None:
            raise ClassNotFound(
                f"Member {member.member_id} references unknown class {member.class_id!r}",
                member_id=member.member_id, class_id=member.class_id,
            )
        ichra_class.validate()

        # 1. Resolve geography
        resolution = self.resolver.resolve_county(member.zip_code)
        county = resolution.select(member.county_id)
        if county is None:
            options = ", ".join(f"{c.county_id} ({c.name})" for c in resolution.counties)
            raise AmbiguousCounty(
                f"ZIP {resolution.zip_code} spans multiple counties ({options}); "
                f"a county selection is required",
                zip_code=resolution.zip_code, county_id=member.county_id,
            )
        rating_area_id = self.resolver.rating_area_for_county(county.county_id)

        age = member.age_on(quote_date)
        household = member.household(quote_date)
        household_size = member.effective_household_size
        warnings: List[str] = []

        # 2. Enumerate available plans
        plan_ids = self.availability.plans_in_county(county.county_id)
        on_market_ids, off_market_ids = split_by_market(plan_ids, self.reference_data)
        on_market = set(on_market_ids)

        # 3. Price every candidate for the household
        priced = {}
        self_only = {}
        for plan_id in on_market_ids + off_market_ids:
            try:
                table = self.premium_calculator.get_rate_table(plan_id, rating_area_id, quote_date)
            except PlanNotFound:
                logger.debug(f"QUOTE: plan {plan_id} has no pricing in {rating_area_id}, skipping")
                continue
            priced[plan_id] = self.premium_calculator.family_premium(table, household)
            plan = self.reference_data.plan(plan_id)
            if plan_id in on_market and plan.metal_level == BENCHMARK_METAL_LEVEL:
                self_only[plan_id] = table.premium_for_age(age, member.tobacco)

        unpriced = len(plan_ids) - len(priced)
        if unpriced:
            warnings.append(f"{unpriced} available plans have no pricing in {rating_area_id}")
        if not priced:
            warnings.append(f"No priced plans available in {county.name or county.county_id}")

        # 4. Subsidy from the member's own SLCSP benchmark (on-market only)
        benchmark = select_benchmark(list(self_only.items()))
        if benchmark.warning and priced:
            warnings.append(benchmark.warning)

        subsidy = None
        if member.household_income is None:
            warnings.append('No income data - subsidy eligibility not calculated')
        elif benchmark.has_benchmark:
            subsidy = calculate_subsidy(
                benchmark.benchmark_premium,
                member.household_income,
                household_size,
                age=age,
                state=county.state or None,
                plan_year=self.config.plan_year,
            )
        monthly_subsidy = subsidy.monthly_subsidy if subsidy and subsidy.is_eligible else ZERO

        # 5. ICHRA contribution
        contribution = ichra_class.contribution_for(age, len(member.dependents))

        affordability = None
        if member.household_income is not None and self_only:
            employee_contribution, _ = ichra_class.get_contribution_for_age(age)
            affordability = check_ichra_affordability(
                min(self_only.values()),
                employee_contribution,
                Decimal(str(member.household_income)) / 12,
                plan_year=self.config.plan_year,
            )

        previous = member.previous_contributions
        candidates = []
        for plan_id, family in priced.items():
            plan = self.reference_data.plan(plan_id)
            full_premium = family.premium
            subsidy_applied = min(monthly_subsidy, full_premium) if plan_id in on_market else ZERO
            premium_after_subsidy = full_premium - subsidy_applied
            contribution_applied = min(contribution, premium_after_subsidy)
            member_cost = premium_after_subsidy - contribution_applied

            candidates.append(PlanQuote(
                plan_id=plan_id,
                plan_name=plan.display_name or plan.name,
                carrier=plan.carrier,
                metal_level=plan.metal_level,
                plan_type=plan.plan_type,
                market=plan.market,
                full_premium=full_premium,
                subsidy=subsidy_applied,
                premium_after_subsidy=premium_after_subsidy,
                contribution_applied=contribution_applied,
                member_cost=member_cost,
                member_savings=to_money(previous.member_contribution) - member_cost,
                total_savings=previous.total_cost - premium_after_subsidy,
                pricing_method=family.pricing_method,
                deductible=plan.deductible,
                out_of_pocket_max=plan.out_of_pocket_max,
            ))
        candidates.sort(key=lambda p: p.selection_key)

        member_quote = MemberQuote(
            member_id=member.member_id,
            member_name=member.full_name,
            class_id=ichra_class.class_id,
            class_name=ichra_class.name,
            age=age,
            county_id=county.county_id,
            county_name=county.name,
            state=county.state,
            rating_area_id=rating_area_id,
            household_size=household_size,
            household_income=member.household_income,
            contribution=contribution,
            previous_contributions=previous,
            candidates=candidates,
            benchmark_premium=benchmark.benchmark_premium,
            subsidy=subsidy,
            affordability=affordability,
            warnings=warnings,
        )
        return self.select_plans(member_quote, _coerce_filters(filters))

    def select_plans(self, member_quote: MemberQuote, filters: QuoteFilters) -> MemberQuote:
        """
        6. Narrow candidates with filters and pick the best plan: lowest
        member cost, then lowest raw premium, then plan id.
        """
        plans = sorted(
            (plan for plan in member_quote.candidates if filters.matches(plan)),
            key=lambda p: p.selection_key,
        )
        return replace(
            member_quote,
            plans=plans,
            recommended_plans=plans[:self.config.recommended_plan_count],
            best_plan=plans[0] if plans else None,
            warnings=list(member_quote.warnings),
        )

    def _quote_member_safe(self, member: Member, ichra_class: Optional[IchraClass],
                           quote_date: date) -> Union[MemberQuote, MemberError]:
        try:
            return self.quote_member(member, ichra_class, quote_date)
        except ReferenceDataError:
            raise
        except QuoteEngineError as e:
            logger.info(f"QUOTE: member {member.member_id} failed: {e.kind}: {e.message}")
            return MemberError(member.member_id, member.full_name, e.kind, e.message)
        except Exception as e:
            logger.exception(f"QUOTE: member {member.member_id} failed unexpectedly")
            return MemberError(member.member_id, member.full_name, type(e).__name__, str(e))

    # =========================================================================
    # GROUP QUOTE
    # =========================================================================

    def quote_group(self, group_id: str, members: Sequence[Member],
                    classes: Iterable[IchraClass],
                    filters: Union[QuoteFilters, dict, None] = None,
                    quote_date: Optional[date] = None) -> GroupQuoteResult:
        """
        Quote every member of a group and aggregate the comparison.

        Members still running when the group timeout expires are cancelled
        and listed in timed_out_member_ids.

        Raises:
            ReferenceDataError: reference data is missing entirely
        """
        self.reference_data.ensure_complete()
        quote_date = quote_date or date.today()
        filters = _coerce_filters(filters)
        classes_by_id: Dict[str, IchraClass] = {c.class_id: c for c in classes}

        start = time.time()
        logger.info(f"QUOTE: group {group_id} - quoting {len(members)} members "
                    f"with {self.config.max_workers} workers")

        outcomes: Dict[int, Union[MemberQuote, MemberError]] = {}
        timed_out: List[str] = []

        executor = ThreadPoolExecutor(max_workers=self.config.max_workers,
                                      thread_name_prefix=f"quote-{group_id}")
        try:
            futures = {
                executor.submit(self._quote_member_safe, member,
                                classes_by_id.get(member.class_id), quote_date): index
                for index, member in enumerate(members)
            }
            done, not_done = wait(futures, timeout=self.config.group_timeout_seconds)

            for future in not_done:
                future.cancel()
            for future, index in futures.items():
                if future in done:
                    outcomes[index] = future.result()
                else:
                    timed_out.append(members[index].member_id)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        member_quotes, errors = [], []
        for index in range(len(members)):
            outcome = outcomes.get(index)
            if isinstance(outcome, MemberQuote):
                member_quotes.append(outcome)
            elif isinstance(outcome, MemberError):
                errors.append(outcome)

        timed_out_set = set(timed_out)
        timed_out_ids = [m.member_id for m in members if m.member_id in timed_out_set]
        if timed_out_ids:
            logger.warning(f"QUOTE: group {group_id} - {len(timed_out_ids)} members timed out "
                           f"after {self.config.group_timeout_seconds}s")

        result = self.assemble(group_id, quote_date, filters, member_quotes, errors, timed_out_ids)
        logger.info(f"QUOTE: group {group_id} quoted in {time.time() - start:.2f}s "
                    f"({len(member_quotes)} ok, {len(errors)} errors, {len(timed_out_ids)} timed out)")
        return result

    def apply_filters(self, result: GroupQuoteResult,
                      filters: Union[QuoteFilters, dict, None]) -> GroupQuoteResult:
        """Recompute best plans and aggregates from stored candidates under new filters."""
        return self.assemble(
            result.group_id, result.quote_date, _coerce_filters(filters),
            result.member_quotes, result.errors, result.timed_out_member_ids,
        )

    def assemble(self, group_id: str, quote_date: date, filters: QuoteFilters,
                 member_quotes: Sequence[MemberQuote], errors: Sequence[MemberError],
                 timed_out_member_ids: Sequence[str]) -> GroupQuoteResult:
        """7. Apply filters to each member and aggregate the members with a selected plan."""
        selected = [self.select_plans(quote, filters) for quote in member_quotes]
        quoted = [quote for quote in selected if quote.has_plan]

        return GroupQuoteResult(
            group_id=group_id,
            quote_date=quote_date,
            plan_year=self.config.plan_year,
            filters=filters,
            member_quotes=selected,
            errors=list(errors),
            timed_out_member_ids=list(timed_out_member_ids),
            employer=self._employer_summary(quoted),
            employees=self._employee_summary(quoted),
            overall=self._overall_summary(quoted),
            subsidy_analysis=self._subsidy_analysis(quoted),
            plan_analysis=self._plan_analysis(selected),
        )

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    @staticmethod
    def _comparison(old: Decimal, new: Decimal, count: int) -> CostComparison:
        savings = old - new
        return CostComparison(
            old_monthly_cost=old,
            new_monthly_cost=new,
            monthly_savings=savings,
            annual_savings=savings * 12,
            savings_percentage=_percentage(savings, old),
            member_count=count,
            average_savings_per_member=_average(savings, count),
        )

    def _employer_summary(self, quoted: List[MemberQuote]) -> CostComparison:
        old = sum((q.previous_employer_cost for q in quoted), ZERO)
        new = sum((q.new_employer_cost for q in quoted), ZERO)
        return self._comparison(old, new, len(quoted))

    def _employee_summary(self, quoted: List[MemberQuote]) -> CostComparison:
        old = sum((q.previous_member_cost for q in quoted), ZERO)
        new = sum((q.new_member_cost for q in quoted), ZERO)
        return self._comparison(old, new, len(quoted))

    @staticmethod
    def _overall_summary(quoted: List[MemberQuote]) -> OverallSummary:
        old = sum((q.previous_employer_cost + q.previous_member_cost for q in quoted), ZERO)
        new = sum((q.new_employer_cost + q.new_member_cost for q in quoted), ZERO)
        return OverallSummary(
            old_total_cost=old,
            new_total_cost=new,
            monthly_savings=old - new,
            annual_savings=(old - new) * 12,
            employees_with_savings=sum(1 for q in quoted if q.new_member_cost < q.previous_member_cost),
            employees_with_increases=sum(1 for q in quoted if q.new_member_cost > q.previous_member_cost),
        )

    @staticmethod
    def _subsidy_analysis(quoted: List[MemberQuote]) -> SubsidyAnalysis:
        eligible = [q for q in quoted if q.subsidy is not None and q.subsidy.is_eligible]
        total_subsidy = sum((q.subsidy.monthly_subsidy for q in eligible), ZERO)
        return SubsidyAnalysis(
            eligible_count=len(eligible),
            eligibility_rate=_percentage(Decimal(len(eligible)), Decimal(len(quoted))),
            average_subsidy=_average(total_subsidy, len(eligible)),
        )

    @staticmethod
    def _plan_analysis(member_quotes: List[MemberQuote]) -> PlanAnalysis:
        offered = [plan for quote in member_quotes for plan in quote.plans]
        if not offered:
            return PlanAnalysis()

        unique = {plan.plan_id: plan for plan in offered}
        premiums = [plan.full_premium for plan in offered]
        return PlanAnalysis(
            total_plans=len(unique),
            on_market_plans=sum(1 for plan in unique.values() if plan.is_on_market),
            off_market_plans=sum(1 for plan in unique.values() if not plan.is_on_market),
            average_plans_per_member=(Decimal(len(offered)) / len(member_quotes)).quantize(
                Decimal('0.01'), rounding=ROUND_HALF_UP),
            average_premium=_average(sum(premiums, ZERO), len(premiums)),
            lowest_premium=min(premiums),
            highest_premium=max(premiums),
        )
