"""
Quote export helpers
Tabular views of a GroupQuoteResult for display and CSV download.
"""

from decimal import Decimal
from typing import Dict, Optional

import pandas as pd

from constants import EXPORT_COLUMNS
from quote_types import GroupQuoteResult

ZERO = Decimal('0.00')


def quote_to_dataframe(result: GroupQuoteResult) -> pd.DataFrame:
    """One row per quoted member; plan columns are empty when no plan was selected."""
    rows = []
    for quote in result.member_quotes:
        best = quote.best_plan
        rows.append({
            'member_id': quote.member_id,
            'member_name': quote.member_name,
            'class_name': quote.class_name,
            'age': quote.age,
            'county': quote.county_name,
            'state': quote.state,
            'rating_area_id': quote.rating_area_id,
            'previous_plan': quote.previous_contributions.plan_name,
            'previous_employer_cost': float(quote.previous_employer_cost),
            'previous_member_cost': float(quote.previous_member_cost),
            'best_plan_id': best.plan_id if best else None,
            'best_plan_name': best.plan_name if best else None,
            'carrier': best.carrier if best else None,
            'metal_level': best.metal_level if best else None,
            'market': best.market if best else None,
            'full_premium': float(best.full_premium) if best else None,
            'subsidy': float(best.subsidy) if best else None,
            'contribution_applied': float(best.contribution_applied) if best else None,
            'member_cost': float(best.member_cost) if best else None,
            'subsidy_eligible': bool(quote.subsidy and quote.subsidy.is_eligible),
        })
    return pd.DataFrame(rows)


def employee_comparison(result: GroupQuoteResult, member_id: str) -> Optional[Dict]:
    """Previous vs new monthly cost for one member, or None if not quoted."""
    quote = result.member_quote(member_id)
    if quote is None or quote.best_plan is None:
        return None

    previous_total = quote.previous_contributions.total_cost
    new_total = quote.best_plan.premium_after_subsidy
    member_savings = quote.previous_member_cost - quote.new_member_cost
    return {
        'member_id': quote.member_id,
        'member_name': quote.member_name,
        'previous': {
            'plan_name': quote.previous_contributions.plan_name,
            'employer_cost': quote.previous_employer_cost,
            'member_cost': quote.previous_member_cost,
            'total_cost': previous_total,
        },
        'new': {
            'plan_id': quote.best_plan.plan_id,
            'plan_name': quote.best_plan.plan_name,
            'employer_cost': quote.new_employer_cost,
            'member_cost': quote.new_member_cost,
            'subsidy': quote.best_plan.subsidy,
            'total_cost': new_total,
        },
        'member_monthly_savings': member_savings,
        'member_annual_savings': member_savings * 12,
        'total_monthly_savings': previous_total - new_total,
    }


def export_quote_csv(result: GroupQuoteResult) -> str:
    """CSV text with one line per member with a selected plan."""
    rows = []
    for quote in result.member_quotes:
        if not quote.has_plan:
            continue
        savings = quote.previous_member_cost - quote.new_member_cost
        rows.append([
            quote.member_name,
            quote.class_name,
            f"{quote.previous_member_cost:.2f}",
            f"{quote.new_member_cost:.2f}",
            f"{savings:.2f}",
            f"{savings * 12:.2f}",
        ])
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS).to_csv(index=False)


def aggregate_selected_plans(result: GroupQuoteResult) -> pd.DataFrame:
    """Per selected plan: member count, totals and average premium."""
    totals: Dict[str, Dict] = {}
    for quote in result.member_quotes:
        best = quote.best_plan
        if best is None:
            continue
        entry = totals.setdefault(best.plan_id, {
            'plan_id': best.plan_id,
            'plan_name': best.plan_name,
            'carrier': best.carrier,
            'metal_level': best.metal_level,
            'member_count': 0,
            'total_premium': ZERO,
            'total_contribution': ZERO,
            'total_member_cost': ZERO,
        })
        entry['member_count'] += 1
        entry['total_premium'] += best.full_premium
        entry['total_contribution'] += best.contribution_applied
        entry['total_member_cost'] += best.member_cost

    columns = ['plan_id', 'plan_name', 'carrier', 'metal_level', 'member_count',
               'total_premium', 'total_contribution', 'total_member_cost', 'average_premium']
    if not totals:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(list(totals.values()))
    for col in ['total_premium', 'total_contribution', 'total_member_cost']:
        df[col] = df[col].astype(float)
    df['average_premium'] = (df['total_premium'] / df['member_count']).round(2)
    return df.sort_values(['member_count', 'plan_id'], ascending=[False, True]).reset_index(drop=True)[columns]
