"""
Shared reference data for the quote engine tests

Travis County TX (RA_TX_001) sells four plans:
  SILVER_A  Blue Cross  Silver  on-market   age 30 = $320, age 35 = $360
  SILVER_B  Ambetter    Silver  on-market   age 30 = $350
  BRONZE_A  Blue Cross  Bronze  on-market   age 30 = $240
  GOLD_OFF  Oscar       Gold    off-market  age 30 = $430
ZIP 78613 spans Travis and Williamson (RA_TX_002). Bexar (78201) has no plans.
"""

from datetime import date
from decimal import Decimal

import pandas as pd

from quote_types import IchraClass, Member, PreviousContributions
from reference_data import ReferenceData

QUOTE_DATE = date(2026, 3, 1)

CHILD_RATE = 180
TOBACCO_FACTOR = Decimal('1.2')

AGE_CURVES = {
    'SILVER_A': {21: 300, 30: 320, 35: 360, 40: 400, 50: 500, 64: 700},
    'SILVER_B': {21: 330, 30: 350, 35: 390, 40: 430, 50: 540, 64: 750},
    'BRONZE_A': {21: 220, 30: 240, 35: 270, 40: 300, 50: 380, 64: 520},
    'GOLD_OFF': {21: 400, 30: 430, 35: 470, 40: 520, 50: 640, 64: 900},
}
WILLIAMSON_SILVER_A = {21: 290, 30: 310, 35: 350, 40: 390, 50: 490, 64: 690}
EXPIRED_SILVER_A = {21: 900, 30: 999, 64: 1200}


def counties_frame():
    return pd.DataFrame([
        {'id': '1', 'name': 'Travis', 'state_id': 'TX', 'rating_area_count': '1', 'service_area_count': '2'},
        {'id': '2', 'name': 'Williamson', 'state_id': 'TX', 'rating_area_count': '1', 'service_area_count': '1'},
        {'id': '3', 'name': 'Bexar', 'state_id': 'TX', 'rating_area_count': '1', 'service_area_count': '1'},
    ])


def zip_counties_frame():
    return pd.DataFrame([
        {'zip_code_id': '78701', 'county_id': '1', 'rating_area_id': 'RA_TX_001'},
        {'zip_code_id': '78613', 'county_id': '1', 'rating_area_id': 'RA_TX_001'},
        {'zip_code_id': '78613', 'county_id': '2', 'rating_area_id': 'RA_TX_002'},
        {'zip_code_id': '78201', 'county_id': '3', 'rating_area_id': 'RA_TX_003'},
    ])


def plans_frame():
    return pd.DataFrame([
        {'id': 'SILVER_A', 'name': 'Blue Silver 2000', 'carrier_name': 'Blue Cross', 'level': 'silver',
         'on_market': 'true', 'off_market': 'true', 'plan_type': 'ppo',
         'individual_medical_deductible': '2000', 'individual_medical_moop': '8000'},
        {'id': 'SILVER_B', 'name': 'Ambetter Silver', 'carrier_name': 'Ambetter', 'level': 'silver',
         'on_market': 'true', 'off_market': 'false', 'plan_type': 'HMO',
         'individual_medical_deductible': '3500', 'individual_medical_moop': '9000'},
        {'id': 'BRONZE_A', 'name': 'Blue Bronze 7000', 'carrier_name': 'Blue Cross', 'level': 'bronze',
         'on_market': 'true', 'off_market': 'false', 'plan_type': 'EPO',
         'individual_medical_deductible': '7000', 'individual_medical_moop': '9200'},
        {'id': 'GOLD_OFF', 'name': 'Oscar Gold', 'carrier_name': 'Oscar', 'level': 'gold',
         'on_market': 'false', 'off_market': 'true', 'plan_type': 'PPO',
         'individual_medical_deductible': '1000', 'individual_medical_moop': '6000'},
    ])


def plan_counties_frame():
    rows = [{'plan_id': plan_id, 'county_id': '1'} for plan_id in AGE_CURVES]
    rows += [{'plan_id': 'SILVER_A', 'county_id': '2'}, {'plan_id': 'BRONZE_A', 'county_id': '2'}]
    return pd.DataFrame(rows)


def pricing_row(plan_id, rating_area_id, curve, child_rate=CHILD_RATE,
                effective_date='2026-01-01', expiration_date='2026-12-31', **extra):
    """One wide pricing row: flat child rate for 0-20, tobacco at 1.2x for adults."""
    row = {
        'plan_id': plan_id,
        'rating_area_id': rating_area_id,
        'effective_date': effective_date,
        'expiration_date': expiration_date,
    }
    if child_rate is not None:
        for age in (0, 20):
            row[f'age_{age}'] = str(child_rate)
            row[f'age_{age}_tobacco'] = str(child_rate)
    for age, rate in curve.items():
        row[f'age_{age}'] = str(rate)
        row[f'age_{age}_tobacco'] = str(Decimal(rate) * TOBACCO_FACTOR)
    row.update(extra)
    return row


def pricings_frame():
    rows = [pricing_row(plan_id, 'RA_TX_001', curve) for plan_id, curve in AGE_CURVES.items()]
    rows.append(pricing_row('SILVER_A', 'RA_TX_001', EXPIRED_SILVER_A,
                            effective_date='2025-01-01', expiration_date='2025-12-31'))
    rows.append(pricing_row('SILVER_A', 'RA_TX_002', WILLIAMSON_SILVER_A))
    return pd.DataFrame(rows)


def reference_frames():
    return {
        'counties': counties_frame(),
        'zip_counties': zip_counties_frame(),
        'plans': plans_frame(),
        'plan_counties': plan_counties_frame(),
        'pricings': pricings_frame(),
    }


def build_reference_data(loader=None, **overrides):
    """ReferenceData from the fixture frames; keyword overrides replace whole frames."""
    frames = reference_frames()
    frames.update(overrides)
    return ReferenceData.from_frames(
        frames['counties'], frames['zip_counties'], frames['plans'],
        frames['plan_counties'], frames['pricings'],
        source='fixtures', loader=loader,
    )


def make_member(member_id='E1', zip_code='78701', age=30, **kwargs):
    kwargs.setdefault('class_id', 'FT')
    kwargs.setdefault('first_name', 'Test')
    kwargs.setdefault('last_name', member_id)
    return Member(member_id=member_id, zip_code=zip_code, age=age, **kwargs)


def make_class(class_id='FT', employee=400, dependent=0, **kwargs):
    return IchraClass(
        class_id=class_id,
        name=kwargs.pop('name', f'Class {class_id}'),
        employee_contribution=Decimal(str(employee)),
        dependent_contribution=Decimal(str(dependent)),
        **kwargs
    )


def previous(employer, member, plan_name='Group PPO'):
    return PreviousContributions(
        employer_contribution=Decimal(str(employer)),
        member_contribution=Decimal(str(member)),
        plan_name=plan_name,
    )
