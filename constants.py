"""
Constants and reference tables for the ICHRA quote engine
Includes FPL guidelines, ACA applicable-percentage schedules and rating rules
"""

from decimal import Decimal

# Metal levels for ACA marketplace plans
METAL_LEVELS = [
    "Bronze",
    "Expanded Bronze",
    "Silver",
    "Gold",
    "Platinum",
    "Catastrophic"
]

# Benchmark (SLCSP) metal level
BENCHMARK_METAL_LEVEL = "Silver"

# Common plan types
PLAN_TYPES = [
    "HMO",
    "PPO",
    "EPO",
    "POS"
]

# Market flags
MARKET_ON = "on-market"
MARKET_OFF = "off-market"
MARKETS = [MARKET_ON, MARKET_OFF]

# 50 states + DC, used to validate county reference rows
US_STATE_CODES = frozenset([
    "AK", "AL", "AR", "AZ", "CA", "CO", "CT", "DC", "DE", "FL", "GA",
    "HI", "IA", "ID", "IL", "IN", "KS", "KY", "LA", "MA", "MD", "ME",
    "MI", "MN", "MO", "MS", "MT", "NC", "ND", "NE", "NH", "NJ", "NM",
    "NV", "NY", "OH", "OK", "OR", "PA", "RI", "SC", "SD", "TN", "TX",
    "UT", "VA", "VT", "WA", "WI", "WV", "WY",
])

# ==============================================================================
# RATE TABLE RULES
# ==============================================================================

# Source rate tables carry integer ages 0 through 65
MIN_TABULATED_AGE = 0
MAX_TABULATED_AGE = 65
CHILD_RATING_AGE_MAX = 20  # Rated as children in ACA marketplace (ages 0-20)

# ACA 3-child rule: only the 3 oldest children under 21 are rated
MAX_RATED_CHILDREN = 3

MEDICARE_ELIGIBILITY_AGE = 65

# Canonical family structures used for tier pricing
FAMILY_INDIVIDUAL = "individual"
FAMILY_COUPLE = "couple"
FAMILY_SINGLE_PARENT = "singleParent"
FAMILY_FAMILY = "family"
FAMILY_CHILD_ONLY = "childOnly"

# Dependent relationships that count as adults for family classification
ADULT_RELATIONSHIPS = ['spouse', 'domestic_partner']
RELATIONSHIP_TYPES = ['spouse', 'child', 'domestic_partner', 'other']

# Age columns in pricing CSV extracts
AGE_COLUMN_TEMPLATE = "age_{age}"
AGE_TOBACCO_COLUMN_TEMPLATE = "age_{age}_tobacco"

# Family structure columns in pricing CSV extracts
FAMILY_PRICE_COLUMNS = [
    'single',
    'single_tobacco',
    'single_and_children',
    'single_and_spouse',
    'family',
    'child_only',
]

# ==============================================================================
# FEDERAL POVERTY LEVEL GUIDELINES
# ==============================================================================
# Subsidies for a plan year use the prior calendar year's HHS guidelines.

# Plan year 2026 (2025 HHS poverty guidelines)
FPL_2026_BY_HOUSEHOLD_SIZE = {
    1: 15650, 2: 21150, 3: 26650, 4: 32150,
    5: 37650, 6: 43150, 7: 48650, 8: 54150,
}
FPL_2026_PER_ADDITIONAL_PERSON = 5500

FPL_2026_ALASKA = {
    1: 19550, 2: 26430, 3: 33310, 4: 40190,
    5: 47070, 6: 53950, 7: 60830, 8: 67710,
}
FPL_2026_ALASKA_PER_ADDITIONAL = 6880

FPL_2026_HAWAII = {
    1: 17990, 2: 24320, 3: 30650, 4: 36980,
    5: 43310, 6: 49640, 7: 55970, 8: 62300,
}
FPL_2026_HAWAII_PER_ADDITIONAL = 6330

# Plan year 2020 (2019 HHS poverty guidelines)
FPL_2020_BY_HOUSEHOLD_SIZE = {
    1: 12490, 2: 16910, 3: 21330, 4: 25750,
    5: 30170, 6: 34590, 7: 39010, 8: 43430,
}
FPL_2020_PER_ADDITIONAL_PERSON = 4420

FPL_2020_ALASKA = {
    1: 15600, 2: 21130, 3: 26660, 4: 32190,
    5: 37720, 6: 43250, 7: 48780, 8: 54310,
}
FPL_2020_ALASKA_PER_ADDITIONAL = 5530

FPL_2020_HAWAII = {
    1: 14380, 2: 19460, 3: 24540, 4: 29620,
    5: 34700, 6: 39780, 7: 44860, 8: 49940,
}
FPL_2020_HAWAII_PER_ADDITIONAL = 5080

# plan_year -> region -> (table, per_additional)
FPL_TABLES = {
    2020: {
        'default': (FPL_2020_BY_HOUSEHOLD_SIZE, FPL_2020_PER_ADDITIONAL_PERSON),
        'AK': (FPL_2020_ALASKA, FPL_2020_ALASKA_PER_ADDITIONAL),
        'HI': (FPL_2020_HAWAII, FPL_2020_HAWAII_PER_ADDITIONAL),
    },
    2026: {
        'default': (FPL_2026_BY_HOUSEHOLD_SIZE, FPL_2026_PER_ADDITIONAL_PERSON),
        'AK': (FPL_2026_ALASKA, FPL_2026_ALASKA_PER_ADDITIONAL),
        'HI': (FPL_2026_HAWAII, FPL_2026_HAWAII_PER_ADDITIONAL),
    },
}

# ==============================================================================
# ACA APPLICABLE PERCENTAGE SCHEDULES
# ==============================================================================
# (lower_fpl, upper_fpl, lower_pct, upper_pct), interpolated within a bracket.

# Source: IRS Revenue Procedure 2025-25 (enhanced credits expired)
ACA_APPLICABLE_PERCENTAGE_2026 = [
    (Decimal('0'), Decimal('133'), Decimal('2.10'), Decimal('2.10')),
    (Decimal('133'), Decimal('150'), Decimal('3.14'), Decimal('4.19')),
    (Decimal('150'), Decimal('200'), Decimal('4.19'), Decimal('6.60')),
    (Decimal('200'), Decimal('250'), Decimal('6.60'), Decimal('8.44')),
    (Decimal('250'), Decimal('300'), Decimal('8.44'), Decimal('9.96')),
    (Decimal('300'), Decimal('400'), Decimal('9.96'), Decimal('9.96')),
]

# Source: IRS Revenue Procedure 2019-29
ACA_APPLICABLE_PERCENTAGE_2020 = [
    (Decimal('0'), Decimal('133'), Decimal('2.06'), Decimal('2.06')),
    (Decimal('133'), Decimal('150'), Decimal('3.09'), Decimal('4.12')),
    (Decimal('150'), Decimal('200'), Decimal('4.12'), Decimal('6.49')),
    (Decimal('200'), Decimal('250'), Decimal('6.49'), Decimal('8.29')),
    (Decimal('250'), Decimal('300'), Decimal('8.29'), Decimal('9.78')),
    (Decimal('300'), Decimal('400'), Decimal('9.78'), Decimal('9.78')),
]

ACA_APPLICABLE_PERCENTAGE_SCHEDULES = {
    2020: ACA_APPLICABLE_PERCENTAGE_2020,
    2026: ACA_APPLICABLE_PERCENTAGE_2026,
}

# Subsidy eligibility band (% FPL, inclusive on both ends)
ACA_SUBSIDY_FPL_FLOOR = 100
ACA_SUBSIDY_FPL_CAP = 400

# IRS affordability threshold: self-only LCSP cost as a share of household income
AFFORDABILITY_THRESHOLDS = {
    2020: Decimal('0.0978'),
    2026: Decimal('0.0996'),
}

SUPPORTED_PLAN_YEARS = sorted(FPL_TABLES.keys())
DEFAULT_PLAN_YEAR = 2026

# ==============================================================================
# QUOTE DEFAULTS
# ==============================================================================

DEFAULT_MAX_WORKERS = 8
DEFAULT_GROUP_TIMEOUT_SECONDS = 60
DEFAULT_RECOMMENDED_PLAN_COUNT = 10

# Reference CSV file names
REFERENCE_FILES = {
    'counties': 'counties.csv',
    'zip_counties': 'zip_counties.csv',
    'plans': 'plans.csv',
    'plan_counties': 'plan_counties.csv',
    'pricings': 'pricings.csv',
}

# Export CSV columns
EXPORT_COLUMNS = [
    'Member Name',
    'Class',
    'Previous Cost',
    'New Cost',
    'Monthly Savings',
    'Annual Savings',
]

# Application configuration
APP_CONFIG = {
    'title': 'ICHRA Quote Engine',
    'icon': '📊',
    'layout': 'wide',
    'initial_sidebar_state': 'expanded'
}

if __name__ == "__main__":
    # Display constants for verification
    print("ICHRA Quote Engine Constants")
    print("=" * 50)
    print(f"\nMetal Levels: {', '.join(METAL_LEVELS)}")
    print(f"Plan Types: {', '.join(PLAN_TYPES)}")
    print(f"Supported plan years: {SUPPORTED_PLAN_YEARS}")

    for year in SUPPORTED_PLAN_YEARS:
        print(f"\n{year} applicable percentages:")
        for lower, upper, lower_pct, upper_pct in ACA_APPLICABLE_PERCENTAGE_SCHEDULES[year]:
            print(f"  {lower}-{upper}% FPL: {lower_pct}% - {upper_pct}%")

    print("\n✓ All constants loaded successfully!")
