"""
Census DataFrame Schema - Member Input

Canonical column names for a group census, alias normalization, and
conversion of census rows into Member objects for quoting.

Expected census columns (aliases accepted):
- Employee Number, First Name, Last Name, Home Zip, Class
- EE DOB or Age, Tobacco, County ID (multi-county ZIPs only)
- Annual Income or Monthly Income, Household Size
- Spouse DOB, Dep 2 DOB .. Dep 6 DOB
- Current ER Monthly, Current EE Monthly, Current Plan
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

import pandas as pd

from quote_types import Dependent, Member, PreviousContributions, calculate_age

logger = logging.getLogger(__name__)


# =============================================================================
# CANONICAL COLUMN NAMES
# =============================================================================

# Employee identification
COL_EMPLOYEE_ID = 'employee_id'
COL_FIRST_NAME = 'first_name'
COL_LAST_NAME = 'last_name'
COL_CLASS = 'class_id'

# Demographics
COL_AGE = 'age'
COL_DOB = 'dob'
COL_TOBACCO = 'tobacco'
COL_SPOUSE_DOB = 'spouse_dob'
DEPENDENT_DOB_COLUMNS = [f'dep_{i}_dob' for i in range(2, 7)]

# Location
COL_ZIP = 'zip_code'
COL_COUNTY_ID = 'county_id'

# Financial data (optional)
COL_ANNUAL_INCOME = 'annual_income'
COL_MONTHLY_INCOME = 'monthly_income'
COL_HOUSEHOLD_SIZE = 'household_size'
COL_CURRENT_EE = 'current_ee_monthly'
COL_CURRENT_ER = 'current_er_monthly'
COL_CURRENT_PLAN = 'current_plan'

REQUIRED_COLUMNS = [COL_EMPLOYEE_ID, COL_ZIP, COL_CLASS]


# =============================================================================
# COLUMN ALIASES
# =============================================================================
# Key = alias that might appear in raw data, Value = canonical name

COLUMN_ALIASES = {
    'Employee Number': COL_EMPLOYEE_ID,
    'emp_id': COL_EMPLOYEE_ID,
    'member_id': COL_EMPLOYEE_ID,

    'First Name': COL_FIRST_NAME,
    'Last Name': COL_LAST_NAME,

    'Class': COL_CLASS,
    'class': COL_CLASS,

    'Age': COL_AGE,
    'EE Age': COL_AGE,
    'EE DOB': COL_DOB,
    'Tobacco': COL_TOBACCO,
    'Spouse DOB': COL_SPOUSE_DOB,

    'Home Zip': COL_ZIP,
    'zip': COL_ZIP,
    'County ID': COL_COUNTY_ID,

    'Annual Income': COL_ANNUAL_INCOME,
    'Household Income': COL_ANNUAL_INCOME,
    'Monthly Income': COL_MONTHLY_INCOME,
    'Household Size': COL_HOUSEHOLD_SIZE,

    'Current EE Monthly': COL_CURRENT_EE,
    'Current ER Monthly': COL_CURRENT_ER,
    'Current Plan': COL_CURRENT_PLAN,
}
COLUMN_ALIASES.update({f'Dep {i} DOB': f'dep_{i}_dob' for i in range(2, 7)})


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_census_df(df: pd.DataFrame, inplace: bool = False) -> pd.DataFrame:
    """
    Normalize column names to canonical schema.

    Args:
        df: Census DataFrame to normalize
        inplace: If True, modify df in place. If False, return a copy.

    Returns:
        Normalized DataFrame with canonical column names
    """
    if df is None:
        return pd.DataFrame()
    if not inplace:
        df = df.copy()

    rename_map = {
        alias: canonical for alias, canonical in COLUMN_ALIASES.items()
        if alias in df.columns and canonical not in df.columns
    }
    if rename_map:
        df.rename(columns=rename_map, inplace=True)

    return df


def missing_required_columns(df: pd.DataFrame) -> List[str]:
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if COL_AGE not in df.columns and COL_DOB not in df.columns:
        missing.append(f"{COL_AGE} or {COL_DOB}")
    return missing


# =============================================================================
# CELL PARSERS
# =============================================================================

def _blank(value) -> bool:
    return value is None or (not isinstance(value, str) and pd.isna(value)) or str(value).strip() == ''


def parse_money(value) -> Optional[Decimal]:
    """'$1,250.50' -> Decimal('1250.50'); blank -> None."""
    if _blank(value):
        return None
    try:
        return Decimal(str(value).replace('$', '').replace(',', '').strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount {value!r}")


def parse_dob(value) -> Optional[date]:
    if _blank(value):
        return None
    return pd.to_datetime(str(value).strip()).date()


def parse_flag(value) -> bool:
    return not _blank(value) and str(value).strip().lower() in ('y', 'yes', 'true', '1', 't')


def _zip_text(value) -> str:
    text = '' if _blank(value) else str(value).strip()
    if text.endswith('.0'):
        text = text[:-2]
    return text.zfill(5) if text.isdigit() else text


# =============================================================================
# CENSUS -> MEMBERS
# =============================================================================

def member_from_row(row: pd.Series, reference_date: Optional[date] = None) -> Member:
    """
    Build a Member from a normalized census row.

    Raises:
        ValueError: unparseable age, date or amount
    """
    reference_date = reference_date or date.today()

    dob = parse_dob(row.get(COL_DOB))
    age = None
    if not _blank(row.get(COL_AGE)):
        age = int(float(row.get(COL_AGE)))

    dependents = []
    spouse_dob = parse_dob(row.get(COL_SPOUSE_DOB))
    if spouse_dob:
        dependents.append(Dependent('spouse', age=calculate_age(spouse_dob, reference_date)))
    for col in DEPENDENT_DOB_COLUMNS:
        child_dob = parse_dob(row.get(col))
        if child_dob:
            dependents.append(Dependent('child', age=calculate_age(child_dob, reference_date)))

    income = parse_money(row.get(COL_ANNUAL_INCOME))
    if income is None:
        monthly = parse_money(row.get(COL_MONTHLY_INCOME))
        income = monthly * 12 if monthly is not None else None

    household_size = None
    if not _blank(row.get(COL_HOUSEHOLD_SIZE)):
        household_size = int(float(row.get(COL_HOUSEHOLD_SIZE)))

    county_id = None
    if not _blank(row.get(COL_COUNTY_ID)):
        county_id = int(float(row.get(COL_COUNTY_ID)))

    return Member(
        member_id=str(row.get(COL_EMPLOYEE_ID)).strip(),
        zip_code=_zip_text(row.get(COL_ZIP)),
        first_name='' if _blank(row.get(COL_FIRST_NAME)) else str(row.get(COL_FIRST_NAME)).strip(),
        last_name='' if _blank(row.get(COL_LAST_NAME)) else str(row.get(COL_LAST_NAME)).strip(),
        age=age,
        date_of_birth=dob,
        tobacco=parse_flag(row.get(COL_TOBACCO)),
        household_income=income,
        household_size=household_size,
        class_id=None if _blank(row.get(COL_CLASS)) else str(row.get(COL_CLASS)).strip(),
        county_id=county_id,
        dependents=dependents,
        previous_contributions=PreviousContributions(
            employer_contribution=parse_money(row.get(COL_CURRENT_ER)) or Decimal('0'),
            member_contribution=parse_money(row.get(COL_CURRENT_EE)) or Decimal('0'),
            plan_name='' if _blank(row.get(COL_CURRENT_PLAN)) else str(row.get(COL_CURRENT_PLAN)).strip(),
        ),
    )


def members_from_census(df: pd.DataFrame,
                        reference_date: Optional[date] = None) -> Tuple[List[Member], List[str]]:
    """
    Convert a census DataFrame to Members.

    Returns:
        (members, row_errors). Rows that cannot be parsed are reported and
        left out rather than failing the whole census.

    Raises:
        ValueError: required columns are missing
    """
    df = normalize_census_df(df)
    missing = missing_required_columns(df)
    if missing:
        raise ValueError(f"Census is missing required columns: {', '.join(missing)}")

    members, errors = [], []
    for index, row in df.iterrows():
        try:
            members.append(member_from_row(row, reference_date))
        except (ValueError, TypeError) as e:
            errors.append(f"Row {index + 2}: {e}")
            logger.warning(f"CENSUS: row {index + 2} skipped: {e}")
    return members, errors
