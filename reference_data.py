"""
Reference Data
Counties, ZIP-to-county mappings, plans, plan availability and rate tables,
loaded from CSV extracts of marketplace data or from PostgreSQL.

Rows that fail validation are skipped and counted in a ReferenceLoadReport;
data-quality problems that do not block pricing are recorded as warnings.
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

import pandas as pd

from constants import (
    METAL_LEVELS,
    PLAN_TYPES,
    MARKET_ON,
    MARKET_OFF,
    US_STATE_CODES,
    MIN_TABULATED_AGE,
    MAX_TABULATED_AGE,
    AGE_COLUMN_TEMPLATE,
    AGE_TOBACCO_COLUMN_TEMPLATE,
    FAMILY_PRICE_COLUMNS,
    REFERENCE_FILES,
)
from errors import ReferenceDataError
from rate_table import AgeRate, FamilyStructurePricing, RateTable, to_money

logger = logging.getLogger(__name__)

TRUE_VALUES = {'true', 't', '1', 'yes', 'y'}


# =============================================================================
# ENTITIES
# =============================================================================

@dataclass(frozen=True)
class County:
    county_id: int
    name: str
    state: str
    rating_area_count: int = 0
    service_area_count: int = 0


@dataclass(frozen=True)
class ZipCounty:
    zip_code: str
    county_id: int
    rating_area_id: str


@dataclass(frozen=True)
class Plan:
    """Marketplace plan. Benefit fields are carried through to quote output."""
    plan_id: str
    name: str
    carrier: str
    metal_level: str
    on_market: bool
    off_market: bool
    display_name: str = ""
    plan_type: Optional[str] = None
    hsa_eligible: bool = False
    deductible: Optional[Decimal] = None
    out_of_pocket_max: Optional[Decimal] = None
    primary_care: Optional[str] = None
    specialist: Optional[str] = None
    generic_drugs: Optional[str] = None

    @property
    def market(self) -> str:
        return MARKET_ON if self.on_market else MARKET_OFF


@dataclass
class ReferenceLoadReport:
    """Counts, skipped rows and warnings from one reference data load."""
    source: str = ""
    loaded_at: Optional[datetime] = None
    counts: Dict[str, int] = field(default_factory=dict)
    skipped: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def skip(self, table: str, reason: str) -> None:
        self.skipped[table] = self.skipped.get(table, 0) + 1
        logger.warning(f"REFERENCE LOAD: skipped {table} row - {reason}")

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(f"REFERENCE LOAD: {message}")

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
            "counts": dict(self.counts),
            "skipped": dict(self.skipped),
            "warnings": list(self.warnings),
        }


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _is_blank(value) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return str(value).strip() == ""


def _text(value, default: str = "") -> str:
    return default if _is_blank(value) else str(value).strip()


def _decimal(value) -> Optional[Decimal]:
    """Parse a money cell; blank -> None. Raises ValueError on garbage."""
    if _is_blank(value):
        return None
    try:
        return Decimal(str(value).replace('$', '').replace(',', '').strip())
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}")


def _bool(value) -> bool:
    return _text(value).lower() in TRUE_VALUES


def _int(value, default: int = 0) -> int:
    if _is_blank(value):
        return default
    return int(float(str(value).strip()))


def _date(value) -> Optional[date]:
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.to_datetime(str(value).strip()).date()


def normalize_zip(value) -> str:
    """Zero-pad a ZIP cell to 5 digits ('1234' and 1234.0 -> '01234')."""
    text = _text(value)
    if text.endswith('.0'):
        text = text[:-2]
    return text.zfill(5)


def normalize_metal_level(value) -> str:
    """'silver' -> 'Silver', 'expanded_bronze' -> 'Expanded Bronze'."""
    return _text(value).replace('_', ' ').title()


# =============================================================================
# TABLE PARSERS
# =============================================================================

def parse_counties(df: pd.DataFrame, report: ReferenceLoadReport) -> Dict[int, County]:
    counties = {}
    for _, row in df.iterrows():
        state = _text(row.get('state_id', row.get('state'))).upper()
        if state not in US_STATE_CODES:
            report.skip('counties', f"county {row.get('id')} has invalid state code {state!r}")
            continue
        try:
            county_id = _int(row.get('id'), default=-1)
            rating_area_count = _int(row.get('rating_area_count'))
            service_area_count = _int(row.get('service_area_count'))
        except ValueError:
            report.skip('counties', f"invalid numeric field in county {row.get('id')!r}")
            continue
        if county_id < 0:
            report.skip('counties', "missing county id")
            continue
        counties[county_id] = County(
            county_id=county_id,
            name=_text(row.get('name')),
            state=state,
            rating_area_count=rating_area_count,
            service_area_count=service_area_count,
        )
    report.counts['counties'] = len(counties)
    return counties


def parse_zip_counties(df: pd.DataFrame, counties: Dict[int, County],
                       report: ReferenceLoadReport) -> List[ZipCounty]:
    rows = []
    seen = set()
    for _, row in df.iterrows():
        zip_code = normalize_zip(row.get('zip_code_id', row.get('zip_code')))
        rating_area_id = _text(row.get('rating_area_id'))
        try:
            county_id = _int(row.get('county_id'), default=-1)
        except ValueError:
            report.skip('zip_counties', f"invalid county id {row.get('county_id')!r}")
            continue
        if not zip_code.isdigit() or len(zip_code) != 5:
            report.skip('zip_counties', f"invalid ZIP {zip_code!r}")
            continue
        if county_id not in counties:
            report.skip('zip_counties', f"ZIP {zip_code} references unknown county {county_id}")
            continue
        if not rating_area_id:
            report.skip('zip_counties', f"ZIP {zip_code} has no rating area")
            continue
        key = (zip_code, county_id, rating_area_id)
        if key in seen:
            continue
        seen.add(key)
        rows.append(ZipCounty(zip_code, county_id, rating_area_id))
    report.counts['zip_counties'] = len(rows)
    return rows


def parse_plans(df: pd.DataFrame, report: ReferenceLoadReport) -> Dict[str, Plan]:
    plans = {}
    for _, row in df.iterrows():
        plan_id = _text(row.get('id', row.get('plan_id')))
        if not plan_id:
            report.skip('plans', "missing plan id")
            continue
        on_market = _bool(row.get('on_market'))
        off_market = _bool(row.get('off_market'))
        if not on_market and not off_market:
            report.skip('plans', f"plan {plan_id} must be available on-market or off-market")
            continue
        metal_level = normalize_metal_level(row.get('level', row.get('metal_level')))
        if metal_level not in METAL_LEVELS:
            report.skip('plans', f"plan {plan_id} has unknown metal level {metal_level!r}")
            continue
        try:
            deductible = _decimal(row.get('individual_medical_deductible'))
            moop = _decimal(row.get('individual_medical_moop'))
        except ValueError as e:
            report.skip('plans', f"plan {plan_id}: {e}")
            continue
        name = _text(row.get('name'), plan_id)
        plan_type = _text(row.get('plan_type')).upper() or None
        if plan_type and plan_type not in PLAN_TYPES:
            report.warn(f"plan {plan_id} has unrecognised plan type {plan_type!r}")
        plans[plan_id] = Plan(
            plan_id=plan_id,
            name=name,
            carrier=_text(row.get('carrier_name'), 'Unknown'),
            metal_level=metal_level,
            on_market=on_market,
            off_market=off_market,
            display_name=_text(row.get('display_name'), name),
            plan_type=plan_type,
            hsa_eligible=_bool(row.get('hsa_eligible')),
            deductible=deductible,
            out_of_pocket_max=moop,
            primary_care=_text(row.get('primary_care_physician')) or None,
            specialist=_text(row.get('specialist')) or None,
            generic_drugs=_text(row.get('generic_drugs')) or None,
        )
    report.counts['plans'] = len(plans)
    return plans


def parse_plan_counties(df: pd.DataFrame, plans: Dict[str, Plan],
                        counties: Dict[int, County],
                        report: ReferenceLoadReport) -> Set[Tuple[str, int]]:
    pairs = set()
    for _, row in df.iterrows():
        plan_id = _text(row.get('plan_id'))
        try:
            county_id = _int(row.get('county_id'), default=-1)
        except ValueError:
            report.skip('plan_counties', f"invalid county id {row.get('county_id')!r}")
            continue
        if plan_id not in plans:
            report.skip('plan_counties', f"unknown plan {plan_id!r}")
            continue
        if county_id not in counties:
            report.skip('plan_counties', f"unknown county {county_id}")
            continue
        pairs.add((plan_id, county_id))
    report.counts['plan_counties'] = len(pairs)
    return pairs


def parse_pricing_row(row, report: ReferenceLoadReport) -> Optional[RateTable]:
    """
    Build a RateTable from one wide pricing row.

    Blank age cells are not tabulated. A blank tobacco cell for a tabulated
    age uses the regular premium. Any negative premium rejects the row.
    """
    plan_id = _text(row.get('plan_id'))
    rating_area_id = _text(row.get('rating_area_id'))
    if not plan_id or not rating_area_id:
        report.skip('pricings', "missing plan_id or rating_area_id")
        return None

    label = f"plan {plan_id} in {rating_area_id}"
    age_rates = {}
    tobacco_filled = 0
    try:
        for age in range(MIN_TABULATED_AGE, MAX_TABULATED_AGE + 1):
            regular = _decimal(row.get(AGE_COLUMN_TEMPLATE.format(age=age)))
            tobacco = _decimal(row.get(AGE_TOBACCO_COLUMN_TEMPLATE.format(age=age)))
            if regular is None:
                continue
            if regular < 0 or (tobacco is not None and tobacco < 0):
                report.skip('pricings', f"negative premium for age {age}, {label}")
                return None
            if tobacco is None:
                tobacco = regular
                tobacco_filled += 1
            age_rates[age] = AgeRate(to_money(regular), to_money(tobacco))

        family_prices = {}
        for column in FAMILY_PRICE_COLUMNS:
            value = _decimal(row.get(column))
            if value is not None and value < 0:
                report.skip('pricings', f"negative {column} premium, {label}")
                return None
            family_prices[column] = to_money(value) if value is not None else None

        fixed_price = _decimal(row.get('fixed_price'))
        if fixed_price is not None and fixed_price < 0:
            report.skip('pricings', f"negative fixed price, {label}")
            return None

        effective_date = _date(row.get('effective_date'))
        expiration_date = _date(row.get('expiration_date'))
    except (ValueError, TypeError) as e:
        report.skip('pricings', f"{label}: {e}")
        return None

    table = RateTable(
        plan_id=plan_id,
        rating_area_id=rating_area_id,
        age_rates=age_rates,
        family_pricing=FamilyStructurePricing(**family_prices),
        fixed_price=to_money(fixed_price) if fixed_price is not None else None,
        effective_date=effective_date,
        expiration_date=expiration_date,
    )

    if not age_rates and table.fixed_price is None and not table.family_pricing.has_any():
        report.skip('pricings', f"no premiums, {label}")
        return None

    if tobacco_filled and tobacco_filled < len(age_rates):
        report.warn(f"{tobacco_filled} ages without a tobacco rate priced at the regular rate, {label}")
    for warning in table.tobacco_warnings():
        report.warn(warning)

    return table


def parse_pricings(df: pd.DataFrame, plans: Dict[str, Plan],
                   report: ReferenceLoadReport) -> List[RateTable]:
    tables = []
    for _, row in df.iterrows():
        table = parse_pricing_row(row, report)
        if table is None:
            continue
        if table.plan_id not in plans:
            report.skip('pricings', f"pricing for unknown plan {table.plan_id!r}")
            continue
        tables.append(table)
    report.counts['pricings'] = len(tables)
    return tables


# =============================================================================
# REFERENCE DATA STORE
# =============================================================================

class ReferenceData:
    """
    Read-only store of reference tables with lookup indexes.

    reload() re-reads the source it was loaded from, swaps the tables in and then
    notifies subscribers (e.g. rating-area caches) that the data changed.
    """

    def __init__(self, counties: Dict[int, County], zip_counties: List[ZipCounty],
                 plans: Dict[str, Plan], plan_counties: Set[Tuple[str, int]],
                 rate_tables: List[RateTable],
                 report: Optional[ReferenceLoadReport] = None,
                 loader: Optional[Callable[[], "ReferenceData"]] = None):
        self._lock = threading.Lock()
        self._listeners: List[Callable[["ReferenceData"], None]] = []
        self._loader = loader
        self._install(counties, zip_counties, plans, plan_counties, rate_tables, report)

    def _install(self, counties, zip_counties, plans, plan_counties, rate_tables, report) -> None:
        zip_index = defaultdict(list)
        county_index = defaultdict(list)
        for row in zip_counties:
            zip_index[row.zip_code].append(row)
            county_index[row.county_id].append(row)

        rate_index = defaultdict(list)
        for table in rate_tables:
            rate_index[(table.plan_id, table.rating_area_id)].append(table)

        with self._lock:
            self.counties = dict(counties)
            self.zip_counties = list(zip_counties)
            self.plans = dict(plans)
            self.plan_counties = set(plan_counties)
            self.rate_tables = list(rate_tables)
            self.report = report or ReferenceLoadReport(source="memory", loaded_at=datetime.now())
            self._zip_index = dict(zip_index)
            self._county_zip_index = dict(county_index)
            self._rate_index = dict(rate_index)

    # Lookups

    def county(self, county_id: int) -> Optional[County]:
        return self.counties.get(county_id)

    def plan(self, plan_id: str) -> Optional[Plan]:
        return self.plans.get(plan_id)

    def zip_counties_for(self, zip_code: str) -> List[ZipCounty]:
        return list(self._zip_index.get(zip_code, []))

    def zip_counties_for_county(self, county_id: int) -> List[ZipCounty]:
        return list(self._county_zip_index.get(county_id, []))

    def rate_tables_for(self, plan_id: str, rating_area_id: str) -> List[RateTable]:
        return list(self._rate_index.get((plan_id, rating_area_id), []))

    def ensure_complete(self) -> None:
        """
        Raises:
            ReferenceDataError: counties, ZIP mappings or plans are missing entirely
        """
        missing = [
            name for name, table in (
                ('counties', self.counties),
                ('zip_counties', self.zip_counties),
                ('plans', self.plans),
            ) if not table
        ]
        if missing:
            raise ReferenceDataError(
                f"Reference data not loaded: no {', '.join(missing)}", missing=missing
            )

    # Reload events

    def subscribe(self, listener: Callable[["ReferenceData"], None]) -> None:
        """Register a callback invoked after every reload."""
        self._listeners.append(listener)

    def reload(self) -> ReferenceLoadReport:
        """Re-read the source this store was loaded from and notify subscribers."""
        if self._loader is None:
            raise ReferenceDataError("Reference data has no source to reload from")
        fresh = self._loader()
        self._install(fresh.counties, fresh.zip_counties, fresh.plans,
                      fresh.plan_counties, fresh.rate_tables, fresh.report)
        logger.info(f"REFERENCE LOAD: reloaded from {self.report.source}")
        self.notify_reloaded()
        return self.report

    def notify_reloaded(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Construction

    @classmethod
    def from_frames(cls, counties_df: pd.DataFrame, zip_counties_df: pd.DataFrame,
                    plans_df: pd.DataFrame, plan_counties_df: pd.DataFrame,
                    pricings_df: pd.DataFrame, source: str = "frames",
                    loader: Optional[Callable[[], "ReferenceData"]] = None) -> "ReferenceData":
        """Validate and index reference tables held in DataFrames."""
        load_start = time.time()
        report = ReferenceLoadReport(source=source, loaded_at=datetime.now())

        counties = parse_counties(counties_df, report)
        zip_counties = parse_zip_counties(zip_counties_df, counties, report)
        plans = parse_plans(plans_df, report)
        plan_counties = parse_plan_counties(plan_counties_df, plans, counties, report)
        rate_tables = parse_pricings(pricings_df, plans, report)

        logger.info(
            f"REFERENCE LOAD: {source} loaded in {time.time() - load_start:.2f}s "
            f"({report.counts}, skipped {report.total_skipped}, "
            f"{len(report.warnings)} warnings)"
        )
        return cls(counties, zip_counties, plans, plan_counties, rate_tables,
                   report=report, loader=loader)

    @classmethod
    def from_csv_directory(cls, directory) -> "ReferenceData":
        """
        Load counties.csv, zip_counties.csv, plans.csv, plan_counties.csv and
        pricings.csv from a directory.

        Raises:
            ReferenceDataError: a required file is missing
        """
        directory = Path(directory)
        paths = {name: directory / filename for name, filename in REFERENCE_FILES.items()}
        missing = [str(path) for path in paths.values() if not path.exists()]
        if missing:
            raise ReferenceDataError(f"Reference files not found: {', '.join(missing)}")

        frames = {
            name: pd.read_csv(path, dtype=str, keep_default_na=False)
            for name, path in paths.items()
        }
        return cls.from_frames(
            frames['counties'], frames['zip_counties'], frames['plans'],
            frames['plan_counties'], frames['pricings'],
            source=str(directory),
            loader=lambda: cls.from_csv_directory(directory),
        )

    @classmethod
    def from_database(cls, db) -> "ReferenceData":
        """Load reference tables through ReferenceQueries."""
        from queries import ReferenceQueries

        return cls.from_frames(
            ReferenceQueries.get_counties(db),
            ReferenceQueries.get_zip_counties(db),
            ReferenceQueries.get_plans(db),
            ReferenceQueries.get_plan_counties(db),
            ReferenceQueries.get_pricings(db),
            source=f"database {db.database}@{db.host}",
            loader=lambda: cls.from_database(db),
        )
