"""
SQL for the marketplace reference tables
All queries return DataFrames in the same shape as the CSV extracts.
"""

from typing import List

import pandas as pd

from constants import (
    MIN_TABULATED_AGE,
    MAX_TABULATED_AGE,
    AGE_COLUMN_TEMPLATE,
    AGE_TOBACCO_COLUMN_TEMPLATE,
    FAMILY_PRICE_COLUMNS,
)
from database import DatabaseConnection


def pricing_premium_columns() -> List[str]:
    """age_0, age_0_tobacco, ..., age_65_tobacco, then family columns and fixed_price."""
    columns = []
    for age in range(MIN_TABULATED_AGE, MAX_TABULATED_AGE + 1):
        columns.append(AGE_COLUMN_TEMPLATE.format(age=age))
        columns.append(AGE_TOBACCO_COLUMN_TEMPLATE.format(age=age))
    return columns + FAMILY_PRICE_COLUMNS + ['fixed_price']


PRICING_COLUMNS = ['plan_id', 'rating_area_id', 'effective_date', 'expiration_date'] + pricing_premium_columns()

REFERENCE_TABLE_DDL = {
    'counties': """
    CREATE TABLE IF NOT EXISTS counties (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        state_id CHAR(2) NOT NULL,
        rating_area_count INTEGER DEFAULT 0,
        service_area_count INTEGER DEFAULT 0
    );
    """,
    'zip_counties': """
    CREATE TABLE IF NOT EXISTS zip_counties (
        zip_code_id CHAR(5) NOT NULL,
        county_id INTEGER NOT NULL,
        rating_area_id TEXT NOT NULL,
        PRIMARY KEY (zip_code_id, county_id, rating_area_id)
    );

    CREATE INDEX IF NOT EXISTS idx_zip_counties_county
        ON zip_counties(county_id);
    """,
    'plans': """
    CREATE TABLE IF NOT EXISTS plans (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        display_name TEXT,
        carrier_name TEXT,
        level TEXT NOT NULL,
        on_market TEXT,
        off_market TEXT,
        plan_type TEXT,
        hsa_eligible TEXT,
        individual_medical_deductible NUMERIC(12, 2),
        individual_medical_moop NUMERIC(12, 2),
        primary_care_physician TEXT,
        specialist TEXT,
        generic_drugs TEXT
    );
    """,
    'plan_counties': """
    CREATE TABLE IF NOT EXISTS plan_counties (
        plan_id TEXT NOT NULL,
        county_id INTEGER NOT NULL,
        PRIMARY KEY (plan_id, county_id)
    );

    CREATE INDEX IF NOT EXISTS idx_plan_counties_county
        ON plan_counties(county_id);
    """,
    'pricings': (
        "CREATE TABLE IF NOT EXISTS pricings (\n"
        "    plan_id TEXT NOT NULL,\n"
        "    rating_area_id TEXT NOT NULL,\n"
        "    effective_date DATE,\n"
        "    expiration_date DATE,\n"
        + "".join(f"    {column} NUMERIC(12, 2),\n" for column in pricing_premium_columns())
        + "    UNIQUE (plan_id, rating_area_id, effective_date)\n"
        ");\n"
    ),
}


class ReferenceQueries:
    """SQL queries for reference data retrieval"""

    @staticmethod
    def get_counties(db: DatabaseConnection) -> pd.DataFrame:
        query = """
        SELECT id, name, state_id, rating_area_count, service_area_count
        FROM counties
        ORDER BY id
        """
        return db.execute_query(query)

    @staticmethod
    def get_zip_counties(db: DatabaseConnection) -> pd.DataFrame:
        query = """
        SELECT zip_code_id, county_id, rating_area_id
        FROM zip_counties
        ORDER BY zip_code_id, county_id
        """
        return db.execute_query(query)

    @staticmethod
    def get_zip_counties_by_zip(db: DatabaseConnection, zip_code: str) -> pd.DataFrame:
        """
        Get county and rating area rows for one ZIP code

        Args:
            db: Database connection
            zip_code: 5-digit ZIP code

        Returns:
            DataFrame with one row per county the ZIP spans
        """
        query = """
        SELECT z.zip_code_id, z.county_id, z.rating_area_id, c.name, c.state_id
        FROM zip_counties z
        JOIN counties c ON c.id = z.county_id
        WHERE z.zip_code_id = %s
        ORDER BY z.county_id
        """
        return db.execute_query(query, (zip_code,))

    @staticmethod
    def get_plans(db: DatabaseConnection) -> pd.DataFrame:
        query = """
        SELECT
            id, name, display_name, carrier_name, level,
            on_market, off_market, plan_type, hsa_eligible,
            individual_medical_deductible, individual_medical_moop,
            primary_care_physician, specialist, generic_drugs
        FROM plans
        ORDER BY id
        """
        return db.execute_query(query)

    @staticmethod
    def get_plan_counties(db: DatabaseConnection) -> pd.DataFrame:
        query = "SELECT plan_id, county_id FROM plan_counties"
        return db.execute_query(query)

    @staticmethod
    def get_plans_for_county(db: DatabaseConnection, county_id: int) -> pd.DataFrame:
        """Get plans sold in a county"""
        query = """
        SELECT p.id, p.name, p.carrier_name, p.level, p.on_market, p.off_market
        FROM plan_counties pc
        JOIN plans p ON p.id = pc.plan_id
        WHERE pc.county_id = %s
        ORDER BY p.id
        """
        return db.execute_query(query, (county_id,))

    @staticmethod
    def get_pricings(db: DatabaseConnection) -> pd.DataFrame:
        query = f"SELECT {', '.join(PRICING_COLUMNS)} FROM pricings"
        return db.execute_query(query)

    @staticmethod
    def get_table_counts(db: DatabaseConnection) -> pd.DataFrame:
        """Row counts for each reference table (used to verify imports)"""
        query = " UNION ALL ".join(
            f"SELECT '{table}' AS table_name, COUNT(*) AS row_count FROM {table}"
            for table in REFERENCE_TABLE_DDL
        )
        return db.execute_query(query)
