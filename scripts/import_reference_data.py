"""
Import marketplace reference CSVs into the database

Reads counties.csv, zip_counties.csv, plans.csv, plan_counties.csv and
pricings.csv from a directory, validates them the same way the quote
engine does, and loads the surviving rows into PostgreSQL.

Usage:
    python scripts/import_reference_data.py /path/to/csv_dir
"""

import sys
import logging
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import get_database_connection
from queries import REFERENCE_TABLE_DDL, PRICING_COLUMNS, ReferenceQueries, pricing_premium_columns
from reference_data import ReferenceData
from errors import ReferenceDataError

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000


def create_reference_tables(db):
    """Create the reference tables if they don't exist"""
    conn = db.connect()
    cursor = conn.cursor()
    for table, ddl in REFERENCE_TABLE_DDL.items():
        cursor.execute(ddl)
    conn.commit()
    cursor.close()

    print(f"✓ Created {len(REFERENCE_TABLE_DDL)} reference tables")


def clear_reference_tables(db):
    conn = db.connect()
    cursor = conn.cursor()
    cursor.execute(f"TRUNCATE TABLE {', '.join(REFERENCE_TABLE_DDL)}")
    conn.commit()
    cursor.close()

    print("Cleared existing data")


def insert_rows(db, table, columns, rows):
    """Insert rows in batches, ignoring duplicates"""
    placeholders = ", ".join(["%s"] * len(columns))
    insert_query = (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
        f"ON CONFLICT DO NOTHING"
    )

    total_inserted = 0
    for i in range(0, len(rows), BATCH_SIZE):
        batch = rows[i:i + BATCH_SIZE]
        total_inserted += db.execute_batch(insert_query, batch)
        print(f"  {table}: inserted {total_inserted:,} / {len(rows):,} records...", end='\r')

    print(f"\n✓ Imported {total_inserted:,} {table} records")
    return total_inserted


def _money(value):
    return str(value) if value is not None else None


def pricing_row(table):
    values = [table.plan_id, table.rating_area_id, table.effective_date, table.expiration_date]
    for column in pricing_premium_columns():
        if column.startswith('age_'):
            parts = column.split('_')
            rate = table.age_rates.get(int(parts[1]))
            if rate is None:
                values.append(None)
            else:
                values.append(_money(rate.tobacco if column.endswith('_tobacco') else rate.regular))
        elif column == 'fixed_price':
            values.append(_money(table.fixed_price))
        else:
            values.append(_money(getattr(table.family_pricing, column)))
    return tuple(values)


def import_reference_data(db, csv_dir):
    """Validate the CSV extracts and load them into the database"""
    print(f"Reading {csv_dir}...")
    reference = ReferenceData.from_csv_directory(csv_dir)
    report = reference.report

    for table, count in report.counts.items():
        skipped = report.skipped.get(table, 0)
        print(f"  {table}: {count:,} valid rows ({skipped:,} skipped)")
    if report.warnings:
        print(f"  {len(report.warnings):,} data-quality warnings (see log)")

    clear_reference_tables(db)

    insert_rows(db, 'counties',
                ['id', 'name', 'state_id', 'rating_area_count', 'service_area_count'],
                [(c.county_id, c.name, c.state, c.rating_area_count, c.service_area_count)
                 for c in reference.counties.values()])

    insert_rows(db, 'zip_counties',
                ['zip_code_id', 'county_id', 'rating_area_id'],
                [(z.zip_code, z.county_id, z.rating_area_id) for z in reference.zip_counties])

    insert_rows(db, 'plans',
                ['id', 'name', 'display_name', 'carrier_name', 'level', 'on_market', 'off_market',
                 'plan_type', 'hsa_eligible', 'individual_medical_deductible',
                 'individual_medical_moop', 'primary_care_physician', 'specialist', 'generic_drugs'],
                [(p.plan_id, p.name, p.display_name, p.carrier,
                  p.metal_level.lower().replace(' ', '_'),
                  str(p.on_market).lower(), str(p.off_market).lower(), p.plan_type,
                  str(p.hsa_eligible).lower(), _money(p.deductible), _money(p.out_of_pocket_max),
                  p.primary_care, p.specialist, p.generic_drugs)
                 for p in reference.plans.values()])

    insert_rows(db, 'plan_counties', ['plan_id', 'county_id'], sorted(reference.plan_counties))

    insert_rows(db, 'pricings', PRICING_COLUMNS,
                [pricing_row(table) for table in reference.rate_tables])

    # Verify import
    counts = ReferenceQueries.get_table_counts(db)
    for _, row in counts.iterrows():
        print(f"✓ Verified {int(row['row_count']):,} records in {row['table_name']}")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
        force=True
    )

    print("Marketplace Reference Data Import")
    print("=" * 60)

    if len(sys.argv) != 2:
        print("Usage: python scripts/import_reference_data.py <csv_dir>")
        sys.exit(1)

    csv_dir = Path(sys.argv[1])
    if not csv_dir.is_dir():
        print(f"ERROR: reference directory not found: {csv_dir}")
        sys.exit(1)

    db = get_database_connection()

    try:
        create_reference_tables(db)
        import_reference_data(db, csv_dir)
        print("\n✓ Import complete!")

    except ReferenceDataError as e:
        print(f"\n✗ Reference data error: {e}")
        sys.exit(1)

    except Exception as e:
        print(f"\n✗ Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    finally:
        db.close()
