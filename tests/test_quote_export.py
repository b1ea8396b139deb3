"""
Test Suite for Quote Export - ICHRA Quote Engine

Run with: python -m pytest tests/test_quote_export.py
"""

import unittest
from decimal import Decimal

import pandas as pd

from config import QuoteConfig
from constants import EXPORT_COLUMNS
from quote_export import (
    aggregate_selected_plans,
    employee_comparison,
    export_quote_csv,
    quote_to_dataframe,
)
from quote_orchestrator import QuoteOrchestrator

from fixtures import QUOTE_DATE, build_reference_data, make_class, make_member, previous


class TestQuoteExport(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        orchestrator = QuoteOrchestrator(build_reference_data(), config=QuoteConfig(max_workers=2))
        members = [
            make_member('E1', first_name='Ana', last_name='Ruiz', age=30,
                        previous_contributions=previous(500, 150)),
            make_member('E2', first_name='Ben', last_name='Cole', age=40,
                        previous_contributions=previous(500, 200)),
            make_member('E3', zip_code='78201', previous_contributions=previous(500, 100)),
            make_member('E4', zip_code='00000'),
        ]
        cls.result = orchestrator.quote_group(
            'G1', members, [make_class('FT', name='Full Time')], quote_date=QUOTE_DATE
        )

    def test_dataframe_has_row_per_quoted_member(self):
        df = quote_to_dataframe(self.result)
        self.assertEqual(list(df['member_id']), ['E1', 'E2', 'E3'])
        self.assertEqual(df.loc[0, 'best_plan_id'], 'BRONZE_A')
        self.assertEqual(df.loc[0, 'full_premium'], 240.0)
        self.assertTrue(pd.isna(df.loc[2, 'best_plan_id']))
        self.assertTrue(pd.isna(df.loc[2, 'full_premium']))

    def test_csv_export(self):
        lines = export_quote_csv(self.result).strip().splitlines()
        self.assertEqual(lines[0], ','.join(EXPORT_COLUMNS))
        self.assertEqual(lines[1], 'Ana Ruiz,Full Time,150.00,0.00,150.00,1800.00')
        self.assertEqual(len(lines), 3)

    def test_employee_comparison(self):
        comparison = employee_comparison(self.result, 'E2')
        self.assertEqual(comparison['previous']['total_cost'], Decimal('700.00'))
        self.assertEqual(comparison['new']['plan_id'], 'BRONZE_A')
        self.assertEqual(comparison['new']['employer_cost'], Decimal('300.00'))
        self.assertEqual(comparison['member_monthly_savings'], Decimal('200.00'))
        self.assertEqual(comparison['member_annual_savings'], Decimal('2400.00'))

    def test_employee_comparison_unquoted(self):
        self.assertIsNone(employee_comparison(self.result, 'E3'))
        self.assertIsNone(employee_comparison(self.result, 'E4'))

    def test_aggregate_selected_plans(self):
        df = aggregate_selected_plans(self.result)
        self.assertEqual(len(df), 1)
        self.assertEqual(df.loc[0, 'plan_id'], 'BRONZE_A')
        self.assertEqual(df.loc[0, 'member_count'], 2)
        self.assertEqual(df.loc[0, 'total_premium'], 540.0)
        self.assertEqual(df.loc[0, 'average_premium'], 270.0)


if __name__ == '__main__':
    unittest.main()
