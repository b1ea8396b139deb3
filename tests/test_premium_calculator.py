"""
Test Suite for Premium Calculator - ICHRA Quote Engine
Individual pricing, family pricing order and the ACA 3-child rule

Run with: python -m pytest tests/test_premium_calculator.py
"""

import unittest
from datetime import date
from decimal import Decimal

from constants import (
    FAMILY_INDIVIDUAL,
    FAMILY_COUPLE,
    FAMILY_SINGLE_PARENT,
    FAMILY_FAMILY,
    FAMILY_CHILD_ONLY,
)
from errors import InvalidInput, PlanNotFound
from premium_calculator import (
    PremiumCalculator,
    classify_household,
    select_rated_members,
    PRICING_FIXED,
    PRICING_TIER,
    PRICING_PER_MEMBER,
)
from quote_types import HouseholdMember
from rate_table import AgeRate, FamilyStructurePricing, RateTable

from fixtures import QUOTE_DATE, build_reference_data


def household(*members):
    return [HouseholdMember(age, tobacco, relationship) for age, tobacco, relationship in members]


# =============================================================================
# Household classification
# =============================================================================

class TestClassifyHousehold(unittest.TestCase):

    def test_individual(self):
        self.assertEqual(classify_household(household((40, False, 'self'))), FAMILY_INDIVIDUAL)

    def test_couple(self):
        members = household((40, False, 'self'), (38, False, 'spouse'))
        self.assertEqual(classify_household(members), FAMILY_COUPLE)

    def test_single_parent(self):
        members = household((40, False, 'self'), (10, False, 'child'))
        self.assertEqual(classify_household(members), FAMILY_SINGLE_PARENT)

    def test_family(self):
        members = household((40, False, 'self'), (38, False, 'domestic_partner'), (10, False, 'child'))
        self.assertEqual(classify_household(members), FAMILY_FAMILY)

    def test_child_only(self):
        self.assertEqual(classify_household(household((12, False, 'child'))), FAMILY_CHILD_ONLY)

    def test_young_policy_holder_is_adult(self):
        """The employee counts as an adult even under 21"""
        self.assertEqual(classify_household(household((19, False, 'self'))), FAMILY_INDIVIDUAL)

    def test_three_adults_have_no_tier(self):
        members = household((40, False, 'self'), (38, False, 'spouse'), (30, False, 'other'))
        self.assertIsNone(classify_household(members))


class TestThreeChildRule(unittest.TestCase):

    def test_only_three_oldest_children_rated(self):
        members = household((40, False, 'self'), (15, False, 'child'), (5, False, 'child'),
                            (12, False, 'child'), (8, False, 'child'))
        rated = select_rated_members(members)
        self.assertEqual([m.age for m in rated], [40, 15, 12, 8])

    def test_children_21_and_over_always_rated(self):
        members = household((40, False, 'self'), (22, False, 'child'), (10, False, 'child'),
                            (9, False, 'child'), (8, False, 'child'), (7, False, 'child'))
        rated = select_rated_members(members)
        self.assertEqual(sorted(m.age for m in rated), [8, 9, 10, 22, 40])


# =============================================================================
# Rate table resolution and individual pricing
# =============================================================================

class TestIndividualPricing(unittest.TestCase):

    def setUp(self):
        self.calculator = PremiumCalculator(build_reference_data())

    def test_price_individual(self):
        premium = self.calculator.price_individual('SILVER_A', 30, False, 'RA_TX_001', QUOTE_DATE)
        self.assertEqual(premium.total_premium, Decimal('320.00'))
        self.assertEqual(premium.tobacco_surcharge, Decimal('0.00'))

    def test_tobacco_surcharge(self):
        premium = self.calculator.price_individual('SILVER_A', 30, True, 'RA_TX_001', QUOTE_DATE)
        self.assertEqual(premium.base_premium, Decimal('320.00'))
        self.assertEqual(premium.total_premium, Decimal('384.00'))
        self.assertEqual(premium.tobacco_surcharge, Decimal('64.00'))

    def test_effective_table_selected_by_date(self):
        current = self.calculator.get_rate_table('SILVER_A', 'RA_TX_001', QUOTE_DATE)
        expired = self.calculator.get_rate_table('SILVER_A', 'RA_TX_001', date(2025, 6, 1))
        self.assertEqual(current.effective_date, date(2026, 1, 1))
        self.assertEqual(expired.premium_for_age(30), Decimal('999.00'))

    def test_no_pricing_in_rating_area(self):
        with self.assertRaises(PlanNotFound):
            self.calculator.price_individual('SILVER_B', 30, False, 'RA_TX_002', QUOTE_DATE)

    def test_no_table_effective_on_date(self):
        with self.assertRaises(PlanNotFound):
            self.calculator.get_rate_table('SILVER_B', 'RA_TX_001', date(2024, 6, 1))


# =============================================================================
# Family pricing order
# =============================================================================

class TestFamilyPricing(unittest.TestCase):

    def setUp(self):
        self.calculator = PremiumCalculator(build_reference_data())
        self.family = household((40, False, 'self'), (38, False, 'spouse'), (10, False, 'child'))

    def _table(self, **kwargs):
        age_rates = {
            0: AgeRate(Decimal('180'), Decimal('180')),
            20: AgeRate(Decimal('180'), Decimal('180')),
            30: AgeRate(Decimal('320'), Decimal('384')),
            40: AgeRate(Decimal('400'), Decimal('480')),
        }
        return RateTable('P1', 'RA_TX_001', age_rates=age_rates, **kwargs)

    def test_fixed_price_wins(self):
        table = self._table(fixed_price=Decimal('850'),
                            family_pricing=FamilyStructurePricing(family=Decimal('1500')))
        premium = self.calculator.family_premium(table, self.family)
        self.assertEqual(premium.pricing_method, PRICING_FIXED)
        self.assertEqual(premium.premium, Decimal('850.00'))

    def test_tier_price_for_structure(self):
        table = self._table(family_pricing=FamilyStructurePricing(family=Decimal('1500')))
        premium = self.calculator.family_premium(table, self.family)
        self.assertEqual(premium.pricing_method, PRICING_TIER)
        self.assertEqual(premium.family_structure, FAMILY_FAMILY)
        self.assertEqual(premium.premium, Decimal('1500.00'))

    def test_tobacco_individual_uses_tobacco_tier(self):
        table = self._table(family_pricing=FamilyStructurePricing(
            single=Decimal('300'), single_tobacco=Decimal('360')))
        premium = self.calculator.family_premium(table, household((40, True, 'self')))
        self.assertEqual(premium.premium, Decimal('360.00'))

    def test_missing_tier_falls_back_to_member_sum(self):
        table = self._table(family_pricing=FamilyStructurePricing(single=Decimal('300')))
        premium = self.calculator.family_premium(table, household((40, True, 'self')))
        self.assertEqual(premium.pricing_method, PRICING_PER_MEMBER)
        self.assertEqual(premium.premium, Decimal('480.00'))

    def test_member_sum_applies_three_child_rule(self):
        members = household((40, False, 'self'), (38, False, 'spouse'), (15, False, 'child'),
                            (12, False, 'child'), (10, False, 'child'), (8, False, 'child'),
                            (5, False, 'child'))
        premium = self.calculator.price_family('SILVER_A', members, 'RA_TX_001', QUOTE_DATE)
        # 400.00 + 384.00 (age 38) + 3 x 180.00
        self.assertEqual(premium.premium, Decimal('1324.00'))
        self.assertEqual(premium.member_count, 7)
        self.assertEqual(premium.rated_member_count, 5)

    def test_adult_child_rated_beyond_three(self):
        members = household((40, False, 'self'), (22, False, 'child'), (10, False, 'child'),
                            (9, False, 'child'), (8, False, 'child'))
        premium = self.calculator.price_family('SILVER_A', members, 'RA_TX_001', QUOTE_DATE)
        # 400.00 + 302.22 (age 22) + 3 x 180.00
        self.assertEqual(premium.premium, Decimal('1242.22'))

    def test_empty_household_raises(self):
        with self.assertRaises(InvalidInput):
            self.calculator.family_premium(self._table(), [])


if __name__ == '__main__':
    unittest.main()
