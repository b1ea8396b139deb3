"""
Test Suite for Geographic Resolver - ICHRA Quote Engine
ZIP validation, county resolution and the rating-area cache

Run with: python -m pytest tests/test_geography.py
"""

import unittest

from errors import InvalidZipFormat, RatingAreaNotFound, ZipNotFound
from geography import GeographicResolver, RatingAreaCache, normalize_zip_code

from fixtures import build_reference_data, zip_counties_frame


# =============================================================================
# ZIP validation
# =============================================================================

class TestNormalizeZipCode(unittest.TestCase):

    def test_valid_zip(self):
        self.assertEqual(normalize_zip_code('78701'), '78701')
        self.assertEqual(normalize_zip_code(' 78701 '), '78701')
        self.assertEqual(normalize_zip_code(78701), '78701')

    def test_invalid_zips(self):
        for bad in ('7870', '787011', 'abcde', '09999', '', None, True, 1234):
            with self.subTest(zip_code=bad):
                with self.assertRaises(InvalidZipFormat):
                    normalize_zip_code(bad)


# =============================================================================
# County resolution
# =============================================================================

class TestResolveCounty(unittest.TestCase):

    def setUp(self):
        self.resolver = GeographicResolver(build_reference_data())

    def test_single_county_zip(self):
        resolution = self.resolver.resolve_county('78701')
        self.assertTrue(resolution.single)
        self.assertEqual(resolution.county.county_id, 1)
        self.assertEqual(resolution.county.name, 'Travis')
        self.assertEqual(resolution.county.state, 'TX')
        self.assertEqual(resolution.county.rating_area_id, 'RA_TX_001')
        self.assertEqual(resolution.county.available_plans, 4)

    def test_multi_county_zip_returns_all_candidates(self):
        resolution = self.resolver.resolve_county('78613')
        self.assertFalse(resolution.single)
        self.assertEqual([c.county_id for c in resolution.counties], [1, 2])
        self.assertEqual(resolution.counties[1].rating_area_id, 'RA_TX_002')

    def test_multi_county_selection(self):
        resolution = self.resolver.resolve_county('78613')
        self.assertEqual(resolution.select(2).name, 'Williamson')
        self.assertIsNone(resolution.select(None))
        self.assertIsNone(resolution.select(3))

    def test_zip_not_found(self):
        with self.assertRaises(ZipNotFound):
            self.resolver.resolve_county('99999')

    def test_invalid_zip(self):
        with self.assertRaises(InvalidZipFormat):
            self.resolver.resolve_county('7870')

    def test_county_without_zip_mapping(self):
        with self.assertRaises(RatingAreaNotFound):
            self.resolver.rating_area_for_county(99)
        self.assertNotIn(99, self.resolver.cache)

    def test_to_dict(self):
        data = self.resolver.resolve_county('78613').to_dict()
        self.assertFalse(data['single'])
        self.assertEqual(len(data['counties']), 2)


# =============================================================================
# Rating-area cache
# =============================================================================

class TestRatingAreaCache(unittest.TestCase):

    def test_loader_called_once_per_county(self):
        cache = RatingAreaCache()
        calls = []

        def loader(county_id):
            calls.append(county_id)
            return 'RA_TX_001'

        self.assertEqual(cache.get_or_load(1, loader), 'RA_TX_001')
        self.assertEqual(cache.get_or_load(1, loader), 'RA_TX_001')
        self.assertEqual(calls, [1])
        self.assertEqual(len(cache), 1)

    def test_value_loaded_across_invalidation_not_cached(self):
        """A reload during a lookup leaves the stale rating area out of the cache"""
        cache = RatingAreaCache()

        def loader(county_id):
            cache.invalidate()
            return 'RA_TX_001'

        self.assertEqual(cache.get_or_load(1, loader), 'RA_TX_001')
        self.assertNotIn(1, cache)
        self.assertEqual(cache.get_or_load(1, lambda county_id: 'RA_TX_009'), 'RA_TX_009')

    def test_injected_cache_is_populated(self):
        cache = RatingAreaCache()
        resolver = GeographicResolver(build_reference_data(), cache=cache)
        resolver.resolve_county('78701')
        self.assertIn(1, cache)

    def test_cache_invalidated_on_reference_reload(self):
        """Reload drops cached rating areas so remapped counties are re-read"""
        remapped = zip_counties_frame()
        remapped.loc[remapped['county_id'] == '1', 'rating_area_id'] = 'RA_TX_009'
        reference_data = build_reference_data(loader=lambda: build_reference_data(zip_counties=remapped))

        cache = RatingAreaCache()
        resolver = GeographicResolver(reference_data, cache=cache)
        self.assertEqual(resolver.rating_area_for_county(1), 'RA_TX_001')

        reference_data.reload()

        self.assertEqual(len(cache), 0)
        self.assertEqual(resolver.rating_area_for_county(1), 'RA_TX_009')

    def test_cache_kept_without_reload(self):
        reference_data = build_reference_data()
        cache = RatingAreaCache()
        resolver = GeographicResolver(reference_data, cache=cache)
        resolver.rating_area_for_county(1)
        resolver.resolve_county('78613')
        self.assertEqual(len(cache), 2)


if __name__ == '__main__':
    unittest.main()
