"""
Test Suite for Configuration - ICHRA Quote Engine

Run with: python -m pytest tests/test_config.py
"""

import tempfile
import unittest
from unittest.mock import patch

from config import QuoteConfig
from constants import DEFAULT_PLAN_YEAR, DEFAULT_MAX_WORKERS, DEFAULT_GROUP_TIMEOUT_SECONDS


class TestQuoteConfigFromEnvironment(unittest.TestCase):

    @patch.dict('os.environ', {}, clear=True)
    def test_defaults(self):
        config = QuoteConfig.from_environment()
        self.assertIsNone(config.reference_data_dir)
        self.assertEqual(config.plan_year, DEFAULT_PLAN_YEAR)
        self.assertEqual(config.max_workers, DEFAULT_MAX_WORKERS)
        self.assertEqual(config.group_timeout_seconds, DEFAULT_GROUP_TIMEOUT_SECONDS)
        self.assertEqual(config.log_level, 'INFO')

    @patch.dict('os.environ', {
        'REFERENCE_DATA_DIR': '/data/marketplace',
        'QUOTE_PLAN_YEAR': '2020',
        'QUOTE_MAX_WORKERS': '16',
        'QUOTE_GROUP_TIMEOUT_SECONDS': '2.5',
        'QUOTE_RECOMMENDED_PLAN_COUNT': '5',
        'LOG_LEVEL': 'debug',
    }, clear=True)
    def test_values_from_environment(self):
        config = QuoteConfig.from_environment()
        self.assertEqual(config.reference_data_dir, '/data/marketplace')
        self.assertEqual(config.plan_year, 2020)
        self.assertEqual(config.max_workers, 16)
        self.assertEqual(config.group_timeout_seconds, 2.5)
        self.assertEqual(config.recommended_plan_count, 5)
        self.assertEqual(config.log_level, 'DEBUG')

    @patch.dict('os.environ', {'QUOTE_MAX_WORKERS': 'lots'}, clear=True)
    def test_bad_integer_falls_back_with_warning(self):
        with self.assertLogs('config', level='WARNING') as logs:
            config = QuoteConfig.from_environment()
        self.assertEqual(config.max_workers, DEFAULT_MAX_WORKERS)
        self.assertIn('QUOTE_MAX_WORKERS', logs.output[0])


class TestQuoteConfigValidation(unittest.TestCase):

    def test_default_config_is_valid(self):
        is_valid, error = QuoteConfig().validate()
        self.assertTrue(is_valid)
        self.assertEqual(error, "")

    def test_existing_reference_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            is_valid, _ = QuoteConfig(reference_data_dir=tmpdir).validate()
        self.assertTrue(is_valid)

    def test_invalid_settings(self):
        cases = [
            (QuoteConfig(plan_year=2019), 'QUOTE_PLAN_YEAR'),
            (QuoteConfig(max_workers=0), 'QUOTE_MAX_WORKERS'),
            (QuoteConfig(group_timeout_seconds=0), 'QUOTE_GROUP_TIMEOUT_SECONDS'),
            (QuoteConfig(recommended_plan_count=0), 'QUOTE_RECOMMENDED_PLAN_COUNT'),
            (QuoteConfig(log_level='LOUD'), 'LOG_LEVEL'),
            (QuoteConfig(reference_data_dir='/no/such/dir'), 'REFERENCE_DATA_DIR'),
        ]
        for config, setting in cases:
            with self.subTest(setting=setting):
                is_valid, error = config.validate()
                self.assertFalse(is_valid)
                self.assertIn(setting, error)


if __name__ == '__main__':
    unittest.main()
