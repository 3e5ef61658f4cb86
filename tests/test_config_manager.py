"""
Unit tests for ConfigManager class.
"""
import unittest
import logging

from tablequiz.config_manager import ConfigManager
from tablequiz.models import RoundSettings
from tests.test_fixtures import TestFixtures


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        settings = self.config_manager.get_round_settings()

        self.assertEqual(settings, RoundSettings(feedback_delay=1.5, tick_interval=1.0, question_count=10))
        self.assertEqual(self.config_manager.get_default_table(), 2)
        self.assertEqual(self.config_manager.get_data_directory(), "./data/")
        self.assertIsNone(self.config_manager.get_score_service())

    def test_get_round_settings_returns_copy(self):
        settings = self.config_manager.get_round_settings()
        settings.feedback_delay = 9.0

        self.assertEqual(self.config_manager.get_feedback_delay(), 1.5)

    def test_set_default_table_valid_values(self):
        for table in range(2, 11):
            result = self.config_manager.set_default_table(table)
            self.assertTrue(result['success'])
            self.assertEqual(self.config_manager.get_default_table(), table)

    def test_set_default_table_invalid_values(self):
        for table in (1, 11, 0, -5):
            result = self.config_manager.set_default_table(table)
            self.assertFalse(result['success'])
            self.assertIn("Unknown table", result['user_message'])
        self.assertEqual(self.config_manager.get_default_table(), 2)

    def test_set_default_table_invalid_types(self):
        for value in ("5", 5.0, None, True):
            result = self.config_manager.set_default_table(value)
            self.assertFalse(result['success'])
            self.assertIn("Invalid input", result['user_message'])

    def test_set_feedback_delay(self):
        self.assertTrue(self.config_manager.set_feedback_delay(0)['success'])
        self.assertTrue(self.config_manager.set_feedback_delay(2.5)['success'])
        self.assertEqual(self.config_manager.get_feedback_delay(), 2.5)

        self.assertFalse(self.config_manager.set_feedback_delay(-0.1)['success'])
        self.assertFalse(self.config_manager.set_feedback_delay(10.5)['success'])
        self.assertFalse(self.config_manager.set_feedback_delay("1")['success'])
        self.assertEqual(self.config_manager.get_feedback_delay(), 2.5)

    def test_set_tick_interval(self):
        self.assertTrue(self.config_manager.set_tick_interval(0.01)['success'])
        self.assertEqual(self.config_manager.get_tick_interval(), 0.01)

        result = self.config_manager.set_tick_interval(0)
        self.assertFalse(result['success'])
        self.assertIn("between", result['error'])
        self.assertFalse(self.config_manager.set_tick_interval(6)['success'])
        self.assertFalse(self.config_manager.set_tick_interval(False)['success'])

    def test_set_score_service(self):
        result = self.config_manager.set_score_service("https://scores.example.com/api/", "anon", 5)

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_score_service(), {
            'base_url': "https://scores.example.com/api",
            'anon_key': "anon",
            'timeout': 5
        })

    def test_set_score_service_invalid(self):
        for url in ("", "   ", "ftp://scores.example.com", "scores.example.com", None):
            result = self.config_manager.set_score_service(url)
            self.assertFalse(result['success'], url)

        result = self.config_manager.set_score_service("https://scores.example.com", timeout=0)
        self.assertFalse(result['success'])
        self.assertIsNone(self.config_manager.get_score_service())

    def test_set_data_directory(self):
        result = self.config_manager.set_data_directory("./data/")
        self.assertTrue(result['success'])
        self.assertTrue(self.config_manager.get_data_directory().endswith("data"))

        self.assertFalse(self.config_manager.set_data_directory("")['success'])
        self.assertFalse(self.config_manager.set_data_directory(42)['success'])
        self.assertFalse(self.config_manager.set_data_directory("/etc/tablequiz")['success'])

    def test_apply_config(self):
        rejected = self.config_manager.apply_config(TestFixtures.create_valid_config())

        self.assertEqual(rejected, [])
        self.assertEqual(self.config_manager.get_default_table(), 7)
        self.assertEqual(self.config_manager.get_feedback_delay(), 0.5)
        self.assertEqual(self.config_manager.get_tick_interval(), 0.5)
        self.assertEqual(self.config_manager.get_score_service()['base_url'], "https://scores.example.com/api")

    def test_apply_config_reports_rejected_values(self):
        config = {"game": {"default_table": 42, "tick_interval": 0.5}}
        rejected = self.config_manager.apply_config(config)

        self.assertEqual(len(rejected), 1)
        self.assertEqual(self.config_manager.get_default_table(), 2)
        self.assertEqual(self.config_manager.get_tick_interval(), 0.5)

    def test_apply_config_skips_empty_service_url(self):
        self.assertEqual(self.config_manager.apply_config({"score_service": {"base_url": ""}}), [])
        self.assertIsNone(self.config_manager.get_score_service())

    def test_reset_to_defaults(self):
        self.config_manager.apply_config(TestFixtures.create_valid_config())
        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_default_table(), 2)
        self.assertEqual(self.config_manager.get_feedback_delay(), 1.5)
        self.assertIsNone(self.config_manager.get_score_service())

    def test_validate_settings(self):
        validation = self.config_manager.validate_settings()
        self.assertTrue(validation['valid'])
        self.assertEqual(validation['issues'], [])

        self.config_manager._round_settings.tick_interval = 0
        self.config_manager._default_table = 12
        validation = self.config_manager.validate_settings()
        self.assertFalse(validation['valid'])
        self.assertEqual(len(validation['issues']), 2)

    def test_get_settings_summary(self):
        self.config_manager.set_default_table(9)
        summary = self.config_manager.get_settings_summary()

        self.assertIn("Default table: 9", summary)
        self.assertIn("Feedback delay: 1.5 seconds", summary)
        self.assertIn("Score service: not configured", summary)


if __name__ == '__main__':
    unittest.main()
