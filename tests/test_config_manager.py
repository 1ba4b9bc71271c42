"""
Unit tests for ConfigManager class.
"""
import logging
import unittest
from pathlib import Path

from quizbot.config_manager import ConfigManager


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        self.config_manager = ConfigManager()
        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        self.assertEqual(self.config_manager.get_window_seconds(), 20)
        self.assertEqual(self.config_manager.get_data_directory(), "./data/")
        self.assertEqual(self.config_manager.get_max_question_count(), 100)
        self.assertIsNone(self.config_manager.get_guild_id())

    def test_window_seconds_bounds(self):
        self.assertTrue(self.config_manager.set_window_seconds(5)['success'])
        self.assertTrue(self.config_manager.set_window_seconds(300)['success'])
        self.assertEqual(self.config_manager.get_window_seconds(), 300)

        too_short = self.config_manager.set_window_seconds(4)
        self.assertFalse(too_short['success'])
        self.assertIn("Minimum is 5 seconds", too_short['user_message'])

        too_long = self.config_manager.set_window_seconds(301)
        self.assertFalse(too_long['success'])
        self.assertEqual(self.config_manager.get_window_seconds(), 300)

    def test_window_seconds_type_checks(self):
        for value in ("20", 20.5, None, True):
            result = self.config_manager.set_window_seconds(value)
            self.assertFalse(result['success'], value)
            self.assertIn("Invalid input", result['user_message'])

    def test_max_question_count_bounds(self):
        self.assertTrue(self.config_manager.set_max_question_count(1)['success'])
        self.assertFalse(self.config_manager.set_max_question_count(0)['success'])
        self.assertFalse(self.config_manager.set_max_question_count(101)['success'])
        self.assertEqual(self.config_manager.get_max_question_count(), 1)

    def test_data_directory_is_resolved(self):
        result = self.config_manager.set_data_directory("./banks")
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_data_directory(), str(Path("./banks").resolve()))

    def test_data_directory_rejections(self):
        self.assertFalse(self.config_manager.set_data_directory("")['success'])
        self.assertFalse(self.config_manager.set_data_directory("   ")['success'])
        self.assertFalse(self.config_manager.set_data_directory(42)['success'])
        self.assertFalse(self.config_manager.set_data_directory("/etc/quiz")['success'])

    def test_guild_id_accepts_numeric_strings(self):
        self.assertTrue(self.config_manager.set_guild_id("123456789")['success'])
        self.assertEqual(self.config_manager.get_guild_id(), 123456789)
        self.assertFalse(self.config_manager.set_guild_id("abc")['success'])
        self.assertEqual(self.config_manager.get_guild_id(), 123456789)

    def test_from_config(self):
        manager = ConfigManager.from_config({
            'bot': {'token': 'x', 'guild_id': '42'},
            'quiz': {'window_seconds': 30, 'max_question_count': 10},
        })

        self.assertEqual(manager.get_window_seconds(), 30)
        self.assertEqual(manager.get_max_question_count(), 10)
        self.assertEqual(manager.get_guild_id(), 42)
        self.assertEqual(manager.get_data_directory(), "./data/")

    def test_from_config_ignores_invalid_values(self):
        manager = ConfigManager.from_config({'quiz': {'window_seconds': 1, 'max_question_count': "ten"}})

        self.assertEqual(manager.get_window_seconds(), 20)
        self.assertEqual(manager.get_max_question_count(), 100)

    def test_from_empty_config(self):
        manager = ConfigManager.from_config({})
        self.assertTrue(manager.validate_settings()['valid'])

    def test_validate_settings_flags_corruption(self):
        self.config_manager._window_seconds = 1
        self.config_manager._data_directory = ""

        result = self.config_manager.validate_settings()

        self.assertFalse(result['valid'])
        self.assertEqual(len(result['issues']), 2)

    def test_reset_to_defaults(self):
        self.config_manager.set_window_seconds(60)
        self.config_manager.set_guild_id(7)
        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_window_seconds(), 20)
        self.assertIsNone(self.config_manager.get_guild_id())

    def test_settings_summary(self):
        summary = self.config_manager.get_settings_summary()
        self.assertIn("Timer: 20 seconds", summary)
        self.assertIn("Max questions: 100", summary)
        self.assertIn("Command scope: global", summary)


if __name__ == '__main__':
    unittest.main()
