"""Tests for progress logging and config masking."""

import unittest

from vividbooks_migrator.logger import LOGGER_NAME, ProgressTracker, _sanitize_config


class TestProgressTracker(unittest.TestCase):

    def test_counts_and_summary(self):
        with self.assertLogs(LOGGER_NAME, level='INFO') as logs:
            with ProgressTracker(total_items=2, item_type='lessons') as tracker:
                tracker.increment(success=True)
                tracker.increment(success=False)

        self.assertEqual((tracker.successful_items, tracker.failed_items), (1, 1))
        self.assertIn('[2/2] lessons: FAILED', logs.output[2])
        self.assertTrue(logs.output[-1].startswith('WARNING'))
        self.assertIn('Lessons done: 1/2 imported, 1 failed', logs.output[-1])

    def test_all_failed_logs_error(self):
        with self.assertLogs(LOGGER_NAME, level='INFO') as logs:
            with ProgressTracker(total_items=1, item_type='worksheets') as tracker:
                tracker.increment(success=False)
        self.assertTrue(logs.output[-1].startswith('ERROR'))


class TestSanitizeConfig(unittest.TestCase):

    def test_masks_secrets_only(self):
        config = {
            'legacy_api': {'base_url': 'https://api.vividbooks.com/v1', 'user_code': 'abc'},
            'platform': {'access_token': 'tok', 'refresh_token': '', 'anon_key': 'k'},
        }
        sanitized = _sanitize_config(config)

        self.assertEqual(sanitized['legacy_api']['base_url'], 'https://api.vividbooks.com/v1')
        self.assertEqual(sanitized['legacy_api']['user_code'], '***REDACTED***')
        self.assertEqual(sanitized['platform']['access_token'], '***REDACTED***')
        self.assertEqual(sanitized['platform']['refresh_token'], '')
        self.assertEqual(config['platform']['access_token'], 'tok')


if __name__ == '__main__':
    unittest.main()
