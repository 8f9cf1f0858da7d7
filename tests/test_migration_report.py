"""Tests for the end-of-run report."""

import json
import os
import tempfile
import unittest

from vividbooks_migrator.models import ImportState, ImportStatus
from vividbooks_migrator.orchestrator import MigrationReport


def _stats(**overrides):
    stats = {
        'category': 'fyzika',
        'books_requested': 2,
        'books_fetched': 1,
        'succeeded': 3,
        'failed': 1,
        'already_existed': 1,
        'texts_created': 1,
        'menu_items': 2,
        'boards_rewritten': 1,
        'menu_updated': True,
        'destination_found': False,
        'errors': [{'phase': 'lessons', 'item_id': 'k-2', 'item_name': 'Tání', 'error': 'HTTP 500'}],
        'warnings': [],
        'duration_seconds': 75.0,
        'rehosting': {'rehosted': 4, 'skipped': 0, 'failed': 1, 'thumbnails': 1},
    }
    stats.update(overrides)
    return stats


def _statuses():
    ok = ImportStatus(id='k-1', type='knowledge', name='Teploměr')
    ok.mark(ImportState.SUCCESS)
    failed = ImportStatus(id='k-2', type='knowledge', name='Tání')
    failed.mark(ImportState.ERROR, 'HTTP 500')
    doc = ImportStatus(id='cb-7-doc-1', type='document', name='str. 1')
    doc.mark(ImportState.SUCCESS, 'Stránka již existovala')
    return [ok, failed, doc]


class TestMigrationReport(unittest.TestCase):

    def setUp(self):
        self.report_generator = MigrationReport()

    def test_summary(self):
        report = self.report_generator.generate_report(_stats(), _statuses())
        summary = report['summary']

        self.assertEqual(summary['items'], 3)
        self.assertEqual(summary['success_rate'], 0.75)
        self.assertEqual(summary['duration_formatted'], '1m 15s')
        self.assertEqual(summary['by_type']['knowledge']['error'], 1)
        self.assertEqual(summary['by_type']['document']['success'], 1)
        self.assertEqual(report['items'][2]['message'], 'Stránka již existovala')
        self.assertEqual(len(report['errors']), 1)

    def test_console_report(self):
        report = self.report_generator.generate_report(_stats(), _statuses())
        text = self.report_generator.format_console_report(report)

        self.assertIn('MIGRATION REPORT', text)
        self.assertIn('Books:       1/2 fetched', text)
        self.assertIn('destination not found', text)
        self.assertIn('[lessons] Tání: HTTP 500', text)
        self.assertIn('Rehosted: 4', text)

    def test_duration_formats(self):
        self.assertEqual(self.report_generator._format_duration(12.34), '12.3s')
        self.assertEqual(self.report_generator._format_duration(3725), '1h 2m 5s')

    def test_export_json(self):
        report = self.report_generator.generate_report(_stats(errors=[]), _statuses())
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, 'report.json')
            self.report_generator.export_json_report(report, path)
            with open(path, encoding='utf-8') as f:
                loaded = json.load(f)
        self.assertEqual(loaded['summary']['total_errors'], 0)
        self.assertEqual(loaded['items'][0]['name'], 'Teploměr')


if __name__ == '__main__':
    unittest.main()
