"""Tests for sub-resource normalization."""

import unittest

from vividbooks_migrator.importers.sub_resources import (
    DocumentResources,
    SubResourceKind,
    normalize_all,
    normalize_methodology,
)
from vividbooks_migrator.models import LegacyContentBlockDocument


class TestNormalizers(unittest.TestCase):

    def test_practice_prefers_url_and_defaults_level(self):
        items = normalize_all(SubResourceKind.PRACTICE, [
            {'name': 'A', 'url': 'https://a', 'playableLink': 'https://b', 'level': 3},
            {'playableLink': 'https://c'},
        ])
        self.assertEqual(items[0].url, 'https://a')
        self.assertEqual(items[0].level, 3)
        self.assertEqual(items[1].url, 'https://c')
        self.assertEqual(items[1].level, 1)

    def test_test_falls_back_to_document(self):
        item = normalize_all(SubResourceKind.TEST, [{'documentUrl': 'https://doc.pdf'}])[0]
        self.assertEqual(item.url, 'https://doc.pdf')
        self.assertTrue(item.is_document)

    def test_bonus_sheet_prefers_document(self):
        item = normalize_all(SubResourceKind.BONUS_SHEET, [{'url': 'https://u', 'documentUrl': 'https://d.pdf'}])[0]
        self.assertEqual(item.url, 'https://d.pdf')

    def test_labels(self):
        unnamed, named = normalize_all(SubResourceKind.EXAM, [{'url': 'https://x'}, {'name': 'Čtvrtletka', 'url': 'https://y'}])
        self.assertEqual(unnamed.label, 'Písemka')
        self.assertEqual(unnamed.numbered_label, 'Písemka 1')
        self.assertEqual(named.label, 'Čtvrtletka')
        self.assertEqual(named.numbered_label, 'Čtvrtletka')

    def test_non_dict_entries_are_dropped(self):
        items = normalize_all(SubResourceKind.MINIGAME, ['junk', None, {'url': 'https://g'}])
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].url, 'https://g')

    def test_methodology(self):
        item = normalize_methodology({'url': 'https://u', 'documentUrl': 'https://m.pdf'})
        self.assertEqual(item.url, 'https://m.pdf')
        self.assertEqual(item.label, 'Metodika')

    def test_link_carries_level(self):
        item = normalize_all(SubResourceKind.PRACTICE, [{'url': 'https://a', 'level': 2}])[0]
        self.assertEqual(item.link().to_dict(), {'label': 'Procvičování', 'url': 'https://a', 'level': 2})


class TestDocumentResources(unittest.TestCase):

    def test_collects_every_kind(self):
        doc = LegacyContentBlockDocument.from_dict({
            'id': 1,
            'name': 'Doc',
            'practices': [{'url': 'https://p'}],
            'tests': [{'url': 'https://t'}],
            'abcdTests': [{'url': 'https://e'}],
            'minigames': [{'url': 'https://m'}],
            'interactiveWorksheets': [{'url': 'https://i'}],
            'interactiveSolutions': [{'url': 'https://s'}],
            'bonusSheets': [{'documentUrl': 'https://bs.pdf'}],
            'bonuses': [{'url': 'https://b'}],
            'methodicPdf': {'documentUrl': 'https://met.pdf'},
        })
        resources = DocumentResources(doc)
        self.assertEqual(resources.exams[0].url, 'https://e')
        self.assertEqual(resources.interactive_solutions[0].url, 'https://s')
        self.assertEqual(resources.bonus_sheets[0].url, 'https://bs.pdf')
        self.assertEqual(resources.methodology.url, 'https://met.pdf')

    def test_missing_methodology(self):
        doc = LegacyContentBlockDocument.from_dict({'id': 2, 'name': 'Doc'})
        self.assertIsNone(DocumentResources(doc).methodology)


if __name__ == '__main__':
    unittest.main()
