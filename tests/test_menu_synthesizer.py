"""Tests for lesson grouping, workbooks and catalog folders."""

import unittest

from fakes import sample_book_payload
from vividbooks_migrator.importers.menu_synthesizer import (
    SelectedDocument,
    build_book_folder,
    build_workbook,
    build_workbook_page,
    extract_page_number,
    group_lessons,
    lesson_items,
    workbook_pages,
    worksheet_item,
)
from vividbooks_migrator.models import DocumentResult, KnowledgeResult, LegacyBook, MenuItem, WorksheetResult


def _worksheet(item_id, label):
    return MenuItem(id=item_id, label=label, slug=item_id, type='worksheet', cover_image=f"{item_id}.png")


class SynthesizerTestCase(unittest.TestCase):

    def setUp(self):
        self.book = LegacyBook.from_dict(sample_book_payload())
        self.chapter = self.book.chapters[0]
        self.block = self.chapter.content_blocks[0]


class TestPageNumbers(unittest.TestCase):

    def test_extract_page_number(self):
        self.assertEqual(extract_page_number('str. 12 Teplota'), 12)
        self.assertEqual(extract_page_number('STR 7'), 7)
        self.assertIsNone(extract_page_number('Teploměr'))

    def test_workbook_pages_sorted_with_position_fallback(self):
        pages = workbook_pages([
            _worksheet('a', 'str. 12 Teplota'),
            _worksheet('b', 'Bez čísla'),
            _worksheet('c', 'str. 5 Teploměr'),
        ])
        self.assertEqual([(p.worksheet_id, p.page_number) for p in pages], [('b', 2), ('c', 5), ('a', 12)])
        self.assertEqual(pages[0].id, 'page-b')
        self.assertEqual(pages[0].worksheet_cover, 'b.png')


class TestLessonGrouping(SynthesizerTestCase):

    def test_single_lesson_stays_at_root(self):
        knowledge = self.chapter.knowledge[1]
        items = lesson_items(knowledge, KnowledgeResult(slug='tani'))
        self.assertEqual(group_lessons(self.book, items, []), items)

    def test_lesson_with_worksheet_is_grouped(self):
        knowledge = self.chapter.knowledge[0]
        items = lesson_items(knowledge, KnowledgeResult(
            slug='teplomer', worksheet=WorksheetResult('teplomer-pracovni-list', 'thumb.jpg')
        ))
        self.assertEqual(len(items), 2)
        self.assertEqual(items[1].label, 'Teploměr - Pracovní list')

        grouped = group_lessons(self.book, items[:1], items[1:])
        self.assertEqual(len(grouped), 1)
        folder = grouped[0]
        self.assertEqual(folder.type, 'folder')
        self.assertEqual(folder.slug, 'lekce-fyzika-6')
        self.assertTrue(folder.id.startswith('imported-lessons-folder-44-'))
        self.assertEqual([child.slug for child in folder.children], ['teplomer', 'teplomer-pracovni-list'])


class TestWorkbook(SynthesizerTestCase):

    def test_workbook_references_worksheets(self):
        worksheets = [_worksheet('a', 'str. 12 Teplota'), _worksheet('c', 'str. 5 Teploměr')]
        workbook = build_workbook(self.book, 'fyzika', worksheets)

        self.assertEqual(workbook.type, 'workbook')
        self.assertEqual(workbook.slug, 'pracovni-sesit-fyzika-6')
        self.assertEqual(workbook.author, 'Jan Novák')
        self.assertIsNone(workbook.children)
        self.assertEqual([p.worksheet_slug for p in workbook.workbook_pages], ['c', 'a'])

    def test_workbook_page_record(self):
        page = build_workbook_page(self.book, 'fyzika').to_dict()
        self.assertEqual(page['type'], 'workbook')
        self.assertEqual(page['documentType'], 'workbook')
        self.assertIn('"eshopUrl": "https://eshop.vividbooks.com/fyzika-6"', page['content'])


class TestBookFolder(SynthesizerTestCase):

    def _selected(self):
        return [SelectedDocument(self.block, doc) for doc in self.block.documents]

    def _worksheets(self):
        return {
            doc.id: worksheet_item(doc, DocumentResult(slug=f"ws-{doc.id}"))
            for doc in self.block.documents
        }

    def test_single_chapter_is_flattened(self):
        folder = build_book_folder(self.book, 'fyzika', self._selected(), self._worksheets(), {70: 'ucebni-text-mereni-teploty'})

        self.assertEqual(folder.content_view, 'overview')
        self.assertEqual([child.id for child in folder.children], ['folder-block-70'])
        leaves = folder.children[0].children
        self.assertEqual([leaf.type for leaf in leaves], [
            'ucebni-text', 'worksheet', 'practice', 'test', 'worksheet', 'methodology'
        ])
        self.assertEqual(leaves[0].slug, 'ucebni-text-mereni-teploty')
        self.assertTrue(leaves[1].id.endswith('-folder-70'))
        self.assertEqual(leaves[2].label, 'Procvič teplotu')
        self.assertEqual(leaves[3].label, 'Test 1')
        self.assertEqual(leaves[5].label, 'Metodika bloku')

    def test_copies_do_not_touch_originals(self):
        worksheets = self._worksheets()
        original_ids = {doc_id: item.id for doc_id, item in worksheets.items()}
        build_book_folder(self.book, 'fyzika', self._selected(), worksheets, {})
        self.assertEqual({doc_id: item.id for doc_id, item in worksheets.items()}, original_ids)

    def test_missing_worksheet_is_skipped(self):
        folder = build_book_folder(self.book, 'fyzika', self._selected()[1:], {}, {})
        types = [leaf.type for leaf in folder.children[0].children]
        self.assertEqual(types, ['methodology'])

    def test_multiple_chapters_keep_chapter_level(self):
        payload = sample_book_payload()
        second = dict(payload['chapters'][0], id=8, name='Teplo', knowledge=[])
        second['contentBlocks'] = [dict(payload['chapters'][0]['contentBlocks'][0], id=80, name='Teplo a práce')]
        payload['chapters'].append(second)
        book = LegacyBook.from_dict(payload)

        folder = build_book_folder(book, 'fyzika', [], {}, {})
        self.assertEqual([child.id for child in folder.children], ['folder-chapter-7', 'folder-chapter-8'])

    def test_empty_folder_is_none(self):
        payload = sample_book_payload()
        payload['chapters'][0]['contentBlocks'][0]['methodicalInspirationsPdf'] = []
        book = LegacyBook.from_dict(payload)
        self.assertIsNone(build_book_folder(book, 'fyzika', [], {}, {}))


if __name__ == '__main__':
    unittest.main()
