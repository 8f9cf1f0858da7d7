"""Tests for mapping legacy entities onto pages."""

import dataclasses
import unittest

from fakes import LOTTIE_BYTES, STORAGE_URL, FakePlatformClient, knowledge_payload, sample_book_payload, sample_files
from vividbooks_migrator.importers.asset_rehoster import AssetRehoster
from vividbooks_migrator.importers.content_transformer import (
    ContentTransformer,
    demote_headings,
    strip_leading_title,
)
from vividbooks_migrator.importers.page_store import PageExistsError, PageStore
from vividbooks_migrator.models import ImportContext, LegacyBook, LegacyKnowledge


def _animated_knowledge() -> LegacyKnowledge:
    return LegacyKnowledge.from_dict(knowledge_payload(
        201, 'Tání ledu',
        conclusion='<p>Led taje při 0 °C.</p>',
        questions='<p>Proč led taje?</p>',
        answers='<p>Protože se ohřívá.</p>',
        methodicalInspiration='<h1>Metodika</h1><p>Pokus s ledem.</p>',
        target2DImageUrl='https://cdn.vividbooks.com/a/bg.png',
        animation={
            'introAnimationUrl': 'https://cdn.vividbooks.com/a/intro.json',
            'items': [
                {'id': 1, 'animationUrl': 'https://cdn.vividbooks.com/a/1.json'},
                {'id': 2, 'animationUrl': 'https://cdn.vividbooks.com/a/2.json', 'isLoop': True},
            ],
        }
    ))


class TransformerTestCase(unittest.TestCase):

    def setUp(self):
        files = sample_files()
        for name in ('intro', '1', '2'):
            files[f"https://cdn.vividbooks.com/a/{name}.json"] = (200, LOTTIE_BYTES, 'application/json')
        self.client = FakePlatformClient(files=files)
        self.transformer = ContentTransformer(AssetRehoster(self.client), PageStore(self.client))
        self.book = LegacyBook.from_dict(sample_book_payload())
        self.chapter = self.book.chapters[0]
        self.block = self.chapter.content_blocks[0]
        self.context = ImportContext(category='fyzika')


class TestKnowledge(TransformerTestCase):

    def test_lesson_sections_follow_fixed_order(self):
        result = self.transformer.transform_knowledge(_animated_knowledge(), self.chapter, self.book, self.context)

        content = self.client.page('tani-ledu', 'fyzika')['content']
        positions = [content.index(marker) for marker in (
            'Úvodní text', 'Diskuze', 'callout-summary', 'Odpovědi', 'callout-methodology'
        )]
        self.assertEqual(positions, sorted(positions))
        self.assertIn('<h3>Metodika</h3>', content)
        self.assertEqual(result.slug, 'tani-ledu')
        self.assertIsNone(result.worksheet)

    def test_animation_goes_to_side_panel_and_outbox(self):
        self.transformer.transform_knowledge(_animated_knowledge(), self.chapter, self.book, self.context)

        page = self.client.page('tani-ledu', 'fyzika')
        self.assertEqual(page['featuredMedia'], '')
        panel = page['sectionImages'][0]
        self.assertEqual(panel['type'], 'lottie')
        config = panel['lottieConfig']
        self.assertTrue(config['shouldLoop'])
        self.assertEqual([step['title'] for step in config['steps']], ['Krok 1', 'Krok 2'])
        self.assertTrue(config['introUrl'].startswith(STORAGE_URL))
        # background image is missing, so the original URL stays
        self.assertEqual(config['backgroundImage'], 'https://cdn.vividbooks.com/a/bg.png')

        events = self.transformer.drain_outbox()
        self.assertEqual(len(events), 3)
        self.assertTrue(events[0].is_intro)
        self.assertEqual([e.step_index for e in events[1:]], [0, 1])
        self.assertIn('Fyzika 6', events[0].tags)
        self.assertEqual(self.transformer.outbox, [])

    def test_section_images_disabled_for_category(self):
        context = ImportContext(category='matematika', section_images_enabled=False)
        self.transformer.transform_knowledge(_animated_knowledge(), self.chapter, self.book, context)
        self.assertEqual(self.client.page('tani-ledu', 'matematika')['sectionImages'], [])

    def test_pdf_creates_companion_worksheet(self):
        knowledge = self.chapter.knowledge[0]
        result = self.transformer.transform_knowledge(knowledge, self.chapter, self.book, self.context)

        self.assertEqual(result.worksheet.slug, 'teplomer-pracovni-list')
        lesson = self.client.page('teplomer', 'fyzika')
        self.assertIn('Stáhnout materiály', lesson['content'])
        worksheet = self.client.page('teplomer-pracovni-list', 'fyzika')
        self.assertEqual(worksheet['documentType'], 'worksheet')
        self.assertEqual(worksheet['title'], 'Teploměr - Pracovní list')

    def test_failed_assets_keep_original_urls(self):
        self.client.files = {}
        self.transformer.transform_knowledge(_animated_knowledge(), self.chapter, self.book, self.context)

        config = self.client.page('tani-ledu', 'fyzika')['sectionImages'][0]['lottieConfig']
        self.assertEqual(config['introUrl'], 'https://cdn.vividbooks.com/a/intro.json')
        self.assertEqual(config['steps'][0]['url'], 'https://cdn.vividbooks.com/a/1.json')

    def test_download_files_off_skips_rehosting(self):
        context = ImportContext(category='fyzika', download_files=False)
        self.transformer.transform_knowledge(_animated_knowledge(), self.chapter, self.book, context)

        self.assertEqual(self.client.count('UPLOAD'), 0)
        self.assertEqual(self.client.count('DOWNLOAD'), 0)

    def test_existing_lesson_raises_without_overwrite(self):
        knowledge = self.chapter.knowledge[1]
        self.transformer.transform_knowledge(knowledge, self.chapter, self.book, self.context)
        with self.assertRaises(PageExistsError):
            self.transformer.transform_knowledge(knowledge, self.chapter, self.book, self.context)

    def test_existing_worksheet_is_not_linked(self):
        knowledge = self.chapter.knowledge[0]
        self.transformer.transform_knowledge(knowledge, self.chapter, self.book, self.context)
        self.client.pages.pop(('teplomer', 'fyzika'))

        result = self.transformer.transform_knowledge(knowledge, self.chapter, self.book, self.context)
        self.assertIsNone(result.worksheet)


class TestDocuments(TransformerTestCase):

    def test_worksheet_page_and_cross_links(self):
        doc = self.block.documents[0]
        result = self.transformer.transform_content_block_document(
            doc, self.block, self.chapter, self.book, self.context, text_slug='ucebni-text-mereni-teploty'
        )

        self.assertEqual(result.slug, 'str-12-teplota')
        self.assertTrue(result.cover_image_url.startswith(STORAGE_URL))
        extended = result.extended_worksheet
        self.assertEqual(extended.textbook.url, '/docs/fyzika/ucebni-text-mereni-teploty')
        self.assertTrue(extended.methodology.url.startswith(STORAGE_URL))
        self.assertEqual(extended.practice[0].level, 2)
        self.assertEqual(extended.tests[0].url, 'https://test.vividbooks.com/t/1')

        page = self.client.page('str-12-teplota', 'fyzika')
        data = page['worksheetData']
        self.assertEqual(data['exercises'][0]['label'], 'Procvič teplotu')
        self.assertEqual(data['tests'][0]['label'], 'Test 1')
        self.assertNotIn('solutionPdfUrl', data)
        self.assertIn('(úroveň 2)', page['content'])

    def test_unreachable_solution_keeps_original_url(self):
        self.client.files = {}
        doc = dataclasses.replace(self.block.documents[0], solution_url='https://cdn.vividbooks.com/docs/12-reseni.pdf')
        result = self.transformer.transform_content_block_document(
            doc, self.block, self.chapter, self.book, self.context
        )

        self.assertEqual(result.extended_worksheet.solution_pdf.url, 'https://cdn.vividbooks.com/docs/12-reseni.pdf')
        page = self.client.page('str-12-teplota', 'fyzika')
        self.assertIn('https://cdn.vividbooks.com/docs/12-reseni.pdf', page['content'])
        self.assertEqual(page['worksheetData']['solutionPdfUrl'], 'https://cdn.vividbooks.com/docs/12-reseni.pdf')

    def test_short_block_text_is_not_embedded(self):
        doc = self.block.documents[1]
        self.transformer.transform_content_block_document(doc, self.block, self.chapter, self.book, self.context)
        self.assertNotIn('Učební text', self.client.page('str-5-teplomer', 'fyzika')['content'])


class TestEducationalText(TransformerTestCase):

    def test_strips_repeated_title(self):
        result = self.transformer.transform_content_block_text(self.block, self.chapter, self.book, self.context)

        self.assertEqual(result.slug, 'ucebni-text-mereni-teploty')
        page = self.client.page(result.slug, 'fyzika')
        self.assertEqual(page['documentType'], 'ucebni-text')
        self.assertTrue(page['content'].startswith('<p>Teplotu'))


class TestHtmlHelpers(unittest.TestCase):

    def test_demote_headings_keeps_attributes(self):
        self.assertEqual(demote_headings('<h1 class="x">A</h1><h2>B</h2><h4>C</h4>'),
                         '<h3 class="x">A</h3><h3>B</h3><h4>C</h4>')

    def test_strip_leading_title_only_on_match(self):
        self.assertEqual(strip_leading_title('<h2> Var </h2><p>x</p>', 'var'), '<p>x</p>')
        self.assertEqual(strip_leading_title('<h1>Jiné</h1><p>x</p>', 'Var'), '<h1>Jiné</h1><p>x</p>')


if __name__ == '__main__':
    unittest.main()
