"""
Content transformer for legacy Vividbooks entities.

Maps knowledge items, content-block documents and content-block educational
texts onto page documents, rehosting their media on the way, and persists the
pages through the page store. Animations placed on lessons are reported as
``AssetDiscovered`` events in ``outbox`` for the asset indexer.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import requests

from ..models import (
    AssetDiscovered,
    DocumentResult,
    DocumentType,
    ExtendedWorksheet,
    ImportContext,
    KnowledgeResult,
    LegacyBook,
    LegacyChapter,
    LegacyContentBlock,
    LegacyContentBlockDocument,
    LegacyKnowledge,
    TargetPage,
    TextResult,
    WorksheetLink,
    WorksheetResult,
)
from .asset_rehoster import AssetRehoster
from .page_store import PageExistsError, PageStore
from .platform_client import PlatformApiError
from .slug_generator import file_extension, file_name_from_url, slugify
from .sub_resources import DocumentResources

SECTION_SPACER = '\n\n<br><br><br>\n\n'
INTRO_HEADING = 'Úvodní text'

SUMMARY_CALLOUT_OPEN = (
    '<div class="callout callout-summary" data-type="callout" data-callout-type="summary" '
    'data-callout-title="Shrnutí" style="background-color: #eef2ff; border-radius: 12px; '
    'padding: 24px; margin: 24px 0;">\n'
)
METHODOLOGY_CALLOUT_OPEN = (
    '<div class="callout callout-methodology" data-type="callout" data-callout-type="methodology" '
    'data-callout-title="Metodická inspirace" style="background-color: #faf5ff; border-radius: 12px; '
    'padding: 24px; margin: 24px 0;">\n'
)
CALLOUT_CLOSE = '\n</div>\n\n'

# Only educational texts above this length are embedded in worksheet pages
MIN_EMBEDDED_TEXT_LENGTH = 100

_H1_H2_OPEN = re.compile(r'<h[12]([^>]*)>', re.IGNORECASE)
_H1_H2_CLOSE = re.compile(r'</h[12]>', re.IGNORECASE)
_LEADING_H1 = re.compile(r'^<h1[^>]*>([^<]*)</h1>', re.IGNORECASE)
_LEADING_H2 = re.compile(r'^<h2[^>]*>([^<]*)</h2>', re.IGNORECASE)


def demote_headings(html: str) -> str:
    """Turn h1 and h2 tags into h3, keeping their attributes."""
    return _H1_H2_CLOSE.sub('</h3>', _H1_H2_OPEN.sub(r'<h3\1>', html))


def strip_leading_title(html: str, title: str) -> str:
    """Drop a leading h1/h2 whose text repeats the page title."""
    wanted = title.lower().strip()
    for pattern in (_LEADING_H1, _LEADING_H2):
        match = pattern.match(html)
        if match and match.group(1).lower().strip() == wanted:
            return html.replace(match.group(0), '', 1).strip()
    return html


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


class ContentTransformer:
    """Builds and stores the pages for one legacy entity at a time."""

    def __init__(
        self,
        rehoster: AssetRehoster,
        pages: PageStore,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            rehoster: Asset rehoming service
            pages: Page store the transformed pages are saved to
            logger: Optional logger instance (defaults to module logger)
        """
        self.rehoster = rehoster
        self.pages = pages
        self.logger = logger or logging.getLogger('vividbooks_migrator.importers.content_transformer')
        self.outbox: List[AssetDiscovered] = []

    def drain_outbox(self) -> List[AssetDiscovered]:
        """Return and clear the asset events collected so far."""
        events, self.outbox = self.outbox, []
        return events

    def _rehost(self, url: Optional[str], file_name: str, folder: str, context: ImportContext) -> Optional[str]:
        if not url or not context.download_files:
            return None
        return self.rehoster.rehost(url, file_name, folder)

    def _inline_images(self, html: str, prefix: str, folder: str, context: ImportContext) -> str:
        if not context.download_files:
            return html
        return self.rehoster.rehost_inline_images(html, prefix, folder)

    # ------------------------------------------------------------------
    # knowledge items
    # ------------------------------------------------------------------

    def transform_knowledge(
        self,
        knowledge: LegacyKnowledge,
        chapter: LegacyChapter,
        book: LegacyBook,
        context: ImportContext
    ) -> KnowledgeResult:
        """
        Create the lesson page for a knowledge item, plus its worksheet page.

        Raises:
            PageExistsError: Lesson slug taken and overwrite disabled
            PlatformApiError: Lesson page could not be saved
        """
        slug = slugify(knowledge.name)
        folder = f"{context.category}/{slug}"
        self.logger.info(f"Transforming lesson '{knowledge.name}' -> {slug}")

        cover_image = knowledge.image_url or ''
        if knowledge.image_url:
            cover_image = self._rehost(
                knowledge.image_url, file_name_from_url(knowledge.image_url), folder, context
            ) or cover_image

        content = ''
        section_images: List[Dict[str, Any]] = []

        if knowledge.description:
            description = self._inline_images(
                knowledge.description, 'uvodni_text_img', f"{folder}/images", context
            )
            content += f"<h2>{INTRO_HEADING}</h2>\n{description}{SECTION_SPACER}"

        if knowledge.animation and knowledge.animation.items:
            section_images.append(self._build_animation(knowledge, chapter, book, slug, folder, context))

        if knowledge.questions:
            content += f"<h2>Diskuze</h2>\n{knowledge.questions}{SECTION_SPACER}"

        if knowledge.conclusion:
            conclusion = self._inline_images(
                knowledge.conclusion, 'shrnuti_img', f"{folder}/images", context
            )
            content += f"{SUMMARY_CALLOUT_OPEN}{conclusion}{CALLOUT_CLOSE}"

        if knowledge.answers:
            content += f"<h2>Odpovědi</h2>\n{knowledge.answers}\n\n"

        if knowledge.methodical_inspiration:
            content += f"{METHODOLOGY_CALLOUT_OPEN}{demote_headings(knowledge.methodical_inspiration)}{CALLOUT_CLOSE}"

        if knowledge.pdf_url or knowledge.methodical_inspiration_pdf_url:
            content += self._materials_list(knowledge, folder, context)

        page = TargetPage(
            slug=slug,
            title=knowledge.name,
            category=context.category,
            document_type=DocumentType.LESSON,
            content=content,
            # cover is only used on the menu item, never in the side panel
            featured_media='',
            section_images=section_images if context.section_images_enabled else [],
            legacy_ids={
                'knowledgeId': knowledge.id,
                'chapterId': chapter.id,
                'chapterName': chapter.name,
                'bookId': book.id,
                'bookName': book.name,
                'subjectId': book.subject_id,
                'subjectName': book.subject_name,
            },
            legacy_metadata={
                'isDemo': knowledge.is_demo,
                'isRvp': knowledge.is_rvp,
                'methodicsOnly': knowledge.methodics_only,
                'languageCode': knowledge.language_code,
                'textbookId': knowledge.textbook_id,
                'createdByTeacher': knowledge.created_by_teacher,
                'disabled': knowledge.disabled,
                'relatedKnowledgeIds': knowledge.related_knowledge_ids,
            }
        )
        self.pages.save(page, context.overwrite_existing)

        worksheet = None
        if knowledge.pdf_url:
            worksheet = self._create_knowledge_worksheet(knowledge, chapter, book, slug, context)

        return KnowledgeResult(slug=slug, cover_image_url=cover_image, worksheet=worksheet)

    def _build_animation(
        self,
        knowledge: LegacyKnowledge,
        chapter: LegacyChapter,
        book: LegacyBook,
        slug: str,
        folder: str,
        context: ImportContext
    ) -> Dict[str, Any]:
        animation = knowledge.animation
        animations_folder = f"{folder}/animations"

        steps = []
        for index, item in enumerate(animation.items):
            url = self._rehost(
                item.animation_url, f"animation_step_{index + 1}.json", animations_folder, context
            ) or item.animation_url
            steps.append({
                'id': f"step-{item.id or index}",
                'url': url,
                'title': f"Krok {index + 1}",
            })

        intro_url = animation.intro_animation_url
        if intro_url:
            intro_url = self._rehost(intro_url, 'intro_animation.json', animations_folder, context) or intro_url

        background = knowledge.target_2d_image_url
        if background:
            background = self._rehost(
                background, f"lottie_background.{file_extension(background) or 'png'}", animations_folder, context
            ) or background

        extra_tags = [tag for tag in (chapter.name, book.name, book.subject_name) if tag]
        if intro_url:
            self.outbox.append(AssetDiscovered(
                name=f"{knowledge.name} - Intro",
                url=intro_url,
                category=context.category,
                lesson_name=knowledge.name,
                lesson_slug=slug,
                is_intro=True,
                thumbnail_url=background,
                tags=list(extra_tags)
            ))
        for index, step in enumerate(steps):
            self.outbox.append(AssetDiscovered(
                name=step['title'],
                url=step['url'],
                category=context.category,
                lesson_name=knowledge.name,
                lesson_slug=slug,
                step_index=index,
                thumbnail_url=background,
                tags=list(extra_tags)
            ))

        return {
            'id': f"animation-{knowledge.id}",
            'heading': INTRO_HEADING,
            'type': 'lottie',
            'lottieConfig': _drop_none({
                'introUrl': intro_url,
                'steps': steps,
                'shouldLoop': any(item.is_loop for item in animation.items),
                'autoplay': True,
                'backgroundImage': background,
            }),
        }

    def _materials_list(self, knowledge: LegacyKnowledge, folder: str, context: ImportContext) -> str:
        pdfs_folder = f"{folder}/pdfs"
        pdf_url = knowledge.pdf_url
        if pdf_url:
            pdf_url = self._rehost(pdf_url, 'pracovni_list.pdf', pdfs_folder, context) or pdf_url
        methodology_url = knowledge.methodical_inspiration_pdf_url
        if methodology_url:
            methodology_url = self._rehost(
                methodology_url, 'metodicka_inspirace.pdf', pdfs_folder, context
            ) or methodology_url

        html = '<h2>Stáhnout materiály</h2>\n<ul>\n'
        if pdf_url:
            html += f'<li><a href="{pdf_url}" target="_blank">📥 Pracovní list (PDF)</a></li>\n'
        if methodology_url:
            html += f'<li><a href="{methodology_url}" target="_blank">📥 Metodická inspirace (PDF)</a></li>\n'
        html += '</ul>\n'
        return html

    def _create_knowledge_worksheet(
        self,
        knowledge: LegacyKnowledge,
        chapter: LegacyChapter,
        book: LegacyBook,
        lesson_slug: str,
        context: ImportContext
    ) -> Optional[WorksheetResult]:
        """Create the companion worksheet page. Failures are logged, never raised."""
        worksheet_slug = f"{lesson_slug}-pracovni-list"
        folder = f"{context.category}/{worksheet_slug}"

        try:
            pdf_url = self._rehost(knowledge.pdf_url, 'pracovni_list.pdf', folder, context) or knowledge.pdf_url
            cover = self.rehoster.render_pdf_thumbnail(pdf_url, folder) or ''

            solution_url = knowledge.solution_url or ''
            if knowledge.solution_url:
                solution_url = self._rehost(knowledge.solution_url, 'reseni.pdf', folder, context) or solution_url

            content = (
                '\n<h2>Pracovní list</h2>\n'
                f'<p>Pracovní list k lekci <strong>{knowledge.name}</strong>.</p>\n'
                '<p style="display: flex; gap: 12px; flex-wrap: wrap;">\n'
                f'  <a href="{pdf_url}" target="_blank" class="inline-flex items-center gap-2 px-4 py-2 '
                'bg-blue-500 text-white rounded-lg hover:bg-blue-600">📥 Stáhnout pracovní list (PDF)</a>'
            )
            if solution_url:
                content += (
                    f'\n  <a href="{solution_url}" target="_blank" class="inline-flex items-center gap-2 px-4 py-2 '
                    'bg-green-500 text-white rounded-lg hover:bg-green-600">✅ Řešení (PDF)</a>'
                )
            content += (
                '\n</p>\n\n'
                f'<iframe src="{pdf_url}" style="width: 100%; height: 800px; border: 1px solid #e2e8f0; '
                'border-radius: 8px; margin-top: 16px;" allowfullscreen></iframe>\n'
            )

            page = TargetPage(
                slug=worksheet_slug,
                title=f"{knowledge.name} - Pracovní list",
                category=context.category,
                document_type=DocumentType.WORKSHEET,
                content=content,
                description=f"Pracovní list k lekci {knowledge.name}",
                featured_media=cover,
                legacy_ids={
                    'knowledgeId': knowledge.id,
                    'chapterId': chapter.id,
                    'bookId': book.id,
                    'type': 'worksheet',
                }
            )
            self.pages.save(page, context.overwrite_existing)
        except PageExistsError:
            self.logger.info(f"Worksheet '{worksheet_slug}' already exists, not linking it again")
            return None
        except (PlatformApiError, requests.RequestException) as e:
            self.logger.error(f"Error creating worksheet for '{knowledge.name}': {e}")
            return None

        self.logger.info(f"Worksheet created: {worksheet_slug}")
        return WorksheetResult(slug=worksheet_slug, cover_image_url=cover)

    # ------------------------------------------------------------------
    # content-block documents
    # ------------------------------------------------------------------

    def transform_content_block_document(
        self,
        doc: LegacyContentBlockDocument,
        block: LegacyContentBlock,
        chapter: LegacyChapter,
        book: LegacyBook,
        context: ImportContext,
        text_slug: Optional[str] = None
    ) -> DocumentResult:
        """
        Create the worksheet page for a content-block document.

        Args:
            text_slug: Slug of the block's educational-text page, when one was created

        Raises:
            PageExistsError: Slug taken and overwrite disabled
            PlatformApiError: Page could not be saved
        """
        slug = slugify(doc.name)
        folder = f"{context.category}/{slug}"
        resources = DocumentResources(doc)
        self.logger.info(f"Transforming worksheet '{doc.name}' -> {slug}")

        pdf_url = self._rehost(doc.document_url, f"{slug}-worksheet.pdf", folder, context) or doc.document_url
        preview_url = self._rehost(doc.preview_url, f"{slug}-preview.jpg", folder, context) or doc.preview_url or ''
        solution_url = self._rehost(doc.solution_url, f"{slug}-solution.pdf", folder, context) or doc.solution_url or ''

        methodology_url = ''
        if block.methodical_inspirations_pdf and block.methodical_inspirations_pdf[0].get('documentUrl'):
            original = block.methodical_inspirations_pdf[0]['documentUrl']
            methodology_url = self._rehost(original, f"{slug}-methodology.pdf", folder, context) or original

        textbook_pdf_url = ''
        if block.textbook_pdf_url:
            textbook_pdf_url = self._rehost(
                block.textbook_pdf_url, f"{slug}-textbook.pdf", folder, context
            ) or block.textbook_pdf_url

        content = f"<h1>{doc.name}</h1>\n\n"
        if block.content and len(block.content) > MIN_EMBEDDED_TEXT_LENGTH:
            content += f"<h2>Učební text</h2>\n{block.content}\n\n"

        content += '<h2>Pracovní list</h2>\n'
        content += (
            f'<p><a href="{pdf_url}" target="_blank" download class="inline-flex items-center gap-2 px-4 py-2 '
            'bg-blue-600 text-white rounded-lg hover:bg-blue-700">📄 Stáhnout pracovní list (PDF)</a></p>\n'
        )
        content += (
            f'<div style="margin-top: 16px;"><iframe src="{pdf_url}" width="100%" height="600px" '
            'style="border: 1px solid #e2e8f0; border-radius: 8px;"></iframe></div>\n\n'
        )

        if solution_url:
            content += '<h2>Řešení</h2>\n'
            content += (
                f'<p><a href="{solution_url}" target="_blank" download class="inline-flex items-center gap-2 '
                'px-4 py-2 bg-green-600 text-white rounded-lg hover:bg-green-700">✅ Stáhnout řešení (PDF)</a></p>\n\n'
            )

        if resources.interactive:
            content += '<h2>Interaktivní verze</h2>\n<ul>\n'
            for item in resources.interactive:
                content += f'<li><a href="{item.url}" target="_blank">{item.name}</a></li>\n'
            content += '</ul>\n\n'

        if resources.practices:
            content += '<h2>Procvičování</h2>\n<ul>\n'
            for item in resources.practices:
                content += f'<li><a href="{item.url}" target="_blank">{item.name}</a> (úroveň {item.level})</li>\n'
            content += '</ul>\n\n'

        textbook_link = f"/docs/{context.category}/{text_slug}" if text_slug else textbook_pdf_url
        worksheet_data = self._worksheet_data(
            doc, resources, preview_url, pdf_url, solution_url, textbook_link, methodology_url
        )

        page = TargetPage(
            slug=slug,
            title=doc.name,
            category=context.category,
            document_type=DocumentType.WORKSHEET,
            content=content,
            description=f"Pracovní list: {doc.name}",
            featured_media=preview_url,
            worksheet_data=worksheet_data,
            legacy_ids={
                'documentId': doc.id,
                'blockId': block.id,
                'chapterId': chapter.id,
                'bookId': book.id,
                'subjectId': book.subject_id,
                'textbookId': doc.textbook_id,
            },
            legacy_metadata={
                'type': doc.type,
                'containsCorrectAnswers': doc.contains_correct_answers,
                'isRvp': doc.is_rvp,
                'hasSolution': bool(doc.solution_url),
                'hasTextbook': bool(textbook_pdf_url),
                'hasMethodology': bool(methodology_url),
                'languageCode': doc.language_code or 'cs',
                'bookName': book.name,
                'chapterName': chapter.name,
                'blockName': block.name,
            }
        )
        self.pages.save(page, context.overwrite_existing)

        extended = ExtendedWorksheet(
            solution_pdf=WorksheetLink('Řešení', solution_url) if solution_url else None,
            interactive=[item.link() for item in resources.interactive],
            textbook=WorksheetLink('Učební text', textbook_link) if textbook_link else None,
            methodology=WorksheetLink('Metodika', methodology_url) if methodology_url else None,
            practice=[item.link() for item in resources.practices],
            minigames=[item.link() for item in resources.minigames],
            tests=[item.link() for item in resources.tests],
            exams=[item.link() for item in resources.exams],
            bonuses=[item.link() for item in resources.bonus_sheets + resources.bonuses]
        )
        return DocumentResult(slug=slug, cover_image_url=preview_url, extended_worksheet=extended)

    @staticmethod
    def _worksheet_data(
        doc: LegacyContentBlockDocument,
        resources: DocumentResources,
        preview_url: str,
        pdf_url: Optional[str],
        solution_url: str,
        textbook_link: str,
        methodology_url: str
    ) -> Dict[str, Any]:
        """Cross-link record rendered by the worksheet view."""
        def document_type(item) -> str:
            return 'pdf' if item.is_document else 'link'

        return _drop_none({
            'previewImageUrl': preview_url or doc.preview_url,
            'pdfUrl': pdf_url or doc.document_url,
            'solutionPdfUrl': solution_url or doc.solution_url or None,
            'textbookUrl': textbook_link or None,
            'methodologyUrl': methodology_url or None,
            'exercises': [
                {'id': f"ex-{doc.id}-{p.index}", 'label': p.numbered_label, 'url': p.url, 'level': p.level}
                for p in resources.practices
            ],
            'minigames': [
                {'id': f"mg-{doc.id}-{m.index}", 'label': m.numbered_label, 'url': m.url, 'type': 'interactive'}
                for m in resources.minigames
            ],
            'tests': [
                {'id': f"test-{doc.id}-{t.index}", 'label': t.numbered_label, 'url': t.url, 'type': document_type(t)}
                for t in resources.tests
            ],
            'exams': [
                {'id': f"exam-{doc.id}-{e.index}", 'label': e.numbered_label, 'url': e.url, 'type': document_type(e)}
                for e in resources.exams
            ],
            'bonuses': [
                {'id': f"bonus-sheet-{doc.id}-{b.index}", 'label': b.numbered_label, 'url': b.url, 'type': 'pdf'}
                for b in resources.bonus_sheets
            ] + [
                {'id': f"bonus-{doc.id}-{b.index}", 'label': b.numbered_label, 'url': b.url, 'type': 'link'}
                for b in resources.bonuses
            ],
            'interactiveWorksheets': [
                {'id': f"iw-{doc.id}-{i.index}", 'label': i.numbered_label, 'url': i.url, 'type': 'interactive'}
                for i in resources.interactive
            ],
            'interactiveSolutions': [
                {'id': f"is-{doc.id}-{s.index}", 'label': s.numbered_label, 'url': s.url, 'type': 'interactive'}
                for s in resources.interactive_solutions
            ],
        })

    # ------------------------------------------------------------------
    # educational texts
    # ------------------------------------------------------------------

    def transform_content_block_text(
        self,
        block: LegacyContentBlock,
        chapter: LegacyChapter,
        book: LegacyBook,
        context: ImportContext
    ) -> TextResult:
        """
        Create the educational-text page of a content block.

        Raises:
            PageExistsError: Slug taken and overwrite disabled
            PlatformApiError: Page could not be saved
        """
        slug = slugify(f"ucebni-text-{block.name}")
        folder = f"{context.category}/{slug}"
        self.logger.info(f"Transforming educational text '{block.name}' -> {slug}")

        cover_image = block.image_url or ''
        if block.image_url:
            cover_image = self._rehost(block.image_url, f"{slug}-cover.jpg", folder, context) or cover_image

        content = strip_leading_title(block.content or '', block.name)

        if block.related_quizzes:
            content += '\n\n<h2>Související kvízy</h2>\n<ul>\n'
            for quiz in block.related_quizzes:
                content += f"<li>{quiz.get('name') or quiz.get('title') or 'Kvíz'}</li>\n"
            content += '</ul>\n'

        page = TargetPage(
            slug=slug,
            title=block.name,
            category=context.category,
            document_type=DocumentType.UCEBNI_TEXT,
            content=content,
            legacy_ids={
                'contentBlockId': block.id,
                'chapterId': chapter.id,
                'bookId': book.id,
                'subjectId': book.subject_id,
                'chapterName': chapter.name,
                'bookName': book.name,
                'subjectName': book.subject_name,
            },
            legacy_metadata={
                'isRvp': block.is_rvp,
                'titles': block.titles,
            }
        )
        self.pages.save(page, context.overwrite_existing)
        return TextResult(slug=slug, cover_image_url=cover_image)


__all__ = ['ContentTransformer', 'demote_headings', 'strip_leading_title']
