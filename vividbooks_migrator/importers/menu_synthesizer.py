"""
Menu synthesis for imported books.

Turns the transformed items of one legacy book into menu subtrees:

- lessons and their worksheets, wrapped in a book folder when there are two
  or more of them;
- content-block worksheets, collected into a workbook (ordered page
  references) when there are two or more;
- independently, a catalog folder mirroring chapter -> content block with the
  educational text, worksheets and every sub-resource as leaves.
"""

import dataclasses
import json
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..models import (
    DocumentResult,
    DocumentType,
    KnowledgeResult,
    LegacyBook,
    LegacyContentBlock,
    LegacyContentBlockDocument,
    LegacyKnowledge,
    MenuItem,
    MenuItemType,
    TargetPage,
    TextResult,
    WorkbookPage,
)
from .slug_generator import ephemeral_id, slugify
from .sub_resources import DocumentResources, normalize_methodology

logger = logging.getLogger('vividbooks_migrator.importers.menu_synthesizer')

# Books need at least this many items before they get a container
GROUPING_THRESHOLD = 2

_PAGE_NUMBER = re.compile(r'str\.?\s*(\d+)', re.IGNORECASE)


@dataclass
class SelectedDocument:
    """A selected content-block document with its enclosing block."""

    block: LegacyContentBlock
    doc: LegacyContentBlockDocument


def extract_page_number(label: str) -> Optional[int]:
    """Page number from a ``str. N`` marker in a worksheet label.

    >>> extract_page_number('str. 12 Teplota')
    12
    """
    match = _PAGE_NUMBER.search(label or '')
    return int(match.group(1)) if match else None


# ----------------------------------------------------------------------
# leaf items
# ----------------------------------------------------------------------

def lesson_item(knowledge: LegacyKnowledge, slug: str, cover_image: str) -> MenuItem:
    return MenuItem(
        id=ephemeral_id('imported', knowledge.id),
        label=knowledge.name,
        slug=slug,
        type=MenuItemType.LESSON.value,
        cover_image=cover_image
    )


def lesson_items(knowledge: LegacyKnowledge, result: KnowledgeResult) -> List[MenuItem]:
    """Menu items for a lesson and, when it was created, its worksheet."""
    items = [lesson_item(knowledge, result.slug, result.cover_image_url)]
    if result.worksheet:
        items.append(MenuItem(
            id=ephemeral_id('imported', knowledge.id, 'ws'),
            label=f"{knowledge.name} - Pracovní list",
            slug=result.worksheet.slug,
            type=MenuItemType.WORKSHEET.value,
            cover_image=result.worksheet.cover_image_url
        ))
    return items


def text_item(block: LegacyContentBlock, result: TextResult) -> MenuItem:
    return MenuItem(
        id=ephemeral_id('imported-text', block.id),
        label=block.name,
        slug=result.slug,
        type=MenuItemType.UCEBNI_TEXT.value,
        icon='book-open',
        cover_image=result.cover_image_url
    )


def worksheet_item(doc: LegacyContentBlockDocument, result: DocumentResult) -> MenuItem:
    return MenuItem(
        id=ephemeral_id('imported-cb', doc.id),
        label=doc.name,
        slug=result.slug,
        type=MenuItemType.WORKSHEET.value,
        cover_image=result.cover_image_url,
        extended_worksheet=result.extended_worksheet
    )


# ----------------------------------------------------------------------
# containers
# ----------------------------------------------------------------------

def group_lessons(book: LegacyBook, lessons: Sequence[MenuItem], worksheets: Sequence[MenuItem]) -> List[MenuItem]:
    """
    Wrap a book's lessons and worksheets in a folder when there are enough.

    Returns:
        A single folder item, or the items themselves for the import root
    """
    items = list(lessons) + list(worksheets)
    if len(items) < GROUPING_THRESHOLD:
        return items

    logger.info(f"Created lessons folder: {book.name} with {len(items)} items")
    return [MenuItem(
        id=ephemeral_id('imported-lessons-folder', book.id),
        label=book.name,
        slug=slugify(f"lekce-{book.name}"),
        type=MenuItemType.FOLDER.value,
        icon='folder',
        cover_image=book.image_url or '',
        children=items
    )]


def workbook_pages(worksheets: Sequence[MenuItem]) -> List[WorkbookPage]:
    """Page references for a workbook, sorted by page number."""
    pages = []
    for index, child in enumerate(worksheets):
        pages.append(WorkbookPage(
            id=f"page-{child.id}",
            page_number=extract_page_number(child.label) or index + 1,
            worksheet_id=child.id,
            worksheet_slug=child.slug or '',
            worksheet_label=child.label,
            worksheet_cover=child.cover_image
        ))
    # stable sort keeps input order for equal page numbers
    return sorted(pages, key=lambda page: page.page_number)


def workbook_slug(book: LegacyBook) -> str:
    return slugify(f"pracovni-sesit-{book.name}")


def build_workbook(book: LegacyBook, category: str, worksheets: Sequence[MenuItem]) -> MenuItem:
    logger.info(f"Creating workbook: {book.name} with {len(worksheets)} worksheets")
    return MenuItem(
        id=ephemeral_id('imported-workbook', category, book.id),
        label=book.name,
        slug=workbook_slug(book),
        type=MenuItemType.WORKBOOK.value,
        icon='book',
        cover_image=book.image_url or '',
        workbook_pages=workbook_pages(worksheets),
        author=book.authors,
        eshop_url=book.eshop_url
    )


def build_workbook_page(book: LegacyBook, category: str) -> TargetPage:
    """Page record the workbook view loads its author and e-shop link from."""
    return TargetPage(
        slug=workbook_slug(book),
        title=book.name,
        category=category,
        document_type=DocumentType.WORKBOOK,
        page_type='workbook',
        featured_media=book.image_url or '',
        content=json.dumps({'author': book.authors, 'eshopUrl': book.eshop_url}, ensure_ascii=False)
    )


def _document_leaves(doc: LegacyContentBlockDocument) -> List[MenuItem]:
    resources = DocumentResources(doc)
    leaves = []

    if resources.methodology:
        leaves.append(MenuItem(
            id=f"folder-method-{doc.id}",
            label=resources.methodology.label,
            type=MenuItemType.METHODOLOGY.value,
            icon='graduation-cap',
            external_url=resources.methodology.url
        ))
    for item in resources.practices:
        leaves.append(MenuItem(
            id=f"folder-prac-{doc.id}-{item.index}",
            label=item.numbered_label,
            type=MenuItemType.PRACTICE.value,
            icon='play',
            url=item.url,
            external_url=item.url
        ))
    for item in resources.tests:
        leaves.append(MenuItem(
            id=f"folder-test-{doc.id}-{item.index}",
            label=item.numbered_label,
            type=MenuItemType.TEST.value,
            icon='file-check',
            external_url=item.url
        ))
    for item in resources.exams:
        leaves.append(MenuItem(
            id=f"folder-exam-{doc.id}-{item.index}",
            label=item.numbered_label,
            type=MenuItemType.EXAM.value,
            icon='file-text',
            external_url=item.url
        ))
    for item in resources.interactive:
        leaves.append(MenuItem(
            id=f"folder-iw-{doc.id}-{item.index}",
            label=item.numbered_label,
            type=MenuItemType.INTERACTIVE.value,
            icon='play-circle',
            external_url=item.url
        ))
    for item in resources.bonus_sheets:
        leaves.append(MenuItem(
            id=f"folder-bonus-{doc.id}-{item.index}",
            label=item.numbered_label,
            type=MenuItemType.BONUS.value,
            icon='download',
            external_url=item.url
        ))
    return leaves


def _overview_folder(item_id: str, label: str, children: List[MenuItem]) -> MenuItem:
    return MenuItem(
        id=item_id,
        slug=item_id,
        label=label,
        type=MenuItemType.FOLDER.value,
        icon='folder',
        content_view='overview',
        children=children
    )


def build_block_children(
    block: LegacyContentBlock,
    selected: Sequence[SelectedDocument],
    worksheets_by_doc_id: Dict[int, MenuItem],
    text_slugs: Dict[int, str]
) -> List[MenuItem]:
    """Leaves of one content-block folder in display order."""
    children: List[MenuItem] = []

    text_slug = text_slugs.get(block.id)
    if text_slug:
        children.append(MenuItem(
            id=f"folder-text-{block.id}",
            label='Učební text',
            slug=text_slug,
            type=MenuItemType.UCEBNI_TEXT.value,
            icon='book-open'
        ))

    for entry in selected:
        if entry.block.id != block.id:
            continue
        worksheet = worksheets_by_doc_id.get(entry.doc.id)
        if worksheet:
            children.append(dataclasses.replace(worksheet, id=f"{worksheet.id}-folder-{block.id}"))
        else:
            logger.warning(f"Worksheet not found for document {entry.doc.id}, folder leaf skipped")
        children.extend(_document_leaves(entry.doc))

    for index, raw in enumerate(block.methodical_inspirations_pdf):
        methodology = normalize_methodology(raw, index)
        children.append(MenuItem(
            id=f"folder-method-block-{block.id}-{index}",
            label=methodology.numbered_label,
            type=MenuItemType.METHODOLOGY.value,
            icon='graduation-cap',
            external_url=methodology.url
        ))
    return children


def build_book_folder(
    book: LegacyBook,
    category: str,
    selected: Sequence[SelectedDocument],
    worksheets_by_doc_id: Dict[int, MenuItem],
    text_slugs: Dict[int, str]
) -> Optional[MenuItem]:
    """
    Catalog folder mirroring chapter -> content block for one book.

    Returns:
        The folder, or None when no block ended up with any leaves
    """
    chapter_folders: List[MenuItem] = []
    for chapter in book.chapters:
        block_folders = []
        for block in chapter.content_blocks:
            children = build_block_children(block, selected, worksheets_by_doc_id, text_slugs)
            if children:
                block_folders.append(_overview_folder(f"folder-block-{block.id}", block.name, children))
        if block_folders:
            chapter_folders.append(_overview_folder(f"folder-chapter-{chapter.id}", chapter.name, block_folders))

    # a single chapter level adds nothing to navigation
    subfolders = chapter_folders[0].children if len(chapter_folders) == 1 else chapter_folders
    if not subfolders:
        return None

    logger.info(f"Creating folder: {book.name} with {len(subfolders)} subfolders")
    return MenuItem(
        id=ephemeral_id('imported-folder', category, book.id),
        label=book.name,
        slug=slugify(f"slozka-{book.name}"),
        type=MenuItemType.FOLDER.value,
        cover_image=book.image_url or '',
        content_view='overview',
        children=subfolders,
        author=book.authors,
        eshop_url=book.eshop_url
    )


__all__ = [
    'GROUPING_THRESHOLD',
    'SelectedDocument',
    'extract_page_number',
    'lesson_item',
    'lesson_items',
    'text_item',
    'worksheet_item',
    'group_lessons',
    'workbook_pages',
    'workbook_slug',
    'build_workbook',
    'build_workbook_page',
    'build_block_children',
    'build_book_folder'
]
