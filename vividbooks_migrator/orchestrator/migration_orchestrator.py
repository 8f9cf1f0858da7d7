"""
Migration orchestrator for coordinating one import run.

This module sequences the run: Confirm → Authenticate → Fetch → Lessons →
Worksheets → Boards → Menu merge → Report. Items are imported strictly one
after another with a fixed delay; the only background work is asset indexing.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Tuple

from tqdm import tqdm

from ..config_loader import get_nested, parse_book_ids, selected_items
from ..fetchers import BaseFetcher, LegacyApiFetcher
from ..importers import menu_synthesizer as synth
from ..importers.asset_indexer import AssetIndexer
from ..importers.asset_rehoster import AssetRehoster
from ..importers.board_importer import BoardImporter, is_importable_board_url
from ..importers.content_transformer import ContentTransformer
from ..importers.menu_tree import count_items, rewrite_board_links, splice_items
from ..importers.page_store import MenuStore, MenuUpdateError, PageStore, is_already_exists
from ..importers.platform_client import AuthenticationError, PlatformClient
from ..importers.slug_generator import slugify
from ..logger import ProgressTracker, log_section
from ..models import (
    DocumentResult,
    ImportContext,
    ImportState,
    ImportStatus,
    LegacyBook,
    LegacyChapter,
    LegacyContentBlock,
    LegacyContentBlockDocument,
    LegacyKnowledge,
    MenuItem,
    RunState,
    document_item_id,
    knowledge_item_id,
)

DEFAULT_ITEM_DELAY = 0.2
DEFAULT_TEXT_DELAY = 0.1
ALREADY_EXISTS_NOTE = 'Stránka již existovala'
DEFAULT_CATEGORIES_WITHOUT_SECTION_IMAGES = ['matematika']

KnowledgeEntry = Tuple[LegacyKnowledge, LegacyChapter, LegacyBook]
DocumentEntry = Tuple[LegacyContentBlockDocument, LegacyContentBlock, LegacyChapter, LegacyBook]

# (category, number of selected items or None for all) -> proceed?
ConfirmCallback = Callable[[str, Optional[int]], bool]


class ImportInProgressError(Exception):
    """A second run was started while one is still in flight."""
    pass


def collect_selection(
    books: List[LegacyBook],
    selection: Optional[List[str]] = None
) -> Tuple[List[KnowledgeEntry], List[DocumentEntry], List[ImportStatus]]:
    """
    Resolve the selected item ids against the fetched books.

    Args:
        books: Fetched legacy books in requested order
        selection: Item ids (``k-{id}``, ``cb-{block}-doc-{doc}``), None for all

    Returns:
        (knowledge entries, document entries, pending status rows)
    """
    wanted = set(selection) if selection is not None else None
    knowledge_entries: List[KnowledgeEntry] = []
    document_entries: List[DocumentEntry] = []
    statuses: List[ImportStatus] = []

    for book in books:
        for chapter in book.chapters:
            for knowledge in chapter.knowledge:
                item_id = knowledge_item_id(knowledge)
                if wanted is None or item_id in wanted:
                    knowledge_entries.append((knowledge, chapter, book))
                    statuses.append(ImportStatus(id=item_id, type='knowledge', name=knowledge.name))
            for block in chapter.content_blocks:
                for doc in block.documents:
                    item_id = document_item_id(block, doc)
                    if wanted is None or item_id in wanted:
                        document_entries.append((doc, block, chapter, book))
                        statuses.append(ImportStatus(id=item_id, type='document', name=doc.name))

    return knowledge_entries, document_entries, statuses


def _group_by_book(entries: List[tuple]) -> 'OrderedDict[int, List[tuple]]':
    grouped: 'OrderedDict[int, List[tuple]]' = OrderedDict()
    for entry in entries:
        grouped.setdefault(entry[-1].id, []).append(entry)
    return grouped


class MigrationOrchestrator:
    """Central coordinator for one legacy-to-platform import run."""

    def __init__(
        self,
        config: Dict[str, Any],
        logger: Optional[logging.Logger] = None,
        fetcher: Optional[BaseFetcher] = None,
        client: Optional[PlatformClient] = None,
        confirm: Optional[ConfirmCallback] = None
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Merged and validated configuration dictionary
            logger: Optional logger instance
            fetcher: Legacy book fetcher (defaults to the REST fetcher)
            client: Platform client (defaults to one built from config)
            confirm: Category confirmation callback; None confirms automatically
        """
        self.config = config
        self.logger = logger or logging.getLogger('vividbooks_migrator.orchestrator')
        self.fetcher = fetcher or LegacyApiFetcher(config, self.logger)
        self.client = client or PlatformClient.from_config(config)
        self.confirm = confirm

        self.pages = PageStore(self.client)
        self.menus = MenuStore(self.client)
        self.rehoster = AssetRehoster.from_config(config, self.client)
        self.transformer = ContentTransformer(self.rehoster, self.pages)
        self.indexer = AssetIndexer.from_config(config, self.client)

        self.category = get_nested(config, 'migration.category')
        self.book_ids = parse_book_ids(get_nested(config, 'migration.book_ids', ''))
        self.selection = selected_items(config)
        self.item_delay = get_nested(config, 'migration.item_delay', DEFAULT_ITEM_DELAY)
        self.text_delay = get_nested(config, 'migration.text_delay', DEFAULT_TEXT_DELAY)

        self.state = RunState.IDLE
        self.statuses: List[ImportStatus] = []

        self.logger.info(
            f"MigrationOrchestrator initialized: category={self.category}, "
            f"books={self.book_ids}, selection={'all' if self.selection is None else len(self.selection)}"
        )

    def build_context(self) -> ImportContext:
        """Per-run options read from the migration section."""
        without_images = get_nested(
            self.config,
            'migration.categories_without_section_images',
            DEFAULT_CATEGORIES_WITHOUT_SECTION_IMAGES
        )
        return ImportContext(
            category=self.category,
            download_files=get_nested(self.config, 'migration.download_files', True),
            overwrite_existing=get_nested(self.config, 'migration.overwrite_existing', False),
            destination_id=get_nested(self.config, 'migration.destination_id'),
            section_images_enabled=self.category not in (without_images or []),
            import_boards=get_nested(self.config, 'migration.import_boards', True)
        )

    def _should_show_progress(self) -> bool:
        return get_nested(self.config, 'advanced.progress_bars', True)

    def _progress(self, iterable, desc: str):
        return tqdm(iterable, desc=desc) if self._should_show_progress() else iterable

    # ------------------------------------------------------------------
    # dry run
    # ------------------------------------------------------------------

    def preview(self) -> Dict[str, Any]:
        """
        Fetch the books and describe what a run would import, without writing.

        Returns:
            Preview dictionary with per-book lesson and worksheet counts
        """
        log_section("Dry Run: Selection Preview")
        books = self.fetcher.fetch_books(self.book_ids)
        knowledge_entries, document_entries, statuses = collect_selection(books, self.selection)

        preview = {
            'category': self.category,
            'books_requested': len(self.book_ids),
            'books_fetched': len(books),
            'lessons': len(knowledge_entries),
            'worksheets': len(document_entries),
            'books': []
        }
        for book in books:
            lessons = [e for e in knowledge_entries if e[2].id == book.id]
            docs = [e for e in document_entries if e[3].id == book.id]
            preview['books'].append({
                'id': book.id,
                'name': book.name,
                'lessons': len(lessons),
                'worksheets': len(docs),
                'workbook': len(docs) >= synth.GROUPING_THRESHOLD,
                'lessons_folder': len(lessons) >= synth.GROUPING_THRESHOLD
            })
        preview['items'] = [status.to_dict() for status in statuses]
        return preview

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------

    def run(self) -> Dict[str, Any]:
        """
        Execute one import run.

        Returns:
            Run statistics; ``cancelled`` is set when confirmation was declined

        Raises:
            ImportInProgressError: A run is already in flight
            AuthenticationError: No access token could be obtained
        """
        if self.state is not RunState.IDLE:
            raise ImportInProgressError(f"Import already {self.state.value}")

        stats = {
            'category': self.category,
            'books_requested': len(self.book_ids),
            'books_fetched': 0,
            'succeeded': 0,
            'failed': 0,
            'already_existed': 0,
            'texts_created': 0,
            'menu_items': 0,
            'boards_rewritten': 0,
            'menu_updated': False,
            'destination_found': None,
            'cancelled': False,
            'errors': [],
            'warnings': []
        }

        self.state = RunState.CONFIRMING
        if self.confirm is not None and not self.confirm(
            self.category, len(self.selection) if self.selection is not None else None
        ):
            self.logger.warning(f"Import cancelled - target category '{self.category}' not confirmed")
            self.state = RunState.IDLE
            stats['cancelled'] = True
            return stats

        self.state = RunState.RUNNING
        start_time = time.time()
        try:
            self._authenticate()
            context = self.build_context()
            context.catalog = self.indexer.probe()
            self.logger.info(
                f"Asset catalog: {'available' if context.catalog.available else 'unavailable'}"
                f"{'' if context.catalog.available else ' (' + context.catalog.reason + ')'}"
            )

            log_section("Fetching Legacy Books")
            books = self.fetcher.fetch_books(self.book_ids)
            stats['books_fetched'] = len(books)

            knowledge_entries, document_entries, self.statuses = collect_selection(books, self.selection)
            self.logger.info(
                f"Selected {len(knowledge_entries)} lessons and {len(document_entries)} worksheets"
            )

            imported: List[MenuItem] = []
            imported.extend(self._import_knowledge(knowledge_entries, context, stats))
            imported.extend(self._import_documents(document_entries, context, stats))
            stats['menu_items'] = len(imported)

            if imported and context.import_boards:
                imported = self._import_boards(imported, context, stats)

            if imported:
                self._merge_menu(imported, context, stats)
            else:
                self.logger.info("Nothing to add to the menu")
        finally:
            self.indexer.shutdown(wait=True)
            self.state = RunState.IDLE

        stats['duration_seconds'] = time.time() - start_time
        stats['rehosting'] = {k: v for k, v in self.rehoster.stats.items() if k != 'errors'}
        self.logger.info(
            f"Import finished: {stats['succeeded']} success, {stats['failed']} errors, "
            f"{stats['menu_items']} menu items"
        )
        return stats

    def _authenticate(self) -> str:
        """Use the configured access token, or refresh the session once."""
        if self.client.access_token:
            self.logger.info("Access token obtained from configuration")
            return self.client.access_token

        self.logger.info("No access token configured, trying session refresh")
        token = self.client.refresh_session(timeout=5.0)
        if not token:
            raise AuthenticationError(
                "Could not obtain an access token. Set platform.access_token or a valid platform.refresh_token."
            )
        return token

    def _status(self, item_id: str) -> ImportStatus:
        for status in self.statuses:
            if status.id == item_id:
                return status
        raise KeyError(item_id)

    def _record_failure(self, status: ImportStatus, error: Exception, stats: Dict[str, Any], phase: str) -> None:
        message = str(error) or error.__class__.__name__
        self.logger.error(f"Failed to import {status.type} '{status.name}' ({status.id}): {message}")
        status.mark(ImportState.ERROR, message)
        stats['failed'] += 1
        stats['errors'].append({
            'phase': phase,
            'item_id': status.id,
            'item_name': status.name,
            'error': message
        })

    def _record_already_exists(self, status: ImportStatus, stats: Dict[str, Any]) -> None:
        self.logger.info(f"{status.name}: page already exists, reusing it")
        status.mark(ImportState.SUCCESS, ALREADY_EXISTS_NOTE)
        stats['succeeded'] += 1
        stats['already_existed'] += 1

    def _flush_assets(self, context: ImportContext) -> None:
        assets = self.transformer.drain_outbox()
        if assets:
            self.indexer.submit(assets, context.catalog)

    # ------------------------------------------------------------------
    # phase 1: knowledge items
    # ------------------------------------------------------------------

    def _import_knowledge(
        self,
        entries: List[KnowledgeEntry],
        context: ImportContext,
        stats: Dict[str, Any]
    ) -> List[MenuItem]:
        """Import lessons book by book and group each book's menu items."""
        log_section("Phase 1: Lessons")
        if not entries:
            self.logger.info("No lessons selected")
            return []

        imported: List[MenuItem] = []
        with ProgressTracker(total_items=len(entries), item_type='lessons') as tracker:
            for book_entries in _group_by_book(entries).values():
                book = book_entries[0][2]
                lessons: List[MenuItem] = []
                worksheets: List[MenuItem] = []

                for knowledge, chapter, _ in self._progress(book_entries, f"Lessons: {book.name}"):
                    status = self._status(knowledge_item_id(knowledge))
                    status.mark(ImportState.IMPORTING)
                    try:
                        result = self.transformer.transform_knowledge(knowledge, chapter, book, context)
                        items = synth.lesson_items(knowledge, result)
                        lessons.append(items[0])
                        worksheets.extend(items[1:])
                        status.mark(ImportState.SUCCESS)
                        stats['succeeded'] += 1
                        tracker.increment(success=True)
                    except Exception as e:
                        if is_already_exists(e):
                            lessons.append(synth.lesson_item(
                                knowledge, slugify(knowledge.name), knowledge.image_url or ''
                            ))
                            self._record_already_exists(status, stats)
                            tracker.increment(success=True)
                        else:
                            self._record_failure(status, e, stats, 'lessons')
                            tracker.increment(success=False)
                    finally:
                        self._flush_assets(context)
                    time.sleep(self.item_delay)

                imported.extend(synth.group_lessons(book, lessons, worksheets))
        return imported

    # ------------------------------------------------------------------
    # phase 2: content-block documents
    # ------------------------------------------------------------------

    def _import_documents(
        self,
        entries: List[DocumentEntry],
        context: ImportContext,
        stats: Dict[str, Any]
    ) -> List[MenuItem]:
        """Import educational texts and worksheets, then build workbooks and folders."""
        log_section("Phase 2: Worksheets")
        if not entries:
            self.logger.info("No worksheets selected")
            return []

        imported: List[MenuItem] = []
        processed_blocks = set()

        with ProgressTracker(total_items=len(entries), item_type='worksheets') as tracker:
            for book_entries in _group_by_book(entries).values():
                book = book_entries[0][3]
                should_group = len(book_entries) >= synth.GROUPING_THRESHOLD
                self.logger.info(
                    f"Processing {len(book_entries)} worksheet(s) from book: {book.name}, "
                    f"createWorkbook: {should_group}"
                )

                text_slugs = self._import_texts(book_entries, processed_blocks, context, stats)

                workbook_children: List[MenuItem] = []
                worksheets_by_doc_id: Dict[int, MenuItem] = {}
                for doc, block, chapter, _ in self._progress(book_entries, f"Worksheets: {book.name}"):
                    status = self._status(document_item_id(block, doc))
                    status.mark(ImportState.IMPORTING)
                    item = None
                    try:
                        result = self.transformer.transform_content_block_document(
                            doc, block, chapter, book, context, text_slugs.get(block.id)
                        )
                        item = synth.worksheet_item(doc, result)
                        status.mark(ImportState.SUCCESS)
                        stats['succeeded'] += 1
                        tracker.increment(success=True)
                    except Exception as e:
                        if is_already_exists(e):
                            item = synth.worksheet_item(
                                doc, DocumentResult(slug=slugify(doc.name), cover_image_url=doc.preview_url or '')
                            )
                            self._record_already_exists(status, stats)
                            tracker.increment(success=True)
                        else:
                            self._record_failure(status, e, stats, 'worksheets')
                            tracker.increment(success=False)

                    if item is not None:
                        worksheets_by_doc_id[doc.id] = item
                        if should_group:
                            workbook_children.append(item)
                        else:
                            imported.append(item)
                    time.sleep(self.item_delay)

                if workbook_children:
                    imported.append(synth.build_workbook(book, self.category, workbook_children))
                    self.pages.save_best_effort(
                        synth.build_workbook_page(book, self.category), context.overwrite_existing
                    )

                if book.has_content_blocks():
                    selected = [synth.SelectedDocument(block=block, doc=doc) for doc, block, _, _ in book_entries]
                    folder = synth.build_book_folder(
                        book, self.category, selected, worksheets_by_doc_id, text_slugs
                    )
                    if folder is not None:
                        imported.append(folder)
        return imported

    def _import_texts(
        self,
        book_entries: List[DocumentEntry],
        processed_blocks: set,
        context: ImportContext,
        stats: Dict[str, Any]
    ) -> Dict[int, str]:
        """Import each distinct block's educational text once per run."""
        text_slugs: Dict[int, str] = {}
        for _, block, chapter, book in book_entries:
            if block.id in processed_blocks:
                continue
            if not (block.content or '').strip():
                continue
            processed_blocks.add(block.id)

            self.logger.info(f"Importing educational text for block: {block.name}")
            try:
                result = self.transformer.transform_content_block_text(block, chapter, book, context)
                text_slugs[block.id] = result.slug
                stats['texts_created'] += 1
            except Exception as e:
                if is_already_exists(e):
                    text_slugs[block.id] = slugify(f"ucebni-text-{block.name}")
                else:
                    # the text page is optional; the worksheet still links without it
                    self.logger.warning(f"Failed to import educational text for {block.name}: {e}")
                    stats['warnings'].append({'phase': 'texts', 'block_id': block.id, 'error': str(e)})
            time.sleep(self.text_delay)
        return text_slugs

    # ------------------------------------------------------------------
    # boards and menu
    # ------------------------------------------------------------------

    def _import_boards(
        self,
        imported: List[MenuItem],
        context: ImportContext,
        stats: Dict[str, Any]
    ) -> List[MenuItem]:
        log_section("Board Import")
        boards = BoardImporter(self.client, self.pages, self.category, context.overwrite_existing)
        rewritten, count = rewrite_board_links(imported, is_importable_board_url, boards.board_resolver())
        stats['boards_rewritten'] = count
        self.logger.info(f"Boards rewritten: {count} ({boards.stats['failed']} failed)")
        return rewritten

    def _merge_menu(self, imported: List[MenuItem], context: ImportContext, stats: Dict[str, Any]) -> None:
        """Splice the imported items into a freshly loaded menu and write it back once."""
        log_section("Menu Update")
        try:
            tree = self.menus.load(self.category)
            merged, found = splice_items(tree, imported, context.destination_id)
            if context.destination_id:
                stats['destination_found'] = found
                if not found:
                    self.logger.warning(f"Destination {context.destination_id} not found! Adding to root instead.")
            self.menus.replace(self.category, merged)
        except MenuUpdateError as e:
            # pages stay in place; a re-run with overwrite off relinks them
            self.logger.error(f"Menu update failed: {e}")
            stats['errors'].append({'phase': 'menu', 'item_id': None, 'item_name': None, 'error': str(e)})
            return

        stats['menu_updated'] = True
        self.logger.info(
            f"Menu updated - added {len(imported)} items ({count_items(imported)} nodes) to "
            f"{'selected folder' if stats['destination_found'] else 'root'}"
        )

    # ------------------------------------------------------------------
    # asset backfill
    # ------------------------------------------------------------------

    def backfill_assets(self) -> Dict[str, int]:
        """Index the animations of lessons already stored in the category."""
        log_section("Asset Catalog Backfill")
        self._authenticate()
        pages = self.pages.list(self.category)
        self.logger.info(f"Scanning {len(pages)} pages in '{self.category}'")
        return self.indexer.backfill_from_pages(pages)

    def status_rows(self) -> List[Dict[str, Any]]:
        return [status.to_dict() for status in self.statuses]


__all__ = ['MigrationOrchestrator', 'ImportInProgressError', 'collect_selection']
