"""
Import of legacy interactive boards.

Boards are fetched through the platform's board proxy, their slides mapped to
the current slide model and the result stored as a ``board-{id}`` page.
"""

import json
import logging
import re
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from ..models import DocumentType, TargetPage
from .page_store import PageStore
from .platform_client import PlatformClient

logger = logging.getLogger('vividbooks_migrator.importers.board_importer')

_UUID = r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}'
_BARE_UUID = re.compile(rf'^{_UUID}$', re.IGNORECASE)
_ANY_UUID = re.compile(rf'({_UUID})', re.IGNORECASE)

DEFAULT_BOARD_TITLE = 'Importovaný board'
SKIPPED_SLIDE_TYPES = ('config', 'add')


def is_importable_board_url(value: str) -> bool:
    """True for bare board UUIDs and URLs that reference a board."""
    if not value:
        return False
    if _BARE_UUID.match(value.strip()):
        return True
    return 'vividboard' in value.lower() or bool(_ANY_UUID.search(value))


def extract_board_id(value: str) -> Optional[str]:
    """
    Board id from a UUID, a URL containing a UUID, or a long last path segment.

    >>> extract_board_id('https://vividboard.vividbooks.com/share/1734c4da-1234-5678-9abc-def012345678')
    '1734c4da-1234-5678-9abc-def012345678'
    """
    if not value:
        return None
    trimmed = value.strip()
    if _BARE_UUID.match(trimmed):
        return trimmed
    match = _ANY_UUID.search(trimmed)
    if match:
        return match.group(1)

    path = urlparse(trimmed).path if '://' in trimmed else trimmed
    segments = [segment for segment in path.split('/') if segment]
    if segments and len(segments[-1]) > 10:
        return segments[-1]
    return None


def strip_html(value: Optional[str]) -> str:
    """Plain text of a legacy rich-text value."""
    if not value:
        return ''
    text = BeautifulSoup(value, 'lxml').get_text()
    return text.replace('\xa0', ' ').strip()


def _slide_id() -> str:
    return f"slide-imported-{uuid.uuid4().hex[:12]}"


def _info_slide(order: int, title: str = '', text: str = '') -> Dict[str, Any]:
    return {
        'id': _slide_id(),
        'type': 'info',
        'order': order,
        'title': title,
        'content': '',
        'layout': {
            'type': 'title-content',
            'blocks': [
                {'id': f"block-{order}-title", 'type': 'text', 'content': title},
                {'id': f"block-{order}-content", 'type': 'text', 'content': text},
            ],
        },
    }


def _abc_slide(order: int, question: str, options: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        'id': _slide_id(),
        'type': 'activity',
        'activityType': 'abc',
        'order': order,
        'question': question,
        'options': options,
        'points': 1,
    }


def _open_slide(order: int, question: str, answer: str = '') -> Dict[str, Any]:
    return {
        'id': _slide_id(),
        'type': 'activity',
        'activityType': 'open',
        'order': order,
        'question': question,
        'correctAnswers': [answer] if answer else [],
        'caseSensitive': False,
        'points': 1,
    }


def _example_slide(order: int, title: str = '', problem: str = '') -> Dict[str, Any]:
    return {
        'id': _slide_id(),
        'type': 'activity',
        'activityType': 'example',
        'order': order,
        'title': title,
        'problem': problem,
        'steps': [],
        'finalAnswer': '',
    }


def _option_label(index: int) -> str:
    return chr(65 + index)


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class SlideMapper:
    """Maps legacy board pages to slide dictionaries in order."""

    def __init__(self):
        self.order = 0

    def _next(self) -> int:
        order = self.order
        self.order += 1
        return order

    def map(self, legacy_slides: List[Any]) -> List[Dict[str, Any]]:
        slides = []
        for legacy in legacy_slides:
            if not isinstance(legacy, dict):
                continue
            slide = self._map_selector(legacy) or self._map_flat(legacy)
            if slide is not None:
                slides.append(slide)
        return slides

    def _map_selector(self, legacy: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if legacy.get('type') != 'selector':
            return None
        page_content = _dig(legacy, 'data', 'pageContent') or {}

        activity = _dig(page_content, 'data', 'activity')
        if activity:
            key = activity.get('key')
            data = _dig(activity, 'data', key) if key else None
            if data:
                question = strip_html(_dig(data, 'selector', 'tabs', 'text', 'data'))
                if key == 'abc':
                    buttons = _dig(data, 'selectorAnswers', 'tabs', 'buttons', 'buttons') or []
                    options = [
                        {
                            'id': f"opt-{i}",
                            'label': _option_label(i),
                            'content': strip_html(button.get('text')),
                            'isCorrect': bool(button.get('isValid')),
                        }
                        for i, button in enumerate(buttons)
                    ]
                    return _abc_slide(self._next(), question, options)
                if key == 'open':
                    answer = strip_html(_dig(data, 'selectorAnswers', 'tabs', 'text', 'data'))
                    return _open_slide(self._next(), question, answer)
                if key == 'input':
                    return _open_slide(self._next(), question, strip_html(data.get('answer')))
                if key == 'example':
                    slide = _example_slide(self._next())
                    slide['question'] = question
                    answer = data.get('answer') or _dig(data, 'selectorAnswers', 'tabs', 'text', 'data')
                    if answer:
                        slide['answer'] = strip_html(answer)
                    return slide

        if page_content.get('key') == 'info_page':
            info = _dig(page_content, 'data', 'info_page', 'data', 'info')
            if info:
                return self._map_info_page(info, _dig(legacy, 'data', 'notes') or {})
        return None

    def _map_info_page(self, info: Dict[str, Any], notes: Dict[str, Any]) -> Dict[str, Any]:
        slide = _info_slide(self._next())
        if notes.get('chapter'):
            slide['chapterName'] = notes['chapter']
        if notes.get('text'):
            slide['note'] = strip_html(notes['text'])

        selectors = info.get('selectors') or []

        def has_images(selector):
            return bool(_dig(selector, 'tabs', 'image', 'images'))

        image_selector = next(
            (s for s in selectors if s.get('activeTab') == 'image' and has_images(s)), None
        ) or next((s for s in selectors if has_images(s)), None)

        if image_selector:
            image_tab = image_selector['tabs']['image']
            images = image_tab['images']
            setup = image_tab.get('setup') or {}
            gallery_nav = None
            if image_tab.get('galleryMenu') == 'solution':
                gallery_nav = 'solution'
            elif len(images) > 1:
                gallery_nav = 'dots-bottom'
            try:
                radius = int(setup.get('borderRadius'))
            except (TypeError, ValueError):
                radius = 10
            block = {
                'id': f"block-{slide['order']}-image",
                'type': 'image',
                'content': images[0].get('image') or '',
                'gallery': [img.get('image') for img in images if img.get('image')],
                'galleryIndex': 0,
                'imageFit': 'contain' if setup.get('align') == 'contain' else 'cover',
                'imageCaption': images[0].get('description') or '',
                'imageLink': images[0].get('link') or '',
            }
            if gallery_nav:
                block['galleryNavType'] = gallery_nav
            slide['layout'] = {'type': 'single', 'blocks': [block]}
            slide['blockGap'] = 0
            slide['blockRadius'] = radius
            return slide

        text_selector = next((s for s in selectors if _dig(s, 'tabs', 'text', 'data')), None)
        if text_selector:
            slide['layout'] = {
                'type': 'single',
                'blocks': [{
                    'id': f"block-{slide['order']}-text",
                    'type': 'text',
                    'content': strip_html(text_selector['tabs']['text']['data']),
                    'textAlign': 'center',
                    'fontSize': 'large',
                }],
            }
        else:
            slide['title'] = notes.get('chapter') or 'Importovaná stránka'
        return slide

    def _map_flat(self, legacy: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        slide_type = legacy.get('type')
        title = strip_html(legacy.get('title') or legacy.get('name'))
        explanation = strip_html(legacy.get('explanation') or legacy.get('hint') or legacy.get('transcript'))

        if slide_type in ('text', 'info'):
            slide = _info_slide(self._next(), title, strip_html(legacy.get('content') or legacy.get('text')))
            slide['title'] = title
            return slide

        if slide_type in ('abc', 'multi', 'multiple-choice'):
            correct = legacy.get('correct')
            options = []
            for i, option in enumerate(legacy.get('options') or legacy.get('answers') or []):
                if isinstance(option, str):
                    content, option_id, flagged = strip_html(option), None, False
                else:
                    content = strip_html(option.get('text') or option.get('content') or option.get('answer'))
                    option_id = option.get('id')
                    flagged = bool(option.get('is_correct') or option.get('isCorrect'))
                if isinstance(correct, list):
                    is_correct = i in correct
                else:
                    is_correct = flagged or i in (legacy.get('correct_index'), legacy.get('correctIndex'))
                options.append({
                    'id': option_id or f"opt-{i}",
                    'label': _option_label(i),
                    'content': content,
                    'isCorrect': is_correct,
                })
            slide = _abc_slide(self._next(), strip_html(legacy.get('question') or legacy.get('text')), options)
            slide['explanation'] = explanation
            return slide

        if slide_type in ('open', 'question'):
            answer = legacy.get('answer') or legacy.get('correct_answer') or legacy.get('correctAnswer')
            slide = _open_slide(
                self._next(), strip_html(legacy.get('question') or legacy.get('text')), strip_html(answer)
            )
            slide['explanation'] = explanation
            return slide

        if slide_type == 'example':
            slide = _example_slide(
                self._next(), title,
                strip_html(legacy.get('problem') or legacy.get('content') or legacy.get('text'))
            )
            slide['steps'] = [
                {
                    'id': f"step-{i}",
                    'content': strip_html(step if isinstance(step, str) else step.get('content') or step.get('text')),
                }
                for i, step in enumerate(legacy.get('steps') or [])
            ]
            slide['finalAnswer'] = strip_html(legacy.get('finalAnswer') or legacy.get('answer'))
            return slide

        if slide_type in SKIPPED_SLIDE_TYPES:
            return None

        fallback = _info_slide(self._next(), text=json.dumps(legacy, ensure_ascii=False))
        fallback['title'] = strip_html(legacy.get('title') or legacy.get('name') or slide_type or 'Importovaný slide')
        return fallback


def map_legacy_slides(legacy_slides: List[Any]) -> List[Dict[str, Any]]:
    return SlideMapper().map(legacy_slides)


class BoardImporter:
    """Re-imports legacy boards as ``board`` pages."""

    def __init__(self, client: PlatformClient, pages: PageStore, category: str, overwrite: bool = False):
        self.client = client
        self.pages = pages
        self.category = category
        self.overwrite = overwrite
        self.stats = {'imported': 0, 'failed': 0}

    def fetch_board(self, url_or_id: str, custom_title: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Fetch and normalize one board.

        Returns:
            ``{id, title, slides}`` or None when the board is unusable
        """
        board_id = extract_board_id(url_or_id)
        if not board_id:
            logger.info(f"Could not extract board ID from: {url_or_id}")
            return None

        try:
            data = self.client.fetch_legacy_board(board_id)
        except requests.RequestException as e:
            logger.warning(f"Board proxy unreachable for {board_id}: {e}")
            return None
        if not data:
            return None

        content = data.get('content') if isinstance(data.get('content'), dict) else {}
        legacy_slides = content.get('pages') or data.get('slides') or data.get('questions') or []
        slides = map_legacy_slides(legacy_slides) if isinstance(legacy_slides, list) else []
        logger.debug(f"Mapped {len(slides)} slides from board {board_id}")

        return {
            'id': f"imported-{board_id}",
            'title': custom_title or data.get('name') or data.get('title') or DEFAULT_BOARD_TITLE,
            'slides': slides,
        }

    def import_board(self, url: str, title: str) -> Optional[str]:
        """
        Import the board behind ``url`` and store it as a page.

        Returns:
            The new board id, or None when nothing usable was imported
        """
        if not url or not is_importable_board_url(url):
            return None

        logger.info(f"Importing board: {title} ({url})")
        board = self.fetch_board(url, title)
        if not board or not board['slides']:
            logger.warning(f"Board import returned no slides: {url}")
            self.stats['failed'] += 1
            return None

        now = datetime.utcnow().isoformat()
        quiz = {
            'id': board['id'],
            'title': board['title'],
            'slides': board['slides'],
            'createdAt': now,
            'updatedAt': now,
        }
        page = TargetPage(
            slug=f"board-{quiz['id']}",
            title=quiz['title'],
            category=self.category,
            document_type=DocumentType.BOARD,
            page_type='board',
            worksheet_data=quiz
        )
        # the board reference is usable even when the page record is not saved
        self.pages.save_best_effort(page, self.overwrite)

        self.stats['imported'] += 1
        logger.info(f"Board imported: {quiz['id']} ({len(quiz['slides'])} slides)")
        return quiz['id']

    def board_resolver(self) -> Callable[[Any], Optional[str]]:
        """Adapter for ``menu_tree.rewrite_board_links``."""
        return lambda item: self.import_board(item.external_url, item.label)


__all__ = [
    'is_importable_board_url',
    'extract_board_id',
    'strip_html',
    'map_legacy_slides',
    'SlideMapper',
    'BoardImporter'
]
