"""Data models for the Vividbooks legacy content migration pipeline."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger('vividbooks_migrator')


class DocumentType(Enum):
    """Document types understood by the page store."""
    LESSON = "lesson"
    WORKSHEET = "worksheet"
    UCEBNI_TEXT = "ucebni-text"
    WORKBOOK = "workbook"
    BOARD = "board"


class MenuItemType(Enum):
    """Menu item kinds rendered by the documentation sidebar."""
    FOLDER = "folder"
    WORKBOOK = "workbook"
    LESSON = "lesson"
    WORKSHEET = "worksheet"
    UCEBNI_TEXT = "ucebni-text"
    LINK = "link"
    PRACTICE = "practice"
    TEST = "test"
    EXAM = "exam"
    INTERACTIVE = "interactive"
    BONUS = "bonus"
    METHODOLOGY = "methodology"
    GROUP = "group"


class ImportState(Enum):
    """Per-item import lifecycle."""
    PENDING = "pending"
    IMPORTING = "importing"
    SUCCESS = "success"
    ERROR = "error"


class RunState(Enum):
    """Lifecycle of a whole import run."""
    IDLE = "idle"
    CONFIRMING = "confirming"
    RUNNING = "running"


# ---------------------------------------------------------------------------
# Legacy source snapshot
# ---------------------------------------------------------------------------

@dataclass
class LegacySubject:
    id: Optional[int] = None
    name: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['LegacySubject']:
        if not data:
            return None
        return cls(
            id=data.get('id'),
            name=data.get('name') or "",
            description=data.get('description') or ""
        )


@dataclass
class LegacyAnimationItem:
    id: Optional[int]
    animation_url: str
    audio_url: Optional[str] = None
    is_loop: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyAnimationItem':
        return cls(
            id=data.get('id'),
            animation_url=data.get('animationUrl') or "",
            audio_url=data.get('audioUrl'),
            is_loop=bool(data.get('isLoop', False))
        )


@dataclass
class LegacyAnimation:
    type: str = ""
    audio_url: Optional[str] = None
    intro_animation_url: Optional[str] = None
    items: List[LegacyAnimationItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['LegacyAnimation']:
        if not data:
            return None
        return cls(
            type=data.get('type') or "",
            audio_url=data.get('audioUrl'),
            intro_animation_url=data.get('introAnimationUrl'),
            items=[LegacyAnimationItem.from_dict(item) for item in data.get('items') or []]
        )


@dataclass
class LegacyKnowledge:
    """A lesson-style legacy item bundling rich text, media and PDFs."""

    id: int
    name: str
    description: Optional[str] = None
    conclusion: Optional[str] = None
    questions: Optional[str] = None
    answers: Optional[str] = None
    methodical_inspiration: Optional[str] = None
    image_url: Optional[str] = None
    target_2d_image_url: Optional[str] = None
    animation: Optional[LegacyAnimation] = None
    pdf_url: Optional[str] = None
    solution_url: Optional[str] = None
    methodical_inspiration_pdf_url: Optional[str] = None
    is_demo: bool = False
    is_rvp: bool = False
    disabled: bool = False
    created_by_teacher: bool = False
    methodics_only: bool = False
    language_code: Optional[str] = None
    textbook_id: Optional[str] = None
    related_knowledge_ids: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyKnowledge':
        return cls(
            id=data['id'],
            name=data.get('name') or "",
            description=data.get('description'),
            conclusion=data.get('conclusion'),
            questions=data.get('questions'),
            answers=data.get('answers'),
            methodical_inspiration=data.get('methodicalInspiration'),
            image_url=data.get('imageUrl'),
            target_2d_image_url=data.get('target2DImageUrl'),
            animation=LegacyAnimation.from_dict(data.get('animation')),
            pdf_url=data.get('pdfUrl'),
            solution_url=data.get('solutionUrl'),
            methodical_inspiration_pdf_url=data.get('methodicalInspirationPdfUrl'),
            is_demo=bool(data.get('isDemo', False)),
            is_rvp=bool(data.get('isRvp', False)),
            disabled=bool(data.get('disabled', False)),
            created_by_teacher=bool(data.get('createdByTeacher', False)),
            methodics_only=bool(data.get('methodicsOnly', False)),
            language_code=data.get('languageCode'),
            textbook_id=data.get('textbookId'),
            related_knowledge_ids=list(data.get('relatedKnowledgeIds') or [])
        )


@dataclass
class LegacyContentBlockDocument:
    """A worksheet document attached to a content block.

    Sub-resource lists are kept as the raw legacy dictionaries; they are
    normalized on demand by ``importers.sub_resources``.
    """

    id: int
    name: str
    document_url: Optional[str] = None
    preview_url: Optional[str] = None
    solution_url: Optional[str] = None
    type: str = "worksheet"
    contains_correct_answers: bool = False
    is_rvp: bool = False
    textbook_id: Optional[str] = None
    language_code: Optional[str] = None
    methodic_pdf: Optional[Dict[str, Any]] = None
    practices: List[Dict[str, Any]] = field(default_factory=list)
    tests: List[Dict[str, Any]] = field(default_factory=list)
    abcd_tests: List[Dict[str, Any]] = field(default_factory=list)
    minigames: List[Dict[str, Any]] = field(default_factory=list)
    bonus_sheets: List[Dict[str, Any]] = field(default_factory=list)
    bonuses: List[Dict[str, Any]] = field(default_factory=list)
    interactive_worksheets: List[Dict[str, Any]] = field(default_factory=list)
    interactive_solutions: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyContentBlockDocument':
        return cls(
            id=data['id'],
            name=data.get('name') or "",
            document_url=data.get('documentUrl'),
            preview_url=data.get('previewUrl'),
            solution_url=data.get('solutionUrl'),
            type=data.get('type') or "worksheet",
            contains_correct_answers=bool(data.get('containsCorrectAnswers', False)),
            is_rvp=bool(data.get('isRvp', False)),
            textbook_id=data.get('textbookId'),
            language_code=data.get('languageCode'),
            methodic_pdf=data.get('methodicPdf') or None,
            practices=list(data.get('practices') or []),
            tests=list(data.get('tests') or []),
            abcd_tests=list(data.get('abcdTests') or []),
            minigames=list(data.get('minigames') or []),
            bonus_sheets=list(data.get('bonusSheets') or []),
            bonuses=list(data.get('bonuses') or []),
            interactive_worksheets=list(data.get('interactiveWorksheets') or []),
            interactive_solutions=list(data.get('interactiveSolutions') or [])
        )


@dataclass
class LegacyContentBlock:
    """A worksheet-oriented legacy entity holding educational text and documents."""

    id: int
    name: str
    content: str = ""
    image_url: Optional[str] = None
    is_rvp: bool = False
    titles: List[str] = field(default_factory=list)
    documents: List[LegacyContentBlockDocument] = field(default_factory=list)
    methodical_inspirations_pdf: List[Dict[str, Any]] = field(default_factory=list)
    textbook_pdf_url: Optional[str] = None
    related_quizzes: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyContentBlock':
        return cls(
            id=data['id'],
            name=data.get('name') or "",
            content=data.get('content') or "",
            image_url=data.get('imageUrl'),
            is_rvp=bool(data.get('isRvp', False)),
            titles=list(data.get('titles') or []),
            documents=[LegacyContentBlockDocument.from_dict(d) for d in data.get('documents') or []],
            methodical_inspirations_pdf=list(data.get('methodicalInspirationsPdf') or []),
            textbook_pdf_url=data.get('textbookPdfUrl'),
            related_quizzes=list(data.get('relatedQuizzes') or [])
        )


@dataclass
class LegacyChapter:
    id: int
    name: str
    knowledge: List[LegacyKnowledge] = field(default_factory=list)
    content_blocks: List[LegacyContentBlock] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyChapter':
        return cls(
            id=data['id'],
            name=data.get('name') or "",
            knowledge=[LegacyKnowledge.from_dict(k) for k in data.get('knowledge') or []],
            content_blocks=[LegacyContentBlock.from_dict(b) for b in data.get('contentBlocks') or []]
        )

    def item_ids(self) -> List[str]:
        """Selectable item identifiers of this chapter in source order."""
        ids = [knowledge_item_id(k) for k in self.knowledge]
        for block in self.content_blocks:
            ids.extend(document_item_id(block, doc) for doc in block.documents)
        return ids


@dataclass
class LegacyBook:
    """Immutable snapshot of one legacy book, read fresh on every run."""

    id: int
    name: str
    description: str = ""
    authors: str = ""
    subject: Optional[LegacySubject] = None
    chapters: List[LegacyChapter] = field(default_factory=list)
    image_url: Optional[str] = None
    eshop_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyBook':
        return cls(
            id=data['id'],
            name=data.get('name') or "",
            description=data.get('description') or "",
            authors=data.get('authors') or "",
            subject=LegacySubject.from_dict(data.get('subject')),
            chapters=[LegacyChapter.from_dict(c) for c in data.get('chapters') or []],
            image_url=data.get('imageUrl'),
            eshop_url=data.get('eshopUrl')
        )

    @property
    def subject_name(self) -> Optional[str]:
        return self.subject.name if self.subject else None

    @property
    def subject_id(self) -> Optional[int]:
        return self.subject.id if self.subject else None

    def has_content_blocks(self) -> bool:
        return any(chapter.content_blocks for chapter in self.chapters)

    def item_ids(self) -> List[str]:
        ids: List[str] = []
        for chapter in self.chapters:
            ids.extend(chapter.item_ids())
        return ids


def knowledge_item_id(knowledge: LegacyKnowledge) -> str:
    return f"k-{knowledge.id}"


def document_item_id(block: LegacyContentBlock, doc: LegacyContentBlockDocument) -> str:
    return f"cb-{block.id}-doc-{doc.id}"


# ---------------------------------------------------------------------------
# Target documents and menu
# ---------------------------------------------------------------------------

@dataclass
class TargetPage:
    """A page document persisted under the ``(slug, category)`` key."""

    slug: str
    title: str
    category: str
    document_type: DocumentType
    content: str = ""
    description: str = ""
    featured_media: str = ""
    section_images: List[Dict[str, Any]] = field(default_factory=list)
    legacy_ids: Dict[str, Any] = field(default_factory=dict)
    legacy_metadata: Dict[str, Any] = field(default_factory=dict)
    worksheet_data: Optional[Dict[str, Any]] = None
    page_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the page store wire format."""
        data = {
            'slug': self.slug,
            'title': self.title,
            'category': self.category,
            'documentType': self.document_type.value,
            'content': self.content,
            'description': self.description,
            'featuredMedia': self.featured_media,
            'sectionImages': self.section_images,
            'legacyIds': self.legacy_ids,
            'legacyMetadata': self.legacy_metadata
        }
        if self.worksheet_data is not None:
            data['worksheetData'] = self.worksheet_data
        if self.page_type:
            data['type'] = self.page_type
        return data


def _unmodelled(data: Dict[str, Any], keys) -> Dict[str, Any]:
    """Keys of a fetched menu node that the models below do not map."""
    return {key: value for key, value in data.items() if key not in keys}


_LINK_KEYS = frozenset({'label', 'url', 'level'})


@dataclass
class WorksheetLink:
    label: str
    url: str = ""
    level: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data['label'] = self.label
        data['url'] = self.url
        if self.level is not None:
            data['level'] = self.level
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorksheetLink':
        return cls(
            label=data.get('label', ''),
            url=data.get('url', ''),
            level=data.get('level'),
            extra=_unmodelled(data, _LINK_KEYS)
        )


_EXTENDED_KEYS = frozenset({
    'isExtended', 'solutionPdf', 'interactive', 'textbook', 'methodology',
    'practice', 'minigames', 'tests', 'exams', 'bonuses'
})


@dataclass
class ExtendedWorksheet:
    """Cross-linked sub-resources of a worksheet menu item."""

    is_extended: bool = True
    solution_pdf: Optional[WorksheetLink] = None
    interactive: List[WorksheetLink] = field(default_factory=list)
    textbook: Optional[WorksheetLink] = None
    methodology: Optional[WorksheetLink] = None
    practice: List[WorksheetLink] = field(default_factory=list)
    minigames: List[WorksheetLink] = field(default_factory=list)
    tests: List[WorksheetLink] = field(default_factory=list)
    exams: List[WorksheetLink] = field(default_factory=list)
    bonuses: List[WorksheetLink] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data['isExtended'] = self.is_extended
        if self.solution_pdf:
            data['solutionPdf'] = self.solution_pdf.to_dict()
        if self.textbook:
            data['textbook'] = self.textbook.to_dict()
        if self.methodology:
            data['methodology'] = self.methodology.to_dict()
        data['interactive'] = [link.to_dict() for link in self.interactive]
        data['practice'] = [link.to_dict() for link in self.practice]
        data['minigames'] = [link.to_dict() for link in self.minigames]
        data['tests'] = [link.to_dict() for link in self.tests]
        data['exams'] = [link.to_dict() for link in self.exams]
        data['bonuses'] = [link.to_dict() for link in self.bonuses]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExtendedWorksheet':
        def single(key: str) -> Optional[WorksheetLink]:
            return WorksheetLink.from_dict(data[key]) if data.get(key) else None

        def many(key: str) -> List[WorksheetLink]:
            return [WorksheetLink.from_dict(item) for item in data.get(key) or []]

        return cls(
            is_extended=bool(data.get('isExtended', True)),
            solution_pdf=single('solutionPdf'),
            interactive=many('interactive'),
            textbook=single('textbook'),
            methodology=single('methodology'),
            practice=many('practice'),
            minigames=many('minigames'),
            tests=many('tests'),
            exams=many('exams'),
            bonuses=many('bonuses'),
            extra=_unmodelled(data, _EXTENDED_KEYS)
        )


_WORKBOOK_PAGE_KEYS = frozenset({
    'id', 'pageNumber', 'worksheetId', 'worksheetSlug', 'worksheetLabel', 'worksheetCover'
})


@dataclass
class WorkbookPage:
    """A workbook page. References a worksheet page, never copies it.

    ``page_number`` is None for fetched pages whose number is not an integer;
    the stored value then stays in ``extra`` and is written back unchanged.
    """

    id: str
    page_number: Optional[int]
    worksheet_id: str
    worksheet_slug: str
    worksheet_label: str
    worksheet_cover: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update({
            'id': self.id,
            'worksheetId': self.worksheet_id,
            'worksheetSlug': self.worksheet_slug,
            'worksheetLabel': self.worksheet_label
        })
        if self.page_number is not None:
            data['pageNumber'] = self.page_number
        if self.worksheet_cover is not None:
            data['worksheetCover'] = self.worksheet_cover
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkbookPage':
        page_number = data.get('pageNumber')
        extra = _unmodelled(data, _WORKBOOK_PAGE_KEYS)
        if not isinstance(page_number, int) or isinstance(page_number, bool):
            if 'pageNumber' in data:
                extra['pageNumber'] = page_number
            page_number = None
        return cls(
            id=data.get('id', ''),
            page_number=page_number,
            worksheet_id=data.get('worksheetId', ''),
            worksheet_slug=data.get('worksheetSlug', ''),
            worksheet_label=data.get('worksheetLabel', ''),
            worksheet_cover=data.get('worksheetCover'),
            extra=extra
        )


# camelCase wire key -> attribute name for the scalar MenuItem fields
_MENU_SCALARS = {
    'id': 'id',
    'label': 'label',
    'slug': 'slug',
    'type': 'type',
    'icon': 'icon',
    'coverImage': 'cover_image',
    'url': 'url',
    'externalUrl': 'external_url',
    'author': 'author',
    'eshopUrl': 'eshop_url',
    'contentView': 'content_view'
}
_MENU_NESTED = ('children', 'workbookPages', 'extendedWorksheet')


@dataclass
class MenuItem:
    """One node of a category menu tree.

    Menu items are treated as values: tree edits build new items with
    ``dataclasses.replace`` instead of mutating existing ones. Keys the
    migrator does not model are carried in ``extra`` so that rewriting a
    fetched tree never drops them.
    """

    id: str
    label: str
    slug: Optional[str] = None
    type: Optional[str] = None
    icon: Optional[str] = None
    cover_image: Optional[str] = None
    url: Optional[str] = None
    external_url: Optional[str] = None
    children: Optional[List['MenuItem']] = None
    workbook_pages: Optional[List[WorkbookPage]] = None
    extended_worksheet: Optional[ExtendedWorksheet] = None
    author: Optional[str] = None
    eshop_url: Optional[str] = None
    content_view: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        for key, attr in _MENU_SCALARS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        if self.children is not None:
            data['children'] = [child.to_dict() for child in self.children]
        if self.workbook_pages is not None:
            data['workbookPages'] = [page.to_dict() for page in self.workbook_pages]
        if self.extended_worksheet is not None:
            data['extendedWorksheet'] = self.extended_worksheet.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MenuItem':
        kwargs = {attr: data.get(key) for key, attr in _MENU_SCALARS.items()}
        kwargs['id'] = str(data.get('id', ''))
        kwargs['label'] = data.get('label') or ''
        if data.get('children') is not None:
            kwargs['children'] = [cls.from_dict(child) for child in data['children']]
        if data.get('workbookPages') is not None:
            kwargs['workbook_pages'] = [WorkbookPage.from_dict(p) for p in data['workbookPages']]
        if data.get('extendedWorksheet'):
            kwargs['extended_worksheet'] = ExtendedWorksheet.from_dict(data['extendedWorksheet'])
        kwargs['extra'] = {
            key: value for key, value in data.items()
            if key not in _MENU_SCALARS and key not in _MENU_NESTED
        }
        return cls(**kwargs)

    def iter_tree(self):
        """Yield this item and all descendants depth-first."""
        yield self
        for child in self.children or []:
            yield from child.iter_tree()


@dataclass
class ImportStatus:
    """Status row of one selected item."""

    id: str
    type: str
    name: str
    status: ImportState = ImportState.PENDING
    message: Optional[str] = None
    timestamp: Optional[str] = None

    def __post_init__(self) -> None:
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat()

    def mark(self, status: ImportState, message: Optional[str] = None) -> None:
        self.status = status
        self.message = message
        self.timestamp = datetime.utcnow().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'name': self.name,
            'status': self.status.value,
            'message': self.message,
            'timestamp': self.timestamp
        }


# ---------------------------------------------------------------------------
# Transformer results, events and run context
# ---------------------------------------------------------------------------

@dataclass
class WorksheetResult:
    slug: str
    cover_image_url: str = ""


@dataclass
class KnowledgeResult:
    slug: str
    cover_image_url: str = ""
    worksheet: Optional[WorksheetResult] = None


@dataclass
class DocumentResult:
    slug: str
    cover_image_url: str = ""
    extended_worksheet: Optional[ExtendedWorksheet] = None


@dataclass
class TextResult:
    slug: str
    cover_image_url: str = ""


@dataclass
class AssetDiscovered:
    """Emitted by the transformer for every animation it placed on a lesson."""

    name: str
    url: str
    category: str
    lesson_name: str
    lesson_slug: str
    asset_type: str = "animation"
    step_index: Optional[int] = None
    is_intro: bool = False
    thumbnail_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CatalogProbe:
    """Result of checking whether the shared asset catalog can be written."""

    available: bool
    reason: str = ""


@dataclass
class ImportContext:
    """Per-run options threaded through the transformer and synthesizer."""

    category: str
    download_files: bool = True
    overwrite_existing: bool = False
    destination_id: Optional[str] = None
    catalog: CatalogProbe = field(default_factory=lambda: CatalogProbe(False, "not probed"))
    section_images_enabled: bool = True
    import_boards: bool = True


__all__ = [
    'DocumentType',
    'MenuItemType',
    'ImportState',
    'RunState',
    'LegacySubject',
    'LegacyAnimation',
    'LegacyAnimationItem',
    'LegacyKnowledge',
    'LegacyContentBlockDocument',
    'LegacyContentBlock',
    'LegacyChapter',
    'LegacyBook',
    'knowledge_item_id',
    'document_item_id',
    'TargetPage',
    'WorksheetLink',
    'ExtendedWorksheet',
    'WorkbookPage',
    'MenuItem',
    'ImportStatus',
    'WorksheetResult',
    'KnowledgeResult',
    'DocumentResult',
    'TextResult',
    'AssetDiscovered',
    'CatalogProbe',
    'ImportContext'
]
