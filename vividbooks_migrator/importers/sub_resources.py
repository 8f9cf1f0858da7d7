"""
Normalization of the loosely typed sub-resource lists on legacy documents.

Legacy documents carry practices, tests, ABCD tests, minigames, bonus sheets,
bonuses, interactive worksheets, interactive solutions and a methodology PDF
as free-form dictionaries. Each kind is normalized here into a
``SubResource`` so the transformer and the menu synthesizer never guess at
field priority themselves.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..models import LegacyContentBlockDocument, WorksheetLink


class SubResourceKind(Enum):
    PRACTICE = "practice"
    TEST = "test"
    EXAM = "exam"
    INTERACTIVE = "interactive"
    INTERACTIVE_SOLUTION = "interactive-solution"
    MINIGAME = "minigame"
    BONUS_SHEET = "bonus-sheet"
    BONUS = "bonus"
    METHODOLOGY = "methodology"


# Label used when a legacy entry has no name of its own
DEFAULT_LABELS = {
    SubResourceKind.PRACTICE: "Procvičování",
    SubResourceKind.TEST: "Test",
    SubResourceKind.EXAM: "Písemka",
    SubResourceKind.INTERACTIVE: "Interaktivní verze",
    SubResourceKind.INTERACTIVE_SOLUTION: "Interaktivní řešení",
    SubResourceKind.MINIGAME: "Minihra",
    SubResourceKind.BONUS_SHEET: "Bonus",
    SubResourceKind.BONUS: "Příloha",
    SubResourceKind.METHODOLOGY: "Metodika",
}


@dataclass(frozen=True)
class SubResource:
    kind: SubResourceKind
    name: str
    url: str
    index: int = 0
    level: Optional[int] = None
    is_document: bool = False

    @property
    def label(self) -> str:
        """Own name, or the bare kind label ("Test")."""
        return self.name or DEFAULT_LABELS[self.kind]

    @property
    def numbered_label(self) -> str:
        """Own name, or the kind label with the 1-based position ("Test 2")."""
        return self.name or f"{DEFAULT_LABELS[self.kind]} {self.index + 1}"

    def link(self) -> WorksheetLink:
        return WorksheetLink(label=self.label, url=self.url, level=self.level)


def _first(raw: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return ""


def _level(raw: Dict[str, Any]) -> int:
    try:
        return int(raw.get('level') or 1)
    except (TypeError, ValueError):
        return 1


def normalize_practice(raw: Dict[str, Any], index: int) -> SubResource:
    return SubResource(
        SubResourceKind.PRACTICE, raw.get('name') or "", _first(raw, 'url', 'playableLink'),
        index, level=_level(raw)
    )


def normalize_test(raw: Dict[str, Any], index: int) -> SubResource:
    return SubResource(
        SubResourceKind.TEST, raw.get('name') or "", _first(raw, 'url', 'playableLink', 'documentUrl'),
        index, is_document=bool(raw.get('documentUrl'))
    )


def normalize_exam(raw: Dict[str, Any], index: int) -> SubResource:
    return SubResource(
        SubResourceKind.EXAM, raw.get('name') or "", _first(raw, 'url', 'playableLink', 'documentUrl'),
        index, is_document=bool(raw.get('documentUrl'))
    )


def normalize_minigame(raw: Dict[str, Any], index: int) -> SubResource:
    return SubResource(SubResourceKind.MINIGAME, raw.get('name') or "", _first(raw, 'url', 'playableLink'), index)


def normalize_interactive(raw: Dict[str, Any], index: int) -> SubResource:
    return SubResource(SubResourceKind.INTERACTIVE, raw.get('name') or "", _first(raw, 'url', 'playableLink'), index)


def normalize_interactive_solution(raw: Dict[str, Any], index: int) -> SubResource:
    return SubResource(
        SubResourceKind.INTERACTIVE_SOLUTION, raw.get('name') or "", _first(raw, 'url', 'playableLink'), index
    )


def normalize_bonus_sheet(raw: Dict[str, Any], index: int) -> SubResource:
    # bonus sheets are documents first; their url is only a fallback
    return SubResource(
        SubResourceKind.BONUS_SHEET, raw.get('name') or "", _first(raw, 'documentUrl', 'url'),
        index, is_document=True
    )


def normalize_bonus(raw: Dict[str, Any], index: int) -> SubResource:
    return SubResource(SubResourceKind.BONUS, raw.get('name') or "", _first(raw, 'url', 'playableLink'), index)


def normalize_methodology(raw: Dict[str, Any], index: int = 0) -> SubResource:
    return SubResource(
        SubResourceKind.METHODOLOGY, raw.get('name') or "", _first(raw, 'documentUrl', 'url'),
        index, is_document=True
    )


NORMALIZERS: Dict[SubResourceKind, Callable[[Dict[str, Any], int], SubResource]] = {
    SubResourceKind.PRACTICE: normalize_practice,
    SubResourceKind.TEST: normalize_test,
    SubResourceKind.EXAM: normalize_exam,
    SubResourceKind.MINIGAME: normalize_minigame,
    SubResourceKind.INTERACTIVE: normalize_interactive,
    SubResourceKind.INTERACTIVE_SOLUTION: normalize_interactive_solution,
    SubResourceKind.BONUS_SHEET: normalize_bonus_sheet,
    SubResourceKind.BONUS: normalize_bonus,
    SubResourceKind.METHODOLOGY: normalize_methodology,
}


def normalize_all(kind: SubResourceKind, raw_items: List[Dict[str, Any]]) -> List[SubResource]:
    """Normalize a legacy list, dropping entries that are not dictionaries."""
    normalize = NORMALIZERS[kind]
    return [normalize(raw, index) for index, raw in enumerate(raw_items or []) if isinstance(raw, dict)]


class DocumentResources:
    """All sub-resources of one legacy worksheet document, normalized."""

    def __init__(self, doc: LegacyContentBlockDocument):
        self.practices = normalize_all(SubResourceKind.PRACTICE, doc.practices)
        self.tests = normalize_all(SubResourceKind.TEST, doc.tests)
        self.exams = normalize_all(SubResourceKind.EXAM, doc.abcd_tests)
        self.minigames = normalize_all(SubResourceKind.MINIGAME, doc.minigames)
        self.interactive = normalize_all(SubResourceKind.INTERACTIVE, doc.interactive_worksheets)
        self.interactive_solutions = normalize_all(
            SubResourceKind.INTERACTIVE_SOLUTION, doc.interactive_solutions
        )
        self.bonus_sheets = normalize_all(SubResourceKind.BONUS_SHEET, doc.bonus_sheets)
        self.bonuses = normalize_all(SubResourceKind.BONUS, doc.bonuses)
        self.methodology = normalize_methodology(doc.methodic_pdf) if doc.methodic_pdf else None


__all__ = [
    'SubResourceKind',
    'SubResource',
    'DEFAULT_LABELS',
    'NORMALIZERS',
    'normalize_all',
    'normalize_methodology',
    'DocumentResources'
]
