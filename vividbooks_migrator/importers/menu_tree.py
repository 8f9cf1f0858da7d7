"""
Pure functions over menu trees.

Every function returns a new list of items and leaves its input untouched.
``splice_items`` is the only place imported items enter an existing tree.
"""

import dataclasses
from typing import Callable, List, Optional, Sequence, Tuple

from ..models import MenuItem

BOARD_SCHEME = 'board://'
BOARD_ITEM_TYPES = frozenset({'practice', 'test', 'exam', 'interactive', 'bonus'})


def splice_items(
    tree: Sequence[MenuItem],
    items: Sequence[MenuItem],
    destination_id: Optional[str] = None
) -> Tuple[List[MenuItem], bool]:
    """
    Insert items under a destination node, or at the root.

    The items are appended to the children of the first node whose id equals
    ``destination_id``. Without a destination, or when it is not found, they
    are appended to the root.

    Returns:
        (new_tree, found) where ``found`` tells whether the destination existed
    """
    if destination_id:
        new_tree, found = _append_to(tree, list(items), destination_id)
        if found:
            return new_tree, True
    return list(tree) + list(items), False


def _append_to(
    nodes: Sequence[MenuItem],
    items: List[MenuItem],
    destination_id: str
) -> Tuple[List[MenuItem], bool]:
    result = []
    found = False
    for node in nodes:
        if not found and node.id == destination_id:
            node = dataclasses.replace(node, children=list(node.children or []) + items)
            found = True
        elif not found and node.children:
            children, found = _append_to(node.children, items, destination_id)
            if found:
                node = dataclasses.replace(node, children=children)
        result.append(node)
    return result, found


def find_item(tree: Sequence[MenuItem], item_id: str) -> Optional[MenuItem]:
    for root in tree:
        for node in root.iter_tree():
            if node.id == item_id:
                return node
    return None


def is_board_candidate(item: MenuItem, matches_url: Callable[[str], bool]) -> bool:
    """Sub-resource leaf whose external URL points at an importable board."""
    return (
        item.type in BOARD_ITEM_TYPES
        and bool(item.external_url)
        and not item.external_url.startswith(BOARD_SCHEME)
        and matches_url(item.external_url)
    )


def rewrite_board_links(
    items: Sequence[MenuItem],
    matches_url: Callable[[str], bool],
    import_board: Callable[[MenuItem], Optional[str]]
) -> Tuple[List[MenuItem], int]:
    """
    Replace importable board links with ``board://{id}`` references.

    ``import_board`` is called once per candidate leaf, depth first, and
    returns the new board id or None. Failed imports keep their URL.

    Returns:
        (new_items, rewritten_count)
    """
    result = []
    rewritten = 0
    for item in items:
        if is_board_candidate(item, matches_url):
            board_id = import_board(item)
            if board_id:
                reference = f"{BOARD_SCHEME}{board_id}"
                item = dataclasses.replace(item, url=reference, external_url=reference)
                rewritten += 1
        if item.children:
            children, count = rewrite_board_links(item.children, matches_url, import_board)
            item = dataclasses.replace(item, children=children)
            rewritten += count
        result.append(item)
    return result, rewritten


def count_items(tree: Sequence[MenuItem]) -> int:
    return sum(1 for root in tree for _ in root.iter_tree())


__all__ = [
    'BOARD_SCHEME',
    'BOARD_ITEM_TYPES',
    'splice_items',
    'find_item',
    'is_board_candidate',
    'rewrite_board_links',
    'count_items'
]
