"""Tests for splicing imported items into menus and rewriting board links."""

import unittest

from vividbooks_migrator.importers.menu_tree import count_items, find_item, rewrite_board_links, splice_items
from vividbooks_migrator.models import MenuItem


def _tree():
    return [
        MenuItem(id='root-a', label='A', children=[
            MenuItem(id='nested', label='Nested', children=[MenuItem(id='leaf', label='Leaf')]),
        ]),
        MenuItem(id='root-b', label='B', extra={'customFlag': True}),
    ]


class TestSpliceItems(unittest.TestCase):

    def setUp(self):
        self.new = [MenuItem(id='new-1', label='Nová 1'), MenuItem(id='new-2', label='Nová 2')]

    def test_appends_to_root_without_destination(self):
        tree, found = splice_items(_tree(), self.new)
        self.assertFalse(found)
        self.assertEqual([item.id for item in tree], ['root-a', 'root-b', 'new-1', 'new-2'])

    def test_appends_to_nested_destination(self):
        tree, found = splice_items(_tree(), self.new, 'nested')
        self.assertTrue(found)
        self.assertEqual(len(tree), 2)
        nested = find_item(tree, 'nested')
        self.assertEqual([child.id for child in nested.children], ['leaf', 'new-1', 'new-2'])

    def test_destination_without_children(self):
        tree, found = splice_items(_tree(), self.new, 'root-b')
        self.assertTrue(found)
        self.assertEqual(tree[1].extra, {'customFlag': True})
        self.assertEqual(len(tree[1].children), 2)

    def test_missing_destination_falls_back_to_root(self):
        tree, found = splice_items(_tree(), self.new, 'gone')
        self.assertFalse(found)
        self.assertEqual(tree[-1].id, 'new-2')

    def test_input_tree_is_untouched(self):
        original = _tree()
        before = [item.to_dict() for item in original]
        splice_items(original, self.new, 'nested')
        self.assertEqual([item.to_dict() for item in original], before)

    def test_count_items(self):
        self.assertEqual(count_items(_tree()), 4)


class TestRewriteBoardLinks(unittest.TestCase):

    def setUp(self):
        self.items = [MenuItem(id='folder', label='Složka', type='folder', children=[
            MenuItem(id='p', label='Procvičování', type='practice',
                     url='https://vividboard.example/x', external_url='https://vividboard.example/x'),
            MenuItem(id='t', label='Test', type='test', external_url='https://other.example/t'),
            MenuItem(id='w', label='List', type='worksheet', external_url='https://vividboard.example/w'),
            MenuItem(id='done', label='Hotovo', type='exam', external_url='board://imported-1'),
            MenuItem(id='fail', label='Chyba', type='bonus', external_url='https://vividboard.example/fail'),
        ])]
        self.calls = []

    def _matches(self, url):
        return 'vividboard' in url

    def _import(self, item):
        self.calls.append(item.id)
        return None if item.id == 'fail' else f"imported-{item.id}"

    def test_rewrites_only_board_leaves(self):
        result, count = rewrite_board_links(self.items, self._matches, self._import)

        self.assertEqual(count, 1)
        self.assertEqual(self.calls, ['p', 'fail'])
        children = {child.id: child for child in result[0].children}
        self.assertEqual(children['p'].url, 'board://imported-p')
        self.assertEqual(children['p'].external_url, 'board://imported-p')
        self.assertEqual(children['t'].external_url, 'https://other.example/t')
        self.assertEqual(children['w'].external_url, 'https://vividboard.example/w')
        self.assertEqual(children['fail'].external_url, 'https://vividboard.example/fail')
        # input untouched
        self.assertEqual(self.items[0].children[0].url, 'https://vividboard.example/x')


if __name__ == '__main__':
    unittest.main()
