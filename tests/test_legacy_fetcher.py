"""Tests for reading book trees from the legacy API."""

import json
import unittest
from unittest import mock

import requests

from fakes import base_config, sample_book_payload
from vividbooks_migrator.fetchers import BookNotFoundError, FetcherError, LegacyApiFetcher
from vividbooks_migrator.legacy_client import LegacyApiClient, LegacyApiError


def _response(status_code, body):
    response = requests.Response()
    response.status_code = status_code
    response._content = body if isinstance(body, bytes) else json.dumps(body).encode('utf-8')
    return response


class TestLegacyApiClient(unittest.TestCase):

    def setUp(self):
        self.client = LegacyApiClient.from_config(base_config())

    def test_get_book_sends_user_code(self):
        with mock.patch.object(self.client.session, 'get', return_value=_response(200, {'id': 44})) as get:
            self.assertEqual(self.client.get_book(44), {'id': 44})

        self.assertEqual(get.call_args.args[0], 'https://api.vividbooks.com/v1/books/44')
        self.assertEqual(get.call_args.kwargs['params'], {'user-code': 'abc'})

    def test_errors(self):
        with mock.patch.object(self.client.session, 'get', return_value=_response(404, {})):
            with self.assertRaises(LegacyApiError) as raised:
                self.client.get_book(1)
        self.assertEqual(raised.exception.status_code, 404)

        with mock.patch.object(self.client.session, 'get', return_value=_response(200, b'<html>')):
            with self.assertRaises(LegacyApiError):
                self.client.get_book(1)

        with mock.patch.object(self.client.session, 'get', return_value=_response(200, [1, 2])):
            with self.assertRaises(LegacyApiError):
                self.client.get_book(1)


class TestLegacyApiFetcher(unittest.TestCase):

    def setUp(self):
        self.client = mock.Mock(spec=LegacyApiClient)
        self.fetcher = LegacyApiFetcher(base_config(), client=self.client)

    def test_parses_book_tree(self):
        self.client.get_book.return_value = sample_book_payload()
        book = self.fetcher.fetch_book(44)

        self.assertEqual(book.name, 'Fyzika 6')
        self.assertEqual(book.subject_name, 'Fyzika')
        self.assertEqual(book.item_ids(), ['k-101', 'k-102', 'k-103', 'cb-70-doc-12', 'cb-70-doc-5'])
        self.assertEqual(book.chapters[0].content_blocks[0].documents[0].practices[0]['level'], 2)

    def test_not_found(self):
        self.client.get_book.side_effect = LegacyApiError('HTTP 404', 404)
        with self.assertRaises(BookNotFoundError):
            self.fetcher.fetch_book(99)

    def test_transport_failure(self):
        self.client.get_book.side_effect = requests.ConnectionError('down')
        with self.assertRaises(FetcherError):
            self.fetcher.fetch_book(44)

    def test_fetch_books_skips_failures(self):
        def get_book(book_id):
            if book_id == 99:
                raise LegacyApiError('HTTP 500', 500)
            return dict(sample_book_payload(), id=book_id)

        self.client.get_book.side_effect = get_book
        books = self.fetcher.fetch_books([44, 99, 45])
        self.assertEqual([book.id for book in books], [44, 45])


if __name__ == '__main__':
    unittest.main()
