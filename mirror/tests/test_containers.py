"""Tests for containers and paginated listings."""

import threading
from unittest.mock import MagicMock

from django.test import SimpleTestCase

from mirror.providers.notion import NotionBlock, ObjectType, ResultsPage, TransientAPIError
from mirror.sync.containers import Container, ContainerKind, PageSequence, container_for_block
from mirror.sync.exceptions import RetriesExhaustedError
from mirror.sync.retry import Backoff
from mirror.tests.fakes import block_data


class ContainerTests(SimpleTestCase):
    def test_child_page_block(self):
        block = NotionBlock.from_api_response(block_data("p1", "root", "child_page", True))

        container = container_for_block(block)

        self.assertEqual(container, Container("p1", ContainerKind.PAGE))
        self.assertFalse(container.prefetched)

    def test_child_database_block(self):
        block = NotionBlock.from_api_response(block_data("db", "root", "child_database"))

        container = container_for_block(block)

        self.assertEqual(container.kind, ContainerKind.DATABASE)
        self.assertEqual(container.child_kind, ObjectType.PAGE)
        self.assertFalse(container.holds_discussions)

    def test_block_with_children(self):
        block = NotionBlock.from_api_response(block_data("t1", "root", "toggle", True))

        container = container_for_block(block)

        self.assertEqual(container.kind, ContainerKind.BLOCK)
        self.assertTrue(container.prefetched)
        self.assertEqual(container.child_kind, ObjectType.BLOCK)

    def test_leaf_block(self):
        block = NotionBlock.from_api_response(block_data("b1", "root"))

        self.assertIsNone(container_for_block(block))

    def test_resolution(self):
        root = Container("root", ContainerKind.UNRESOLVED)

        self.assertFalse(root.is_resolved)
        self.assertIsNone(root.kind.object_type)

        resolved = root.resolved(ContainerKind.from_object_type(ObjectType.PAGE))

        self.assertTrue(resolved.is_resolved)
        self.assertTrue(resolved.prefetched)
        self.assertEqual(resolved.kind.object_type, ObjectType.PAGE)

    def test_unresolved_has_no_children_listing(self):
        with self.assertRaises(ValueError):
            Container("root", ContainerKind.UNRESOLVED).children_fetcher(MagicMock())

    def test_fetchers(self):
        client = MagicMock()

        Container("db", ContainerKind.DATABASE).children_fetcher(client)("c1")
        Container("p1", ContainerKind.PAGE).children_fetcher(client)(None)
        Container("p1", ContainerKind.PAGE).comments_fetcher(client)(None)

        client.query_database_rows.assert_called_once_with("db", "c1")
        client.list_children.assert_called_once_with("p1", None)
        client.list_comments.assert_called_once_with("p1", None)


class PageSequenceTests(SimpleTestCase):
    def _fetch(self, *pages):
        """Serve pages of the given sizes, keyed by cursor."""
        responses = {}
        start = 0
        for i, size in enumerate(pages):
            cursor = None if i == 0 else f"cursor-{i}"
            next_cursor = f"cursor-{i + 1}" if i + 1 < len(pages) else None
            responses[cursor] = ResultsPage(
                results=list(range(start, start + size)), next_cursor=next_cursor
            )
            start += size
        return MagicMock(side_effect=lambda cursor: responses[cursor])

    def test_drains_every_page(self):
        fetch = self._fetch(100, 100, 37)
        sequence = PageSequence(fetch)

        pages = list(sequence)

        self.assertEqual([start for start, _ in pages], [0, 100, 200])
        items = [item for _, page in pages for item in page.results]
        self.assertEqual(items, list(range(237)))
        self.assertEqual(sequence.offset, 237)
        self.assertEqual(sequence.pages_fetched, 3)
        self.assertTrue(sequence.exhausted)
        self.assertEqual(
            [call.args[0] for call in fetch.call_args_list], [None, "cursor-1", "cursor-2"]
        )

    def test_empty_listing(self):
        sequence = PageSequence(self._fetch(0))

        pages = list(sequence)

        self.assertEqual(len(pages), 1)
        self.assertEqual(pages[0][1].results, [])
        self.assertEqual(sequence.offset, 0)

    def test_resumes_after_failure(self):
        fetch = self._fetch(2, 2, 1)
        serve = fetch.side_effect
        failures = [TransientAPIError("down")]

        def flaky(cursor):
            if cursor == "cursor-1" and failures:
                raise failures.pop()
            return serve(cursor)

        sequence = PageSequence(flaky)
        collected = []

        with self.assertRaises(TransientAPIError):
            for start, page in sequence:
                collected.append((start, page.results))

        self.assertEqual(sequence.cursor, "cursor-1")
        self.assertEqual(sequence.offset, 2)

        for start, page in sequence:
            collected.append((start, page.results))

        self.assertEqual(collected, [(0, [0, 1]), (2, [2, 3]), (4, [4])])

    def test_retries_through_backoff(self):
        fetch = MagicMock(
            side_effect=[TransientAPIError("down"), ResultsPage(results=[1], next_cursor=None)]
        )
        sleeps = []
        sequence = PageSequence(fetch, Backoff(max_attempts=2, sleep=sleeps.append))

        self.assertEqual([page.results for _, page in sequence], [[1]])
        self.assertEqual(sleeps, [1.0])

    def test_exhausted_retries_propagate(self):
        fetch = MagicMock(side_effect=TransientAPIError("down"))
        sequence = PageSequence(fetch, Backoff(max_attempts=2, sleep=lambda delay: None))

        with self.assertRaises(RetriesExhaustedError):
            list(sequence)

        self.assertIsNone(sequence.cursor)
        self.assertFalse(sequence.exhausted)

    def test_stops_when_cancelled(self):
        cancel_event = threading.Event()
        fetch = self._fetch(1, 1, 1)
        sequence = PageSequence(fetch, cancel_event=cancel_event)

        for _ in sequence:
            cancel_event.set()

        self.assertEqual(sequence.pages_fetched, 1)
        self.assertFalse(sequence.exhausted)
