"""Tests for the traversal frontier."""

import threading

from django.test import SimpleTestCase

from mirror.sync.containers import Container, ContainerKind
from mirror.sync.frontier import Frontier


def page(container_id):
    return Container(container_id, ContainerKind.PAGE)


class FrontierTests(SimpleTestCase):
    def test_take_in_fifo_order(self):
        frontier = Frontier(concurrency_limit=3)
        for container_id in ("a", "b", "c"):
            frontier.enqueue(page(container_id))

        taken = [frontier.take().id for _ in range(3)]

        self.assertEqual(taken, ["a", "b", "c"])
        self.assertIsNone(frontier.take())

    def test_enqueue_is_idempotent(self):
        frontier = Frontier()

        self.assertTrue(frontier.enqueue(page("a")))
        self.assertFalse(frontier.enqueue(page("a")))
        self.assertEqual(frontier.pending_count, 1)

    def test_visited_ids_are_not_requeued(self):
        frontier = Frontier()
        frontier.enqueue(page("a"))
        frontier.take()
        frontier.complete("a")

        self.assertFalse(frontier.enqueue(page("a")))
        # a different kind with the same id is still the same container
        self.assertFalse(frontier.enqueue(Container("a", ContainerKind.BLOCK)))
        self.assertEqual(frontier.visits["a"], 1)

    def test_in_flight_ids_are_not_requeued(self):
        frontier = Frontier()
        frontier.enqueue(page("a"))
        frontier.take()

        self.assertFalse(frontier.enqueue(page("a")))

    def test_concurrency_limit(self):
        frontier = Frontier(concurrency_limit=2)
        for container_id in ("a", "b", "c"):
            frontier.enqueue(page(container_id))

        self.assertEqual(frontier.take().id, "a")
        self.assertEqual(frontier.take().id, "b")
        self.assertIsNone(frontier.take())
        self.assertEqual(frontier.in_flight_count, 2)

        frontier.complete("a")

        self.assertEqual(frontier.take().id, "c")

    def test_is_done(self):
        frontier = Frontier()
        self.assertTrue(frontier.is_done())

        frontier.enqueue(page("a"))
        self.assertFalse(frontier.is_done())

        frontier.take()
        self.assertFalse(frontier.is_done())

        frontier.complete("a")
        self.assertTrue(frontier.is_done())
        self.assertEqual(frontier.visited, frozenset({"a"}))

    def test_close_drops_pending(self):
        frontier = Frontier(concurrency_limit=1)
        for container_id in ("a", "b", "c"):
            frontier.enqueue(page(container_id))
        frontier.take()

        self.assertEqual(frontier.close(), 2)
        self.assertTrue(frontier.closed)
        self.assertIsNone(frontier.take())
        self.assertFalse(frontier.enqueue(page("d")))
        self.assertEqual(frontier.in_flight_count, 1)

    def test_invalid_limit(self):
        with self.assertRaises(ValueError):
            Frontier(concurrency_limit=0)

    def test_concurrent_enqueue(self):
        frontier = Frontier()
        ids = [f"id{i}" for i in range(200)]

        def enqueue_all():
            for container_id in ids:
                frontier.enqueue(page(container_id))

        threads = [threading.Thread(target=enqueue_all) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(frontier.pending_count, 200)
