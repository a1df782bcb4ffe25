"""
Containers: the objects the engine expands.

Pages, databases and blocks with children are all handled through one
`Container` value whose kind decides which listing fetches its children.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator

from mirror.providers.notion import NotionBlock, ObjectType, ResultsPage

if TYPE_CHECKING:
    from mirror.providers.notion import NotionClient
    from mirror.sync.retry import Backoff


class ContainerKind(str, Enum):
    PAGE = "page"
    DATABASE = "database"
    BLOCK = "block"
    # the root, before its kind is fetched
    UNRESOLVED = "unresolved"

    def __str__(self):
        return self.value

    @property
    def object_type(self) -> ObjectType | None:
        if self is ContainerKind.UNRESOLVED:
            return None
        return ObjectType(self.value)

    @classmethod
    def from_object_type(cls, object_type: ObjectType) -> "ContainerKind":
        return cls(object_type.value)


@dataclass(frozen=True)
class Container:
    """
    A node pending expansion.

    `prefetched` is set when the container's own record already arrived as
    part of its parent's listing (database rows, blocks with children), so
    expanding it needs no record fetch.
    """

    id: str
    kind: ContainerKind
    prefetched: bool = field(default=False, compare=False)

    @property
    def is_resolved(self) -> bool:
        return self.kind is not ContainerKind.UNRESOLVED

    @property
    def holds_discussions(self) -> bool:
        return self.kind in (ContainerKind.PAGE, ContainerKind.BLOCK)

    @property
    def child_kind(self) -> ObjectType:
        """Kind of record returned by this container's children listing."""
        if self.kind is ContainerKind.DATABASE:
            return ObjectType.PAGE
        return ObjectType.BLOCK

    def children_fetcher(self, client: NotionClient) -> Callable[[str | None], ResultsPage]:
        if self.kind is ContainerKind.DATABASE:
            return lambda cursor: client.query_database_rows(self.id, cursor)
        if self.kind is ContainerKind.UNRESOLVED:
            raise ValueError(f"Container {self.id} must be resolved before listing children")
        return lambda cursor: client.list_children(self.id, cursor)

    def comments_fetcher(self, client: NotionClient) -> Callable[[str | None], ResultsPage]:
        return lambda cursor: client.list_comments(self.id, cursor)

    def resolved(self, kind: ContainerKind) -> "Container":
        return Container(self.id, kind, prefetched=True)


def container_for_block(block: NotionBlock) -> Container | None:
    """
    Return the container a listed block leads to, or None for a leaf.

    child_page and child_database blocks point at a page or database with the
    same ID, whose record has to be fetched; other blocks with children are
    expanded directly.
    """
    if block.is_child_page:
        return Container(block.id, ContainerKind.PAGE)
    if block.is_child_database:
        return Container(block.id, ContainerKind.DATABASE)
    if block.has_children:
        return Container(block.id, ContainerKind.BLOCK, prefetched=True)
    return None


class PageSequence:
    """
    Lazy, restartable sequence of result pages behind a cursor.

    Pages are fetched strictly in cursor order. Each fetch goes through the
    backoff policy, and a failed fetch leaves the cursor untouched, so
    iterating again resumes at the page that failed. `offset` counts results
    already yielded and gives sibling indices across pages.
    """

    def __init__(
        self,
        fetch: Callable[[str | None], ResultsPage],
        backoff: Backoff | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self._fetch = fetch
        self._backoff = backoff
        self._cancel_event = cancel_event
        self.cursor: str | None = None
        self.offset = 0
        self.pages_fetched = 0
        self.exhausted = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _fetch_next(self) -> ResultsPage:
        if self._backoff is None:
            return self._fetch(self.cursor)
        return self._backoff.call(self._fetch, self.cursor, cancel_event=self._cancel_event)

    def __iter__(self) -> Iterator[tuple[int, ResultsPage]]:
        """Yield (start_index, page) until the cursor is drained or cancelled."""
        while not self.exhausted and not self.cancelled:
            page = self._fetch_next()
            start_index = self.offset

            self.pages_fetched += 1
            self.offset += len(page.results)
            self.cursor = page.next_cursor
            if page.next_cursor is None:
                self.exhausted = True

            yield start_index, page
