"""
Core sync engine for mirroring a Notion tree.

Walks every page, database, block and comment reachable from a root ID and
upserts them into the local store. Remote fetches run on a bounded thread
pool; all store writes happen on the thread that called `run`, fed through
a single outbox queue.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from mirror.providers.notion import InvalidObjectError, ObjectType, PermanentAPIError
from mirror.sync.containers import Container, ContainerKind, PageSequence, container_for_block
from mirror.sync.exceptions import (
    RetriesExhaustedError,
    StructuralError,
    SyncAbortedError,
    SyncError,
)
from mirror.sync.frontier import Frontier
from mirror.sync.models import SyncEvent, SyncSession
from mirror.sync.retry import Backoff

if TYPE_CHECKING:
    from mirror.models import SyncRoot
    from mirror.providers.notion import NotionClient
    from mirror.store import MirrorStore

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4


@dataclass
class SoftFailure:
    """A per-container error that skipped that container's subtree."""

    container_id: str
    kind: str
    operation: str
    message: str
    transient: bool = False

    def __str__(self):
        return f"{self.kind} {self.container_id} ({self.operation}): {self.message}"


@dataclass
class SyncSummary:
    """Result of a sync run."""

    root_id: str
    root_kind: str = ""
    blocks: int = 0
    pages: int = 0
    databases: int = 0
    comments: int = 0
    containers_expanded: int = 0
    cancelled: bool = False
    soft_failures: list[SoftFailure] = None

    def __post_init__(self):
        if self.soft_failures is None:
            self.soft_failures = []

    @property
    def counts(self) -> dict[str, int]:
        return {
            "block": self.blocks,
            "page": self.pages,
            "database": self.databases,
            "comment": self.comments,
        }

    def count(self, object_type: ObjectType) -> None:
        attr = {
            ObjectType.BLOCK: "blocks",
            ObjectType.PAGE: "pages",
            ObjectType.DATABASE: "databases",
            ObjectType.COMMENT: "comments",
        }[object_type]
        setattr(self, attr, getattr(self, attr) + 1)


# Messages from workers to the writer thread


@dataclass
class _Record:
    record: object


@dataclass
class _Resolved:
    container_id: str
    kind: ContainerKind


@dataclass
class _Finished:
    container: Container
    failure: SoftFailure | None = None
    error: BaseException | None = None
    # child containers, enqueued only if the expansion succeeded
    discovered: list[Container] = field(default_factory=list)
    expanded: bool = False


class _Expansion:
    """
    Fetches everything one container contributes to the mirror.

    Runs on a worker thread and only talks to the engine through its outbox.
    Records are posted as they arrive; child containers are held back in
    `discovered` until the whole expansion has succeeded. `operation` names
    the step in progress, for error context.
    """

    def __init__(self, engine: SyncEngine, container: Container):
        self.engine = engine
        self.container = container
        self.operation = "fetch_container"
        self.discovered: list[Container] = []
        self.started = False

    def _emit(self, message) -> None:
        self.engine._outbox.put(message)

    def _pages(self, fetch) -> PageSequence:
        return PageSequence(fetch, self.engine.backoff, self.engine._cancel_event)

    def run(self) -> None:
        engine = self.engine
        container = self.container
        has_children = True

        if engine.cancelled:
            return
        self.started = True

        if not container.prefetched:
            self.operation = "fetch_container"
            kind, record, block = engine.backoff.call(
                engine.client.fetch_container,
                container.id,
                container.kind.object_type,
                cancel_event=engine._cancel_event,
            )
            resolved = container.resolved(ContainerKind.from_object_type(kind))
            if block is not None:
                self._emit(_Record(block))
            self._emit(_Record(record))
            if not container.is_resolved:
                self._emit(_Resolved(container.id, resolved.kind))
            container = resolved

            if record.is_archived:
                logger.info(f"Skipping children of archived {kind} {container.id}")
                return
            if kind == ObjectType.BLOCK:
                has_children = record.has_children

        leaves = []
        if container.kind is ContainerKind.DATABASE:
            self.operation = "query_database_rows"
            self._expand_rows(container)
        elif has_children:
            self.operation = "list_children"
            leaves = self._expand_children(container)

        if container.holds_discussions:
            self.operation = "list_comments"
            self._collect_comments(container)
            for leaf in leaves:
                self._collect_comments(leaf)

    def _expand_rows(self, container: Container) -> None:
        for _, page in self._pages(container.children_fetcher(self.engine.client)):
            for row in page.results:
                self._emit(_Record(row))
                if not row.is_archived:
                    self.discovered.append(Container(row.id, ContainerKind.PAGE, prefetched=True))

    def _expand_children(self, container: Container) -> list[Container]:
        leaves = []
        for start_index, page in self._pages(container.children_fetcher(self.engine.client)):
            for offset, block in enumerate(page.results):
                block = replace(block, child_index=start_index + offset)
                self._emit(_Record(block))

                child = container_for_block(block)
                if child is not None and not block.is_archived:
                    self.discovered.append(child)
                elif child is None and self.engine.leaf_comments:
                    leaves.append(Container(block.id, ContainerKind.BLOCK, prefetched=True))
        return leaves

    def _collect_comments(self, container: Container) -> None:
        for _, page in self._pages(container.comments_fetcher(self.engine.client)):
            for comment in page.results:
                self._emit(_Record(comment))


class SyncEngine:
    """
    Recursive sync engine for one root at a time.

    Each call to `run` gets a fresh frontier, so the visited set never leaks
    between runs. Soft failures are collected on the summary; store and
    structural errors abort the run.
    """

    def __init__(
        self,
        client: NotionClient,
        store: MirrorStore | None = None,
        concurrency_limit: int | None = None,
        backoff: Backoff | None = None,
        sync_root: SyncRoot | None = None,
        leaf_comments: bool | None = None,
    ):
        if store is None:
            from mirror.store import MirrorStore

            store = MirrorStore()

        self.client = client
        self.store = store
        if concurrency_limit is None:
            concurrency_limit = getattr(settings, "NOTION_SYNC_CONCURRENCY", DEFAULT_CONCURRENCY)
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.concurrency_limit = concurrency_limit
        self.backoff = backoff or Backoff(
            max_attempts=getattr(settings, "NOTION_SYNC_MAX_ATTEMPTS", 5),
            base_delay=getattr(settings, "NOTION_SYNC_BACKOFF_BASE", 1.0),
            max_delay=getattr(settings, "NOTION_SYNC_BACKOFF_MAX", 60.0),
        )
        self.sync_root = sync_root
        if leaf_comments is None:
            leaf_comments = getattr(settings, "NOTION_SYNC_LEAF_COMMENTS", False)
        self.leaf_comments = leaf_comments

        self.session: SyncSession | None = None
        self.frontier: Frontier | None = None
        self._cancel_event = threading.Event()
        self._outbox: queue.Queue = queue.Queue()
        self._written: set[tuple[ObjectType, str]] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop launching expansions; in-flight ones stop at their next page."""
        if not self._cancel_event.is_set():
            logger.warning("Cancellation requested, finishing in-flight work")
        self._cancel_event.set()

    def run(self, root_id: str) -> SyncSummary:
        """
        Mirror everything reachable from root_id.

        Args:
            root_id: Page, database or block ID

        Returns:
            SyncSummary with per-kind counts and soft failures

        Raises:
            SyncAbortedError: If the root itself cannot be fetched
            StoreError: If a write fails
            StructuralError: If a remote object lacks a required field
        """
        if self.sync_root is not None and not self.sync_root.is_enabled:
            raise SyncAbortedError(f"Sync root {self.sync_root} is disabled", object_id=root_id)

        self._cancel_event.clear()
        self._outbox = queue.Queue()
        self._written = set()
        self.frontier = Frontier(self.concurrency_limit)
        self.frontier.enqueue(Container(root_id, ContainerKind.UNRESOLVED))

        self.session = SyncSession.objects.create(sync_root=self.sync_root, root_id=root_id)
        summary = SyncSummary(root_id=root_id)

        logger.info(f"Starting sync of {root_id} (concurrency {self.concurrency_limit})")

        try:
            with ThreadPoolExecutor(
                max_workers=self.concurrency_limit, thread_name_prefix="notion-sync"
            ) as pool:
                try:
                    try:
                        self._pump(pool, summary)
                    except KeyboardInterrupt:
                        self.cancel()
                        self._pump(pool, summary)
                except BaseException:
                    self._abort_in_flight()
                    raise

        except BaseException as e:
            self.session.status = "failed"
            self.session.error_message = str(e)
            self.session.completed_at = timezone.now()
            self._save_counts(summary)
            SyncEvent.objects.create(
                session=self.session,
                event_type="fatal",
                object_id=getattr(e, "object_id", None) or "",
                operation=getattr(e, "operation", None) or "",
                message=str(e),
            )
            logger.error(f"Sync of {root_id} failed: {e}", exc_info=True)
            raise

        self._finish(summary)
        return summary

    def _pump(self, pool: ThreadPoolExecutor, summary: SyncSummary) -> None:
        """Launch expansions and apply worker messages until the frontier drains."""
        frontier = self.frontier

        while True:
            if self.cancelled and not frontier.closed:
                dropped = frontier.close()
                summary.cancelled = True
                logger.info(f"Dropped {dropped} pending container(s)")

            container = frontier.take()
            while container is not None:
                pool.submit(self._expand, container)
                container = frontier.take()

            if frontier.is_done():
                return

            self._handle(self._outbox.get(), summary)

    def _expand(self, container: Container) -> None:
        """Worker entry point. Always posts exactly one _Finished message."""
        expansion = _Expansion(self, container)
        failure = None
        error = None
        discovered = []

        try:
            expansion.run()
            discovered = expansion.discovered
        except InvalidObjectError as e:
            error = StructuralError(
                str(e), object_id=e.object_id or container.id, operation=expansion.operation
            )
        except (PermanentAPIError, RetriesExhaustedError) as e:
            failure = SoftFailure(
                container_id=container.id,
                kind=str(container.kind),
                operation=expansion.operation,
                message=str(e),
                transient=isinstance(e, RetriesExhaustedError),
            )
        except BaseException as e:
            error = e
        finally:
            self._outbox.put(
                _Finished(container, failure, error, discovered, expanded=expansion.started)
            )

    def _handle(self, message, summary: SyncSummary) -> None:
        if isinstance(message, _Record):
            self._write(message.record, summary)

        elif isinstance(message, _Resolved):
            summary.root_kind = str(message.kind)
            self.session.root_kind = summary.root_kind
            logger.info(f"Root {message.container_id} is a {message.kind}")

        elif isinstance(message, _Finished):
            self.frontier.complete(message.container.id)
            if message.expanded:
                summary.containers_expanded += 1

            if message.error is not None:
                raise message.error

            if message.failure is not None:
                if not message.container.is_resolved and not summary.root_kind:
                    raise SyncAbortedError(
                        f"Could not fetch sync root: {message.failure.message}",
                        object_id=message.container.id,
                        operation=message.failure.operation,
                    )
                self._record_failure(message.failure, summary)
                return

            for child in message.discovered:
                self.frontier.enqueue(child)

    def _write(self, record, summary: SyncSummary) -> None:
        key = (record.object_type, record.id)
        self.store.upsert(record)

        if key in self._written:
            logger.debug(f"Repeated {record.object_type} {record.id}")
            return
        self._written.add(key)
        summary.count(record.object_type)
        logger.debug(f"Synced {record.object_type} {record.id}")

    def _record_failure(self, failure: SoftFailure, summary: SyncSummary) -> None:
        summary.soft_failures.append(failure)
        logger.warning(f"Skipping subtree of {failure}")
        SyncEvent.objects.create(
            session=self.session,
            event_type="soft_failure",
            object_id=failure.container_id,
            operation=failure.operation,
            message=failure.message,
        )

    def _abort_in_flight(self) -> None:
        """Stop all work and wait for in-flight expansions, discarding their output."""
        self._cancel_event.set()
        self.frontier.close()

        while self.frontier.in_flight_count:
            message = self._outbox.get()
            if isinstance(message, _Finished):
                self.frontier.complete(message.container.id)

    def _save_counts(self, summary: SyncSummary) -> None:
        self.session.blocks_synced = summary.blocks
        self.session.pages_synced = summary.pages
        self.session.databases_synced = summary.databases
        self.session.comments_synced = summary.comments
        self.session.containers_expanded = summary.containers_expanded
        self.session.soft_failures = len(summary.soft_failures)
        self.session.save()

    def _finish(self, summary: SyncSummary) -> None:
        if summary.cancelled:
            self.session.status = "cancelled"
        elif summary.soft_failures:
            self.session.status = "partial"
        else:
            self.session.status = "completed"
        self.session.completed_at = timezone.now()
        self._save_counts(summary)

        if self.sync_root is not None and not summary.cancelled:
            self.sync_root.last_sync_at = self.session.completed_at
            self.sync_root.save(update_fields=["last_sync_at", "updated_at"])

        SyncEvent.objects.create(
            session=self.session,
            event_type="summary",
            object_id=summary.root_id,
            message=(
                f"{summary.blocks} blocks, {summary.pages} pages, "
                f"{summary.databases} databases, {summary.comments} comments, "
                f"{len(summary.soft_failures)} soft failures"
            ),
        )

        logger.info(
            f"Sync of {summary.root_id} {self.session.status}: "
            f"{summary.blocks} blocks, {summary.pages} pages, "
            f"{summary.databases} databases, {summary.comments} comments, "
            f"{len(summary.soft_failures)} soft failure(s)"
        )


def run_sync(
    root_id: str,
    store: MirrorStore,
    client: NotionClient,
    concurrency_limit: int | None = None,
    **options,
) -> SyncSummary:
    """
    Mirror the Notion tree under root_id into store.

    Raises:
        SyncError: On fatal errors; soft failures are reported on the summary
    """
    engine = SyncEngine(client, store=store, concurrency_limit=concurrency_limit, **options)
    return engine.run(root_id)


__all__ = ["SoftFailure", "SyncEngine", "SyncError", "SyncSummary", "run_sync"]
