"""
Notion API client for mirror operations.

Provides typed fetches for single objects (blocks, pages, databases) and
cursor-paginated listings of block children, database rows and comments.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.notion.com/v1/"
DEFAULT_API_VERSION = "2022-06-28"
DEFAULT_PAGE_SIZE = 100
DEFAULT_TIMEOUT = 30.0
DEFAULT_RATE_LIMIT = 3.0

# Block types that point at another container rather than holding content
CHILD_PAGE = "child_page"
CHILD_DATABASE = "child_database"


class NotionAPIError(Exception):
    """Base exception for Notion API operations."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientAPIError(NotionAPIError):
    """Timeouts, connection failures and 5xx responses; safe to retry."""

    pass


class RateLimitedError(TransientAPIError):
    """Raised on HTTP 429. Carries the server's Retry-After hint, if any."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class PermanentAPIError(NotionAPIError):
    """Errors that will not go away by retrying."""

    pass


class ObjectNotFoundError(PermanentAPIError):
    """Raised on HTTP 404."""

    pass


class PermissionDeniedError(PermanentAPIError):
    """Raised on HTTP 401/403 (object not shared with the integration)."""

    pass


class InvalidRequestError(PermanentAPIError):
    """Raised on any other 4xx response."""

    pass


class MalformedResponseError(PermanentAPIError):
    """Raised when a response body cannot be decoded as expected."""

    pass


class InvalidObjectError(NotionAPIError):
    """Raised when an object lacks a field the schema requires."""

    def __init__(self, object_id: str | None, field_name: str, object_type: str = "object"):
        super().__init__(
            f"invalid notion {object_type} {object_id or '<unknown>'}: key `{field_name}` not found"
        )
        self.object_id = object_id
        self.field_name = field_name
        self.object_type = object_type


class ObjectType(str, Enum):
    BLOCK = "block"
    PAGE = "page"
    DATABASE = "database"
    COMMENT = "comment"

    def __str__(self):
        return self.value


def _require(data: dict, key: str, object_id: str | None, object_type: str) -> Any:
    if key not in data or (data[key] is None):
        raise InvalidObjectError(object_id, key, object_type)
    return data[key]


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _user_id(user: dict | None) -> str:
    return (user or {}).get("id", "")


def _parse_parent(data: dict, object_id: str, object_type: str) -> tuple[str, str]:
    """
    Split a parent object into (parent_type, parent_id).

    Workspace parents have no identifier and map to an empty string.
    """
    parent = _require(data, "parent", object_id, object_type)
    parent_type = parent.get("type")
    if parent_type is None:
        raise InvalidObjectError(object_id, "parent.type", object_type)
    if parent_type == "workspace":
        return parent_type, ""
    if parent_type not in parent:
        raise InvalidObjectError(object_id, f"parent.{parent_type}", object_type)
    return parent_type, parent[parent_type]


@dataclass(frozen=True)
class ObjectCommon:
    """Fields shared by blocks, pages and databases."""

    id: str
    parent_type: str
    parent_id: str
    created_time: datetime
    created_by: str
    last_edited_time: datetime
    last_edited_by: str
    archived: bool
    in_trash: bool

    @staticmethod
    def parse_common(data: dict, object_type: str) -> dict:
        object_id = data.get("id")
        if not object_id:
            raise InvalidObjectError(None, "id", object_type)
        parent_type, parent_id = _parse_parent(data, object_id, object_type)
        return {
            "id": object_id,
            "parent_type": parent_type,
            "parent_id": parent_id,
            "created_time": _parse_time(_require(data, "created_time", object_id, object_type)),
            "created_by": _user_id(_require(data, "created_by", object_id, object_type)),
            "last_edited_time": _parse_time(
                _require(data, "last_edited_time", object_id, object_type)
            ),
            "last_edited_by": _user_id(_require(data, "last_edited_by", object_id, object_type)),
            "archived": data.get("archived", False),
            "in_trash": data.get("in_trash", False),
        }

    @property
    def is_archived(self) -> bool:
        return self.archived or self.in_trash


@dataclass(frozen=True)
class NotionBlock(ObjectCommon):
    """Represents a block from the Notion API."""

    block_type: str = ""
    type_data: dict = field(default_factory=dict)
    has_children: bool = False
    # position among the parent's children, assigned while listing
    child_index: int = 0

    object_type = ObjectType.BLOCK

    @classmethod
    def from_api_response(cls, data: dict) -> "NotionBlock":
        """Create NotionBlock from Notion API response."""
        common = cls.parse_common(data, "block")
        block_type = _require(data, "type", common["id"], "block")
        return cls(
            **common,
            block_type=block_type,
            type_data=data.get(block_type) or {},
            has_children=_require(data, "has_children", common["id"], "block"),
        )

    @property
    def is_child_page(self) -> bool:
        return self.block_type == CHILD_PAGE

    @property
    def is_child_database(self) -> bool:
        return self.block_type == CHILD_DATABASE


@dataclass(frozen=True)
class NotionPage(ObjectCommon):
    """Represents a page (standalone or a database row)."""

    properties: dict = field(default_factory=dict)
    url: str = ""
    public_url: str | None = None
    icon: dict | None = None
    cover: dict | None = None

    object_type = ObjectType.PAGE

    @classmethod
    def page_fields(cls, data: dict, object_type: str) -> dict:
        common = cls.parse_common(data, object_type)
        object_id = common["id"]
        return {
            **common,
            "properties": _require(data, "properties", object_id, object_type),
            "url": _require(data, "url", object_id, object_type),
            "public_url": data.get("public_url"),
            "icon": data.get("icon"),
            "cover": data.get("cover"),
        }

    @classmethod
    def from_api_response(cls, data: dict) -> "NotionPage":
        """Create NotionPage from Notion API response."""
        return cls(**cls.page_fields(data, "page"))


@dataclass(frozen=True)
class NotionDatabase(NotionPage):
    """Represents a database; a page with a title, description and inline flag."""

    is_inline: bool = False
    title: list = field(default_factory=list)
    description: list = field(default_factory=list)

    object_type = ObjectType.DATABASE

    @classmethod
    def from_api_response(cls, data: dict) -> "NotionDatabase":
        """Create NotionDatabase from Notion API response."""
        fields = cls.page_fields(data, "database")
        object_id = fields["id"]
        return cls(
            **fields,
            is_inline=_require(data, "is_inline", object_id, "database"),
            title=_require(data, "title", object_id, "database"),
            description=_require(data, "description", object_id, "database"),
        )


@dataclass(frozen=True)
class NotionComment:
    """Represents a comment in a discussion thread."""

    id: str
    parent_type: str
    parent_id: str
    created_time: datetime
    created_by: str
    last_edited_time: datetime
    discussion_id: str
    rich_text: list

    object_type = ObjectType.COMMENT

    @classmethod
    def from_api_response(cls, data: dict) -> "NotionComment":
        """Create NotionComment from Notion API response."""
        comment_id = data.get("id")
        if not comment_id:
            raise InvalidObjectError(None, "id", "comment")
        parent_type, parent_id = _parse_parent(data, comment_id, "comment")
        return cls(
            id=comment_id,
            parent_type=parent_type,
            parent_id=parent_id,
            created_time=_parse_time(_require(data, "created_time", comment_id, "comment")),
            created_by=_user_id(_require(data, "created_by", comment_id, "comment")),
            last_edited_time=_parse_time(
                _require(data, "last_edited_time", comment_id, "comment")
            ),
            discussion_id=_require(data, "discussion_id", comment_id, "comment"),
            rich_text=_require(data, "rich_text", comment_id, "comment"),
        )


T = TypeVar("T")


@dataclass
class ResultsPage(Generic[T]):
    """A page of results from a paginated endpoint."""

    results: list[T]
    next_cursor: str | None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


class RateLimiter:
    """
    Spaces requests evenly at a fixed rate, shared by all threads using a client.

    A rate of zero or less disables limiting.
    """

    def __init__(
        self,
        rate_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = 1.0 / rate_per_second if rate_per_second > 0 else 0.0
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot = 0.0

    def acquire(self) -> None:
        if self.interval <= 0:
            return
        with self._lock:
            now = self._clock()
            wait = self._next_slot - now
            if wait > 0:
                self._sleep(wait)
                now += wait
            self._next_slot = now + self.interval


class NotionClient:
    """
    Client for Notion API operations.

    Safe to share between worker threads: each request goes through one
    rate limiter and one requests session.
    """

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        rate_limit: float | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            token: Notion integration token
            base_url: API root (default: settings.NOTION_API_BASE_URL)
            api_version: Value of the Notion-Version header
            timeout: Per-request timeout in seconds
            page_size: Results per page for listings (max 100)
            rate_limit: Requests per second, 0 to disable
            session: Optional preconfigured requests session
        """
        if not token:
            raise PermissionDeniedError("No Notion token configured")

        self.base_url = base_url or getattr(settings, "NOTION_API_BASE_URL", DEFAULT_BASE_URL)
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self.timeout = timeout or getattr(settings, "NOTION_REQUEST_TIMEOUT", DEFAULT_TIMEOUT)
        self.page_size = min(
            page_size or getattr(settings, "NOTION_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            DEFAULT_PAGE_SIZE,
        )
        if rate_limit is None:
            rate_limit = getattr(settings, "NOTION_RATE_LIMIT_PER_SECOND", DEFAULT_RATE_LIMIT)
        self._rate_limiter = RateLimiter(rate_limit)

        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Notion-Version": api_version
                or getattr(settings, "NOTION_API_VERSION", DEFAULT_API_VERSION),
                "Content-Type": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        body: dict | None = None,
    ) -> dict:
        """
        Send one request and decode its JSON body.

        Raises:
            TransientAPIError: On timeouts, connection errors, 429 and 5xx
            PermanentAPIError: On other failures
        """
        self._rate_limiter.acquire()
        url = self.base_url + path

        try:
            response = self._session.request(
                method, url, params=params, json=body, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise TransientAPIError(f"Request timed out: {method} {path}") from e
        except requests.RequestException as e:
            raise TransientAPIError(f"Request failed: {method} {path}: {e}") from e

        self._check_status(response, method, path)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Undecodable response body: {method} {path}", response.status_code
            ) from e

        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a JSON object: {method} {path}")
        return data

    @staticmethod
    def _check_status(response: requests.Response, method: str, path: str) -> None:
        status = response.status_code
        if status < 400:
            return

        message = f"status: {status}, body: {response.text[:500]}, url: {method} {path}"

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            try:
                retry_after = float(retry_after) if retry_after is not None else None
            except ValueError:
                retry_after = None
            raise RateLimitedError(message, retry_after=retry_after)
        if status >= 500 or status == 409:
            # 409 is Notion's conflict_error for concurrent transactions
            raise TransientAPIError(message, status)
        if status == 404:
            raise ObjectNotFoundError(message, status)
        if status in (401, 403):
            raise PermissionDeniedError(message, status)
        raise InvalidRequestError(message, status)

    @staticmethod
    def _results_page(data: dict, parse: Callable[[dict], T], path: str) -> ResultsPage[T]:
        results = data.get("results")
        if not isinstance(results, list):
            raise MalformedResponseError(f"List response without results: {path}")

        next_cursor = None
        if data.get("has_more"):
            next_cursor = data.get("next_cursor")
            if not next_cursor:
                raise MalformedResponseError(f"More results promised without a cursor: {path}")
        return ResultsPage(results=[parse(item) for item in results], next_cursor=next_cursor)

    def _list_params(self, cursor: str | None) -> dict:
        params = {"page_size": self.page_size}
        if cursor:
            params["start_cursor"] = cursor
        return params

    def retrieve_block(self, block_id: str) -> NotionBlock:
        return NotionBlock.from_api_response(self._request("GET", f"blocks/{block_id}"))

    def retrieve_page(self, page_id: str) -> NotionPage:
        return NotionPage.from_api_response(self._request("GET", f"pages/{page_id}"))

    def retrieve_database(self, database_id: str) -> NotionDatabase:
        return NotionDatabase.from_api_response(self._request("GET", f"databases/{database_id}"))

    def fetch_container(
        self, object_id: str, kind: ObjectType | None = None
    ) -> tuple[ObjectType, NotionBlock | NotionPage | NotionDatabase, NotionBlock | None]:
        """
        Fetch a container record, resolving its kind if unknown.

        An unknown kind is looked up through the blocks endpoint. When that
        block is a child_page or child_database, the page or database record
        is fetched as well and the block is returned alongside it.

        Args:
            object_id: Block, page or database ID
            kind: Known kind, or None to resolve it via the blocks endpoint

        Returns:
            Tuple of (resolved kind, record, the root block or None)
        """
        if kind == ObjectType.PAGE:
            return ObjectType.PAGE, self.retrieve_page(object_id), None
        if kind == ObjectType.DATABASE:
            return ObjectType.DATABASE, self.retrieve_database(object_id), None

        block = self.retrieve_block(object_id)
        if kind is None:
            if block.is_child_page:
                return ObjectType.PAGE, self.retrieve_page(object_id), block
            if block.is_child_database:
                return ObjectType.DATABASE, self.retrieve_database(object_id), block
        return ObjectType.BLOCK, block, None

    def list_children(self, block_id: str, cursor: str | None = None) -> ResultsPage[NotionBlock]:
        """
        List the immediate child blocks of a page or block.

        Args:
            block_id: Page or block ID
            cursor: Cursor from the previous page, None for the first page

        Returns:
            ResultsPage of NotionBlock
        """
        path = f"blocks/{block_id}/children"
        data = self._request("GET", path, params=self._list_params(cursor))
        return self._results_page(data, NotionBlock.from_api_response, path)

    def query_database_rows(
        self, database_id: str, cursor: str | None = None
    ) -> ResultsPage[NotionPage]:
        """
        List the rows (pages) of a database.

        Args:
            database_id: Database ID
            cursor: Cursor from the previous page, None for the first page

        Returns:
            ResultsPage of NotionPage
        """
        path = f"databases/{database_id}/query"
        data = self._request("POST", path, body=self._list_params(cursor))
        return self._results_page(data, NotionPage.from_api_response, path)

    def list_comments(self, block_id: str, cursor: str | None = None) -> ResultsPage[NotionComment]:
        """
        List unresolved comments attached to a page or block.

        Args:
            block_id: Page or block ID
            cursor: Cursor from the previous page, None for the first page

        Returns:
            ResultsPage of NotionComment
        """
        params = self._list_params(cursor)
        params["block_id"] = block_id
        data = self._request("GET", "comments", params=params)
        return self._results_page(data, NotionComment.from_api_response, "comments")
