"""
Local store for mirrored Notion objects.

Each upsert replaces the whole row keyed by the object ID inside its own
transaction, so a row is either fully written or not written at all.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import DatabaseError, transaction

from mirror.models import Block, Comment, Database, Page
from mirror.providers.notion import ObjectType
from mirror.sync.exceptions import StoreError

if TYPE_CHECKING:
    from mirror.providers.notion import NotionBlock, NotionComment, NotionDatabase, NotionPage

logger = logging.getLogger(__name__)

MODELS = {
    ObjectType.BLOCK: Block,
    ObjectType.PAGE: Page,
    ObjectType.DATABASE: Database,
    ObjectType.COMMENT: Comment,
}


def _audit_fields(record) -> dict:
    return {
        "parent_type": record.parent_type,
        "parent_id": record.parent_id,
        "created_time": record.created_time,
        "created_by": record.created_by,
        "last_edited_time": record.last_edited_time,
        "last_edited_by": record.last_edited_by,
        "archived": record.archived,
        "in_trash": record.in_trash,
    }


def _page_fields(record) -> dict:
    return {
        **_audit_fields(record),
        "properties": record.properties,
        "url": record.url,
        "public_url": record.public_url,
        "icon": record.icon,
        "cover": record.cover,
    }


class MirrorStore:
    """
    Upsert primitives over the mirror tables.

    Not thread safe: the engine performs every write from a single thread.
    """

    def __init__(self, using: str = "default"):
        self.using = using

    def _upsert(self, model, object_id: str, defaults: dict) -> bool:
        """
        Insert or overwrite one row.

        Returns:
            True if the row was created, False if it was overwritten

        Raises:
            StoreError: If the database rejects the write
        """
        try:
            with transaction.atomic(using=self.using):
                _, created = model.objects.using(self.using).update_or_create(
                    id=object_id, defaults=defaults
                )
        except DatabaseError as e:
            logger.error(f"Failed to write {model.__name__} {object_id}: {e}")
            raise StoreError(
                f"Failed to write {model.__name__}: {e}",
                object_id=object_id,
                operation=f"upsert_{model.__name__.lower()}",
            ) from e
        return created

    def upsert_block(self, record: NotionBlock) -> bool:
        return self._upsert(
            Block,
            record.id,
            {
                **_audit_fields(record),
                "child_index": record.child_index,
                "has_children": record.has_children,
                "block_type": record.block_type,
                "type_data": record.type_data,
            },
        )

    def upsert_page(self, record: NotionPage) -> bool:
        return self._upsert(Page, record.id, _page_fields(record))

    def upsert_database(self, record: NotionDatabase) -> bool:
        return self._upsert(
            Database,
            record.id,
            {
                **_page_fields(record),
                "is_inline": record.is_inline,
                "title": record.title,
                "description": record.description,
            },
        )

    def upsert_comment(self, record: NotionComment) -> bool:
        return self._upsert(
            Comment,
            record.id,
            {
                "parent_type": record.parent_type,
                "parent_id": record.parent_id,
                "created_time": record.created_time,
                "created_by": record.created_by,
                "last_edited_time": record.last_edited_time,
                "discussion_id": record.discussion_id,
                "rich_text": record.rich_text,
            },
        )

    def upsert(self, record) -> bool:
        """Dispatch on the record's object type."""
        writers = {
            ObjectType.BLOCK: self.upsert_block,
            ObjectType.PAGE: self.upsert_page,
            ObjectType.DATABASE: self.upsert_database,
            ObjectType.COMMENT: self.upsert_comment,
        }
        return writers[record.object_type](record)

    def exists(self, object_type: ObjectType, object_id: str) -> bool:
        return MODELS[object_type].objects.using(self.using).filter(id=object_id).exists()

    def counts(self) -> dict[str, int]:
        return {
            str(object_type): model.objects.using(self.using).count()
            for object_type, model in MODELS.items()
        }
