from django.db import models


class ParentType(models.TextChoices):
    BLOCK = "block_id", "Block"
    PAGE = "page_id", "Page"
    DATABASE = "database_id", "Database"
    WORKSPACE = "workspace", "Workspace"


class SyncRoot(models.Model):
    """
    A Notion page, database or block registered for recursive mirroring.

    Only the identifier is stored; the kind is resolved on every run.
    """

    root_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255, blank=True)
    is_enabled = models.BooleanField(default=True)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or self.root_id


class NotionObject(models.Model):
    """
    Fields shared by every mirrored Notion object.

    Rows are overwritten wholesale on each sync that reaches them and carry
    no local bookkeeping timestamps.
    """

    id = models.CharField(max_length=64, primary_key=True)

    parent_type = models.CharField(max_length=20, choices=ParentType.choices)
    parent_id = models.CharField(max_length=64)

    created_time = models.DateTimeField()
    created_by = models.CharField(max_length=64)
    last_edited_time = models.DateTimeField()

    class Meta:
        abstract = True


class AuditedObject(NotionObject):
    last_edited_by = models.CharField(max_length=64)

    archived = models.BooleanField(default=False)
    in_trash = models.BooleanField(default=False)

    class Meta:
        abstract = True


class Block(AuditedObject):
    # index in parent, as observed at fetch time
    child_index = models.PositiveIntegerField(default=0)
    has_children = models.BooleanField(default=False)

    # child_page, child_database, paragraph, etc.
    block_type = models.CharField(max_length=40)
    type_data = models.JSONField(default=dict)

    class Meta:
        db_table = "blocks"
        indexes = [
            models.Index(fields=["parent_id", "child_index"], name="blocks_parent_idx"),
            models.Index(fields=["block_type"], name="blocks_type_idx"),
        ]

    def __str__(self):
        return f"{self.block_type} {self.id}"


class Page(AuditedObject):
    properties = models.JSONField(default=dict)
    url = models.TextField()

    public_url = models.TextField(null=True, blank=True)
    icon = models.JSONField(null=True, blank=True)
    cover = models.JSONField(null=True, blank=True)

    class Meta:
        db_table = "pages"
        indexes = [
            models.Index(fields=["parent_id"], name="pages_parent_idx"),
        ]

    def __str__(self):
        return f"page {self.id}"


class Database(AuditedObject):
    properties = models.JSONField(default=dict)
    url = models.TextField()

    public_url = models.TextField(null=True, blank=True)
    icon = models.JSONField(null=True, blank=True)
    cover = models.JSONField(null=True, blank=True)

    is_inline = models.BooleanField(default=False)
    # arrays of rich text objects
    title = models.JSONField(default=list)
    description = models.JSONField(default=list)

    class Meta:
        db_table = "databases"
        indexes = [
            models.Index(fields=["parent_id"], name="databases_parent_idx"),
        ]

    def __str__(self):
        return f"database {self.id}"


class Comment(NotionObject):
    discussion_id = models.CharField(max_length=64)
    rich_text = models.JSONField(default=list)

    class Meta:
        db_table = "comments"
        indexes = [
            models.Index(fields=["discussion_id"], name="comments_discussion_idx"),
            models.Index(fields=["parent_id"], name="comments_parent_idx"),
        ]

    def __str__(self):
        return f"comment {self.id}"
