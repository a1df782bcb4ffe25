import django.db.models.deletion
from django.db import migrations, models

PARENT_TYPES = [
    ("block_id", "Block"),
    ("page_id", "Page"),
    ("database_id", "Database"),
    ("workspace", "Workspace"),
]


def audited_fields():
    return [
        ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
        ("parent_type", models.CharField(choices=PARENT_TYPES, max_length=20)),
        ("parent_id", models.CharField(max_length=64)),
        ("created_time", models.DateTimeField()),
        ("created_by", models.CharField(max_length=64)),
        ("last_edited_time", models.DateTimeField()),
        ("last_edited_by", models.CharField(max_length=64)),
        ("archived", models.BooleanField(default=False)),
        ("in_trash", models.BooleanField(default=False)),
    ]


def page_fields():
    return [
        ("properties", models.JSONField(default=dict)),
        ("url", models.TextField()),
        ("public_url", models.TextField(blank=True, null=True)),
        ("icon", models.JSONField(blank=True, null=True)),
        ("cover", models.JSONField(blank=True, null=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SyncRoot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("root_id", models.CharField(max_length=64, unique=True)),
                ("name", models.CharField(blank=True, max_length=255)),
                ("is_enabled", models.BooleanField(default=True)),
                ("last_sync_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="Block",
            fields=audited_fields()
            + [
                ("child_index", models.PositiveIntegerField(default=0)),
                ("has_children", models.BooleanField(default=False)),
                ("block_type", models.CharField(max_length=40)),
                ("type_data", models.JSONField(default=dict)),
            ],
            options={
                "db_table": "blocks",
                "indexes": [
                    models.Index(fields=["parent_id", "child_index"], name="blocks_parent_idx"),
                    models.Index(fields=["block_type"], name="blocks_type_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Page",
            fields=audited_fields() + page_fields(),
            options={
                "db_table": "pages",
                "indexes": [
                    models.Index(fields=["parent_id"], name="pages_parent_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Database",
            fields=audited_fields()
            + page_fields()
            + [
                ("is_inline", models.BooleanField(default=False)),
                ("title", models.JSONField(default=list)),
                ("description", models.JSONField(default=list)),
            ],
            options={
                "db_table": "databases",
                "indexes": [
                    models.Index(fields=["parent_id"], name="databases_parent_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Comment",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("parent_type", models.CharField(choices=PARENT_TYPES, max_length=20)),
                ("parent_id", models.CharField(max_length=64)),
                ("created_time", models.DateTimeField()),
                ("created_by", models.CharField(max_length=64)),
                ("last_edited_time", models.DateTimeField()),
                ("discussion_id", models.CharField(max_length=64)),
                ("rich_text", models.JSONField(default=list)),
            ],
            options={
                "db_table": "comments",
                "indexes": [
                    models.Index(fields=["discussion_id"], name="comments_discussion_idx"),
                    models.Index(fields=["parent_id"], name="comments_parent_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("root_id", models.CharField(max_length=64)),
                ("started_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("root_kind", models.CharField(blank=True, max_length=20)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("partial", "Partial Success"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="running",
                        max_length=20,
                    ),
                ),
                ("blocks_synced", models.PositiveIntegerField(default=0)),
                ("pages_synced", models.PositiveIntegerField(default=0)),
                ("databases_synced", models.PositiveIntegerField(default=0)),
                ("comments_synced", models.PositiveIntegerField(default=0)),
                ("containers_expanded", models.PositiveIntegerField(default=0)),
                ("soft_failures", models.PositiveIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
                (
                    "sync_root",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sessions",
                        to="mirror.syncroot",
                    ),
                ),
            ],
            options={
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["root_id", "-started_at"], name="session_root_started_idx"),
                    models.Index(fields=["status"], name="session_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("soft_failure", "Soft Failure"),
                            ("fatal", "Fatal Error"),
                            ("summary", "Summary"),
                        ],
                        max_length=20,
                    ),
                ),
                ("object_id", models.CharField(blank=True, max_length=64)),
                ("operation", models.CharField(blank=True, max_length=40)),
                ("message", models.TextField(blank=True)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="mirror.syncsession",
                    ),
                ),
            ],
            options={
                "ordering": ["timestamp"],
                "indexes": [
                    models.Index(fields=["session", "timestamp"], name="event_session_time_idx"),
                    models.Index(fields=["event_type"], name="event_type_idx"),
                ],
            },
        ),
    ]
