"""
Models for tracking sync operations and events.
"""

from django.db import models

from mirror.models import SyncRoot


class SyncSession(models.Model):
    """
    Records each sync run for audit and debugging.

    Tracks the lifecycle of a run including per-kind counts of mirrored
    objects and the number of soft failures encountered.
    """

    sync_root = models.ForeignKey(
        SyncRoot,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="sessions",
    )
    root_id = models.CharField(max_length=64)
    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Resolved kind of the root (page, database or block)
    root_kind = models.CharField(max_length=20, blank=True)

    status = models.CharField(
        max_length=20,
        choices=[
            ("running", "Running"),
            ("completed", "Completed"),
            ("partial", "Partial Success"),
            ("failed", "Failed"),
            ("cancelled", "Cancelled"),
        ],
        default="running",
    )

    # Statistics
    blocks_synced = models.PositiveIntegerField(default=0)
    pages_synced = models.PositiveIntegerField(default=0)
    databases_synced = models.PositiveIntegerField(default=0)
    comments_synced = models.PositiveIntegerField(default=0)
    containers_expanded = models.PositiveIntegerField(default=0)
    soft_failures = models.PositiveIntegerField(default=0)

    error_message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["root_id", "-started_at"], name="session_root_started_idx"),
            models.Index(fields=["status"], name="session_status_idx"),
        ]
        ordering = ["-started_at"]

    def __str__(self):
        return f"Sync of {self.root_id} - {self.get_status_display()}"


class SyncEvent(models.Model):
    """
    Individual events during a sync session.

    Every soft failure gets one row naming the container and the operation
    that failed; a summary row closes each finished session.
    """

    session = models.ForeignKey(
        SyncSession, on_delete=models.CASCADE, related_name="events"
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    event_type = models.CharField(
        max_length=20,
        choices=[
            ("soft_failure", "Soft Failure"),
            ("fatal", "Fatal Error"),
            ("summary", "Summary"),
        ],
    )

    object_id = models.CharField(max_length=64, blank=True)
    operation = models.CharField(max_length=40, blank=True)
    message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["session", "timestamp"], name="event_session_time_idx"),
            models.Index(fields=["event_type"], name="event_type_idx"),
        ]
        ordering = ["timestamp"]

    def __str__(self):
        return f"{self.get_event_type_display()}: {self.object_id or 'N/A'}"
