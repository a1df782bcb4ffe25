from django.contrib import admin

from .models import SyncRoot
from .sync.models import SyncEvent, SyncSession


@admin.register(SyncRoot)
class SyncRootAdmin(admin.ModelAdmin):
    list_display = ["name", "root_id", "is_enabled", "last_sync_at"]
    list_filter = ["is_enabled"]
    search_fields = ["name", "root_id"]


@admin.register(SyncSession)
class SyncSessionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "root_id",
        "root_kind",
        "status",
        "started_at",
        "completed_at",
        "blocks_synced",
        "pages_synced",
        "databases_synced",
        "comments_synced",
        "soft_failures",
    ]
    list_filter = ["status", "started_at"]
    search_fields = ["root_id", "sync_root__name"]
    readonly_fields = ["started_at", "completed_at"]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("sync_root")


@admin.register(SyncEvent)
class SyncEventAdmin(admin.ModelAdmin):
    list_display = ["id", "session", "event_type", "timestamp", "object_id", "operation"]
    list_filter = ["event_type", "timestamp"]
    search_fields = ["object_id", "message"]
    readonly_fields = ["timestamp"]
    raw_id_fields = ["session"]
