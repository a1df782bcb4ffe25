"""
Celery tasks for scheduled mirror syncs.
"""

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=3,
)
def sync_root_task(self, root_id: str):
    """
    Mirror one registered sync root.

    Args:
        root_id: Notion ID of the root to sync
    """
    from mirror.models import SyncRoot
    from mirror.providers.notion import NotionClient
    from mirror.sync import SyncEngine

    try:
        sync_root = SyncRoot.objects.get(root_id=root_id, is_enabled=True)
    except SyncRoot.DoesNotExist:
        logger.warning(f"Sync root {root_id} not found or not enabled")
        return {"status": "skipped", "reason": "sync_root_not_found"}

    if not settings.NOTION_TOKEN:
        logger.error("NOTION_TOKEN is not configured")
        return {"status": "skipped", "reason": "no_token"}

    logger.info(f"Starting sync for root {sync_root}")

    engine = SyncEngine(NotionClient(settings.NOTION_TOKEN), sync_root=sync_root)
    result = engine.run(root_id)

    return {
        "status": "cancelled" if result.cancelled else "completed",
        "root_id": root_id,
        "root_kind": result.root_kind,
        "counts": result.counts,
        "soft_failures": len(result.soft_failures),
    }


@shared_task
def sync_all_roots():
    """
    Sync all enabled roots.

    Schedules one sync task per root.
    """
    from mirror.models import SyncRoot

    scheduled = 0
    for root_id in SyncRoot.objects.filter(is_enabled=True).values_list("root_id", flat=True):
        sync_root_task.delay(root_id)
        scheduled += 1
        logger.info(f"Scheduled sync for root {root_id}")

    logger.info(f"Scheduled syncs for {scheduled} roots")
    return {"scheduled": scheduled}
