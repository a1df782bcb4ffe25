"""
Django management command to mirror a Notion page, database or block.
"""

from pathlib import PurePosixPath
from urllib.parse import urlparse

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from mirror.models import SyncRoot
from mirror.providers.notion import NotionClient
from mirror.sync import SyncEngine, SyncError


def parse_root_id(value: str) -> str:
    """
    Accept a bare ID or a Notion link and return the ID.

    Links end in `<Title>-<id>`; the ID is the part after the last dash.
    """
    value = value.strip()
    if not value.startswith("https://"):
        return value

    name = PurePosixPath(urlparse(value).path).name
    if not name:
        raise CommandError(f"Can't extract an ID from {value}")
    return name.rsplit("-", 1)[-1]


class Command(BaseCommand):
    help = "Sync all pages, databases, blocks and comments under a root, recursively"

    def add_arguments(self, parser):
        parser.add_argument(
            "page",
            nargs="?",
            help="Link or ID of a Notion page/database (default: NOTION_ROOT_PAGE)",
        )
        parser.add_argument(
            "--token",
            help="Notion integration token (default: NOTION_TOKEN)",
        )
        parser.add_argument(
            "--concurrency",
            type=int,
            default=None,
            help="Number of containers expanded in parallel",
        )
        parser.add_argument(
            "--name",
            default="",
            help="Display name for the sync root",
        )

    def handle(self, *args, **options):
        page = options["page"] or settings.NOTION_ROOT_PAGE
        if not page:
            raise CommandError("Neither a page argument nor NOTION_ROOT_PAGE is set.")

        token = options["token"] or settings.NOTION_TOKEN
        if not token:
            raise CommandError("Neither --token nor NOTION_TOKEN is set.")

        if options["concurrency"] is not None and options["concurrency"] < 1:
            raise CommandError("--concurrency must be at least 1")

        root_id = parse_root_id(page)
        sync_root, created = SyncRoot.objects.get_or_create(
            root_id=root_id,
            defaults={"name": options["name"]},
        )
        if created:
            self.stdout.write(f"Registered new sync root {root_id}")
        if not sync_root.is_enabled:
            raise CommandError(f"Sync root {root_id} is disabled")

        self.stdout.write(self.style.WARNING(f"Syncing: {sync_root}"))

        engine = SyncEngine(
            NotionClient(token),
            concurrency_limit=options["concurrency"],
            sync_root=sync_root,
        )

        try:
            result = engine.run(root_id)
        except SyncError as e:
            self.stdout.write(self.style.ERROR(f"\n✗ Sync failed: {e}"))
            raise CommandError(f"Sync failed: {e}")

        status = "cancelled" if result.cancelled else "completed"
        self.stdout.write(
            self.style.SUCCESS(
                f"\n✓ Sync {status} ({result.root_kind or 'unknown'} root):\n"
                f"  - Blocks: {result.blocks}\n"
                f"  - Pages: {result.pages}\n"
                f"  - Databases: {result.databases}\n"
                f"  - Comments: {result.comments}\n"
                f"  - Soft failures: {len(result.soft_failures)}"
            )
        )

        if result.soft_failures:
            self.stdout.write(
                self.style.WARNING(
                    f"\n⚠ Skipped {len(result.soft_failures)} subtree(s) during sync"
                )
            )
            for i, failure in enumerate(result.soft_failures[:5], 1):
                self.stdout.write(f"  {i}. {failure}")
            if len(result.soft_failures) > 5:
                self.stdout.write(f"  ... and {len(result.soft_failures) - 5} more")
