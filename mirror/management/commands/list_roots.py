"""
Django management command to list sync roots and their last run.
"""

import json

from django.core.management.base import BaseCommand

from mirror.models import SyncRoot


class Command(BaseCommand):
    help = "List registered sync roots with their last sync status"

    def add_arguments(self, parser):
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        roots = SyncRoot.objects.order_by("name", "root_id")

        if not roots.exists():
            self.stdout.write(self.style.WARNING("No sync roots found."))
            self.stdout.write("\nRun 'python manage.py sync_notion <page>' to register one")
            return

        if options["json"]:
            self._output_json(roots)
        else:
            self._output_table(roots)

    def _last_session(self, root: SyncRoot):
        return root.sessions.order_by("-started_at").first()

    def _format_time(self, value) -> str:
        return value.strftime("%Y-%m-%d %H:%M") if value else "never"

    def _output_table(self, roots):
        """Output roots as formatted table."""
        self.stdout.write("\n" + "=" * 80)
        self.stdout.write(f"{'ID':<34} {'Name':<20} {'Status':<11} {'Last Sync':<16}")
        self.stdout.write("=" * 80)

        for root in roots:
            session = self._last_session(root)
            status = session.status if session else "never"

            if not root.is_enabled:
                status_display = self.style.WARNING("disabled")
            elif status == "completed":
                status_display = self.style.SUCCESS(status)
            elif status in ("partial", "cancelled"):
                status_display = self.style.WARNING(status)
            elif status == "failed":
                status_display = self.style.ERROR(status)
            else:
                status_display = status

            self.stdout.write(
                f"{root.root_id:<34} {(root.name or '-')[:20]:<20} "
                f"{status_display:<11} {self._format_time(root.last_sync_at):<16}"
            )

        self.stdout.write("=" * 80)
        self.stdout.write(f"Total: {roots.count()} root(s)\n")

    def _output_json(self, roots):
        """Output roots as JSON."""
        data = []
        for root in roots:
            session = self._last_session(root)
            data.append({
                "root_id": root.root_id,
                "name": root.name,
                "is_enabled": root.is_enabled,
                "last_sync": self._format_time(root.last_sync_at),
                "last_status": session.status if session else None,
                "last_counts": {
                    "blocks": session.blocks_synced,
                    "pages": session.pages_synced,
                    "databases": session.databases_synced,
                    "comments": session.comments_synced,
                } if session else None,
            })

        self.stdout.write(json.dumps(data, indent=2))
