import time

from django.conf import settings
from django.core.management.base import BaseCommand

from shelter.sweeper.sweep import sweep


class Command(BaseCommand):
    help = "Delete expired entries/rooms/messages and commit fallback room metrics."

    def add_arguments(self, parser):
        parser.add_argument("--loop", action="store_true", help="run forever on a fixed interval")
        parser.add_argument("--interval", type=int, default=None, help="seconds between runs")

    def handle(self, *args, **opts):
        interval = opts["interval"] or settings.GC_INTERVAL_SEC
        while True:
            report = sweep()
            self.stdout.write(
                f"[gc] deleted={report.total_deleted} rooms={report.rooms_deleted} "
                f"metered={report.rooms_metered} took={report.took_ms}ms"
            )
            if not opts["loop"]:
                return
            time.sleep(interval)
