import time

from django.core.management.base import BaseCommand

from shelter.events.dispatcher import drain


class Command(BaseCommand):
    help = "Process pending outbox events (matching, room-close metrics, message hooks)."

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="drain once and exit")
        parser.add_argument("--interval", type=float, default=1.0)
        parser.add_argument("--batch", type=int, default=100)

    def handle(self, *args, **opts):
        while True:
            done = drain(limit=opts["batch"])
            if done:
                self.stdout.write(f"[events] processed {done}")
            if opts["once"]:
                return
            if not done:
                time.sleep(opts["interval"])
