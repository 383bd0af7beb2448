from django.core.management.base import BaseCommand
from django.utils import timezone

from stock.services.audit import DASHBOARD_CACHE_KEY
from stock.services.dashboard import warm_dashboard_cache
from stock.services.realtime import broadcast_refresh


class Command(BaseCommand):
    help = "Warm the dashboard cache and broadcast a WebSocket refresh event."

    def handle(self, *args, **options):
        now = timezone.now()
        warm_dashboard_cache()
        sent = broadcast_refresh(keys=[DASHBOARD_CACHE_KEY])
        if not sent:
            self.stdout.write(self.style.WARNING("No channel layer reachable; refresh event not sent."))
        self.stdout.write(self.style.SUCCESS(f"Refreshed {DASHBOARD_CACHE_KEY} at {now}"))
