from django.core.management.base import BaseCommand

from stock.services.users import ensure_default_permissions


class Command(BaseCommand):
    help = "Ensure the six built-in permissions exist (idempotent)."

    def handle(self, *args, **opts):
        for perm in ensure_default_permissions():
            self.stdout.write(self.style.SUCCESS(f"ok: {perm.name}"))
        self.stdout.write(self.style.SUCCESS("All permissions ensured."))
