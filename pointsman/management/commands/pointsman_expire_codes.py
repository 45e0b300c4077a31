"""Management command to expire overdue redemption codes."""

from django.core.management.base import BaseCommand

from pointsman.services.redemption import expire_codes


class Command(BaseCommand):
    help = "Mark issued redemption codes past expires_at as expired (no refund)"

    def handle(self, *args, **options):
        expired = expire_codes()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} redemption codes."))
