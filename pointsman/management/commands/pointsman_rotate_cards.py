"""Management command to rotate digital cards whose rotation is due."""

from django.core.management.base import BaseCommand

from pointsman.services.cards import rotate_due_cards


class Command(BaseCommand):
    help = "Rotate every active digital card past its next_rotation"

    def handle(self, *args, **options):
        rotated = rotate_due_cards()
        self.stdout.write(self.style.SUCCESS(f"Rotated {rotated} cards."))
