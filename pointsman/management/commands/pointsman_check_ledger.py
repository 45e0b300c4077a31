"""Management command to compare cached balances with ledger history."""

from django.core.management.base import BaseCommand, CommandError

from pointsman.models import ClientAccount
from pointsman.services.ledger import check_consistency


class Command(BaseCommand):
    help = "Check that every account balance equals the sum of its ledger entries"

    def add_arguments(self, parser):
        parser.add_argument(
            "--branch",
            default=None,
            help="Only check accounts of this branch",
        )

    def handle(self, *args, **options):
        accounts = ClientAccount.objects.order_by("branch_ref", "client_ref")
        if options["branch"]:
            accounts = accounts.filter(branch_ref=options["branch"])

        checked = 0
        mismatches = []
        for client_ref, branch_ref in accounts.values_list("client_ref", "branch_ref").iterator():
            report = check_consistency(client_ref, branch_ref)
            checked += 1
            if not report.consistent:
                mismatches.append(report)
                self.stderr.write(
                    f"{client_ref}@{branch_ref}: cached={report.cached_balance} "
                    f"ledger={report.ledger_balance}"
                )

        if mismatches:
            raise CommandError(f"{len(mismatches)} of {checked} accounts are inconsistent.")
        self.stdout.write(self.style.SUCCESS(f"Checked {checked} accounts, all consistent."))
