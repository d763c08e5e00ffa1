import logging

from django.core.management.base import BaseCommand, CommandError

from apps.finance.trusts.services import list_trusts, reconcile_trust


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Checks every trust balance against the sum of its ledger transactions.'

    def handle(self, *args, **options):
        mismatches = 0
        for trust in list_trusts():
            result = reconcile_trust(trust)
            if result['matches']:
                self.stdout.write(f"OK       {trust.name}: {result['actual']}")
                continue

            mismatches += 1
            logger.error(
                'Trust balance mismatch: trust=%s stored=%s ledger=%s',
                trust.pk, result['actual'], result['expected'],
            )
            self.stdout.write(self.style.ERROR(
                f"MISMATCH {trust.name}: stored {result['actual']}, ledger {result['expected']}"
            ))

        if mismatches:
            raise CommandError(f'{mismatches} trust balance(s) do not match their ledger.')
        self.stdout.write(self.style.SUCCESS('All trust balances reconcile.'))
