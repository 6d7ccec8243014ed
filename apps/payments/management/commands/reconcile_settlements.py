from django.core.management.base import BaseCommand

from apps.payments.services import retry_pending_settlements


class Command(BaseCommand):
    help = 'Re-run settlement for paid jobs whose wallet credit or commission entry is still pending'

    def handle(self, *args, **options):
        settled, failed = retry_pending_settlements()
        self.stdout.write(self.style.SUCCESS(f"Settled {settled} job(s)"))
        if failed:
            self.stdout.write(self.style.WARNING(f"{failed} settlement(s) still pending, see the log"))
