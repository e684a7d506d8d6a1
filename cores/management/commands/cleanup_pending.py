from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from assessments.models import MockAttempt
from cores.models import AuditLog
from mentorship.models import SessionEnrollment
from payments.models import Subscription

class Command(BaseCommand):
    help = 'Deletes unpaid orders, unpaid session bookings and abandoned (never submitted) attempts older than the cutoff'

    def add_arguments(self, parser):
        parser.add_argument('--hours', type=int, default=24, help='Age in hours after which rows are stale')
        parser.add_argument('--dry-run', action='store_true', help='Only report what would be deleted')

    def handle(self, *args, **options):
        hours = options['hours']
        if hours < 1:
            self.stdout.write(self.style.ERROR("--hours must be at least 1"))
            return

        cutoff = timezone.now() - timedelta(hours=hours)
        orders = Subscription.objects.filter(paid=False, created_at__lt=cutoff)
        bookings = SessionEnrollment.objects.filter(
            payment_status=SessionEnrollment.PaymentStatus.PENDING, enrolled_at__lt=cutoff
        )
        attempts = MockAttempt.objects.filter(submitted_at__isnull=True, started_at__lt=cutoff)

        if options['dry_run']:
            self.stdout.write(
                f"Would delete {orders.count()} pending orders, {bookings.count()} pending session bookings "
                f"and {attempts.count()} abandoned attempts"
            )
            return

        with transaction.atomic():
            order_count, _ = orders.delete()
            booking_count, _ = bookings.delete()
            attempt_count, _ = attempts.delete()
            AuditLog.record(None, 'CLEANUP', 'Subscription/SessionEnrollment/MockAttempt',
                            details=f"Removed {order_count} pending orders, {booking_count} session bookings "
                                    f"and {attempt_count} attempts older than {hours}h")

        self.stdout.write(self.style.SUCCESS(
            f"Deleted {order_count} pending orders, {booking_count} pending session bookings "
            f"and {attempt_count} abandoned attempts"
        ))
