from django.db import models
from decimal import Decimal
import uuid


class SettlementStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    OVERDUE = 'overdue', 'Overdue'
    PAID = 'paid', 'Paid'


UNPAID_STATUSES = (SettlementStatus.PENDING, SettlementStatus.OVERDUE)


class SettlementQuerySet(models.QuerySet):

    def unpaid(self):
        return self.filter(status__in=UNPAID_STATUSES)

    def for_period(self, user_id, start_date, end_date):
        return self.filter(
            user_id=user_id,
            period_start_date=start_date,
            period_end_date=end_date,
        )


class Settlement(models.Model):
    """
    Payout owed by a BuddyRunner for one earning period.

    A period covers the inclusive calendar dates
    ``[period_start_date, period_end_date]``. ``commission_ids`` and
    ``errand_ids`` list every transaction the period accounts for; a
    transaction id appears in at most one settlement.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='settlements'
    )

    period_start_date = models.DateField()
    period_end_date = models.DateField()

    # Financial details
    total_earnings = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    system_fees = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    total_transactions = models.PositiveIntegerField(default=0)

    commission_ids = models.JSONField(default=list, blank=True)
    errand_ids = models.JSONField(default=list, blank=True)

    status = models.CharField(
        max_length=20,
        choices=SettlementStatus.choices,
        default=SettlementStatus.PENDING
    )

    # Payment tracking
    paid_at = models.DateTimeField(null=True, blank=True)
    paid_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlements_marked_paid'
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SettlementQuerySet.as_manager()

    class Meta:
        db_table = 'settlements'
        unique_together = [['user', 'period_start_date', 'period_end_date']]
        indexes = [
            models.Index(fields=['user', 'status'], name='settlements_user_id_5e0d7c_idx'),
            models.Index(fields=['status', 'period_end_date'], name='settlements_status_a84f21_idx'),
        ]
        ordering = ['-period_start_date', '-created_at']

    def __str__(self):
        return f"{self.user} {self.period_start_date}..{self.period_end_date} ({self.status})"

    @property
    def net_amount(self):
        return self.total_earnings - self.system_fees

    @property
    def is_paid(self):
        return self.status == SettlementStatus.PAID
