from django.db import models
from django.db.models.functions import Coalesce
from decimal import Decimal, InvalidOperation
import uuid


class ErrandCategory(models.TextChoices):
    DELIVER_ITEMS = 'Deliver Items', 'Deliver Items'
    FOOD_DELIVERY = 'Food Delivery', 'Food Delivery'
    SCHOOL_MATERIALS = 'School Materials', 'School Materials'
    PRINTING = 'Printing', 'Printing'


class TaskStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in_progress', 'In progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class InvoiceStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    ACCEPTED = 'accepted', 'Accepted'
    DECLINED = 'declined', 'Declined'


class TaskQuerySet(models.QuerySet):
    """Shared filters for errands and commissions."""

    def completed(self):
        return self.filter(status=TaskStatus.COMPLETED)

    def for_runners(self, runner_ids):
        return self.filter(runner_id__in=runner_ids)

    def completed_between(self, start_date, end_date):
        """Completed tasks whose completion date (UTC) falls in [start_date, end_date]."""
        return self.annotate(
            completion_ts=Coalesce('completed_at', 'created_at'),
        ).filter(
            completion_ts__date__gte=start_date,
            completion_ts__date__lte=end_date,
        )


class Errand(models.Model):
    """Errand posted by a BuddyCaller and fulfilled by a BuddyRunner."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    caller = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='errands_requested'
    )
    runner = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='errands_run'
    )

    title = models.CharField(max_length=200, blank=True)
    category = models.CharField(max_length=50, blank=True)
    status = models.CharField(
        max_length=20,
        choices=TaskStatus.choices,
        default=TaskStatus.PENDING
    )

    # Price the caller pays for the whole errand
    amount_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00')
    )
    # [{"name": "Waffles", "qty": 2, "price": 35}, ...]; price is optional
    items = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = TaskQuerySet.as_manager()

    class Meta:
        db_table = 'errands'
        indexes = [
            models.Index(fields=['runner', 'status'], name='errands_runner__1f6c3a_idx'),
            models.Index(fields=['created_at'], name='errands_created_9b0e52_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"Errand {self.title or self.id} ({self.status})"

    @property
    def completed_on(self):
        return self.completed_at or self.created_at


class Commission(models.Model):
    """Free-form job whose price is negotiated through invoices."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    caller = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='commissions_requested'
    )
    runner = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='commissions_run'
    )

    title = models.CharField(max_length=200, blank=True)
    status = models.CharField(
        max_length=20,
        choices=TaskStatus.choices,
        default=TaskStatus.PENDING
    )

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = TaskQuerySet.as_manager()

    class Meta:
        db_table = 'commissions'
        indexes = [
            models.Index(fields=['runner', 'status'], name='commissions_runner__7d2e91_idx'),
            models.Index(fields=['created_at'], name='commissions_created_3c5a07_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"Commission {self.title or self.id} ({self.status})"

    @property
    def completed_on(self):
        return self.completed_at or self.created_at

    def get_amount(self, invoices=None):
        """
        Amount the caller pays for this commission.

        The accepted invoice wins; without one the most recent invoice is
        used. Returns ``Decimal('0')`` when there is no usable invoice.
        ``invoices`` may be passed in to avoid a query when they were
        prefetched.
        """
        if invoices is None:
            invoices = list(self.invoices.all())
        if not invoices:
            return Decimal('0')

        accepted = [inv for inv in invoices if inv.is_accepted]
        if accepted:
            chosen = accepted[0]
        else:
            chosen = max(invoices, key=lambda inv: inv.created_at)

        try:
            return Decimal(chosen.amount)
        except (InvalidOperation, TypeError, ValueError):
            return Decimal('0')


class Invoice(models.Model):
    """Price quote issued by the runner for a commission."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    commission = models.ForeignKey(
        Commission,
        on_delete=models.CASCADE,
        related_name='invoices'
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.PENDING
    )

    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'invoices'
        ordering = ['-created_at']

    def __str__(self):
        return f"Invoice {self.amount} for {self.commission_id} ({self.status})"

    @property
    def is_accepted(self):
        return self.accepted_at is not None or self.status == InvoiceStatus.ACCEPTED
