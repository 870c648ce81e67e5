from rest_framework import serializers
from .models import Settlement, SettlementStatus
from apps.accounts.models import User


# =============================================================================
# Input Serializers
# =============================================================================

class SettlementFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for the settlement list.

    Query Parameters:
        status (str): pending, overdue or paid
        search (str): matches first name, last name, email or student id
        dry_run (bool): compute the list without writing to the database
    """

    status = serializers.ChoiceField(
        choices=SettlementStatus.choices,
        required=False
    )
    search = serializers.CharField(max_length=200, required=False, allow_blank=True)
    dry_run = serializers.BooleanField(required=False, default=False)


class MarkSettlementPaidInputSerializer(serializers.Serializer):
    """
    Validate input for marking a settlement as paid.

    Either ``settlement_id`` or ``worker_id`` with both period dates is
    required. ``settlement_id`` is empty for a period that was never saved.
    """

    settlement_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    worker_id = serializers.UUIDField(required=False)
    period_start_date = serializers.DateField(required=False)
    period_end_date = serializers.DateField(required=False)
    total_earnings = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    total_transactions = serializers.IntegerField(min_value=0, required=False)

    def validate_settlement_id(self, value):
        if not value:
            return None
        try:
            return str(serializers.UUIDField().to_internal_value(value))
        except serializers.ValidationError:
            raise serializers.ValidationError('Must be a valid UUID.')

    def validate(self, attrs):
        has_bounds = all(
            attrs.get(name) for name in ('worker_id', 'period_start_date', 'period_end_date')
        )
        if not attrs.get('settlement_id') and not has_bounds:
            raise serializers.ValidationError(
                'Provide settlement_id, or worker_id with period_start_date and period_end_date.'
            )
        start = attrs.get('period_start_date')
        end = attrs.get('period_end_date')
        if start and end and start > end:
            raise serializers.ValidationError({
                'period_end_date': 'End date must not be before start date'
            })
        return attrs


# =============================================================================
# Output Serializers
# =============================================================================


class UserMinimalSerializer(serializers.ModelSerializer):
    """Runner info shown next to a settlement."""

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'student_id_number']
        read_only_fields = fields


class SettlementSerializer(serializers.ModelSerializer):
    """Persisted settlement row."""

    user = UserMinimalSerializer(read_only=True)
    paid_by = serializers.SerializerMethodField()
    net_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Settlement
        fields = [
            'id',
            'user',
            'period_start_date',
            'period_end_date',
            'total_earnings',
            'system_fees',
            'net_amount',
            'total_transactions',
            'commission_ids',
            'errand_ids',
            'status',
            'paid_at',
            'paid_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_paid_by(self, obj):
        return obj.paid_by.email if obj.paid_by else None


class SettlementPeriodSerializer(serializers.Serializer):
    """
    A period from a reconciliation pass.

    ``id`` is an empty string for a period that has no row yet. Runner
    details come from ``context['runners']``, keyed by runner id.
    """

    id = serializers.SerializerMethodField()
    user_id = serializers.CharField(source='worker_id')
    user = serializers.SerializerMethodField()
    period_start_date = serializers.DateField(source='start')
    period_end_date = serializers.DateField(source='end')
    total_earnings = serializers.DecimalField(max_digits=12, decimal_places=2)
    system_fees = serializers.DecimalField(max_digits=12, decimal_places=2)
    net_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_transactions = serializers.IntegerField()
    commission_ids = serializers.ListField(child=serializers.CharField())
    errand_ids = serializers.ListField(child=serializers.CharField())
    status = serializers.CharField()
    paid_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField(allow_null=True)
    updated_at = serializers.DateTimeField(allow_null=True)

    def get_id(self, obj):
        return obj.settlement_id or ''

    def get_user(self, obj):
        runner = self.context.get('runners', {}).get(obj.worker_id)
        if runner is None:
            return None
        return UserMinimalSerializer(runner).data


class DeferredTransactionSerializer(serializers.Serializer):
    kind = serializers.CharField(source='transaction.kind')
    id = serializers.CharField(source='transaction.id')
    worker_id = serializers.CharField(source='transaction.worker_id')
    amount = serializers.DecimalField(source='transaction.amount', max_digits=12, decimal_places=2)
    reason = serializers.CharField()


class MarkSettlementPaidResponseSerializer(serializers.Serializer):
    settlement = SettlementSerializer()
    already_paid = serializers.BooleanField()
    account_still_restricted = serializers.BooleanField()
    other_unpaid = SettlementSerializer(many=True)
    unlocked_accounts = serializers.IntegerField(allow_null=True)


class AccountCheckResponseSerializer(serializers.Serializer):
    locked = serializers.IntegerField()
    unlocked = serializers.IntegerField()
    timestamp = serializers.CharField()
