# ==========================================
# apps/settlements/admin.py
# ==========================================

from django.contrib import admin, messages
from django.db import DatabaseError
from django.utils.html import format_html
from .models import Settlement, SettlementStatus
from .services import SettlementsServiceError, mark_settlement_paid


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    """
    Admin interface for Settlements.

    Rows are created and kept up to date by reconciliation; the admin is
    for review and for recording payments.
    """

    list_display = [
        'user',
        'period_start_date',
        'period_end_date',
        'total_earnings',
        'system_fees',
        'get_net_amount',
        'total_transactions',
        'status_badge',
        'paid_at',
    ]

    list_filter = [
        'status',
        'period_start_date',
        'paid_at',
    ]

    search_fields = [
        'user__email',
        'user__first_name',
        'user__last_name',
        'user__student_id_number',
    ]

    readonly_fields = [
        'user',
        'period_start_date',
        'period_end_date',
        'total_earnings',
        'system_fees',
        'total_transactions',
        'commission_ids',
        'errand_ids',
        'status',
        'paid_at',
        'paid_by',
        'created_at',
        'updated_at',
    ]

    date_hierarchy = 'period_start_date'
    ordering = ['-period_start_date', '-created_at']

    fieldsets = (
        ('Period', {
            'fields': ('user', 'period_start_date', 'period_end_date', 'status')
        }),
        ('Amounts', {
            'fields': ('total_earnings', 'system_fees', 'total_transactions')
        }),
        ('Transactions', {
            'fields': ('commission_ids', 'errand_ids'),
            'classes': ('collapse',),
        }),
        ('Payment', {
            'fields': ('paid_at', 'paid_by'),
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def get_net_amount(self, obj):
        return obj.net_amount
    get_net_amount.short_description = 'Net'

    def status_badge(self, obj):
        """Display settlement status as colored badge."""
        colors = {
            SettlementStatus.PENDING: ('#E5C49A', '#2C1810'),
            SettlementStatus.OVERDUE: ('#B85C5C', 'white'),
            SettlementStatus.PAID: ('#6B8E5E', 'white'),
        }
        bg, fg = colors.get(obj.status, ('#ccc', '#666'))
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    actions = ['mark_paid']

    @admin.action(description='Mark selected settlements as paid')
    def mark_paid(self, request, queryset):
        """Mark settlements paid through the payment service, one at a time."""
        paid = 0
        for settlement in queryset:
            try:
                result = mark_settlement_paid(paid_by=request.user, settlement_id=settlement.id)
            except (SettlementsServiceError, DatabaseError) as e:
                self.message_user(request, f'{settlement}: {e}', level=messages.ERROR)
                continue
            if not result.already_paid:
                paid += 1
        self.message_user(request, f'Marked {paid} settlement(s) as paid.')

    def has_add_permission(self, request):
        """Settlements are created by reconciliation only."""
        return False

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('user', 'paid_by')
