from django.contrib import admin
from .models import Errand, Commission, Invoice


class InvoiceInline(admin.TabularInline):
    model = Invoice
    extra = 0
    fields = ['amount', 'status', 'created_at', 'accepted_at']
    readonly_fields = ['created_at']


@admin.register(Errand)
class ErrandAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'runner', 'caller', 'amount_price', 'status', 'completed_at', 'created_at']
    list_filter = ['status', 'category', 'created_at']
    search_fields = ['title', 'runner__email', 'caller__email']
    readonly_fields = ['created_at']
    raw_id_fields = ['runner', 'caller']
    ordering = ['-created_at']


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ['title', 'runner', 'caller', 'status', 'amount', 'completed_at', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['title', 'runner__email', 'caller__email']
    readonly_fields = ['created_at']
    raw_id_fields = ['runner', 'caller']
    ordering = ['-created_at']
    inlines = [InvoiceInline]

    def get_queryset(self, request):
        return super().get_queryset(request).prefetch_related('invoices')

    def amount(self, obj):
        return obj.get_amount(list(obj.invoices.all()))
    amount.short_description = 'Amount'


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['commission', 'amount', 'status', 'accepted_at', 'created_at']
    list_filter = ['status']
    readonly_fields = ['created_at']
    raw_id_fields = ['commission']
