# ==========================================
# apps/accounts/admin.py
# ==========================================

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html
from .models import User


def _badge(label, background, color='white'):
    return format_html(
        '<span style="background: {}; color: {}; padding: 3px 8px; '
        'border-radius: 10px; font-size: 11px;">{}</span>',
        background, color, label,
    )


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for marketplace accounts.

    Lists runners and callers with their restriction flags so support staff
    can see at a glance who is locked out because of unpaid settlements.
    """

    list_display = [
        'email',
        'full_name',
        'student_id_number',
        'role',
        'blocked_badge',
        'settlement_blocked_badge',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_blocked',
        'is_settlement_blocked',
        'is_staff',
        'created_at',
    ]

    search_fields = [
        'email',
        'first_name',
        'last_name',
        'student_id_number',
    ]

    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Basic Information', {
            'fields': ('email', 'first_name', 'last_name', 'student_id_number', 'role', 'password')
        }),
        ('Restrictions', {
            'fields': ('is_blocked', 'is_settlement_blocked'),
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'last_login'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        ('Create User', {
            'classes': ('wide',),
            'fields': ('email', 'first_name', 'last_name', 'role', 'password1', 'password2'),
        }),
    )

    readonly_fields = [
        'created_at',
        'updated_at',
        'last_login',
    ]

    filter_horizontal = ['groups', 'user_permissions']

    def blocked_badge(self, obj):
        if obj.is_blocked:
            return _badge('Blocked', '#B85C5C')
        return _badge('OK', '#6B8E5E')
    blocked_badge.short_description = 'Account'
    blocked_badge.admin_order_field = 'is_blocked'

    def settlement_blocked_badge(self, obj):
        if obj.is_settlement_blocked:
            return _badge('Unpaid settlement', '#E5C49A', '#2C1810')
        return _badge('Clear', '#ccc', '#666')
    settlement_blocked_badge.short_description = 'Settlements'
    settlement_blocked_badge.admin_order_field = 'is_settlement_blocked'

    actions = ['unblock_users']

    @admin.action(description='Unblock selected users')
    def unblock_users(self, request, queryset):
        count = queryset.update(is_blocked=False, is_settlement_blocked=False)
        self.message_user(request, f'Unblocked {count} user(s).')
