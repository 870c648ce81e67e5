"""
Custom permission classes for the settlements app.

Settlements are an admin-only surface: runners never see or change
them through this API.
"""
from rest_framework.permissions import BasePermission


class IsSettlementAdmin(BasePermission):
    """
    Allows access to staff users and users whose role is Admin.

    Usage:
        class SettlementViewSet(viewsets.ViewSet):
            permission_classes = [IsAuthenticated, IsSettlementAdmin]
    """

    message = 'Only administrators can manage settlements.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return bool(user.is_staff or getattr(user, 'is_admin_role', False))
