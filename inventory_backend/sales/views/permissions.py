# sales/views/permissions.py

from rest_framework.permissions import BasePermission


class CanCompleteOrder(BasePermission):
    """
    Order completion authorization rule.

    POLICY:
    - Only staff members can complete orders (completion deducts stock
      and fixes the cost of goods sold)
    """

    def has_permission(self, request, view):
        user = request.user

        if not user or not user.is_authenticated:
            return False

        return bool(getattr(user, "is_staff", False))
