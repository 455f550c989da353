# common/permissions.py
from rest_framework.permissions import BasePermission, SAFE_METHODS
from users.models import UserChoice


class IsOwner(BasePermission):
    """
    Allows access only to the fleet owner.
    """
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_owner


class IsAuthenticatedCustomerOrOwner(BasePermission):
    """
    Allows full access to the owner and read-only access to customers.
    """
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        if request.user.is_owner:
            return True
        if request.user.role == UserChoice.CUSTOMER and request.method in SAFE_METHODS:
            return True
        return False


class IsBookingHolderOrOwner(BasePermission):
    """
    Custom permission for BookingModel.
    - Owner: can see any booking
    - Customer: can see bookings placed from their account, email or phone
    """
    def has_object_permission(self, request, view, obj):
        user = request.user
        if user.is_owner:
            return True
        if obj.client_id == user.id:
            return True
        if user.email and obj.email == user.email:
            return True
        return bool(user.phone) and obj.customer_phone == user.phone
