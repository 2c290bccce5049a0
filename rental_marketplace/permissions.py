from rest_framework import permissions


def has_role(user, role: str) -> bool:
    return bool(
        user
        and user.is_authenticated
        and getattr(user, "role", None) == role
    )


class IsPropertyOwner(permissions.BasePermission):
    message = "Access is restricted to property owners only."

    def has_permission(self, request, view):
        return has_role(request.user, "owner")


class IsTenant(permissions.BasePermission):
    message = "Access is restricted to tenants only."

    def has_permission(self, request, view):
        return has_role(request.user, "tenant")


class IsAdminRole(permissions.BasePermission):
    message = "Admin access required."

    def has_permission(self, request, view):
        return has_role(request.user, "admin")


class IsOwnerOrReadOnly(permissions.BasePermission):
    """
    Allows only its owner to modify the object.
    SAFE_METHODS here can be additionally cut off by other permissions.
    """
    message = "Only the owner can modify this object."

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        return getattr(obj, "owner_id", None) == getattr(request.user, "id", None)
