from rest_framework.permissions import BasePermission
import logging

logger = logging.getLogger(__name__)


def check_permission(request, permission_key, resource_owner_id=None):
    """
    Check if the current user has the specified permission.

    Args:
        request: Django request object with JWT data
        permission_key: Permission key (e.g., 'hms.billing.view')
        resource_owner_id: Optional resource owner ID for 'own' scope checking

    Returns:
        bool: True if permission is granted, False otherwise
    """
    if getattr(request, 'is_super_admin', False):
        return True

    if not hasattr(request, 'permissions'):
        logger.warning("No permissions found in request. JWT middleware may not be configured.")
        return False

    permissions = request.permissions

    if permission_key not in permissions:
        logger.debug(f"Permission '{permission_key}' not found for user {getattr(request, 'email', None)}")
        return False

    permission_value = permissions[permission_key]

    # Boolean permissions (create, edit, delete)
    if isinstance(permission_value, bool):
        return permission_value

    # Scope-based permissions (view)
    if isinstance(permission_value, str):
        if permission_value == 'all':
            return True
        elif permission_value == 'own':
            if resource_owner_id is None:
                return True
            return str(resource_owner_id) == str(request.user_id)
        elif permission_value == 'none':
            return False

    logger.warning(f"Unknown permission value type for '{permission_key}': {permission_value}")
    return False


def get_queryset_for_permission(queryset, request, view_permission_key, owner_field='created_by_id'):
    """
    Filter queryset by the scope of a view permission.

    'all' returns everything, 'own' restricts to rows created by the
    current user, anything else returns nothing.
    """
    if getattr(request, 'is_super_admin', False):
        return queryset

    permission_value = getattr(request, 'permissions', {}).get(view_permission_key)

    if permission_value is True or permission_value == 'all':
        return queryset
    elif permission_value == 'own' and hasattr(queryset.model, owner_field):
        return queryset.filter(**{owner_field: request.user_id})
    elif permission_value == 'own':
        return queryset

    return queryset.none()


class HMSActionPermission(BasePermission):
    """
    DRF permission driven by a ViewSet's `permission_mapping`.

    Each ViewSet declares {action: permission_key}. Actions missing from the
    mapping only require an authenticated caller.
    """
    message = 'Insufficient permissions for this action'

    def get_permission_key(self, view):
        mapping = getattr(view, 'permission_mapping', {}) or {}
        return mapping.get(getattr(view, 'action', None))

    def has_permission(self, request, view):
        if not getattr(request, 'user_id', None):
            return False

        permission_key = self.get_permission_key(view)
        if not permission_key:
            return True

        allowed = check_permission(request, permission_key)
        if not allowed:
            logger.info(f"Denied {permission_key} for user {request.user_id} on {view.__class__.__name__}")
        return allowed

    def has_object_permission(self, request, view, obj):
        permission_key = self.get_permission_key(view)
        if not permission_key:
            return True
        owner_id = getattr(obj, 'created_by_id', None)
        return check_permission(request, permission_key, owner_id)


# Permission key constants for HMS
class HMSPermissions:
    """Constants for HMS permission keys."""

    # Patient permissions
    PATIENTS_VIEW = 'hms.patients.view'
    PATIENTS_CREATE = 'hms.patients.create'
    PATIENTS_EDIT = 'hms.patients.edit'
    PATIENTS_DELETE = 'hms.patients.delete'

    # Ward and bed permissions
    WARDS_VIEW = 'hms.wards.view'
    WARDS_CREATE = 'hms.wards.create'
    WARDS_EDIT = 'hms.wards.edit'
    WARDS_DELETE = 'hms.wards.delete'

    # IPD permissions
    IPD_VIEW = 'hms.ipd.view'
    IPD_CREATE = 'hms.ipd.create'
    IPD_EDIT = 'hms.ipd.edit'
    IPD_DISCHARGE = 'hms.ipd.discharge'

    # ICU permissions
    ICU_VIEW = 'hms.icu.view'
    ICU_CREATE = 'hms.icu.create'
    ICU_EDIT = 'hms.icu.edit'
    ICU_DISCHARGE = 'hms.icu.discharge'

    # Billing permissions
    BILLING_VIEW = 'hms.billing.view'
    BILLING_CREATE = 'hms.billing.create'
    BILLING_EDIT = 'hms.billing.edit'
    BILLING_DELETE = 'hms.billing.delete'

    # Insurance permissions
    INSURANCE_VIEW = 'hms.insurance.view'
    INSURANCE_CREATE = 'hms.insurance.create'
    INSURANCE_EDIT = 'hms.insurance.edit'
    INSURANCE_APPROVE = 'hms.insurance.approve'


def has_any_permission(request, permission_keys):
    """True if user has at least one of the permission keys."""
    return any(check_permission(request, key) for key in permission_keys)
