"""
Permission classes driven by the named permissions attached to users.

Names are compared in a normalised form so that ``EditMaterials``,
``edit_materials`` and ``Edit Materials`` all refer to the same
capability.
"""
import re

from rest_framework.permissions import BasePermission, SAFE_METHODS

VIEW_ONLY = 'View Only'
EDIT_MATERIALS = 'Edit Materials'
RECORD_USAGE = 'Record Usage'
EDIT_DOCUMENTS = 'Edit Documents'
MANAGE_SETTINGS = 'Manage Settings'
MANAGE_USERS = 'Manage Users'

DEFAULT_PERMISSIONS = [
    (VIEW_ONLY, 'Can view inventory, usage and analytics'),
    (EDIT_MATERIALS, 'Can add and edit materials and batches'),
    (RECORD_USAGE, 'Can record material usage'),
    (EDIT_DOCUMENTS, 'Can upload and edit documents'),
    (MANAGE_SETTINGS, 'Can manage vendors, brands, material types, physicians and backups'),
    (MANAGE_USERS, 'Can manage users and their permissions'),
]

_CAMEL = re.compile(r'([a-z0-9])([A-Z])')


def normalize_permission_name(name: str) -> str:
    s = _CAMEL.sub(r'\1 \2', name or '')
    s = re.sub(r'[_\-]+', ' ', s)
    return re.sub(r'\s+', ' ', s).strip().upper()


def user_permission_names(user) -> set[str]:
    """Normalised permission names of ``user`` (memoised on the instance)."""
    if not (user and getattr(user, 'is_authenticated', False)):
        return set()
    cached = getattr(user, '_stock_permission_names', None)
    if cached is None:
        cached = {normalize_permission_name(n) for n in user.permissions.values_list('name', flat=True)}
        user._stock_permission_names = cached
    return cached


def has_named_permission(user, name: str) -> bool:
    if user and getattr(user, 'is_superuser', False):
        return True
    return normalize_permission_name(name) in user_permission_names(user)


class _NamedPermission(BasePermission):
    required = ''
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return has_named_permission(getattr(request, 'user', None), self.required)


class CanEditMaterials(_NamedPermission):
    required = EDIT_MATERIALS
    message = 'Edit Materials permission required.'


class CanRecordUsage(_NamedPermission):
    required = RECORD_USAGE
    message = 'Record Usage permission required.'


class CanEditDocuments(_NamedPermission):
    required = EDIT_DOCUMENTS
    message = 'Edit Documents permission required.'


class CanManageSettings(_NamedPermission):
    required = MANAGE_SETTINGS
    message = 'Manage Settings permission required.'


class CanManageUsers(_NamedPermission):
    required = MANAGE_USERS
    message = 'Manage Users permission required.'


class ReadOnly(BasePermission):
    """Allow read-only access (GET, HEAD, OPTIONS)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return request.method in SAFE_METHODS
