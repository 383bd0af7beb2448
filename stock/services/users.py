from __future__ import annotations

import logging

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction
from rest_framework.exceptions import ValidationError as DRFValidation

from stock.exceptions import SetupAlreadyDone
from stock.models import Permission, User
from stock.permissions import DEFAULT_PERMISSIONS, normalize_permission_name
from stock.services import audit

logger = logging.getLogger(__name__)


def ensure_default_permissions() -> list[Permission]:
    perms = []
    for name, description in DEFAULT_PERMISSIONS:
        perm, _ = Permission.objects.get_or_create(name=name, defaults={'description': description})
        perms.append(perm)
    return perms


def resolve_permissions(names) -> list[Permission]:
    """Map permission names (any spelling) to Permission rows; unknown names are an error."""
    by_key = {normalize_permission_name(p.name): p for p in Permission.objects.all()}
    found, unknown = [], []
    for name in names or []:
        perm = by_key.get(normalize_permission_name(name))
        if perm is None:
            unknown.append(name)
        elif perm not in found:
            found.append(perm)
    if unknown:
        raise DRFValidation({'permissions': f'Unknown permissions: {", ".join(unknown)}'})
    return found


def _check_password(password: str, user: User | None = None) -> None:
    try:
        validate_password(password, user)
    except ValidationError as e:
        raise DRFValidation({'password': e.messages})


def _check_unique(username: str | None, email: str | None, exclude_pk=None) -> None:
    qs = User.objects.all()
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if username and qs.filter(username__iexact=username).exists():
        raise DRFValidation({'username': 'Username already exists.'})
    if email and qs.filter(email__iexact=email).exists():
        raise DRFValidation({'email': 'Email already exists.'})


def _user_values(user: User) -> dict:
    return audit.snapshot(user, exclude=('last_login',), permissions=sorted(p.name for p in user.permissions.all()))


# ---------------------------------------------------------------------
# First-run setup
# ---------------------------------------------------------------------
def setup_required() -> bool:
    return not User.objects.exists()


def run_setup(*, username: str, email: str, password: str) -> User:
    with transaction.atomic():
        if User.objects.select_for_update().exists():
            raise SetupAlreadyDone()
        _check_password(password, User(username=username, email=email))
        perms = ensure_default_permissions()
        user = User.objects.create_user(
            username=username, email=email, password=password,
            role='ADMIN', is_staff=True, is_superuser=True,
        )
        user.permissions.set(perms)
        audit.log_create('User', user.id, _user_values(user), user, f'Initial setup created admin {username}')
    logger.info('initial setup completed for %s', username)
    return user


# ---------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------
def create_user(data: dict, actor: User) -> User:
    username = data['username']
    email = data.get('email') or ''
    _check_unique(username, email)
    _check_password(data['password'], User(username=username, email=email))
    perms = resolve_permissions(data.get('permissions'))
    with transaction.atomic():
        user = User.objects.create_user(
            username=username, email=email, password=data['password'],
            role=data.get('role') or 'User', created_by=actor,
        )
        user.permissions.set(perms)
        audit.log_create('User', user.id, _user_values(user), actor, f'Created user {username}')
    return user


def update_user(user: User, data: dict, actor: User) -> User:
    _check_unique(data.get('username'), data.get('email'), exclude_pk=user.pk)
    perms = resolve_permissions(data['permissions']) if 'permissions' in data else None
    if data.get('password'):
        _check_password(data['password'], user)
    with transaction.atomic():
        before = _user_values(user)
        if data.get('username'):
            user.username = data['username']
        if 'email' in data:
            user.email = data['email'] or ''
        if data.get('role'):
            user.role = data['role']
        if data.get('password'):
            user.set_password(data['password'])
        user.save()
        if perms is not None:
            user.permissions.set(perms)
        after = _user_values(user)
        if data.get('password'):
            after['passwordChanged'] = True
        audit.log_update('User', user.id, before, after, actor, f'Updated user {user.username}')
    return user


def delete_user(user: User, actor: User) -> None:
    if user.pk == actor.pk:
        raise DRFValidation({'detail': 'You cannot delete your own account.'})
    with transaction.atomic():
        before = _user_values(user)
        pk = user.pk
        user.delete()
        audit.log_delete('User', pk, before, actor, f'Deleted user {before["username"]}')


def update_profile(user: User, data: dict) -> User:
    new_password = data.get('newPassword')
    if new_password:
        if not data.get('currentPassword'):
            raise DRFValidation({'currentPassword': 'Current password is required to set a new password.'})
        if not user.check_password(data['currentPassword']):
            raise DRFValidation({'currentPassword': 'Current password is incorrect.'})
        _check_password(new_password, user)
    _check_unique(data.get('username'), data.get('email'), exclude_pk=user.pk)
    with transaction.atomic():
        before = _user_values(user)
        if data.get('username'):
            user.username = data['username']
        if 'email' in data:
            user.email = data['email'] or ''
        if new_password:
            user.set_password(new_password)
        user.save()
        after = _user_values(user)
        if new_password:
            after['passwordChanged'] = True
        audit.log_update('User', user.id, before, after, user, 'Updated own profile')
    return user
