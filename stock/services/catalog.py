"""
Master data: material types, brands, vendors and physicians.

Each entry is created and edited through its serializer; this module
wraps the writes in a transaction with the matching audit entry and
refuses deletes of entries other rows still depend on.
"""
from __future__ import annotations

from django.db import transaction

from stock.exceptions import ResourceInUse
from stock.models import Brand, MaterialType, Physician, Vendor
from stock.services import audit


def _in_use(obj) -> str:
    if isinstance(obj, Vendor) and obj.batches.exists():
        return 'Vendor is used by existing batches and cannot be deleted.'
    if isinstance(obj, Brand) and obj.materials.exists():
        return 'Brand is used by existing materials and cannot be deleted.'
    if isinstance(obj, MaterialType) and obj.materials.exists():
        return 'Material type is used by existing materials and cannot be deleted.'
    return ''


def create_entry(serializer, user):
    model = serializer.Meta.model
    with transaction.atomic():
        obj = serializer.save()
        audit.log_create(model.__name__, obj.pk, audit.snapshot(obj), user,
                         f'Created {model.__name__} {obj.name}')
    return obj


def update_entry(serializer, user):
    obj = serializer.instance
    with transaction.atomic():
        before = audit.snapshot(obj)
        obj = serializer.save()
        audit.log_update(type(obj).__name__, obj.pk, before, audit.snapshot(obj), user,
                         f'Updated {type(obj).__name__} {obj.name}')
    return obj


def delete_entry(obj, user) -> None:
    reason = _in_use(obj)
    if reason:
        raise ResourceInUse(reason)
    with transaction.atomic():
        before = audit.snapshot(obj)
        pk = obj.pk
        obj.delete()
        audit.log_delete(type(obj).__name__, pk, before, user, f'Deleted {type(obj).__name__} {before["name"]}')


def set_physician_active(physician: Physician, active: bool, user) -> Physician:
    with transaction.atomic():
        before = audit.snapshot(physician)
        physician.is_active = active
        physician.save(update_fields=['is_active', 'updated_at'])
        audit.log_update('Physician', physician.pk, before, audit.snapshot(physician), user,
                         f'{"Activated" if active else "Deactivated"} physician {physician.name}')
    return physician
