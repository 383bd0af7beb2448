"""
Usage recording.

Recording, editing or removing a usage record moves stock in and out of
batches.  Each operation runs in one transaction with the affected
batch rows locked, so the record, the stock level and the audit entry
always agree.
"""
from __future__ import annotations

from datetime import timedelta

from django.db import transaction
from django.db.models import F, Q
from rest_framework.exceptions import NotFound

from stock.exceptions import InsufficientStock
from stock.models import Batch, Material, MaterialType, Physician, UsageRecord
from stock.services import audit
from stock.services.params import day_start


def usage_queryset():
    return UsageRecord.objects.select_related(
        'user',
        'batch__vendor',
        'batch__material__brand',
        'batch__material__material_type',
    )


def list_usage(*, search='', physician='', date_from=None, date_to=None, yesterday=False,
               material_type_id=None, material_id=None, batch_id=None):
    qs = usage_queryset()
    if search:
        qs = qs.filter(
            Q(patient_name__icontains=search)
            | Q(patient_id__icontains=search)
            | Q(procedure_name__icontains=search)
            | Q(batch__material__name__icontains=search)
        )
    if physician:
        qs = qs.filter(physician=physician)
    if date_from:
        qs = qs.filter(procedure_date__gte=date_from)
    if date_to:
        # dateTo names a whole day, except for the "yesterday" preset which is exact
        if yesterday:
            qs = qs.filter(procedure_date__lte=date_to)
        else:
            qs = qs.filter(procedure_date__lt=date_to + timedelta(days=1))
    if material_type_id:
        qs = qs.filter(batch__material__material_type_id=material_type_id)
    if batch_id:
        qs = qs.filter(batch_id=batch_id)
    elif material_id:
        qs = qs.filter(batch__material_id=material_id)
    return qs.order_by('-procedure_date', '-id')


def _lock_batches(*batch_ids) -> dict[int, Batch]:
    ids = sorted(set(batch_ids))
    locked = {b.id: b for b in Batch.objects.select_for_update().select_related('material', 'vendor')
              .filter(pk__in=ids).order_by('pk')}
    for batch_id in ids:
        if batch_id not in locked:
            raise NotFound('Batch not found.')
    return locked


def _ensure_stock(batch: Batch, needed: int) -> None:
    if needed > batch.quantity:
        raise InsufficientStock(f'Insufficient stock: batch {batch.id} has {batch.quantity} left, {needed} requested.')


def _adjust(batch: Batch, delta: int) -> None:
    Batch.objects.filter(pk=batch.pk).update(quantity=F('quantity') + delta)


def _usage_values(record: UsageRecord, batch: Batch) -> dict:
    return audit.snapshot(record, materialName=batch.material.name, vendorName=batch.vendor.name)


def record_usage(data: dict, user) -> UsageRecord:
    with transaction.atomic():
        batch = _lock_batches(data['batch_id'])[data['batch_id']]
        _ensure_stock(batch, data['quantity'])
        record = UsageRecord.objects.create(
            patient_name=data['patient_name'],
            patient_id=data['patient_id'],
            procedure_name=data['procedure_name'],
            procedure_date=data['procedure_date'],
            physician=data['physician'],
            batch=batch,
            quantity=data['quantity'],
            user=user,
        )
        _adjust(batch, -data['quantity'])
        audit.log_create('UsageRecord', record.id, _usage_values(record, batch), user,
                         f'Used {record.quantity} x {batch.material.name} for {record.patient_id}')
    return record


def update_usage(record: UsageRecord, data: dict, user) -> UsageRecord:
    with transaction.atomic():
        record = UsageRecord.objects.select_for_update().get(pk=record.pk)
        old_batch_id, old_quantity = record.batch_id, record.quantity
        new_batch_id, new_quantity = data['batch_id'], data['quantity']
        locked = _lock_batches(old_batch_id, new_batch_id)
        before = _usage_values(record, locked[old_batch_id])

        new_batch = locked[new_batch_id]
        if new_batch_id == old_batch_id:
            delta = new_quantity - old_quantity
            if delta > 0:
                _ensure_stock(new_batch, delta)
            _adjust(new_batch, -delta)
        else:
            _ensure_stock(new_batch, new_quantity)
            _adjust(locked[old_batch_id], old_quantity)
            _adjust(new_batch, -new_quantity)

        for attr in ('patient_name', 'patient_id', 'procedure_name', 'procedure_date', 'physician', 'quantity'):
            setattr(record, attr, data[attr])
        record.batch = new_batch
        record.save()
        audit.log_update('UsageRecord', record.id, before, _usage_values(record, new_batch), user,
                         f'Updated usage record {record.id}')
    return record


def delete_usage(record: UsageRecord, user) -> None:
    with transaction.atomic():
        record = UsageRecord.objects.select_for_update().get(pk=record.pk)
        batch = _lock_batches(record.batch_id)[record.batch_id]
        before = _usage_values(record, batch)
        record_id = record.id
        _adjust(batch, record.quantity)
        record.delete()
        audit.log_delete('UsageRecord', record_id, before, user,
                         f'Deleted usage record {record_id}; restored {before["quantity"]} to batch {batch.id}')


def procedure_records(*, patient_name, patient_id, procedure_name, procedure_date):
    """All records of one procedure: same patient and procedure on the same calendar day."""
    start = day_start(procedure_date)
    return list(usage_queryset().filter(
        patient_name=patient_name,
        patient_id=patient_id,
        procedure_name=procedure_name,
        procedure_date__gte=start,
        procedure_date__lt=start + timedelta(days=1),
    ).order_by('created_at', 'id'))


def usage_filters() -> dict:
    return {
        'physicians': list(Physician.objects.filter(is_active=True).order_by('name')
                           .values('id', 'name', 'specialization')),
        'materialTypes': list(MaterialType.objects.order_by('name').values('id', 'name')),
        'materials': [
            {'id': m.id, 'name': m.name, 'size': m.size, 'materialTypeId': m.material_type_id,
             'brand': m.brand.name}
            for m in Material.objects.select_related('brand').order_by('name')
        ],
    }
