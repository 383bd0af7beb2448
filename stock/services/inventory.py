"""
Materials and their batches.

Listing applies the same filters the inventory page offers: free-text
search, brand/type, batch-level vendor and purchase type, and a derived
stock status computed from the remaining quantity of the (filtered)
batches.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Prefetch, Q
from django.utils import timezone

from stock.exceptions import ResourceInUse
from stock.models import Batch, BatchDocument, Material, UsageRecord
from stock.services import audit

STOCK_IN = 'in stock'
STOCK_LOW = 'low stock'
STOCK_OUT = 'out of stock'
STOCK_EXPIRING = 'expiring soon'
STOCK_STATUSES = [STOCK_IN, STOCK_LOW, STOCK_OUT, STOCK_EXPIRING]

PURCHASE_TYPES = [Batch.PURCHASE_ADVANCE, Batch.PURCHASE_PURCHASED]


def batch_queryset():
    return (Batch.objects
            .select_related('vendor', 'added_by')
            .prefetch_related('documents'))


def material_queryset():
    return (Material.objects
            .select_related('brand', 'material_type')
            .prefetch_related(Prefetch('batches', queryset=batch_queryset().order_by('expiration_date', 'id'))))


def matches_stock_status(status: str, batches, now=None) -> bool:
    status = (status or '').strip().lower()
    total = sum(b.quantity for b in batches)
    if status == STOCK_IN:
        return total > 0
    if status == STOCK_LOW:
        return 0 < total < settings.LOW_STOCK_THRESHOLD
    if status == STOCK_OUT:
        return total == 0
    if status == STOCK_EXPIRING:
        horizon = (now or timezone.now()) + timedelta(days=settings.EXPIRY_WARNING_DAYS)
        return any(b.quantity > 0 and b.expiration_date <= horizon for b in batches)
    return True


def list_materials(*, search: str = '', brand_id: Optional[int] = None, material_type_id: Optional[int] = None,
                   vendor_id: Optional[int] = None, purchase_type: str = '', stock_status: str = ''):
    """Return ``(rows, total_count)`` where each row is ``(material, batches)``.

    ``total_count`` counts materials matching the material-level filters,
    before batch and stock-status filtering.
    """
    qs = Material.objects.select_related('brand', 'material_type')
    if search:
        qs = qs.filter(
            Q(name__icontains=search)
            | Q(brand__name__icontains=search)
            | Q(material_type__name__icontains=search)
            | Q(batches__vendor__name__icontains=search)
        ).distinct()
    if brand_id:
        qs = qs.filter(brand_id=brand_id)
    if material_type_id:
        qs = qs.filter(material_type_id=material_type_id)
    total_count = qs.count()

    batches = batch_queryset().order_by('expiration_date', 'id')
    batch_filtered = bool(vendor_id or purchase_type)
    if vendor_id:
        batches = batches.filter(vendor_id=vendor_id)
    if purchase_type:
        batches = batches.filter(purchase_type__iexact=purchase_type)
    qs = qs.prefetch_related(Prefetch('batches', queryset=batches, to_attr='visible_batches')).order_by('name', 'id')

    now = timezone.now()
    rows = []
    for material in qs:
        visible = material.visible_batches
        if batch_filtered and not visible:
            continue
        if stock_status and not matches_stock_status(stock_status, visible, now):
            continue
        rows.append((material, visible))
    return rows, total_count


# ---------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------
def create_material(data: dict, user) -> Material:
    with transaction.atomic():
        material = Material.objects.create(
            name=data['name'],
            size=data.get('size') or '',
            brand=data['brand'],
            material_type=data['material_type'],
        )
        audit.log_create('Material', material.id, audit.snapshot(material), user,
                         f'Created material {material.name}')
    return material


def update_material(material: Material, data: dict, user) -> Material:
    with transaction.atomic():
        before = audit.snapshot(material)
        for attr in ('name', 'brand', 'material_type'):
            if attr in data:
                setattr(material, attr, data[attr])
        if 'size' in data:
            material.size = data['size'] or ''
        material.save()
        audit.log_update('Material', material.id, before, audit.snapshot(material), user,
                         f'Updated material {material.name}')
    return material


def delete_material(material: Material, user) -> None:
    if UsageRecord.objects.filter(batch__material=material).exists():
        raise ResourceInUse('Material has recorded usage and cannot be deleted.')
    with transaction.atomic():
        before = audit.snapshot(material, batches=[audit.snapshot(b) for b in material.batches.all()])
        material_id = material.id
        material.delete()
        audit.log_delete('Material', material_id, before, user, f'Deleted material {before["name"]}')


# ---------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------
def _link_documents(batch: Batch, document_ids) -> None:
    BatchDocument.objects.filter(batch=batch).exclude(document_id__in=document_ids).delete()
    existing = set(BatchDocument.objects.filter(batch=batch).values_list('document_id', flat=True))
    BatchDocument.objects.bulk_create(
        [BatchDocument(batch=batch, document_id=doc_id) for doc_id in document_ids if doc_id not in existing]
    )


def _document_ids(batch: Batch) -> list[int]:
    return sorted(BatchDocument.objects.filter(batch=batch).values_list('document_id', flat=True))


def create_batch(material: Material, data: dict, user) -> Batch:
    initial = data.get('initial_quantity')
    with transaction.atomic():
        batch = Batch.objects.create(
            material=material,
            quantity=data['quantity'],
            initial_quantity=data['quantity'] if initial is None else initial,
            expiration_date=data['expiration_date'],
            vendor=data['vendor'],
            storage_location=data.get('storage_location') or '',
            purchase_type=data['purchase_type'],
            lot_number=data.get('lot_number') or '',
            cost=data.get('cost'),
            added_by=user,
        )
        _link_documents(batch, data.get('document_ids') or [])
        audit.log_create('Batch', batch.id, audit.snapshot(batch, documentIds=_document_ids(batch)), user,
                         f'Added batch of {batch.quantity} to {material.name}')
    return batch


def update_batch(batch: Batch, data: dict, user) -> Batch:
    with transaction.atomic():
        before = audit.snapshot(batch, documentIds=_document_ids(batch))
        for attr in ('quantity', 'expiration_date', 'vendor', 'purchase_type', 'cost'):
            if attr in data:
                setattr(batch, attr, data[attr])
        for attr in ('storage_location', 'lot_number'):
            if attr in data:
                setattr(batch, attr, data[attr] or '')
        if data.get('initial_quantity') is not None:
            batch.initial_quantity = data['initial_quantity']
        batch.save()
        if 'document_ids' in data:
            _link_documents(batch, data['document_ids'])
        audit.log_update('Batch', batch.id, before, audit.snapshot(batch, documentIds=_document_ids(batch)), user,
                         f'Updated batch {batch.id} of {batch.material.name}')
    return batch


def delete_batch(batch: Batch, user) -> None:
    if batch.usage_records.exists():
        raise ResourceInUse('Batch has recorded usage and cannot be deleted.')
    with transaction.atomic():
        before = audit.snapshot(batch, documentIds=_document_ids(batch))
        batch_id = batch.id
        batch.delete()
        audit.log_delete('Batch', batch_id, before, user, f'Deleted batch {batch_id}')
