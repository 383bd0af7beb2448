"""
Analytics report.

Each section is an independent aggregate query over usage records,
batches or materials.  Month buckets are ``YYYY-MM`` strings in the
configured time zone; series covering "the last 12 months" always end
with the current month and are zero-filled.

A *procedure* is identified by patient id, procedure name and calendar
day, so several usage rows recorded for one operation count once.
"""
from __future__ import annotations

import datetime as dt
from collections import defaultdict
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce, TruncDate, TruncMonth
from django.utils import timezone

from stock.models import Batch, Material, MaterialType, Physician, UsageRecord, Vendor
from stock.services.params import add_months, month_start

DEFAULT_START = dt.date(2020, 1, 1)


def month_key(value) -> str:
    if isinstance(value, dt.datetime):
        value = timezone.localtime(value) if timezone.is_aware(value) else value
    return value.strftime('%Y-%m')


def trailing_months(count: int = 12, now=None) -> list[str]:
    current = month_start(now or timezone.now())
    return [month_key(add_months(current, -i)) for i in range(count - 1, -1, -1)]


def procedure_keys(qs) -> set:
    """Distinct (patient id, procedure name, day) triples of a usage queryset."""
    rows = qs.annotate(day=TruncDate('procedure_date')).values_list('patient_id', 'procedure_name', 'day').distinct()
    return set(rows)


def _window(date_from, date_to, now):
    start = date_from or timezone.make_aware(dt.datetime.combine(DEFAULT_START, dt.time.min))
    if date_to:
        end = date_to + timedelta(days=1)
    else:
        end = add_months(month_start(now), 1)
    return start, end


def monthly_usage_by_type(usage, months, material_type_id=None) -> list[dict]:
    if material_type_id:
        usage = usage.filter(batch__material__material_type_id=material_type_id)
    rows = (usage.annotate(month=TruncMonth('procedure_date'))
            .values('batch__material__material_type__name', 'month')
            .annotate(total=Sum('quantity')))
    by_type: dict[str, dict[str, int]] = defaultdict(dict)
    for row in rows:
        by_type[row['batch__material__material_type__name']][month_key(row['month'])] = row['total'] or 0
    return [
        {'material_type': name, 'data': [{'month': m, 'total_quantity': per_month.get(m, 0)} for m in months]}
        for name, per_month in sorted(by_type.items())
    ]


def monthly_usage_by_material(usage, material_id) -> list[dict]:
    rows = (usage.filter(batch__material_id=material_id)
            .annotate(month=TruncMonth('procedure_date'))
            .values('batch__material__name', 'month')
            .annotate(total=Sum('quantity'))
            .order_by('-month'))
    return [
        {'material_name': r['batch__material__name'], 'month': month_key(r['month']), 'total_quantity': r['total'] or 0}
        for r in rows
    ]


def vendor_analysis(vendor_id=None) -> list[dict]:
    qs = Vendor.objects.filter(batches__isnull=False)
    if vendor_id:
        qs = qs.filter(pk=vendor_id)
    rows = (qs.values('id', 'name')
            .annotate(
                total_batches=Count('batches', distinct=True),
                current_stock=Coalesce(Sum('batches__quantity'), 0),
                total_purchased=Coalesce(Sum('batches__initial_quantity'), 0),
                materials_supplied=Count('batches__material', distinct=True),
                advance_stock=Coalesce(Sum('batches__quantity', filter=Q(batches__purchase_type=Batch.PURCHASE_ADVANCE)), 0),
                purchased_stock=Coalesce(Sum('batches__quantity', filter=Q(batches__purchase_type=Batch.PURCHASE_PURCHASED)), 0),
            )
            .order_by('-total_purchased', 'name'))
    return [
        {
            'vendor_id': r['id'],
            'vendor_name': r['name'],
            'total_batches': r['total_batches'],
            'current_stock': r['current_stock'],
            'total_purchased': r['total_purchased'],
            'materials_supplied': r['materials_supplied'],
            'advance_stock': r['advance_stock'],
            'purchased_stock': r['purchased_stock'],
        }
        for r in rows
    ]


def advance_materials_by_category() -> list[dict]:
    advance = Q(materials__batches__purchase_type=Batch.PURCHASE_ADVANCE)
    purchased = Q(materials__batches__purchase_type=Batch.PURCHASE_PURCHASED)
    rows = (MaterialType.objects.filter(materials__batches__isnull=False)
            .values('id', 'name')
            .annotate(
                total_materials=Count('materials', distinct=True),
                advance_materials=Count('materials', distinct=True, filter=advance),
                advance_quantity=Coalesce(Sum('materials__batches__quantity', filter=advance), 0),
                purchased_quantity=Coalesce(Sum('materials__batches__quantity', filter=purchased), 0),
            )
            .order_by('-advance_quantity', 'name'))
    return [
        {
            'material_type': r['name'],
            'total_materials': r['total_materials'],
            'advance_materials': r['advance_materials'],
            'advance_quantity': r['advance_quantity'],
            'purchased_quantity': r['purchased_quantity'],
        }
        for r in rows
    ]


def top_used_materials(usage, material_type_id=None, limit: int = 10) -> list[dict]:
    if material_type_id:
        usage = usage.filter(batch__material__material_type_id=material_type_id)
    rows = (usage.values('batch__material_id', 'batch__material__name',
                         'batch__material__material_type__name', 'batch__material__brand__name')
            .annotate(total_used=Sum('quantity'), usage_count=Count('id'))
            .order_by('-total_used', 'batch__material__name')[:limit])
    return [
        {
            'material_id': r['batch__material_id'],
            'material_name': r['batch__material__name'],
            'material_type': r['batch__material__material_type__name'],
            'brand_name': r['batch__material__brand__name'],
            'total_used': r['total_used'] or 0,
            'usage_count': r['usage_count'],
        }
        for r in rows
    ]


def material_totals():
    """Materials annotated with ``total`` = remaining stock over all batches."""
    return Material.objects.annotate(total=Coalesce(Sum('batches__quantity'), 0))


def current_stock_status() -> list[dict]:
    threshold = settings.LOW_STOCK_THRESHOLD
    by_type: dict[str, dict] = {}
    for row in material_totals().values('material_type__name', 'total').order_by('material_type__name'):
        entry = by_type.setdefault(row['material_type__name'], {
            'material_type': row['material_type__name'],
            'total_materials': 0,
            'in_stock_materials': 0,
            'out_of_stock_materials': 0,
            'low_stock_materials': 0,
            'total_stock': 0,
        })
        total = row['total']
        entry['total_materials'] += 1
        entry['total_stock'] += total
        if total > 0:
            entry['in_stock_materials'] += 1
            if total < threshold:
                entry['low_stock_materials'] += 1
        else:
            entry['out_of_stock_materials'] += 1
    return list(by_type.values())


def expiry_analysis(now) -> list[dict]:
    soon = now + timedelta(days=30)
    week = now + timedelta(days=7)
    buckets: dict[str, dict[str, set]] = defaultdict(lambda: {'soon': set(), 'week': set(), 'expired': set()})
    rows = (Batch.objects.filter(quantity__gt=0)
            .values_list('material__material_type__name', 'material_id', 'expiration_date'))
    for type_name, material_id, expires in rows:
        bucket = buckets[type_name]
        if expires <= soon:
            bucket['soon'].add(material_id)
        if expires <= week:
            bucket['week'].add(material_id)
        if expires <= now:
            bucket['expired'].add(material_id)
    result = [
        {
            'material_type': name,
            'expiring_soon': len(b['soon']),
            'expiring_this_week': len(b['week']),
            'expired': len(b['expired']),
        }
        for name, b in buckets.items()
    ]
    return sorted(result, key=lambda r: (-r['expiring_soon'], r['material_type']))


def usage_by_physician(physician_names, usage) -> list[dict]:
    procedures: dict[str, set] = defaultdict(set)
    quantities: dict[str, int] = defaultdict(int)
    for name, patient_id, procedure, day, quantity in (
        usage.annotate(day=TruncDate('procedure_date'))
        .values_list('physician', 'patient_id', 'procedure_name', 'day', 'quantity')
    ):
        procedures[name].add((patient_id, procedure, day))
        quantities[name] += quantity or 0
    result = [
        {'physician': name, 'procedure_count': len(procedures.get(name, ())), 'total_quantity': quantities.get(name, 0)}
        for name in physician_names
    ]
    return sorted(result, key=lambda r: -r['total_quantity'])


def procedures_per_month(usage, months) -> list[dict]:
    counts: dict[str, set] = defaultdict(set)
    for patient_id, procedure, day, month in (
        usage.annotate(day=TruncDate('procedure_date'), month=TruncMonth('procedure_date'))
        .values_list('patient_id', 'procedure_name', 'day', 'month')
    ):
        counts[month_key(month)].add((patient_id, procedure, day))
    return [{'month': m, 'procedure_count': len(counts.get(m, ()))} for m in months]


def build_report(*, date_from=None, date_to=None, material_type_id: Optional[int] = None,
                 material_id: Optional[int] = None, vendor_id: Optional[int] = None, now=None) -> dict:
    now = now or timezone.now()
    months = trailing_months(12, now)
    start, end = _window(date_from, date_to, now)
    usage = UsageRecord.objects.filter(procedure_date__gte=start, procedure_date__lt=end)

    # physician ranking always covers the trailing twelve months
    first_month = add_months(month_start(now), -11)
    recent_usage = UsageRecord.objects.filter(
        procedure_date__gte=first_month, procedure_date__lt=add_months(month_start(now), 1)
    )
    physicians = Physician.objects.order_by('name').values_list('name', flat=True)

    return {
        'monthlyUsageByType': monthly_usage_by_type(usage, months, material_type_id),
        'monthlyUsageByMaterial': monthly_usage_by_material(usage, material_id) if material_id else [],
        'vendorAnalysis': vendor_analysis(vendor_id),
        'advanceMaterialsByCategory': advance_materials_by_category(),
        'topUsedMaterials': top_used_materials(usage, material_type_id),
        'currentStockStatus': current_stock_status(),
        'expiryAnalysis': expiry_analysis(now),
        'usageByPhysician': usage_by_physician(list(physicians), recent_usage),
        'proceduresPerMonth': procedures_per_month(usage, months),
    }


def report_filters() -> dict:
    return {
        'materialTypes': list(MaterialType.objects.order_by('name').values('id', 'name')),
        'materials': [
            {'id': m.id, 'name': m.name, 'size': m.size,
             'materialType': m.material_type.name, 'brand': m.brand.name}
            for m in Material.objects.select_related('material_type', 'brand').order_by('name')
        ],
        'vendors': list(Vendor.objects.order_by('name').values('id', 'name')),
        'physicians': list(UsageRecord.objects.order_by('physician').values_list('physician', flat=True).distinct()),
    }
