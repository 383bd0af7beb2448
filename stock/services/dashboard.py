"""
Dashboard summary.

The payload is cached under ``DASHBOARD_CACHE_KEY``; any audited change
drops the entry (see ``stock.services.audit``) and ``refresh_caches``
re-warms it.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce, TruncDate, TruncMonth
from django.utils import timezone

from stock.models import Batch, DataLog, Document, Material, MaterialType, UsageRecord, Vendor
from stock.serializers.common import iso
from stock.services.analytics import material_totals, month_key, procedure_keys, trailing_months
from stock.services.audit import DASHBOARD_CACHE_KEY
from stock.services.params import add_months, month_start


def recent_activity(limit: int = 10) -> list[dict]:
    return [
        {
            'id': log.id,
            'action': log.action,
            'tableName': log.table_name,
            'recordId': log.record_id,
            'description': log.description,
            'timestamp': iso(log.timestamp),
            'user': {'username': log.user.username, 'role': log.user.role} if log.user else None,
        }
        for log in DataLog.objects.select_related('user').order_by('-timestamp', '-id')[:limit]
    ]


def low_stock_alerts(limit: int = 10) -> list[dict]:
    rows = (material_totals()
            .filter(total__gt=0, total__lt=settings.LOW_STOCK_THRESHOLD)
            .values('id', 'name', 'size', 'material_type__name', 'brand__name', 'total')
            .order_by('total', 'name')[:limit])
    return [
        {
            'id': r['id'],
            'material_name': r['name'],
            'size': r['size'],
            'material_type': r['material_type__name'],
            'brand_name': r['brand__name'],
            'total_quantity': r['total'],
        }
        for r in rows
    ]


def expiring_batches(now):
    horizon = now + timedelta(days=settings.EXPIRY_WARNING_DAYS)
    return Batch.objects.filter(quantity__gt=0, expiration_date__gt=now, expiration_date__lte=horizon)


def expiring_soon_alerts(now, limit: int = 10) -> list[dict]:
    batches = (expiring_batches(now)
               .select_related('material__material_type', 'material__brand', 'vendor')
               .order_by('expiration_date', 'id')[:limit])
    return [
        {
            'id': b.id,
            'material_id': b.material_id,
            'material_name': b.material.name,
            'size': b.material.size,
            'material_type': b.material.material_type.name,
            'brand_name': b.material.brand.name,
            'quantity': b.quantity,
            'expirationDate': iso(b.expiration_date),
            'lotNumber': b.lot_number,
            'vendor_name': b.vendor.name,
        }
        for b in batches
    ]


def summary_stats(now) -> dict:
    last_30 = UsageRecord.objects.filter(procedure_date__gte=now - timedelta(days=30))
    return {
        'total_materials': Material.objects.count(),
        'active_batches': Batch.objects.filter(quantity__gt=0).count(),
        'total_vendors': Vendor.objects.count(),
        'usage_last_30_days': len(procedure_keys(last_30)),
        'total_documents': Document.objects.count(),
        'low_stock_materials': material_totals().filter(
            total__gt=0, total__lt=settings.LOW_STOCK_THRESHOLD).count(),
        'expiring_soon_count': expiring_batches(now).count(),
    }


def inventory_by_category() -> list[dict]:
    rows = (MaterialType.objects.values('id', 'name')
            .annotate(total_materials=Count('materials', distinct=True),
                      total_stock=Coalesce(Sum('materials__batches__quantity'), 0))
            .order_by('-total_stock', 'name'))
    return [
        {'material_type': r['name'], 'total_materials': r['total_materials'], 'total_stock': r['total_stock']}
        for r in rows
    ]


def monthly_usage_trends(now, months: int = 6) -> list[dict]:
    keys = trailing_months(months, now)
    start = add_months(month_start(now), -(months - 1))
    procedures: dict[str, set] = defaultdict(set)
    quantities: dict[str, int] = defaultdict(int)
    rows = (UsageRecord.objects.filter(procedure_date__gte=start)
            .annotate(day=TruncDate('procedure_date'), month=TruncMonth('procedure_date'))
            .values_list('month', 'patient_id', 'procedure_name', 'day', 'quantity'))
    for month, patient_id, procedure, day, quantity in rows:
        key = month_key(month)
        procedures[key].add((patient_id, procedure, day))
        quantities[key] += quantity
    return [
        {'month': k, 'procedure_count': len(procedures.get(k, ())), 'total_quantity': quantities.get(k, 0)}
        for k in reversed(keys)
    ]


def advance_materials_used(now, limit: int = 10) -> list[dict]:
    rows = (UsageRecord.objects
            .filter(batch__purchase_type=Batch.PURCHASE_ADVANCE, procedure_date__gte=now - timedelta(days=30))
            .values('batch__material_id', 'batch__material__name',
                    'batch__material__material_type__name', 'batch__material__brand__name')
            .annotate(total_used=Sum('quantity'))
            .filter(total_used__gt=0)
            .order_by('-total_used', 'batch__material__name')[:limit])
    return [
        {
            'id': r['batch__material_id'],
            'material_name': r['batch__material__name'],
            'material_type': r['batch__material__material_type__name'],
            'brand_name': r['batch__material__brand__name'],
            'total_used': r['total_used'],
        }
        for r in rows
    ]


def build_dashboard(now=None) -> dict:
    now = now or timezone.now()
    return {
        'recentActivity': recent_activity(),
        'lowStockAlerts': low_stock_alerts(),
        'expiringSoonAlerts': expiring_soon_alerts(now),
        'summaryStats': summary_stats(now),
        'inventoryByCategory': inventory_by_category(),
        'monthlyUsageTrends': monthly_usage_trends(now),
        'advanceMaterialsUsed': advance_materials_used(now),
        'generatedAt': iso(now),
    }


def cached_dashboard() -> dict:
    payload = cache.get(DASHBOARD_CACHE_KEY)
    if payload is None:
        payload = build_dashboard()
        cache.set(DASHBOARD_CACHE_KEY, payload, settings.DASHBOARD_CACHE_SECONDS)
    return payload


def warm_dashboard_cache() -> dict:
    payload = build_dashboard()
    cache.set(DASHBOARD_CACHE_KEY, payload, settings.DASHBOARD_CACHE_SECONDS)
    return payload
