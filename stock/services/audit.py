"""
Audit trail helpers.

Every mutation of domain data goes through one of ``log_create``,
``log_update`` or ``log_delete`` inside the caller's transaction, so the
log row commits or rolls back together with the change it describes.
"""
from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, Iterable, Optional

from django.core.cache import cache
from django.db import models, transaction

from stock.models import DataLog, User
from stock.services.realtime import broadcast_refresh

logger = logging.getLogger(__name__)

DASHBOARD_CACHE_KEY = 'dashboard:summary'

_HIDDEN_FIELDS = {'password'}


def snapshot(obj: models.Model, *, exclude: Iterable[str] = (), **extra) -> Dict[str, Any]:
    """Concrete field values of ``obj`` keyed by attribute name (``brand_id``...)."""
    skip = _HIDDEN_FIELDS | set(exclude)
    data: Dict[str, Any] = {}
    for field in obj._meta.concrete_fields:
        if field.name in skip or field.attname in skip:
            continue
        value = getattr(obj, field.attname)
        if isinstance(field, models.FileField):
            value = value.name or None
        data[field.attname] = value
    data.update(extra)
    return data


def record_change(
    *,
    action: str,
    table: str,
    record_id,
    user: Optional[User] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    description: str = '',
) -> DataLog:
    entry = DataLog.objects.create(
        action=action,
        table_name=table,
        record_id=str(record_id)[:64],
        old_values=old_values,
        new_values=new_values,
        user=user if getattr(user, 'pk', None) else None,
        description=description[:500],
    )
    transaction.on_commit(partial(cache.delete, DASHBOARD_CACHE_KEY))
    transaction.on_commit(partial(broadcast_refresh, table=table, action=action, recordId=str(record_id)))
    logger.info('%s %s:%s by %s', action, table, record_id, getattr(user, 'username', None))
    return entry


def log_create(table: str, record_id, new_values, user=None, description: str = '') -> DataLog:
    return record_change(action=DataLog.ACTION_CREATE, table=table, record_id=record_id,
                         user=user, new_values=new_values, description=description)


def log_update(table: str, record_id, old_values, new_values, user=None, description: str = '') -> DataLog:
    return record_change(action=DataLog.ACTION_UPDATE, table=table, record_id=record_id,
                         user=user, old_values=old_values, new_values=new_values, description=description)


def log_delete(table: str, record_id, old_values, user=None, description: str = '') -> DataLog:
    return record_change(action=DataLog.ACTION_DELETE, table=table, record_id=record_id,
                         user=user, old_values=old_values, description=description)


def query_logs(*, action=None, table=None, date_from=None, date_to=None, username=None,
               page: int = 1, page_size: int = 50):
    """Filtered, newest-first page of audit entries and the total match count."""
    qs = DataLog.objects.select_related('user')
    if action:
        qs = qs.filter(action=action.upper())
    if table:
        qs = qs.filter(table_name=table)
    if date_from:
        qs = qs.filter(timestamp__gte=date_from)
    if date_to:
        qs = qs.filter(timestamp__lte=date_to)
    if username:
        qs = qs.filter(user__username__icontains=username)
    total = qs.count()
    offset = (page - 1) * page_size
    return list(qs.order_by('-timestamp', '-id')[offset:offset + page_size]), total


def distinct_tables() -> list[str]:
    return list(DataLog.objects.order_by('table_name').values_list('table_name', flat=True).distinct())
