"""
Database backups.

A backup is a ``dumpdata`` JSON fixture of the stock app stored under
``BACKUP_PREFIX`` in the default storage.  Restoring clears the domain
tables and loads the fixture back in one transaction; user accounts and
permissions are upserted by primary key rather than deleted, so the
operator performing the restore keeps their session.  A fixture whose
account names now belong to different rows is refused before anything
is cleared.
"""
from __future__ import annotations

import io
import json
import logging
import os
import tempfile

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from stock.models import (
    Backup, Batch, BatchDocument, Brand, DataLog, Document, Material, MaterialType, Permission, Physician,
    UsageRecord, User, Vendor,
)
from stock.services import audit

logger = logging.getLogger(__name__)

# Deletion order respects foreign keys
RESTORE_CLEAR_ORDER = [
    DataLog, UsageRecord, BatchDocument, Batch, Document, Material, Brand, MaterialType, Vendor, Physician,
]


def _prefix() -> str:
    return settings.BACKUP_PREFIX.strip('/')


def backup_name(name: str) -> str:
    """Normalise a user-supplied object name to a path under the backup prefix."""
    name = os.path.normpath((name or '').strip().lstrip('/'))
    if name.startswith('..') or name in ('', '.'):
        raise NotFound('Backup not found.')
    if not name.startswith(_prefix() + '/'):
        name = f'{_prefix()}/{os.path.basename(name)}'
    return name


def dump_stock_data() -> bytes:
    buf = io.StringIO()
    call_command('dumpdata', 'stock', exclude=['stock.Backup'], format='json', stdout=buf)
    return buf.getvalue().encode('utf-8')


def create_backup(user, description: str = '') -> Backup:
    content = dump_stock_data()
    stamp = timezone.now().strftime('%Y%m%dT%H%M%S%f')
    saved = default_storage.save(f'{_prefix()}/medstock-backup-{stamp}.json', ContentFile(content))
    with transaction.atomic():
        backup = Backup.objects.create(
            filename=saved, file_size=len(content), description=description or '', created_by=user,
        )
        audit.log_create('Backup', backup.id, audit.snapshot(backup), user, f'Created backup {saved}')
    logger.info('backup %s written (%d bytes)', saved, len(content))
    return backup


def list_storage() -> list[dict]:
    try:
        _dirs, files = default_storage.listdir(_prefix())
    except FileNotFoundError:
        return []
    objects = []
    for filename in sorted(files, reverse=True):
        name = f'{_prefix()}/{filename}'
        objects.append({
            'name': name,
            'size': default_storage.size(name),
            'lastModified': default_storage.get_modified_time(name).isoformat(),
        })
    return objects


def open_backup(name: str):
    name = backup_name(name)
    if not default_storage.exists(name):
        raise NotFound('Backup not found.')
    return default_storage.open(name, 'rb'), os.path.basename(name)


def delete_backup(identifier: str, user) -> None:
    record = None
    if str(identifier).isdigit():
        record = Backup.objects.filter(pk=int(identifier)).first()
    name = record.filename if record else backup_name(identifier)
    if record is None:
        record = Backup.objects.filter(filename=name).first()
    exists = default_storage.exists(name)
    if record is None and not exists:
        raise NotFound('Backup not found.')
    with transaction.atomic():
        if record is not None:
            before = audit.snapshot(record)
            pk = record.pk
            record.delete()
            audit.log_delete('Backup', pk, before, user, f'Deleted backup {name}')
    if exists:
        default_storage.delete(name)


def _validate_fixture(content: bytes) -> list:
    try:
        data = json.loads(content.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        raise ValidationError({'file': 'Backup is not valid JSON.'})
    if not isinstance(data, list) or any(not isinstance(o, dict) or 'model' not in o for o in data):
        raise ValidationError({'file': 'Backup is not a fixture produced by this application.'})
    return data


def _check_account_conflicts(data: list) -> None:
    """Accounts are upserted by pk, so a name now held by another pk cannot be loaded."""
    for label, model, field in (('stock.user', User, 'username'), ('stock.permission', Permission, 'name')):
        wanted = {
            o['fields'][field]: o.get('pk') for o in data
            if o['model'].lower() == label and isinstance(o.get('fields'), dict) and field in o['fields']
        }
        taken = model.objects.filter(**{f'{field}__in': list(wanted)}).values_list(field, 'pk')
        clashes = sorted(value for value, pk in taken if wanted[value] != pk)
        if clashes:
            raise ValidationError({'file': f'Backup conflicts with existing {model._meta.verbose_name_plural} '
                                           f'that were re-created since: {", ".join(clashes)}.'})


def restore_backup(content: bytes, user, source: str = '') -> int:
    """Replace domain data with the fixture in ``content``; returns the object count."""
    data = _validate_fixture(content)
    _check_account_conflicts(data)
    count = len(data)
    fd, path = tempfile.mkstemp(suffix='.json')
    try:
        with os.fdopen(fd, 'wb') as fh:
            fh.write(content)
        with transaction.atomic():
            for model in RESTORE_CLEAR_ORDER:
                model.objects.all().delete()
            call_command('loaddata', path, verbosity=0)
            audit.record_change(action=DataLog.ACTION_UPDATE, table='Backup', record_id=source or 'upload',
                                user=user,
                                new_values={'source': source or 'upload', 'objects': count},
                                description=f'Restored {count} objects from {source or "uploaded file"}')
    except IntegrityError as exc:
        logger.warning('restore from %s rejected: %s', source or 'upload', exc)
        raise ValidationError({'file': f'Backup could not be loaded: {exc}'})
    finally:
        os.unlink(path)
    logger.warning('database restored from %s', source or 'upload')
    return count


def restore_from_storage(name: str, user) -> int:
    fh, _ = open_backup(name)
    with fh:
        content = fh.read()
    return restore_backup(content, user, backup_name(name))
