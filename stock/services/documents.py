"""
Purchase documents and their stored files.

Files live in Django's default storage under ``documents/``; the object
name embeds a sanitised document number and an upload timestamp so
re-uploads never collide.
"""
from __future__ import annotations

import logging
import mimetypes
import os
import re
from functools import partial

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from stock.exceptions import ResourceInUse
from stock.models import Document
from stock.services import audit

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r'[^A-Za-z0-9.\-]')


def stored_name(document_number: str, original_name: str) -> str:
    ext = os.path.splitext(original_name)[1].lower()
    stamp = int(timezone.now().timestamp() * 1000)
    return f"{_UNSAFE.sub('_', document_number)}_{stamp}{ext}"


def _remove_file(name: str) -> None:
    if name and default_storage.exists(name):
        default_storage.delete(name)
        logger.info('removed stored file %s', name)


def list_documents(*, search='', vendor='', doc_type='', date_from=None, date_to=None):
    qs = Document.objects.all()
    if search:
        qs = qs.filter(document_number__icontains=search)
    if vendor:
        qs = qs.filter(vendor__icontains=vendor)
    if doc_type:
        qs = qs.filter(type__iexact=doc_type)
    if date_from:
        qs = qs.filter(date__gte=date_from)
    if date_to:
        qs = qs.filter(date__lte=date_to)
    return qs.order_by('-date', '-id')


def create_document(data: dict, user) -> Document:
    upload = data.get('file')
    doc = Document(
        type=data['type'],
        document_number=data['document_number'],
        date=data['date'],
        vendor=data['vendor'],
    )
    if upload:
        doc.file.save(stored_name(doc.document_number, upload.name), upload, save=False)
    try:
        with transaction.atomic():
            doc.save()
            audit.log_create('Document', doc.id, audit.snapshot(doc), user,
                             f'Uploaded document {doc.document_number}')
    except Exception:
        _remove_file(doc.file.name)
        raise
    return doc


def update_document(doc: Document, data: dict, user) -> Document:
    upload = data.get('file')
    new_file = None
    try:
        with transaction.atomic():
            before = audit.snapshot(doc)
            for attr in ('type', 'document_number', 'date', 'vendor'):
                if attr in data:
                    setattr(doc, attr, data[attr])
            old_file = doc.file.name
            if upload:
                doc.file.save(stored_name(doc.document_number, upload.name), upload, save=False)
                new_file = doc.file.name
                if old_file:
                    transaction.on_commit(partial(_remove_file, old_file))
            doc.save()
            audit.log_update('Document', doc.id, before, audit.snapshot(doc), user,
                             f'Updated document {doc.document_number}')
    except Exception:
        if new_file:
            _remove_file(new_file)
        raise
    return doc


def delete_document(doc: Document, user) -> None:
    if doc.batch_links.exists():
        raise ResourceInUse('Document is linked to batches and cannot be deleted.')
    with transaction.atomic():
        before = audit.snapshot(doc)
        doc_id = doc.id
        doc.delete()
        if before['file']:
            transaction.on_commit(partial(_remove_file, before['file']))
        audit.log_delete('Document', doc_id, before, user, f'Deleted document {before["document_number"]}')


def open_stored_file(path: str):
    """Return ``(file, content_type)`` for a stored document object."""
    name = os.path.normpath(path or '').lstrip('/')
    if not name or name.startswith('..') or name == '.':
        raise NotFound('File not found.')
    if name == settings.BACKUP_PREFIX or name.startswith(settings.BACKUP_PREFIX.rstrip('/') + '/'):
        raise PermissionDenied('Backups are not served here.')
    if not default_storage.exists(name):
        raise NotFound('File not found.')
    content_type = mimetypes.guess_type(name)[0] or 'application/octet-stream'
    return default_storage.open(name, 'rb'), content_type
