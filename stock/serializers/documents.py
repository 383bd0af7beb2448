import os

from django.conf import settings
from rest_framework import serializers

from stock.models import Document
from .common import CleanCharField, WhenField, iso


class DocumentWriteSerializer(serializers.Serializer):
    type = CleanCharField(max_length=100)
    documentNumber = CleanCharField(max_length=255, source='document_number')
    date = WhenField()
    vendor = CleanCharField(max_length=255)
    file = serializers.FileField(required=False, allow_null=True, allow_empty_file=False)

    def validate_documentNumber(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('Document number cannot be empty.')
        qs = Document.objects.filter(document_number=v)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('A document with this number already exists.')
        return v

    def validate_file(self, f):
        if f is None:
            return f
        ext = os.path.splitext(f.name)[1].lower()
        if ext not in settings.DOCUMENT_ALLOWED_EXTENSIONS:
            allowed = ', '.join(settings.DOCUMENT_ALLOWED_EXTENSIONS)
            raise serializers.ValidationError(f'File type {ext or "(none)"} is not allowed. Allowed: {allowed}')
        if f.size > settings.DOCUMENT_MAX_MB * 1024 * 1024:
            raise serializers.ValidationError(f'File exceeds {settings.DOCUMENT_MAX_MB}MB.')
        return f


def format_document(doc: Document, *, with_batches: bool = False) -> dict:
    data = {
        'id': doc.id,
        'type': doc.type,
        'documentNumber': doc.document_number,
        'date': iso(doc.date),
        'vendor': doc.vendor,
        'fileUrl': doc.file.name or None,
        'createdAt': iso(doc.created_at),
        'updatedAt': iso(doc.updated_at),
    }
    if with_batches:
        data['batches'] = [
            {
                'id': b.id,
                'quantity': b.quantity,
                'initialQuantity': b.initial_quantity,
                'expirationDate': iso(b.expiration_date),
                'purchaseType': b.purchase_type,
                'lotNumber': b.lot_number,
                'material': {'id': b.material_id, 'name': b.material.name},
                'vendor': {'id': b.vendor_id, 'name': b.vendor.name},
            }
            for b in doc.batches.select_related('material', 'vendor').order_by('id')
        ]
    return data
