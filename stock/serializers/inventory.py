from rest_framework import serializers

from stock.models import Batch, Brand, Document, Material, MaterialType, Vendor
from .common import CleanCharField, WhenField, iso, name_ref


class MaterialWriteSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    size = CleanCharField(max_length=128, required=False, allow_blank=True, allow_null=True)
    brandId = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all(), source='brand')
    materialTypeId = serializers.PrimaryKeyRelatedField(queryset=MaterialType.objects.all(), source='material_type')

    def validate_name(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('Name is required.')
        return v


class BatchWriteSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)
    initialQuantity = serializers.IntegerField(min_value=0, required=False, allow_null=True, source='initial_quantity')
    expirationDate = WhenField(source='expiration_date')
    vendorId = serializers.PrimaryKeyRelatedField(queryset=Vendor.objects.all(), source='vendor')
    documentIds = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)
    documentId = serializers.IntegerField(required=False, allow_null=True)
    storageLocation = CleanCharField(max_length=255, required=False, allow_blank=True, allow_null=True, source='storage_location')
    purchaseType = serializers.ChoiceField(choices=[c[0] for c in Batch.PURCHASE_TYPE_CHOICES], source='purchase_type')
    lotNumber = CleanCharField(max_length=255, required=False, allow_blank=True, allow_null=True, source='lot_number')
    cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)

    def validate(self, attrs):
        # document links are replaced only when the caller sends them
        sent = 'documentIds' in attrs or 'documentId' in attrs
        ids = list(attrs.pop('documentIds', None) or [])
        single = attrs.pop('documentId', None)
        if not sent:
            return self._blank_text(attrs)
        if single and single not in ids:
            ids.append(single)
        if ids:
            found = set(Document.objects.filter(id__in=ids).values_list('id', flat=True))
            missing = sorted(set(ids) - found)
            if missing:
                raise serializers.ValidationError({'documentIds': f'Unknown documents: {missing}'})
        attrs['document_ids'] = ids
        return self._blank_text(attrs)

    @staticmethod
    def _blank_text(attrs):
        for key in ('storage_location', 'lot_number'):
            if key in attrs and attrs[key] is None:
                attrs[key] = ''
        return attrs


def format_document_ref(doc: Document) -> dict:
    return {
        'id': doc.id,
        'type': doc.type,
        'documentNumber': doc.document_number,
        'date': iso(doc.date),
        'vendor': doc.vendor,
        'fileUrl': doc.file.name or None,
    }


def format_batch(batch: Batch) -> dict:
    added_by = batch.added_by
    return {
        'id': batch.id,
        'materialId': batch.material_id,
        'quantity': batch.quantity,
        'initialQuantity': batch.initial_quantity,
        'expirationDate': iso(batch.expiration_date),
        'purchaseType': batch.purchase_type,
        'storageLocation': batch.storage_location,
        'lotNumber': batch.lot_number,
        'cost': str(batch.cost) if batch.cost is not None else None,
        'stockAddedDate': iso(batch.stock_added_date),
        'vendor': name_ref(batch.vendor),
        'addedBy': {'id': added_by.id, 'username': added_by.username} if added_by else None,
        'documents': [format_document_ref(d) for d in batch.documents.all()],
        'createdAt': iso(batch.created_at),
        'updatedAt': iso(batch.updated_at),
    }


def format_material(material: Material, batches=None) -> dict:
    if batches is None:
        batches = list(material.batches.all())
    return {
        'id': material.id,
        'name': material.name,
        'size': material.size,
        'brand': name_ref(material.brand),
        'materialType': name_ref(material.material_type),
        'totalQuantity': sum(b.quantity for b in batches),
        'batches': [format_batch(b) for b in batches],
        'createdAt': iso(material.created_at),
        'updatedAt': iso(material.updated_at),
    }
