from rest_framework import serializers

from stock.models import UsageRecord
from .common import CleanCharField, WhenField, iso, name_ref


class UsageWriteSerializer(serializers.Serializer):
    patientName = CleanCharField(max_length=255, source='patient_name')
    patientId = CleanCharField(max_length=128, source='patient_id')
    procedureName = CleanCharField(max_length=255, source='procedure_name')
    procedureDate = WhenField(source='procedure_date')
    physician = CleanCharField(max_length=255)
    batchId = serializers.IntegerField(source='batch_id')
    quantity = serializers.IntegerField(min_value=1)


class ProcedureQuerySerializer(serializers.Serializer):
    patientName = serializers.CharField()
    patientId = serializers.CharField()
    procedureName = serializers.CharField()
    procedureDate = WhenField()


def format_usage(record: UsageRecord) -> dict:
    batch = record.batch
    material = batch.material
    return {
        'id': record.id,
        'patientName': record.patient_name,
        'patientId': record.patient_id,
        'procedureName': record.procedure_name,
        'procedureDate': iso(record.procedure_date),
        'physician': record.physician,
        'quantity': record.quantity,
        'batchId': batch.id,
        'user': {'id': record.user_id, 'username': record.user.username},
        'batch': {
            'id': batch.id,
            'quantity': batch.quantity,
            'lotNumber': batch.lot_number,
            'expirationDate': iso(batch.expiration_date),
            'purchaseType': batch.purchase_type,
            'vendor': name_ref(batch.vendor),
            'material': {
                'id': material.id,
                'name': material.name,
                'size': material.size,
                'brand': name_ref(material.brand),
                'materialType': name_ref(material.material_type),
            },
        },
        'createdAt': iso(record.created_at),
        'updatedAt': iso(record.updated_at),
    }
