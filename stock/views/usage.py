"""
Usage endpoints.  Recording, editing and deleting usage moves batch
stock; see ``stock.services.usage`` for the transactional rules.
"""
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import CanRecordUsage, ReadOnly
from ..serializers.usage import ProcedureQuerySerializer, UsageWriteSerializer, format_usage
from ..services import usage as usage_service
from ..services.params import parse_flag, parse_int, parse_when


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ReadOnly | CanRecordUsage])
def usage_records(request):
    if request.method == 'POST':
        s = UsageWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        record = usage_service.record_usage(s.validated_data, request.user)
        record = usage_service.usage_queryset().get(pk=record.pk)
        return Response(format_usage(record), status=status.HTTP_201_CREATED)

    qp = request.query_params
    qs = usage_service.list_usage(
        search=(qp.get('search') or '').strip(),
        physician=(qp.get('physician') or '').strip(),
        date_from=parse_when(qp.get('dateFrom'), 'dateFrom'),
        date_to=parse_when(qp.get('dateTo'), 'dateTo'),
        yesterday=parse_flag(qp.get('isYesterday')),
        material_type_id=parse_int(qp.get('materialType'), 'materialType'),
        material_id=parse_int(qp.get('advancedMaterialId'), 'advancedMaterialId'),
        batch_id=parse_int(qp.get('advancedBatchId'), 'advancedBatchId'),
    )
    return Response([format_usage(r) for r in qs])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, ReadOnly | CanRecordUsage])
def usage_detail(request, usage_id: int):
    record = get_object_or_404(usage_service.usage_queryset(), pk=usage_id)
    if request.method == 'GET':
        return Response(format_usage(record))
    if request.method == 'DELETE':
        usage_service.delete_usage(record, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = UsageWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    usage_service.update_usage(record, s.validated_data, request.user)
    return Response(format_usage(usage_service.usage_queryset().get(pk=record.pk)))


@api_view(['GET'])
def usage_filters(request):
    return Response(usage_service.usage_filters())


@api_view(['GET'])
def procedure_view(request):
    """All usage rows of one procedure (patient, procedure name, day)."""
    s = ProcedureQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    records = usage_service.procedure_records(
        patient_name=vd['patientName'],
        patient_id=vd['patientId'],
        procedure_name=vd['procedureName'],
        procedure_date=vd['procedureDate'],
    )
    if not records:
        raise NotFound('No usage records found for this procedure.')
    return Response([format_usage(r) for r in records])
