"""
Inventory endpoints: materials, their batches and the filter options
shown on the inventory page.
"""
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Batch, Brand, MaterialType, Vendor
from ..permissions import CanEditMaterials, ReadOnly
from ..serializers.inventory import BatchWriteSerializer, MaterialWriteSerializer, format_batch, format_material
from ..services import inventory
from ..services.params import parse_int


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ReadOnly | CanEditMaterials])
def materials(request):
    if request.method == 'POST':
        s = MaterialWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        material = inventory.create_material(s.validated_data, request.user)
        material = inventory.material_queryset().get(pk=material.pk)
        return Response(format_material(material), status=status.HTTP_201_CREATED)

    qp = request.query_params
    rows, total = inventory.list_materials(
        search=(qp.get('search') or '').strip(),
        brand_id=parse_int(qp.get('brand'), 'brand'),
        material_type_id=parse_int(qp.get('materialType'), 'materialType'),
        vendor_id=parse_int(qp.get('vendor'), 'vendor'),
        purchase_type=(qp.get('purchaseType') or '').strip(),
        stock_status=(qp.get('stockStatus') or '').strip(),
    )
    return Response({
        'materials': [format_material(m, batches) for m, batches in rows],
        'totalCount': total,
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, ReadOnly | CanEditMaterials])
def material_detail(request, material_id: int):
    material = get_object_or_404(inventory.material_queryset(), pk=material_id)
    if request.method == 'GET':
        return Response(format_material(material))
    if request.method == 'DELETE':
        inventory.delete_material(material, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = MaterialWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    inventory.update_material(material, s.validated_data, request.user)
    return Response(format_material(inventory.material_queryset().get(pk=material.pk)))


@api_view(['GET'])
def inventory_filters(request):
    return Response({
        'materialTypes': list(MaterialType.objects.order_by('name').values('id', 'name')),
        'brands': list(Brand.objects.order_by('name').values('id', 'name')),
        'vendors': list(Vendor.objects.order_by('name').values('id', 'name')),
        'purchaseTypes': inventory.PURCHASE_TYPES,
        'stockStatuses': inventory.STOCK_STATUSES,
    })


# ---------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ReadOnly | CanEditMaterials])
def batches(request, material_id: int):
    material = get_object_or_404(inventory.material_queryset(), pk=material_id)
    if request.method == 'GET':
        qs = inventory.batch_queryset().filter(material=material).order_by('-created_at', '-id')
        return Response([format_batch(b) for b in qs])
    s = BatchWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    batch = inventory.create_batch(material, s.validated_data, request.user)
    return Response(format_batch(inventory.batch_queryset().get(pk=batch.pk)), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, ReadOnly | CanEditMaterials])
def batch_detail(request, material_id: int, batch_id: int):
    batch = get_object_or_404(
        Batch.objects.select_related('material', 'vendor', 'added_by'), pk=batch_id, material_id=material_id
    )
    if request.method == 'GET':
        return Response(format_batch(batch))
    if request.method == 'DELETE':
        inventory.delete_batch(batch, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = BatchWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    inventory.update_batch(batch, s.validated_data, request.user)
    return Response(format_batch(inventory.batch_queryset().get(pk=batch.pk)))
