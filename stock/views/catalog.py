"""
Settings: master data (material types, brands, vendors, physicians).

Everyone signed in may read the lists; changes need Manage Settings.
"""
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Brand, MaterialType, Physician, Vendor
from ..permissions import CanManageSettings, ReadOnly
from ..serializers.settings import BrandSerializer, MaterialTypeSerializer, PhysicianSerializer, VendorSerializer
from ..services import catalog

SETTINGS_PERMISSIONS = [IsAuthenticated, ReadOnly | CanManageSettings]


def _collection(request, model, serializer_class):
    if request.method == 'GET':
        return Response(serializer_class(model.objects.order_by('name', 'id'), many=True).data)
    s = serializer_class(data=request.data)
    s.is_valid(raise_exception=True)
    obj = catalog.create_entry(s, request.user)
    return Response(serializer_class(obj).data, status=status.HTTP_201_CREATED)


def _member(request, model, serializer_class, pk):
    obj = get_object_or_404(model, pk=pk)
    if request.method == 'GET':
        return Response(serializer_class(obj).data)
    if request.method == 'DELETE':
        catalog.delete_entry(obj, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = serializer_class(obj, data=request.data, partial=request.method == 'PATCH')
    s.is_valid(raise_exception=True)
    obj = catalog.update_entry(s, request.user)
    return Response(serializer_class(obj).data)


# ---------------------------------------------------------------------
# Material types
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes(SETTINGS_PERMISSIONS)
def material_types(request):
    return _collection(request, MaterialType, MaterialTypeSerializer)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(SETTINGS_PERMISSIONS)
def material_type_detail(request, pk: int):
    return _member(request, MaterialType, MaterialTypeSerializer, pk)


# ---------------------------------------------------------------------
# Brands
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes(SETTINGS_PERMISSIONS)
def brands(request):
    return _collection(request, Brand, BrandSerializer)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(SETTINGS_PERMISSIONS)
def brand_detail(request, pk: int):
    return _member(request, Brand, BrandSerializer, pk)


# ---------------------------------------------------------------------
# Vendors
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes(SETTINGS_PERMISSIONS)
def vendors(request):
    return _collection(request, Vendor, VendorSerializer)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(SETTINGS_PERMISSIONS)
def vendor_detail(request, pk: int):
    return _member(request, Vendor, VendorSerializer, pk)


# ---------------------------------------------------------------------
# Physicians
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes(SETTINGS_PERMISSIONS)
def physicians(request):
    return _collection(request, Physician, PhysicianSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(SETTINGS_PERMISSIONS)
def physician_detail(request, pk: int):
    if request.method != 'PATCH':
        return _member(request, Physician, PhysicianSerializer, pk)
    physician = get_object_or_404(Physician, pk=pk)
    active = request.data.get('isActive')
    if not isinstance(active, bool):
        raise ValidationError({'isActive': 'Must be a boolean.'})
    physician = catalog.set_physician_active(physician, active, request.user)
    return Response(PhysicianSerializer(physician).data)
