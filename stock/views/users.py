"""
Settings: user accounts, the permission catalogue and the data log.
"""
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Permission, User
from ..permissions import CanManageSettings, CanManageUsers
from ..serializers.auth import UserWriteSerializer, format_user
from ..serializers.common import iso
from ..services import audit, users as user_service
from ..services.params import parse_int, parse_when


def _user_queryset():
    return User.objects.select_related('created_by').prefetch_related('permissions')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, CanManageUsers])
def users(request):
    if request.method == 'POST':
        s = UserWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user = user_service.create_user(s.validated_data, request.user)
        return Response(format_user(_user_queryset().get(pk=user.pk)), status=status.HTTP_201_CREATED)
    return Response([format_user(u) for u in _user_queryset().order_by('username')])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, CanManageUsers])
def user_detail(request, user_id: int):
    user = get_object_or_404(_user_queryset(), pk=user_id)
    if request.method == 'GET':
        return Response(format_user(user))
    if request.method == 'DELETE':
        user_service.delete_user(user, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = UserWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user_service.update_user(user, s.validated_data, request.user)
    return Response(format_user(_user_queryset().get(pk=user.pk)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageUsers])
def permissions_list(request):
    return Response(list(Permission.objects.order_by('name').values('id', 'name', 'description')))


# ---------------------------------------------------------------------
# Data log
# ---------------------------------------------------------------------
def _format_log(log) -> dict:
    return {
        'id': log.id,
        'action': log.action,
        'tableName': log.table_name,
        'recordId': log.record_id,
        'oldValues': log.old_values,
        'newValues': log.new_values,
        'description': log.description,
        'timestamp': iso(log.timestamp),
        'user': {'id': log.user_id, 'username': log.user.username} if log.user else None,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageSettings])
def data_log(request):
    qp = request.query_params
    if qp.get('distinct') == 'tableName':
        return Response(audit.distinct_tables())

    date_to = parse_when(qp.get('dateTo'), 'dateTo')
    if date_to and len(qp.get('dateTo', '')) <= 10:
        # a bare date covers the whole day
        date_to = date_to.replace(hour=23, minute=59, second=59, microsecond=999999)
    page = parse_int(qp.get('page'), 'page', minimum=1) or 1
    page_size = min(parse_int(qp.get('pageSize'), 'pageSize', minimum=1) or 50, 500)
    logs, total = audit.query_logs(
        action=(qp.get('action') or '').strip(),
        table=(qp.get('tableName') or '').strip(),
        date_from=parse_when(qp.get('dateFrom'), 'dateFrom'),
        date_to=date_to,
        username=(qp.get('user') or '').strip(),
        page=page,
        page_size=page_size,
    )
    return Response({'logs': [_format_log(log) for log in logs], 'total': total, 'page': page, 'pageSize': page_size})
