"""
Settings: database backups kept in the default storage.
"""
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Backup
from ..permissions import CanManageSettings
from ..serializers.common import iso
from ..services import backups as backup_service


def _format_backup(b: Backup) -> dict:
    return {
        'id': b.id,
        'filename': b.filename,
        'fileSize': b.file_size,
        'description': b.description,
        'createdBy': b.created_by.username if b.created_by else None,
        'createdAt': iso(b.created_at),
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, CanManageSettings])
def backups(request):
    if request.method == 'POST':
        backup = backup_service.create_backup(request.user, (request.data.get('description') or '').strip())
        return Response(_format_backup(backup), status=status.HTTP_201_CREATED)
    qs = Backup.objects.select_related('created_by').order_by('-created_at', '-id')
    return Response([_format_backup(b) for b in qs])


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageSettings])
def list_storage(request):
    return Response(backup_service.list_storage())


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, CanManageSettings])
def backup_delete(request, identifier: str):
    backup_service.delete_backup(identifier, request.user)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageSettings])
def backup_download(request, name: str):
    fh, filename = backup_service.open_backup(name)
    return FileResponse(fh, as_attachment=True, filename=filename, content_type='application/json')


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageSettings])
def backup_restore(request):
    upload = request.FILES.get('file')
    if upload is not None:
        count = backup_service.restore_backup(upload.read(), request.user, upload.name)
    elif request.data.get('filename'):
        count = backup_service.restore_from_storage(request.data['filename'], request.user)
    else:
        raise ValidationError({'file': 'Upload a backup file or name a stored backup.'})
    return Response({'ok': True, 'restored': count})
