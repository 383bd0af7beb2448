"""
Document endpoints and the stored-file route.
"""
from django.http import FileResponse
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Document
from ..permissions import CanEditDocuments, ReadOnly
from ..serializers.documents import DocumentWriteSerializer, format_document
from ..services import documents as document_service
from ..services.params import parse_flag, parse_when


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ReadOnly | CanEditDocuments])
def documents(request):
    if request.method == 'POST':
        s = DocumentWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        doc = document_service.create_document(s.validated_data, request.user)
        return Response(format_document(doc), status=status.HTTP_201_CREATED)

    qp = request.query_params
    qs = document_service.list_documents(
        search=(qp.get('search') or '').strip(),
        vendor=(qp.get('vendor') or '').strip(),
        doc_type=(qp.get('type') or '').strip(),
        date_from=parse_when(qp.get('dateFrom'), 'dateFrom'),
        date_to=parse_when(qp.get('dateTo'), 'dateTo'),
    )
    if parse_flag(qp.get('countOnly')):
        return Response({'count': qs.count()})
    return Response([format_document(d) for d in qs])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, ReadOnly | CanEditDocuments])
def document_detail(request, document_id: int):
    doc = get_object_or_404(Document, pk=document_id)
    if request.method == 'GET':
        return Response(format_document(doc, with_batches=True))
    if request.method == 'DELETE':
        document_service.delete_document(doc, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = DocumentWriteSerializer(doc, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    doc = document_service.update_document(doc, s.validated_data, request.user)
    return Response(format_document(doc, with_batches=True))


@api_view(['GET'])
def stored_file(request, path: str):
    fh, content_type = document_service.open_stored_file(path)
    return FileResponse(fh, content_type=content_type)
