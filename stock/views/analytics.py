"""
Analytics and dashboard endpoints (read-only, any authenticated user).
"""
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..services import analytics, dashboard
from ..services.params import parse_int, parse_when


@api_view(['GET'])
def analytics_report(request):
    qp = request.query_params
    return Response(analytics.build_report(
        date_from=parse_when(qp.get('dateFrom'), 'dateFrom'),
        date_to=parse_when(qp.get('dateTo'), 'dateTo'),
        material_type_id=parse_int(qp.get('materialTypeId'), 'materialTypeId'),
        material_id=parse_int(qp.get('materialId'), 'materialId'),
        vendor_id=parse_int(qp.get('vendorId'), 'vendorId'),
    ))


@api_view(['GET'])
def analytics_filters(request):
    return Response(analytics.report_filters())


@api_view(['GET'])
def dashboard_view(request):
    return Response(dashboard.cached_dashboard())
