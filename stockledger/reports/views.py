from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .metrics import get_dashboard_metrics


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """Dashboard counts; ``?refresh=true`` bypasses the cache"""
    refresh = request.query_params.get('refresh', '').lower() in ('true', '1')
    metrics, cache_hit = get_dashboard_metrics(use_cache=not refresh)
    response = Response(metrics)
    response['X-Cache'] = 'HIT' if cache_hit else 'MISS'
    return response
