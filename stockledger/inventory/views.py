import re

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockledger.catalog.models import Product
from stockledger.catalog.serializers import ProductSerializer
from stockledger.core.exceptions import InvalidArgument
from stockledger.core.utils import create_audit_log, get_ledger_setting
from .ledger import ENTRY, MOVEMENT_TYPES
from .models import StockMovement
from .serializers import StockMovementSerializer
from .services import record_movement


def _history_limit(raw_limit):
    default_limit = get_ledger_setting('MOVEMENT_HISTORY_LIMIT')
    max_limit = get_ledger_setting('MOVEMENT_HISTORY_MAX_LIMIT')
    if raw_limit in (None, ''):
        return default_limit
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError):
        raise InvalidArgument('limit must be an integer.')
    if limit < 1:
        raise InvalidArgument('limit must be at least 1.')
    return min(limit, max_limit)


# Stock movement views (append-only)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def stock_movement_list_create(request):
    """
    GET: most recent movements first (``limit``, ``product_id``, ``movement_type``).
    POST: record a movement and apply it to the product balance.
    """
    if request.method == 'GET':
        queryset = StockMovement.objects.select_related(
            'product', 'responsible_user', 'responsible_user__profile'
        )

        product_id = request.query_params.get('product_id')
        if product_id:
            if not re.fullmatch(r'[0-9]+', product_id):
                raise InvalidArgument('product_id must be an integer.')
            queryset = queryset.filter(product_id=product_id)

        movement_type = request.query_params.get('movement_type')
        if movement_type:
            if movement_type not in MOVEMENT_TYPES:
                raise InvalidArgument(f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}.")
            queryset = queryset.filter(movement_type=movement_type)

        limit = _history_limit(request.query_params.get('limit'))
        queryset = queryset.order_by('-created_at', '-id')[:limit]
        serializer = StockMovementSerializer(queryset, many=True)
        return Response(serializer.data)

    movement = record_movement(
        actor=request.user,
        product_id=request.data.get('product_id'),
        movement_type=request.data.get('movement_type'),
        quantity=request.data.get('quantity'),
        notes=request.data.get('notes'),
        responsible_user_id=request.data.get('responsible_user_id'),
    )
    create_audit_log(
        request=request,
        action='stock_entry' if movement.movement_type == ENTRY else 'stock_exit',
        model_name='StockMovement',
        object_id=movement.id,
        object_name=movement.product.name,
        changes={
            'product_id': movement.product_id,
            'quantity': str(movement.quantity),
            'balance_after': str(movement.product.current_quantity),
        },
    )
    serializer = StockMovementSerializer(movement)
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_movement_detail(request, pk):
    """Retrieve a stock movement"""
    movement = get_object_or_404(
        StockMovement.objects.select_related('product', 'responsible_user', 'responsible_user__profile'),
        pk=pk,
    )
    serializer = StockMovementSerializer(movement)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def low_stock_list(request):
    """Products at or below their minimum quantity, by name"""
    products = Product.objects.low_stock().select_related('category').order_by('name', 'id')
    serializer = ProductSerializer(products, many=True)
    return Response(serializer.data)
