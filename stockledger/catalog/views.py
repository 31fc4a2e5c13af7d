from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockledger.core.utils import create_audit_log
from .filters import ProductFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer

PRODUCT_TRACKED_FIELDS = ['name', 'description', 'category_id', 'unit', 'minimum_quantity']
CATEGORY_TRACKED_FIELDS = ['name', 'description']


def _snapshot(instance, fields):
    """JSON-safe view of the tracked fields, for audit log diffs"""
    data = {}
    for field in fields:
        value = getattr(instance, field)
        data[field] = value if value is None or isinstance(value, (int, str)) else str(value)
    return data


def _diff(old_data, new_data):
    return {k: {'old': old_data.get(k), 'new': new_data.get(k)} for k in old_data if old_data.get(k) != new_data.get(k)}


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def category_list_create(request):
    """List all categories (by name) or create a new category"""
    if request.method == 'GET':
        categories = Category.objects.order_by('name')
        serializer = CategorySerializer(categories, many=True)
        return Response(serializer.data)

    serializer = CategorySerializer(data=request.data)
    if serializer.is_valid():
        category = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Category',
            object_id=category.id,
            object_name=category.name,
            changes=_snapshot(category, CATEGORY_TRACKED_FIELDS),
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def category_detail(request, pk):
    """Retrieve, update or delete a category. Deleting leaves its products uncategorized."""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        serializer = CategorySerializer(category)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            old_data = _snapshot(category, CATEGORY_TRACKED_FIELDS)
            serializer.save()
            changes = _diff(old_data, _snapshot(category, CATEGORY_TRACKED_FIELDS))
            if changes:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='Category',
                    object_id=category.id,
                    object_name=category.name,
                    changes=changes,
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        category_id = category.id
        category_name = category.name
        uncategorized = category.products.count()
        category.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Category',
            object_id=category_id,
            object_name=category_name,
            changes={'name': category_name, 'products_uncategorized': uncategorized},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """
    List products ordered by name, or create one.

    Query params: search, category, uncategorized, low_stock.
    New products always start at a balance of zero; stock arrives through
    entry movements.
    """
    if request.method == 'GET':
        queryset = Product.objects.select_related('category').order_by('name', 'id')
        product_filter = ProductFilter(request.query_params, queryset=queryset)
        if not product_filter.is_valid():
            return Response(product_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = ProductSerializer(product_filter.qs, many=True)
        return Response(serializer.data)

    serializer = ProductSerializer(data=request.data)
    if serializer.is_valid():
        product = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Product',
            object_id=product.id,
            object_name=product.name,
            changes=_snapshot(product, PRODUCT_TRACKED_FIELDS),
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or delete a product. Deleting also removes its movement history."""
    product = get_object_or_404(Product.objects.select_related('category'), pk=pk)

    if request.method == 'GET':
        serializer = ProductSerializer(product)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            old_data = _snapshot(product, PRODUCT_TRACKED_FIELDS)
            serializer.save()
            changes = _diff(old_data, _snapshot(product, PRODUCT_TRACKED_FIELDS))
            if changes:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='Product',
                    object_id=product.id,
                    object_name=product.name,
                    changes=changes,
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product_id = product.id
        product_name = product.name
        movement_count = product.movements.count()
        product.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=product_id,
            object_name=product_name,
            changes={'name': product_name, 'movements_deleted': movement_count},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
