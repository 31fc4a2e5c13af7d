import django_filters

from .models import Product

TRUTHY = {'true', '1', 'yes'}
FALSY = {'false', '0', 'no'}


class ProductFilter(django_filters.FilterSet):
    """Product list filters: name search, category and stock status"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    uncategorized = django_filters.CharFilter(method='filter_uncategorized', label='Uncategorized')
    low_stock = django_filters.CharFilter(method='filter_low_stock', label='Low Stock')

    class Meta:
        model = Product
        fields = ['search', 'category', 'uncategorized', 'low_stock']

    def filter_search(self, queryset, name, value):
        """Case-insensitive substring match on the product name"""
        value = value.strip() if value else ''
        if value:
            queryset = queryset.filter(name__icontains=value)
        return queryset

    def filter_uncategorized(self, queryset, name, value):
        if value and value.lower() in TRUTHY:
            return queryset.filter(category__isnull=True)
        return queryset

    def filter_low_stock(self, queryset, name, value):
        """true: at or below minimum; false: above minimum"""
        if value is None or value == '':
            return queryset
        value = value.lower()
        if value in TRUTHY:
            return queryset.low_stock()
        if value in FALSY:
            return queryset.normal_stock()
        return queryset
