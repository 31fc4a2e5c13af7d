from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'unit', 'current_quantity', 'minimum_quantity', 'low_stock', 'updated_at']
    list_filter = ['category', 'created_at']
    search_fields = ['name', 'description']
    ordering = ['name']
    readonly_fields = ['current_quantity', 'created_at', 'updated_at']

    @admin.display(boolean=True, description='Low stock')
    def low_stock(self, obj):
        return obj.is_low_stock
