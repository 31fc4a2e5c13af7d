from django.contrib import admin
from .models import StockMovement


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    """Read-only: movements are recorded through the API so the balance stays in step"""
    list_display = ['product', 'movement_type', 'quantity', 'responsible_user', 'created_at']
    list_filter = ['movement_type', 'created_at']
    search_fields = ['product__name', 'notes', 'responsible_user__username']
    ordering = ['-created_at']
    readonly_fields = ['product', 'movement_type', 'quantity', 'responsible_user', 'notes', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
