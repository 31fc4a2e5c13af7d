"""
URL configuration for the stockledger project.

Every API app is mounted under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Stock Ledger Admin Panel"
admin.site.site_title = "Stock Ledger Admin Portal"
admin.site.index_title = "Inventory administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('stockledger.core.urls')),
    path('api/v1/', include('stockledger.catalog.urls')),
    path('api/v1/', include('stockledger.inventory.urls')),
    path('api/v1/', include('stockledger.reports.urls')),
]
