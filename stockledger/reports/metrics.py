"""
Dashboard aggregates over the catalog and the stock ledger.
"""
import logging

from stockledger.catalog.models import Product
from stockledger.core.cache_utils import get_cached_dashboard_metrics, cache_dashboard_metrics
from stockledger.inventory.ledger import ENTRY, EXIT
from stockledger.inventory.models import StockMovement

logger = logging.getLogger(__name__)


def compute_dashboard_metrics():
    """Four independent counts, straight from the database"""
    return {
        'total_products': Product.objects.count(),
        'low_stock_products': Product.objects.low_stock().count(),
        'total_entries': StockMovement.objects.filter(movement_type=ENTRY).count(),
        'total_exits': StockMovement.objects.filter(movement_type=EXIT).count(),
    }


def get_dashboard_metrics(use_cache=True):
    """
    Dashboard counts, served from cache when available.

    Returns a ``(metrics, cache_hit)`` pair.
    """
    if use_cache:
        cached = get_cached_dashboard_metrics()
        if cached is not None:
            return cached, True

    metrics = compute_dashboard_metrics()
    cache_dashboard_metrics(metrics)
    return metrics, False
