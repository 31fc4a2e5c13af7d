"""
Cache invalidation signals
Drop the dashboard aggregates whenever a row they count changes.
"""
import logging
import threading
from contextlib import contextmanager

from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .cache_utils import invalidate_dashboard_cache

logger = logging.getLogger(__name__)

# Models whose writes change at least one dashboard number
DASHBOARD_MODELS = {'catalog.Product', 'catalog.Category', 'inventory.StockMovement'}

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals for bulk operations.
    Remember to call invalidate_dashboard_cache() after the block!
    """
    previous = is_suspended()
    _thread_locals.suspended = True
    try:
        yield
    finally:
        _thread_locals.suspended = previous


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete])
def invalidate_dashboard_on_change(sender, instance, **kwargs):
    """Invalidate the dashboard cache once the surrounding transaction commits"""
    if is_suspended():
        return
    meta = getattr(sender, '_meta', None)
    if meta is None or meta.label not in DASHBOARD_MODELS:
        return
    transaction.on_commit(invalidate_dashboard_cache)
