"""Utility functions for audit logging and ledger settings"""
import logging

from django.conf import settings

from .models import AuditLog

logger = logging.getLogger(__name__)

LEDGER_DEFAULTS = {
    'MOVEMENT_HISTORY_LIMIT': 50,
    'MOVEMENT_HISTORY_MAX_LIMIT': 500,
    'MOVEMENT_APPLY_ATTEMPTS': 3,
    'DASHBOARD_CACHE_TTL': 300,
    'DEFAULT_PROFILE_NAME': 'User',
}


def get_ledger_setting(name):
    """Read a key from settings.STOCK_LEDGER, falling back to the built-in default"""
    overrides = getattr(settings, 'STOCK_LEDGER', None) or {}
    if name in overrides:
        return overrides[name]
    return LEDGER_DEFAULTS[name]


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None):
    """
    Create an audit log entry.

    Audit logging is best effort: a failure here is logged and swallowed so
    it never undoes the operation being audited.

    Args:
        request: request object (for user and IP) - optional if user is provided
        action: one of AuditLog.ACTION_CHOICES
        model_name: name of the model being acted upon
        object_id: primary key of the object
        changes: dictionary describing the change
        user: optional user override (defaults to request.user)
        object_name: human-readable name of the object
    """
    if not action or not model_name or object_id is None:
        logger.warning(
            "Audit log creation skipped: missing required fields (action=%s, model_name=%s, object_id=%s)",
            action, model_name, object_id,
        )
        return None

    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user is not None and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        logger.error("Failed to create audit log: %s", e)
        return None
